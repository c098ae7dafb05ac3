"""
Student lifecycle. Every operation that moves a seat runs the counter change and the student
write in one transaction, so a failed step leaves both untouched.

Seat rule: a student holds a seat in its classroom only while its status is "active".
"""
import logging
from datetime import datetime
from typing import Any, Dict
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from schoolhub.core.enrollment import get_assignable_classroom, holds_seat, release_seat, reserve_seat
from schoolhub.core.enums import StudentStatus
from schoolhub.core.exceptions import ConflictError, NotFoundError, ServiceError
from schoolhub.core.models import EnrollmentHistory, School, Student
from schoolhub.core.pagination import paginate
from schoolhub.core.tenancy import TenantScope

from .schemas import StudentCreate, StudentListParams, StudentResponse, StudentTransfer, StudentUpdate

logger = logging.getLogger(__name__)

DUPLICATE_STUDENT_MESSAGE = "Student with this ID already exists"


def _student_to_response(s: Student) -> StudentResponse:
    return StudentResponse(
        id=s.id,
        student_id=s.student_id,
        first_name=s.first_name,
        last_name=s.last_name,
        date_of_birth=s.date_of_birth,
        gender=s.gender,
        school_id=s.school_id,
        classroom_id=s.classroom_id,
        guardian_info=s.guardian_info,
        enrollment_date=s.enrollment_date,
        status=s.status,
        medical_info=s.medical_info,
        academic_year=s.academic_year,
        enrollment_history=[
            {
                "school_id": h.school_id,
                "classroom_id": h.classroom_id,
                "enrollment_date": h.enrollment_date,
                "exit_date": h.exit_date,
                "reason": h.reason,
            }
            for h in s.enrollment_history
        ],
        created_at=s.created_at,
        updated_at=s.updated_at,
    )


async def _reload(db: AsyncSession, student_id: UUID) -> Student:
    result = await db.execute(
        select(Student).where(Student.id == student_id).execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def get_student_for_scope(db: AsyncSession, scope: TenantScope, student_id: UUID) -> Student:
    result = await db.execute(select(Student).where(Student.id == student_id))
    student = result.scalar_one_or_none()
    if not student:
        raise NotFoundError("Student not found")
    scope.ensure_access(student.school_id, "students")
    return student


async def create_student(db: AsyncSession, scope: TenantScope, payload: StudentCreate) -> StudentResponse:
    scope.ensure_access(payload.school_id, "students")

    school = await db.execute(select(School.id).where(School.id == payload.school_id))
    if school.scalar_one_or_none() is None:
        raise NotFoundError("School not found")
    existing = await db.execute(select(Student.id).where(Student.student_id == payload.student_id))
    if existing.scalar_one_or_none() is not None:
        raise ConflictError(DUPLICATE_STUDENT_MESSAGE)

    try:
        if payload.classroom_id is not None:
            await get_assignable_classroom(db, payload.classroom_id, payload.school_id)
            await reserve_seat(db, payload.classroom_id)

        student = Student(
            student_id=payload.student_id,
            first_name=payload.first_name.strip(),
            last_name=payload.last_name.strip(),
            date_of_birth=payload.date_of_birth,
            gender=payload.gender.value,
            school_id=payload.school_id,
            classroom_id=payload.classroom_id,
            guardian_info=payload.guardian_info.model_dump(mode="json"),
            enrollment_date=datetime.utcnow(),
            status=StudentStatus.ACTIVE.value,
            medical_info=payload.medical_info.model_dump(mode="json") if payload.medical_info else None,
            academic_year=payload.academic_year,
            enrollment_history=[],
        )
        db.add(student)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError(DUPLICATE_STUDENT_MESSAGE)
    except ServiceError:
        await db.rollback()
        raise

    logger.info(f"Created student {student.student_id} in school {student.school_id}")
    return _student_to_response(await _reload(db, student.id))


async def get_student(db: AsyncSession, scope: TenantScope, student_id: UUID) -> StudentResponse:
    student = await get_student_for_scope(db, scope, student_id)
    return _student_to_response(student)


async def list_students(
    db: AsyncSession,
    scope: TenantScope,
    params: StudentListParams,
    max_page_size: int,
) -> Dict[str, Any]:
    stmt = scope.apply(select(Student), Student.school_id, params.school_id)
    if params.classroom_id is not None:
        stmt = stmt.where(Student.classroom_id == params.classroom_id)
    if params.status is not None:
        stmt = stmt.where(Student.status == params.status.value)
    if params.search:
        pattern = f"%{params.search}%"
        stmt = stmt.where(
            or_(
                Student.first_name.ilike(pattern),
                Student.last_name.ilike(pattern),
                Student.student_id.ilike(pattern),
            )
        )
    stmt = stmt.order_by(Student.created_at.desc(), Student.id)

    rows, pagination = await paginate(db, stmt, params.page, params.limit, max_page_size)
    return {
        "students": [_student_to_response(s).to_wire() for s in rows],
        "pagination": pagination.to_wire(),
    }


async def update_student(db: AsyncSession, scope: TenantScope, payload: StudentUpdate) -> StudentResponse:
    student = await get_student_for_scope(db, scope, payload.id)
    fields = payload.model_fields_set

    old_classroom_id = student.classroom_id
    new_classroom_id = payload.classroom_id if "classroom_id" in fields else old_classroom_id
    new_status = payload.status.value if payload.status is not None else student.status
    had_seat = holds_seat(student.status, old_classroom_id)
    keeps_seat = holds_seat(new_status, new_classroom_id)
    moved = new_classroom_id != old_classroom_id

    needs_new_seat = keeps_seat and (moved or not had_seat)
    frees_old_seat = had_seat and (moved or not keeps_seat)

    try:
        # Validate the target before touching any counter
        if new_classroom_id is not None and (moved or needs_new_seat):
            await get_assignable_classroom(db, new_classroom_id, student.school_id, require_seat=needs_new_seat)
        if frees_old_seat:
            await release_seat(db, old_classroom_id)
        if needs_new_seat:
            await reserve_seat(db, new_classroom_id)

        if payload.first_name is not None:
            student.first_name = payload.first_name.strip()
        if payload.last_name is not None:
            student.last_name = payload.last_name.strip()
        if payload.date_of_birth is not None:
            student.date_of_birth = payload.date_of_birth
        if payload.gender is not None:
            student.gender = payload.gender.value
        if payload.guardian_info is not None:
            student.guardian_info = payload.guardian_info.model_dump(mode="json")
        if "medical_info" in fields:
            student.medical_info = payload.medical_info.model_dump(mode="json") if payload.medical_info else None
        if payload.academic_year is not None:
            student.academic_year = payload.academic_year
        student.classroom_id = new_classroom_id
        student.status = new_status
        student.updated_at = datetime.utcnow()
        await db.commit()
    except ServiceError:
        await db.rollback()
        raise

    if moved:
        logger.info(f"Student {student.student_id} reassigned from classroom {old_classroom_id} to {new_classroom_id}")
    return _student_to_response(await _reload(db, student.id))


async def delete_student(db: AsyncSession, scope: TenantScope, student_id: UUID) -> None:
    student = await get_student_for_scope(db, scope, student_id)
    if holds_seat(student.status, student.classroom_id):
        await release_seat(db, student.classroom_id)
    await db.delete(student)
    await db.commit()
    logger.info(f"Deleted student {student.student_id}")


async def transfer_student(db: AsyncSession, scope: TenantScope, payload: StudentTransfer) -> StudentResponse:
    """Move a student to another school (and optionally a classroom there), recording where it came from.

    The caller must be able to access the student's current school; the destination may be any
    active school.
    """
    student = await get_student_for_scope(db, scope, payload.id)

    result = await db.execute(
        select(School.id).where(School.id == payload.new_school_id, School.is_active.is_(True))
    )
    if result.scalar_one_or_none() is None:
        raise NotFoundError("New school not found or not active")

    now = datetime.utcnow()
    try:
        had_seat = holds_seat(student.status, student.classroom_id)
        if payload.new_classroom_id is not None:
            # The student's own seat is released below, so staying put needs no free seat
            stays_seated = had_seat and payload.new_classroom_id == student.classroom_id
            await get_assignable_classroom(
                db, payload.new_classroom_id, payload.new_school_id, require_seat=not stays_seated
            )
        if had_seat:
            await release_seat(db, student.classroom_id)
        if payload.new_classroom_id is not None:
            await reserve_seat(db, payload.new_classroom_id)

        student.enrollment_history.append(
            EnrollmentHistory(
                position=len(student.enrollment_history),
                school_id=student.school_id,
                classroom_id=student.classroom_id,
                enrollment_date=student.enrollment_date,
                exit_date=now,
                reason=payload.reason,
            )
        )
        previous_school_id = student.school_id
        student.school_id = payload.new_school_id
        student.classroom_id = payload.new_classroom_id
        student.status = StudentStatus.ACTIVE.value
        student.enrollment_date = now
        student.updated_at = now
        await db.commit()
    except ServiceError:
        await db.rollback()
        raise

    logger.info(f"Transferred student {student.student_id} from school {previous_school_id} to {payload.new_school_id}")
    return _student_to_response(await _reload(db, student.id))
