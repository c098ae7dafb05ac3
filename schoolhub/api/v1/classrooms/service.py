import logging
from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from schoolhub.core.enrollment import count_active_students
from schoolhub.core.exceptions import ConflictError, NotFoundError, ValidationError
from schoolhub.core.models import Classroom, School, Student
from schoolhub.core.pagination import paginate
from schoolhub.core.tenancy import TenantScope

from .schemas import (
    ClassroomCreate,
    ClassroomListParams,
    ClassroomResponse,
    ClassroomStats,
    ClassroomSummary,
    ClassroomUpdate,
    EnrollmentStats,
)

logger = logging.getLogger(__name__)

DUPLICATE_CODE_MESSAGE = "Classroom with this code already exists in this school"


def _classroom_to_response(c: Classroom) -> ClassroomResponse:
    return ClassroomResponse(
        id=c.id,
        school_id=c.school_id,
        name=c.name,
        code=c.code,
        grade=c.grade,
        section=c.section,
        capacity=c.capacity,
        current_enrollment=c.current_enrollment,
        resources=c.resources or [],
        academic_year=c.academic_year,
        is_active=c.is_active,
        created_at=c.created_at,
        updated_at=c.updated_at,
    )


async def get_classroom_for_scope(db: AsyncSession, scope: TenantScope, classroom_id: UUID) -> Classroom:
    result = await db.execute(select(Classroom).where(Classroom.id == classroom_id))
    classroom = result.scalar_one_or_none()
    if not classroom:
        raise NotFoundError("Classroom not found")
    scope.ensure_access(classroom.school_id, "classrooms")
    return classroom


async def _code_taken(db: AsyncSession, school_id: UUID, code: str, exclude_id: Optional[UUID] = None) -> bool:
    stmt = select(Classroom.id).where(Classroom.school_id == school_id, Classroom.code == code)
    if exclude_id is not None:
        stmt = stmt.where(Classroom.id != exclude_id)
    result = await db.execute(stmt.limit(1))
    return result.scalar_one_or_none() is not None


async def create_classroom(db: AsyncSession, scope: TenantScope, payload: ClassroomCreate) -> ClassroomResponse:
    scope.ensure_access(payload.school_id, "classrooms")

    school = await db.execute(select(School.id).where(School.id == payload.school_id))
    if school.scalar_one_or_none() is None:
        raise NotFoundError("School not found")
    if await _code_taken(db, payload.school_id, payload.code):
        raise ConflictError(DUPLICATE_CODE_MESSAGE)

    classroom = Classroom(
        school_id=payload.school_id,
        name=payload.name.strip(),
        code=payload.code,
        grade=payload.grade.strip(),
        section=payload.section,
        capacity=payload.capacity,
        current_enrollment=0,
        resources=[r.model_dump(mode="json") for r in payload.resources],
        academic_year=payload.academic_year,
        is_active=True,
    )
    db.add(classroom)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError(DUPLICATE_CODE_MESSAGE)
    await db.refresh(classroom)
    logger.info(f"Created classroom {classroom.code} in school {classroom.school_id}")
    return _classroom_to_response(classroom)


async def get_classroom(db: AsyncSession, scope: TenantScope, classroom_id: UUID) -> ClassroomResponse:
    classroom = await get_classroom_for_scope(db, scope, classroom_id)
    return _classroom_to_response(classroom)


async def list_classrooms(
    db: AsyncSession,
    scope: TenantScope,
    params: ClassroomListParams,
    max_page_size: int,
) -> Dict[str, Any]:
    stmt = scope.apply(select(Classroom), Classroom.school_id, params.school_id)
    if params.grade:
        stmt = stmt.where(Classroom.grade == params.grade)
    if params.academic_year:
        stmt = stmt.where(Classroom.academic_year == params.academic_year)
    if params.is_active is not None:
        stmt = stmt.where(Classroom.is_active.is_(params.is_active))
    if params.search:
        pattern = f"%{params.search}%"
        stmt = stmt.where(or_(Classroom.name.ilike(pattern), Classroom.code.ilike(pattern)))
    stmt = stmt.order_by(Classroom.created_at.desc(), Classroom.id)

    rows, pagination = await paginate(db, stmt, params.page, params.limit, max_page_size)
    return {
        "classrooms": [_classroom_to_response(c).to_wire() for c in rows],
        "pagination": pagination.to_wire(),
    }


async def update_classroom(db: AsyncSession, scope: TenantScope, payload: ClassroomUpdate) -> ClassroomResponse:
    classroom = await get_classroom_for_scope(db, scope, payload.id)
    if payload.code is not None and payload.code != classroom.code:
        if await _code_taken(db, classroom.school_id, payload.code, exclude_id=classroom.id):
            raise ConflictError(DUPLICATE_CODE_MESSAGE)

    if payload.name is not None:
        classroom.name = payload.name.strip()
    if payload.code is not None:
        classroom.code = payload.code
    if payload.grade is not None:
        classroom.grade = payload.grade.strip()
    if "section" in payload.model_fields_set:
        classroom.section = payload.section
    if payload.academic_year is not None:
        classroom.academic_year = payload.academic_year
    if payload.is_active is not None:
        classroom.is_active = payload.is_active
    if payload.resources is not None:
        classroom.resources = [r.model_dump(mode="json") for r in payload.resources]
    classroom.updated_at = datetime.utcnow()

    try:
        await db.flush()
        if payload.capacity is not None:
            # Conditional so a seat reserved concurrently is never squeezed out
            result = await db.execute(
                update(Classroom)
                .where(Classroom.id == classroom.id, Classroom.current_enrollment <= payload.capacity)
                .values(capacity=payload.capacity)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                await db.rollback()
                raise ValidationError("Capacity cannot be lower than the current enrollment")
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError(DUPLICATE_CODE_MESSAGE)
    await db.refresh(classroom)
    return _classroom_to_response(classroom)


async def delete_classroom(db: AsyncSession, scope: TenantScope, classroom_id: UUID) -> None:
    classroom = await get_classroom_for_scope(db, scope, classroom_id)

    active = await count_active_students(db, classroom_id=classroom_id)
    if active > 0:
        raise ConflictError(f"Cannot delete classroom with {active} active students")

    # Inactive students keep their school but lose the classroom reference
    await db.execute(
        update(Student)
        .where(Student.classroom_id == classroom_id)
        .values(classroom_id=None)
        .execution_options(synchronize_session=False)
    )
    await db.delete(classroom)
    await db.commit()
    logger.info(f"Deleted classroom {classroom_id}")


async def get_classroom_stats(db: AsyncSession, scope: TenantScope, classroom_id: UUID) -> ClassroomStats:
    classroom = await get_classroom_for_scope(db, scope, classroom_id)

    active = await count_active_students(db, classroom_id=classroom_id)
    total = await db.execute(select(func.count()).select_from(Student).where(Student.classroom_id == classroom_id))
    rate = active / classroom.capacity * 100 if classroom.capacity else 0

    return ClassroomStats(
        classroom=ClassroomSummary(
            id=classroom.id,
            name=classroom.name,
            code=classroom.code,
            capacity=classroom.capacity,
        ),
        enrollment=EnrollmentStats(
            active=active,
            total=total.scalar() or 0,
            available=classroom.capacity - active,
            utilization_rate=f"{rate:.2f}%",
        ),
    )
