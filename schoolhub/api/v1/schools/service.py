"""
School operations. Schools are created, updated and deleted by superadmins only; reads are
tenant-scoped so a school_admin only ever sees its own school.

Single schools are cached under "school:<id>" as their wire representation.
"""
import logging
from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from schoolhub.core.cache import CacheManager
from schoolhub.core.enrollment import count_active_students
from schoolhub.core.exceptions import ConflictError, NotFoundError
from schoolhub.auth.models import User
from schoolhub.core.models import Classroom, EnrollmentHistory, School, Student
from schoolhub.core.pagination import paginate
from schoolhub.core.tenancy import TenantScope

from .schemas import SchoolCreate, SchoolListParams, SchoolResponse, SchoolStats, SchoolUpdate

logger = logging.getLogger(__name__)

SCHOOL_CACHE_TTL = 3600
SCHOOL_LIST_CACHE_KEY = "schools:list"


def school_cache_key(school_id: UUID) -> str:
    return f"school:{school_id}"


def _school_to_response(s: School) -> SchoolResponse:
    return SchoolResponse(
        id=s.id,
        name=s.name,
        code=s.code,
        address=s.address,
        contact_info=s.contact_info,
        principal_name=s.principal_name,
        established_year=s.established_year,
        total_capacity=s.total_capacity,
        is_active=s.is_active,
        metadata=s.extra,
        created_at=s.created_at,
        updated_at=s.updated_at,
    )


async def _load_school(db: AsyncSession, school_id: UUID) -> School:
    result = await db.execute(select(School).where(School.id == school_id))
    school = result.scalar_one_or_none()
    if not school:
        raise NotFoundError("School not found")
    return school


async def _code_taken(db: AsyncSession, code: str, exclude_id: Optional[UUID] = None) -> bool:
    stmt = select(School.id).where(School.code == code)
    if exclude_id is not None:
        stmt = stmt.where(School.id != exclude_id)
    result = await db.execute(stmt.limit(1))
    return result.scalar_one_or_none() is not None


async def create_school(db: AsyncSession, cache: CacheManager, payload: SchoolCreate) -> SchoolResponse:
    if await _code_taken(db, payload.code):
        raise ConflictError("School with this code already exists")
    school = School(
        name=payload.name.strip(),
        code=payload.code,
        address=payload.address.model_dump(),
        contact_info=payload.contact_info.model_dump(),
        principal_name=payload.principal_name,
        established_year=payload.established_year,
        total_capacity=payload.total_capacity,
        is_active=True,
        extra=payload.metadata,
    )
    db.add(school)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("School with this code already exists")
    await db.refresh(school)
    await cache.invalidate(SCHOOL_LIST_CACHE_KEY)
    logger.info(f"Created school {school.code} ({school.id})")
    return _school_to_response(school)


async def get_school(db: AsyncSession, cache: CacheManager, scope: TenantScope, school_id: UUID) -> Dict[str, Any]:
    """Read-through: cache hit skips the database. Returns the wire dict."""
    scope.ensure_access(school_id, "schools")
    key = school_cache_key(school_id)
    cached = await cache.get(key)
    if cached is not None:
        return cached

    school = await _load_school(db, school_id)
    data = _school_to_response(school).to_wire()
    await cache.set(key, data, ttl=SCHOOL_CACHE_TTL)
    return data


async def list_schools(
    db: AsyncSession,
    scope: TenantScope,
    params: SchoolListParams,
    max_page_size: int,
) -> Dict[str, Any]:
    stmt = scope.apply(select(School), School.id)
    if params.is_active is not None:
        stmt = stmt.where(School.is_active.is_(params.is_active))
    if params.search:
        pattern = f"%{params.search}%"
        stmt = stmt.where(or_(School.name.ilike(pattern), School.code.ilike(pattern)))
    stmt = stmt.order_by(School.created_at.desc(), School.id)

    rows, pagination = await paginate(db, stmt, params.page, params.limit, max_page_size)
    return {
        "schools": [_school_to_response(s).to_wire() for s in rows],
        "pagination": pagination.to_wire(),
    }


async def update_school(db: AsyncSession, cache: CacheManager, payload: SchoolUpdate) -> SchoolResponse:
    school = await _load_school(db, payload.id)
    changes = payload.model_dump(exclude_unset=True, exclude={"id"})

    if "code" in changes and changes["code"] != school.code:
        if await _code_taken(db, changes["code"], exclude_id=school.id):
            raise ConflictError("School with this code already exists")
        school.code = changes["code"]
    if "name" in changes and changes["name"] is not None:
        school.name = changes["name"].strip()
    if payload.address is not None:
        school.address = payload.address.model_dump()
    if payload.contact_info is not None:
        school.contact_info = payload.contact_info.model_dump()
    if "principal_name" in changes:
        school.principal_name = changes["principal_name"]
    if "established_year" in changes:
        school.established_year = changes["established_year"]
    if payload.total_capacity is not None:
        school.total_capacity = payload.total_capacity
    if payload.is_active is not None:
        school.is_active = payload.is_active
    if "metadata" in changes:
        school.extra = changes["metadata"]
    school.updated_at = datetime.utcnow()

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("School with this code already exists")
    await db.refresh(school)
    await cache.invalidate(school_cache_key(school.id), SCHOOL_LIST_CACHE_KEY)
    return _school_to_response(school)


async def delete_school(db: AsyncSession, cache: CacheManager, school_id: UUID) -> None:
    school = await _load_school(db, school_id)

    active_classrooms = await db.execute(
        select(Classroom.id).where(Classroom.school_id == school_id, Classroom.is_active.is_(True)).limit(1)
    )
    active_students = await count_active_students(db, school_id=school_id)
    if active_classrooms.scalar_one_or_none() is not None or active_students > 0:
        raise ConflictError("Cannot delete school with active classrooms or students")

    # Only inactive rows remain at this point; they go with the school. Its admins lose access.
    former_students = select(Student.id).where(Student.school_id == school_id)
    for stmt in (
        delete(EnrollmentHistory).where(EnrollmentHistory.student_id.in_(former_students)),
        delete(Student).where(Student.school_id == school_id),
        delete(Classroom).where(Classroom.school_id == school_id),
    ):
        await db.execute(stmt.execution_options(synchronize_session=False))
    await db.execute(
        update(User)
        .where(User.school_id == school_id)
        .values(school_id=None, is_active=False, refresh_token=None)
        .execution_options(synchronize_session=False)
    )
    await db.execute(delete(School).where(School.id == school.id).execution_options(synchronize_session=False))
    await db.commit()
    await cache.invalidate(school_cache_key(school_id), SCHOOL_LIST_CACHE_KEY)
    logger.info(f"Deleted school {school_id}")


async def get_school_stats(db: AsyncSession, scope: TenantScope, school_id: UUID) -> SchoolStats:
    scope.ensure_access(school_id, "schools")
    school = await _load_school(db, school_id)

    classrooms = await db.execute(
        select(func.count()).select_from(Classroom).where(
            Classroom.school_id == school_id, Classroom.is_active.is_(True)
        )
    )
    total_students = await db.execute(
        select(func.count()).select_from(Student).where(Student.school_id == school_id)
    )
    active = await count_active_students(db, school_id=school_id)
    total = total_students.scalar() or 0

    return SchoolStats(
        school_id=school.id,
        school_name=school.name,
        total_classrooms=classrooms.scalar() or 0,
        total_students=total,
        active_students=active,
        inactive_students=total - active,
    )
