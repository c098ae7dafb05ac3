"""
Seat bookkeeping for classrooms.

current_enrollment counts active students assigned to a classroom. It only moves through
reserve_seat / release_seat, each a single conditional UPDATE, so concurrent requests can
never push it past capacity or below zero. Callers run these inside the same transaction
as the student write so a multi-step change (reassignment, transfer) commits or rolls back
as a whole.
"""
import logging
from typing import Optional
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from schoolhub.core.enums import StudentStatus
from schoolhub.core.exceptions import CapacityError, InvalidReferenceError, NotFoundError, ValidationError
from schoolhub.core.models import Classroom, Student

logger = logging.getLogger(__name__)


def holds_seat(status: Optional[str], classroom_id: Optional[UUID]) -> bool:
    return classroom_id is not None and status == StudentStatus.ACTIVE.value


async def get_assignable_classroom(
    db: AsyncSession,
    classroom_id: UUID,
    school_id: UUID,
    require_seat: bool = True,
) -> Classroom:
    """Load a classroom a student of school_id may be placed in, or raise why not.

    The seat check here only gives an early, precise error; reserve_seat is what guarantees it.
    """
    result = await db.execute(select(Classroom).where(Classroom.id == classroom_id))
    classroom = result.scalar_one_or_none()
    if not classroom:
        raise NotFoundError("Classroom not found")
    if classroom.school_id != school_id:
        raise InvalidReferenceError("Classroom does not belong to the student's school")
    if not classroom.is_active:
        raise ValidationError("Classroom is not active")
    if require_seat and classroom.current_enrollment >= classroom.capacity:
        raise CapacityError()
    return classroom


async def reserve_seat(db: AsyncSession, classroom_id: UUID) -> None:
    result = await db.execute(
        update(Classroom)
        .where(
            Classroom.id == classroom_id,
            Classroom.is_active.is_(True),
            Classroom.current_enrollment < Classroom.capacity,
        )
        .values(current_enrollment=Classroom.current_enrollment + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise CapacityError()


async def release_seat(db: AsyncSession, classroom_id: UUID) -> None:
    result = await db.execute(
        update(Classroom)
        .where(Classroom.id == classroom_id, Classroom.current_enrollment > 0)
        .values(current_enrollment=Classroom.current_enrollment - 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        logger.warning(f"Classroom {classroom_id} had no seat to release; enrollment counter left at zero")


async def count_active_students(db: AsyncSession, **filters) -> int:
    stmt = select(func.count()).select_from(Student).where(Student.status == StudentStatus.ACTIVE.value)
    for column, value in filters.items():
        stmt = stmt.where(getattr(Student, column) == value)
    result = await db.execute(stmt)
    return result.scalar() or 0
