"""Classrooms belong to one school; current_enrollment is owned by the student lifecycle."""
import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship

from schoolhub.db.session import Base


class Classroom(Base):
    __tablename__ = "classrooms"
    __table_args__ = (
        UniqueConstraint("school_id", "code", name="uq_classroom_school_code"),
        CheckConstraint(
            "current_enrollment >= 0 AND current_enrollment <= capacity",
            name="ck_classroom_enrollment_within_capacity",
        ),
        Index("ix_classroom_school_grade_year", "school_id", "grade", "academic_year"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    # Fixed at creation
    school_id = Column(Uuid, ForeignKey("schools.id"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    code = Column(String(50), nullable=False)
    grade = Column(String(50), nullable=False)
    section = Column(String(10), nullable=True)
    capacity = Column(Integer, nullable=False)
    current_enrollment = Column(Integer, nullable=False, default=0)
    # [{name, quantity, condition}]
    resources = Column(JSON, nullable=False, default=list)
    academic_year = Column(String(9), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    school = relationship("School", backref="classrooms")
