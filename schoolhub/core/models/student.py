import uuid
from datetime import datetime

from sqlalchemy import JSON, Column, Date, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from schoolhub.db.session import Base


class Student(Base):
    """
    Student enrolled in exactly one school and optionally one classroom of that school.
    school_id only changes through a transfer, which also appends to enrollment_history.
    """

    __tablename__ = "students"
    __table_args__ = (
        Index("ix_student_school_status", "school_id", "status"),
        Index("ix_student_classroom_status", "classroom_id", "status"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    # Public student number, unique across all schools
    student_id = Column(String(50), nullable=False, unique=True, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    date_of_birth = Column(Date, nullable=False)
    gender = Column(String(10), nullable=False)
    school_id = Column(Uuid, ForeignKey("schools.id"), nullable=False, index=True)
    classroom_id = Column(Uuid, ForeignKey("classrooms.id"), nullable=True, index=True)
    # {name, relationship, email, phone, address}
    guardian_info = Column(JSON, nullable=False, default=dict)
    enrollment_date = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    # active | inactive | transferred | graduated
    status = Column(String(20), nullable=False, default="active", index=True)
    # {blood_group, allergies, medications, emergency_contact}
    medical_info = Column(JSON, nullable=True)
    academic_year = Column(String(9), nullable=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    enrollment_history = relationship(
        "EnrollmentHistory",
        back_populates="student",
        order_by="EnrollmentHistory.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class EnrollmentHistory(Base):
    """Append-only record of a past enrollment, written by transfers. Rows are never updated."""

    __tablename__ = "student_enrollment_history"
    __table_args__ = (
        UniqueConstraint("student_id", "position", name="uq_enrollment_history_student_position"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id = Column(Uuid, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    school_id = Column(Uuid, nullable=False)
    classroom_id = Column(Uuid, nullable=True)
    enrollment_date = Column(DateTime(timezone=True), nullable=True)
    exit_date = Column(DateTime(timezone=True), nullable=False)
    reason = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    student = relationship("Student", back_populates="enrollment_history")
