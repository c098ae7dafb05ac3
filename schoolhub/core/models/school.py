import uuid
from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, String, Uuid

from schoolhub.db.session import Base


class School(Base):
    """
    Tenant root. Classrooms, students and school admins reference it by school_id.

    - code: public identifier, uppercase and globally unique.
    - total_capacity: informational target; never checked against classroom capacities.
    """

    __tablename__ = "schools"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(200), nullable=False, index=True)
    code = Column(String(20), nullable=False, unique=True, index=True)
    # {street, city, state, country, postal_code}
    address = Column(JSON, nullable=False, default=dict)
    # {email, phone, website}
    contact_info = Column(JSON, nullable=False, default=dict)
    principal_name = Column(String(200), nullable=True)
    established_year = Column(Integer, nullable=True)
    total_capacity = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    # "metadata" is reserved on declarative classes
    extra = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
