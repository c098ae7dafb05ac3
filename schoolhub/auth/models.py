import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, String, Text, Uuid

from schoolhub.db.session import Base


class User(Base):
    """Platform user. superadmin manages every school; school_admin is bound to one school."""

    __tablename__ = "users"
    __table_args__ = (
        Index("ix_user_school_role", "school_id", "role"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(Text, nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    # superadmin | school_admin
    role = Column(String(50), nullable=False, index=True)
    # Required for school_admin, null for superadmin
    school_id = Column(Uuid, ForeignKey("schools.id"), nullable=True)
    # Soft flag; users are never hard-deleted
    is_active = Column(Boolean, nullable=False, default=True)
    last_login = Column(DateTime(timezone=True), nullable=True)
    # Only the most recently issued refresh token is accepted
    refresh_token = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
