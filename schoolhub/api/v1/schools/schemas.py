from datetime import date, datetime
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import EmailStr, Field, field_validator

from schoolhub.core.schemas import ApiModel, ListParams

CODE_PATTERN = r"^[A-Z0-9_-]{2,20}$"
PHONE_PATTERN = r"^\+?[0-9\s\-()]{7,20}$"


class Address(ApiModel):
    street: str = Field(..., min_length=1, max_length=200)
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=1, max_length=100)
    country: str = Field(..., min_length=1, max_length=100)
    postal_code: str = Field(..., min_length=1, max_length=20)


class ContactInfo(ApiModel):
    email: EmailStr
    phone: str = Field(..., pattern=PHONE_PATTERN)
    website: Optional[str] = Field(None, max_length=200)


class SchoolCreate(ApiModel):
    name: str = Field(..., min_length=2, max_length=200)
    code: str = Field(..., pattern=CODE_PATTERN)
    address: Address
    contact_info: ContactInfo
    principal_name: Optional[str] = Field(None, min_length=2, max_length=200)
    established_year: Optional[int] = Field(None, ge=1800)
    total_capacity: int = Field(0, ge=0)
    metadata: Optional[Dict[str, Any]] = None

    @field_validator("code", mode="before")
    @classmethod
    def normalize_code(cls, value: Any) -> Any:
        return value.strip().upper() if isinstance(value, str) else value

    @field_validator("established_year")
    @classmethod
    def validate_established_year(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and value > date.today().year:
            raise ValueError("Established year cannot be in the future")
        return value


class SchoolUpdate(ApiModel):
    id: UUID
    name: Optional[str] = Field(None, min_length=2, max_length=200)
    code: Optional[str] = Field(None, pattern=CODE_PATTERN)
    address: Optional[Address] = None
    contact_info: Optional[ContactInfo] = None
    principal_name: Optional[str] = Field(None, min_length=2, max_length=200)
    established_year: Optional[int] = Field(None, ge=1800)
    total_capacity: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None
    metadata: Optional[Dict[str, Any]] = None

    class Config:
        extra = "forbid"

    @field_validator("code", mode="before")
    @classmethod
    def normalize_code(cls, value: Any) -> Any:
        return value.strip().upper() if isinstance(value, str) else value


class SchoolListParams(ListParams):
    is_active: Optional[bool] = None


class SchoolResponse(ApiModel):
    id: UUID
    name: str
    code: str
    address: Address
    contact_info: ContactInfo
    principal_name: Optional[str] = None
    established_year: Optional[int] = None
    total_capacity: int
    is_active: bool
    metadata: Optional[Dict[str, Any]] = None
    created_at: datetime
    updated_at: datetime


class SchoolStats(ApiModel):
    school_id: UUID
    school_name: str
    total_classrooms: int
    total_students: int
    active_students: int
    inactive_students: int
