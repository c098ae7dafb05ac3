from datetime import date, datetime
from typing import Any, List, Optional
from uuid import UUID

from pydantic import EmailStr, Field, field_validator

from schoolhub.core.enums import Gender, StudentStatus
from schoolhub.core.schemas import ApiModel, ListParams

STUDENT_ID_PATTERN = r"^[A-Z0-9_-]{1,50}$"
ACADEMIC_YEAR_PATTERN = r"^\d{4}-\d{4}$"
PHONE_PATTERN = r"^\+?[0-9\s\-()]{7,20}$"
RELATIONSHIPS = ("father", "mother", "guardian", "grandparent", "sibling", "other")


def _past_date(value: Optional[date]) -> Optional[date]:
    if value is not None and value >= date.today():
        raise ValueError("Invalid date of birth. Must be a valid past date")
    return value


class GuardianAddress(ApiModel):
    street: Optional[str] = Field(None, max_length=200)
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = Field(None, max_length=100)
    country: Optional[str] = Field(None, max_length=100)
    postal_code: Optional[str] = Field(None, max_length=20)


class GuardianInfo(ApiModel):
    name: str = Field(..., min_length=2, max_length=200)
    relationship: str
    email: EmailStr
    phone: str = Field(..., pattern=PHONE_PATTERN)
    address: Optional[GuardianAddress] = None

    @field_validator("relationship")
    @classmethod
    def validate_relationship(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in RELATIONSHIPS:
            raise ValueError("Invalid guardian relationship")
        return value


class MedicalInfo(ApiModel):
    blood_group: Optional[str] = Field(None, max_length=5)
    allergies: List[str] = Field(default_factory=list)
    medications: List[str] = Field(default_factory=list)
    emergency_contact: Optional[str] = Field(None, max_length=100)


class StudentCreate(ApiModel):
    """New students always start active."""

    school_id: UUID
    student_id: str = Field(..., pattern=STUDENT_ID_PATTERN)
    first_name: str = Field(..., min_length=2, max_length=100)
    last_name: str = Field(..., min_length=2, max_length=100)
    date_of_birth: date
    gender: Gender
    classroom_id: Optional[UUID] = None
    guardian_info: GuardianInfo
    medical_info: Optional[MedicalInfo] = None
    academic_year: str = Field(..., pattern=ACADEMIC_YEAR_PATTERN)

    @field_validator("student_id", mode="before")
    @classmethod
    def normalize_student_id(cls, value: Any) -> Any:
        return value.strip().upper() if isinstance(value, str) else value

    @field_validator("date_of_birth")
    @classmethod
    def validate_date_of_birth(cls, value: date) -> date:
        return _past_date(value)


class StudentUpdate(ApiModel):
    """school_id is changed by transfer only."""

    id: UUID
    first_name: Optional[str] = Field(None, min_length=2, max_length=100)
    last_name: Optional[str] = Field(None, min_length=2, max_length=100)
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    # Explicit null unassigns the student
    classroom_id: Optional[UUID] = None
    guardian_info: Optional[GuardianInfo] = None
    medical_info: Optional[MedicalInfo] = None
    status: Optional[StudentStatus] = None
    academic_year: Optional[str] = Field(None, pattern=ACADEMIC_YEAR_PATTERN)

    class Config:
        extra = "forbid"

    @field_validator("date_of_birth")
    @classmethod
    def validate_date_of_birth(cls, value: Optional[date]) -> Optional[date]:
        return _past_date(value)


class StudentTransfer(ApiModel):
    id: UUID
    new_school_id: UUID
    new_classroom_id: Optional[UUID] = None
    reason: str = Field(..., min_length=1, max_length=500)

    @field_validator("reason")
    @classmethod
    def validate_reason(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Transfer reason is required")
        return value


class StudentListParams(ListParams):
    school_id: Optional[UUID] = None
    classroom_id: Optional[UUID] = None
    status: Optional[StudentStatus] = None


class EnrollmentHistoryEntry(ApiModel):
    school_id: UUID
    classroom_id: Optional[UUID] = None
    enrollment_date: Optional[datetime] = None
    exit_date: datetime
    reason: str


class StudentResponse(ApiModel):
    id: UUID
    student_id: str
    first_name: str
    last_name: str
    date_of_birth: date
    gender: Gender
    school_id: UUID
    classroom_id: Optional[UUID] = None
    guardian_info: GuardianInfo
    enrollment_date: datetime
    status: StudentStatus
    medical_info: Optional[MedicalInfo] = None
    academic_year: str
    enrollment_history: List[EnrollmentHistoryEntry] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
