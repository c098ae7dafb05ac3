from datetime import datetime
from typing import Any, List, Optional
from uuid import UUID

from pydantic import Field, field_validator, model_validator

from schoolhub.core.enums import ResourceCondition
from schoolhub.core.schemas import ApiModel, ListParams

CLASSROOM_CODE_PATTERN = r"^[A-Z0-9_-]{1,50}$"
ACADEMIC_YEAR_PATTERN = r"^\d{4}-\d{4}$"


def _check_academic_year(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    start, end = (int(part) for part in value.split("-"))
    if end != start + 1:
        raise ValueError("Academic year must span consecutive years, e.g. 2024-2025")
    return value


class ClassroomResource(ApiModel):
    name: str = Field(..., min_length=1, max_length=100)
    quantity: int = Field(..., ge=0)
    condition: ResourceCondition = ResourceCondition.GOOD


class ClassroomCreate(ApiModel):
    school_id: UUID
    name: str = Field(..., min_length=1, max_length=200)
    code: str = Field(..., pattern=CLASSROOM_CODE_PATTERN)
    grade: str = Field(..., min_length=1, max_length=50)
    section: Optional[str] = Field(None, max_length=10)
    capacity: int = Field(..., ge=1, le=1000)
    resources: List[ClassroomResource] = Field(default_factory=list)
    academic_year: str = Field(..., pattern=ACADEMIC_YEAR_PATTERN)

    @field_validator("code", mode="before")
    @classmethod
    def normalize_code(cls, value: Any) -> Any:
        return value.strip().upper() if isinstance(value, str) else value

    @field_validator("academic_year")
    @classmethod
    def validate_academic_year(cls, value: str) -> str:
        return _check_academic_year(value)


class ClassroomUpdate(ApiModel):
    """school_id and current_enrollment are not updatable; sending them is rejected."""

    id: UUID
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    code: Optional[str] = Field(None, pattern=CLASSROOM_CODE_PATTERN)
    grade: Optional[str] = Field(None, min_length=1, max_length=50)
    section: Optional[str] = Field(None, max_length=10)
    capacity: Optional[int] = Field(None, ge=1, le=1000)
    resources: Optional[List[ClassroomResource]] = None
    academic_year: Optional[str] = Field(None, pattern=ACADEMIC_YEAR_PATTERN)
    is_active: Optional[bool] = None

    class Config:
        extra = "forbid"

    @field_validator("code", mode="before")
    @classmethod
    def normalize_code(cls, value: Any) -> Any:
        return value.strip().upper() if isinstance(value, str) else value

    @field_validator("academic_year")
    @classmethod
    def validate_academic_year(cls, value: Optional[str]) -> Optional[str]:
        return _check_academic_year(value)

    @model_validator(mode="after")
    def require_changes(self) -> "ClassroomUpdate":
        if not self.model_fields_set - {"id"}:
            raise ValueError("No fields to update")
        return self


class ClassroomListParams(ListParams):
    school_id: Optional[UUID] = None
    grade: Optional[str] = None
    academic_year: Optional[str] = None
    is_active: Optional[bool] = None


class ClassroomResponse(ApiModel):
    id: UUID
    school_id: UUID
    name: str
    code: str
    grade: str
    section: Optional[str] = None
    capacity: int
    current_enrollment: int
    resources: List[ClassroomResource] = Field(default_factory=list)
    academic_year: str
    is_active: bool
    created_at: datetime
    updated_at: datetime


class ClassroomSummary(ApiModel):
    id: UUID
    name: str
    code: str
    capacity: int


class EnrollmentStats(ApiModel):
    active: int
    total: int
    available: int
    # Percentage with two decimals, e.g. "75.00%"
    utilization_rate: str


class ClassroomStats(ApiModel):
    classroom: ClassroomSummary
    enrollment: EnrollmentStats
