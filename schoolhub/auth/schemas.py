import re
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from schoolhub.core.enums import Role
from schoolhub.core.schemas import ApiModel

PASSWORD_PATTERN = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[^A-Za-z0-9]).{8,128}$")
PASSWORD_RULES = "Password must be at least 8 characters with uppercase, lowercase, number and special character"


def _check_password_strength(value: str) -> str:
    if not PASSWORD_PATTERN.match(value):
        raise ValueError(PASSWORD_RULES)
    return value


class RegisterRequest(ApiModel):
    email: EmailStr
    password: str = Field(..., max_length=128)
    first_name: str = Field(..., min_length=2, max_length=100)
    last_name: str = Field(..., min_length=2, max_length=100)
    role: Role
    school_id: Optional[UUID] = None

    @field_validator("password")
    @classmethod
    def validate_password(cls, value: str) -> str:
        return _check_password_strength(value)

    @model_validator(mode="after")
    def validate_school_for_role(self) -> "RegisterRequest":
        if self.role == Role.SCHOOL_ADMIN and self.school_id is None:
            raise ValueError("School ID is required for school administrators")
        return self


class LoginRequest(ApiModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class RefreshRequest(ApiModel):
    refresh_token: str = Field(..., min_length=1)


class ProfileUpdate(ApiModel):
    first_name: Optional[str] = Field(None, min_length=2, max_length=100)
    last_name: Optional[str] = Field(None, min_length=2, max_length=100)
    is_active: Optional[bool] = None


class ChangePasswordRequest(ApiModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., max_length=128)

    @field_validator("new_password")
    @classmethod
    def validate_new_password(cls, value: str) -> str:
        return _check_password_strength(value)


class UserInfo(ApiModel):
    id: UUID
    email: EmailStr
    first_name: str
    last_name: str
    role: Role
    school_id: Optional[UUID] = None
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: datetime


class LoginResponse(ApiModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user: UserInfo


class AccessTokenResponse(ApiModel):
    access_token: str
    token_type: str = "bearer"


class CurrentUser(BaseModel):
    """Caller identity decoded from the access token; drives role checks and tenant scoping."""

    id: UUID
    role: Role
    school_id: Optional[UUID] = None
