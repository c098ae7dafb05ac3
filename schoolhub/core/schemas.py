from typing import Any, Dict, Mapping, Optional, Type, TypeVar
from uuid import UUID

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from schoolhub.core.exceptions import ValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)


class ApiModel(BaseModel):
    """Base for request/response bodies. Wire names are camelCase; snake_case is accepted on input."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


class Pagination(ApiModel):
    page: int = Field(..., ge=1)
    limit: int = Field(..., ge=1)
    total: int = Field(..., ge=0)
    total_pages: int = Field(..., ge=0)


class ListParams(ApiModel):
    """Common paging parameters for list endpoints. limit is capped server-side."""

    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1)
    search: Optional[str] = Field(None, max_length=100)


class IdRequest(ApiModel):
    id: UUID


def _format_error(error: Dict[str, Any]) -> str:
    location = ".".join(str(part) for part in error.get("loc", ()))
    message = error.get("msg", "Invalid value")
    # "Value error, <text>" comes from our own validators; keep just the text
    if message.startswith("Value error, "):
        message = message[len("Value error, "):]
    return f"{location}: {message}" if location else message


def parse_payload(model: Type[ModelT], data: Optional[Mapping[str, Any]]) -> ModelT:
    """Validate a request payload, turning pydantic errors into a 400 with a readable message."""
    try:
        return model.model_validate(dict(data or {}))
    except PydanticValidationError as e:
        raise ValidationError("; ".join(_format_error(err) for err in e.errors()))
