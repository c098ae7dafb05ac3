"""
Tenant scoping: the single place deciding which school's rows a caller may touch.

- superadmin: unrestricted; may filter by any school or see all.
- school_admin: pinned to the school in its token. Naming any other school, directly or
  through a loaded resource, is an AuthorizationError.
"""
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from sqlalchemy import Select

from schoolhub.auth.schemas import CurrentUser
from schoolhub.core.enums import Role
from schoolhub.core.exceptions import AuthorizationError


@dataclass(frozen=True)
class TenantScope:
    role: Role
    school_id: Optional[UUID] = None

    @classmethod
    def for_caller(cls, caller: CurrentUser) -> "TenantScope":
        return cls(role=caller.role, school_id=caller.school_id)

    @property
    def is_global(self) -> bool:
        return self.role == Role.SUPERADMIN

    def _own_school(self) -> UUID:
        if self.school_id is None:
            raise AuthorizationError("No school is assigned to this account")
        return self.school_id

    def ensure_access(self, school_id: UUID, resource: str = "resources") -> None:
        """Reject a school_admin touching a row that belongs to another school."""
        if self.is_global:
            return
        if school_id != self._own_school():
            raise AuthorizationError(f"You can only access {resource} from your assigned school")

    def resolve_school_filter(self, requested: Optional[UUID]) -> Optional[UUID]:
        """School to filter a query by; None means no restriction (superadmin only)."""
        if self.is_global:
            return requested
        own = self._own_school()
        if requested is not None and requested != own:
            raise AuthorizationError("You can only access resources from your assigned school")
        return own

    def apply(self, stmt: Select, school_column, requested: Optional[UUID] = None) -> Select:
        school_id = self.resolve_school_filter(requested)
        if school_id is not None:
            stmt = stmt.where(school_column == school_id)
        return stmt
