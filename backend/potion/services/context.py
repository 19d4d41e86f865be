"""The per-request authorization context produced by the role resolver."""

from dataclasses import dataclass, field
from enum import Enum as PyEnum
from typing import Optional
from uuid import UUID

from potion.models.role import AccessLevel, RoleType


class Principal(str, PyEnum):
    """Kind of authenticated caller."""
    USER = "user"
    ACCOUNTANT = "accountant"
    SUBCONTRACTOR = "subcontractor"
    ADMIN = "admin"


def normalize_id(value) -> Optional[str]:
    """Canonical string form for ids coming from headers, paths or JSON."""
    if value is None or value == "":
        return None
    try:
        return str(UUID(str(value)))
    except ValueError:
        return str(value)


@dataclass(frozen=True)
class ProjectGrant:
    project_id: str
    owner_id: str
    access_level: AccessLevel


@dataclass(frozen=True)
class RoleSummary:
    """A role assignment as shown in role pickers."""
    id: str
    role_type: RoleType
    access_level: AccessLevel
    status: str
    business_owner_id: Optional[str] = None
    business_owner_name: Optional[str] = None


@dataclass(frozen=True)
class AuthContext:
    """
    Who is calling and on whose behalf.

    ``principal_id`` is the authenticated identity; ``target_user_id`` is the
    business owner whose data the request operates on. For unified tokens
    ``role_id``/``role_type`` describe the role the token is bound to.
    """

    principal: Principal
    principal_id: str
    target_user_id: str
    permissions: frozenset = field(default_factory=frozenset)
    capabilities: frozenset = field(default_factory=frozenset)
    access_level: Optional[AccessLevel] = None
    project_grants: tuple = ()
    selected_project_id: Optional[str] = None
    email: Optional[str] = None
    role_id: Optional[str] = None
    role_type: Optional[RoleType] = None
    business_owner_id: Optional[str] = None
    available_roles: tuple = ()

    @property
    def is_unified(self) -> bool:
        return self.role_id is not None

    @property
    def user_id(self) -> str:
        """Alias kept for handlers written against the legacy context."""
        return self.principal_id

    @property
    def legacy_user(self) -> dict:
        """Data-scoping projection consumed by the document controllers."""
        return {
            "userId": self.target_user_id,
            "id": self.target_user_id,
            "createdBy": self.target_user_id,
        }

    def grant_for(self, project_id) -> Optional[ProjectGrant]:
        project_id = normalize_id(project_id)
        for grant in self.project_grants:
            if grant.project_id == project_id:
                return grant
        return None

    def has_capability(self, capability) -> bool:
        return capability in self.capabilities
