"""Permission evaluation over a resolved ``AuthContext``.

Every check in this module is a pure predicate: it reads the context and
the request shape, raises a ``PotionError`` on denial and returns ``None``
otherwise. Checks can be stacked and repeated within one request.
"""

import logging
from enum import Enum as PyEnum
from typing import Optional

from potion.exceptions import AccessDeniedError, ErrorCode, PermissionDeniedError
from potion.models.role import AccessLevel, RoleType
from potion.services.context import AuthContext, Principal, normalize_id

logger = logging.getLogger("potion.security")


class Permission(str, PyEnum):
    """Coarse permissions attached to each principal type."""
    READ_OWN_DATA = "read_own_data"
    WRITE_OWN_DATA = "write_own_data"
    READ_CLIENT_DATA = "read_client_data"
    WRITE_CLIENT_DATA = "write_client_data"
    READ_PROJECT_DATA = "read_project_data"
    WRITE_PROJECT_DATA = "write_project_data"
    MANAGE_USERS = "manage_users"
    SYSTEM_ADMIN = "system_admin"


class Capability(str, PyEnum):
    """Fine-grained capabilities derived from role type and access level."""
    READ = "read"
    WRITE = "write"
    DELETE = "delete"
    MANAGE_TEAM = "manage_team"
    BILLING = "billing"
    INVITE_USERS = "invite_users"
    MANAGE_DATA = "manage_data"
    MANAGE_TASKS = "manage_tasks"
    SYSTEM_ADMIN = "system_admin"


ROLE_PERMISSIONS: dict[Principal, frozenset] = {
    Principal.USER: frozenset({Permission.READ_OWN_DATA, Permission.WRITE_OWN_DATA}),
    Principal.ACCOUNTANT: frozenset({Permission.READ_CLIENT_DATA, Permission.WRITE_CLIENT_DATA}),
    Principal.SUBCONTRACTOR: frozenset({Permission.READ_PROJECT_DATA, Permission.WRITE_PROJECT_DATA}),
    Principal.ADMIN: frozenset({
        Permission.MANAGE_USERS,
        Permission.SYSTEM_ADMIN,
        Permission.READ_OWN_DATA,
        Permission.WRITE_OWN_DATA,
    }),
}

# Read-level accountants lose the write half of their permission set
READ_ONLY_ACCOUNTANT_PERMISSIONS = frozenset({Permission.READ_CLIENT_DATA})

_OWNER_CAPABILITIES = frozenset({
    Capability.READ,
    Capability.WRITE,
    Capability.DELETE,
    Capability.MANAGE_TEAM,
    Capability.BILLING,
    Capability.INVITE_USERS,
})

CAPABILITY_MATRIX: dict = {
    RoleType.BUSINESS_OWNER: _OWNER_CAPABILITIES,
    RoleType.ACCOUNTANT: {
        AccessLevel.VIEWER: frozenset({Capability.READ}),
        AccessLevel.CONTRIBUTOR: frozenset({Capability.READ, Capability.WRITE}),
        AccessLevel.EDITOR: frozenset({Capability.READ, Capability.WRITE, Capability.MANAGE_DATA}),
        AccessLevel.ADMIN: frozenset({
            Capability.READ, Capability.WRITE, Capability.MANAGE_DATA, Capability.MANAGE_TEAM,
        }),
    },
    RoleType.SUBCONTRACTOR: {
        AccessLevel.VIEWER: frozenset({Capability.READ}),
        AccessLevel.CONTRIBUTOR: frozenset({Capability.READ, Capability.WRITE, Capability.MANAGE_TASKS}),
        AccessLevel.EDITOR: frozenset({
            Capability.READ, Capability.WRITE, Capability.MANAGE_TASKS, Capability.MANAGE_DATA,
        }),
        AccessLevel.ADMIN: frozenset({
            Capability.READ, Capability.WRITE, Capability.MANAGE_TASKS, Capability.MANAGE_DATA,
        }),
    },
    RoleType.ADMIN: _OWNER_CAPABILITIES | {Capability.SYSTEM_ADMIN},
}

WRITE_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


def capabilities_for(role_type: RoleType, access_level: Optional[AccessLevel]) -> frozenset:
    """Look up the capability set for a role type at an access level."""
    entry = CAPABILITY_MATRIX[role_type]
    if isinstance(entry, frozenset):
        return entry
    return entry.get(access_level or AccessLevel.VIEWER, frozenset())


def permissions_for(principal: Principal, access_level: Optional[AccessLevel] = None) -> frozenset:
    """Principal permissions, narrowed for read-level accountants."""
    if principal == Principal.ACCOUNTANT and access_level == AccessLevel.VIEWER:
        return READ_ONLY_ACCOUNTANT_PERMISSIONS
    return ROLE_PERMISSIONS[principal]


def is_write_method(method: str) -> bool:
    return method.upper() in WRITE_METHODS


# =============================================================================
# Predicates
# =============================================================================

def check_write_permission(ctx: AuthContext, method: str, project_id=None) -> None:
    """
    Gate mutating requests.

    Reads always pass. For writes the checks run in order: read-only
    accountant, viewer-level grant on the named project, and finally the
    ``write`` capability. A subcontractor write naming a granted project is
    judged on that project's grant, whatever ``X-Project-ID`` selected.
    """
    if not is_write_method(method):
        return

    if ctx.principal == Principal.ACCOUNTANT and ctx.access_level == AccessLevel.VIEWER:
        logger.info("Write blocked for read-only accountant %s", ctx.principal_id)
        raise PermissionDeniedError(
            "Access denied: Read-only permission. You cannot modify data.",
            ErrorCode.READ_ONLY_ACCESS,
        )

    capabilities = ctx.capabilities
    if ctx.principal == Principal.SUBCONTRACTOR and project_id is not None:
        grant = ctx.grant_for(project_id)
        if grant is not None:
            if grant.access_level == AccessLevel.VIEWER:
                logger.info("Write blocked for viewer subcontractor %s on project %s", ctx.principal_id, project_id)
                raise PermissionDeniedError(
                    "Access denied: Viewer permission. You cannot modify this project.",
                    ErrorCode.VIEWER_ONLY_ACCESS,
                )
            capabilities = capabilities_for(RoleType.SUBCONTRACTOR, grant.access_level)

    if Capability.WRITE not in capabilities:
        raise PermissionDeniedError(
            "Access denied: Write permission required",
            ErrorCode.WRITE_PERMISSION_DENIED,
        )


def enforce_project_scope(ctx: AuthContext, project_id=None) -> None:
    """Subcontractors may only name projects they hold a grant for."""
    if ctx.principal != Principal.SUBCONTRACTOR:
        return
    if normalize_id(project_id) is None:
        return
    if ctx.grant_for(project_id) is None:
        logger.info("Project %s outside grants of subcontractor %s", project_id, ctx.principal_id)
        raise AccessDeniedError(
            "Access denied: You can only access your assigned projects",
            ErrorCode.PROJECT_ACCESS_DENIED,
        )


def require_permission(ctx: AuthContext, *permissions: Permission) -> None:
    """At least one of ``permissions`` must be held."""
    if not any(p in ctx.permissions for p in permissions):
        raise PermissionDeniedError(
            "Access denied: Insufficient permissions",
            ErrorCode.PERMISSION_DENIED,
        )


def require_capability(ctx: AuthContext, capability: Capability) -> None:
    if capability not in ctx.capabilities:
        raise PermissionDeniedError(
            f"Access denied: '{capability.value}' permission required",
            ErrorCode.PERMISSION_DENIED,
        )


def require_principal(ctx: AuthContext, *principals: Principal) -> None:
    if ctx.principal not in principals:
        raise AccessDeniedError(
            "Access denied: Role not permitted for this resource",
            ErrorCode.ROLE_DENIED,
        )


def is_business_owner(ctx: AuthContext) -> bool:
    if ctx.is_unified:
        return ctx.role_type == RoleType.BUSINESS_OWNER
    return ctx.principal == Principal.USER


def require_business_owner(ctx: AuthContext) -> None:
    if not is_business_owner(ctx):
        raise AccessDeniedError(
            "Access denied: Business owner access required",
            ErrorCode.BUSINESS_OWNER_ONLY,
        )
