"""Role resolver - turns a bearer token plus context headers into an ``AuthContext``.

Unified role tokens and the older per-principal tokens (user, accountant,
subcontractor, admin) are both accepted. The legacy records are adapted into
the same ``ProjectGrant`` / ``AuthContext`` shapes as the unified roles, so
nothing downstream needs to know which representation a caller came from.
"""

import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from potion.exceptions import (
    AccessDeniedError,
    AuthenticationError,
    ErrorCode,
    MissingContextError,
)
from potion.models.accountant import Accountant, AccountantAccess, AccountantAccessLevel, AccountantAccessStatus
from potion.models.admin import Admin
from potion.models.role import AccessLevel, RoleStatus, RoleType, UserRole
from potion.models.subcontractor import (
    ProjectAccessLevel,
    ProjectAccessStatus,
    Subcontractor,
    SubcontractorProjectAccess,
)
from potion.models.user import User
from potion.security import decode_token
from potion.services.context import AuthContext, Principal, ProjectGrant, RoleSummary, normalize_id
from potion.services.permissions import capabilities_for, permissions_for

logger = logging.getLogger("potion.security")

LEGACY_ACCOUNTANT_LEVELS = {
    AccountantAccessLevel.READ: AccessLevel.VIEWER,
    AccountantAccessLevel.EDIT: AccessLevel.CONTRIBUTOR,
}

LEGACY_PROJECT_LEVELS = {
    ProjectAccessLevel.VIEWER: AccessLevel.VIEWER,
    ProjectAccessLevel.CONTRIBUTOR: AccessLevel.CONTRIBUTOR,
}

PRINCIPAL_BY_ROLE_TYPE = {
    RoleType.BUSINESS_OWNER: Principal.USER,
    RoleType.ACCOUNTANT: Principal.ACCOUNTANT,
    RoleType.SUBCONTRACTOR: Principal.SUBCONTRACTOR,
    RoleType.ADMIN: Principal.ADMIN,
}


def _as_uuid(value) -> Optional[UUID]:
    try:
        return UUID(str(value))
    except (TypeError, ValueError):
        return None


def owner_display_name(owner: Optional[User]) -> Optional[str]:
    if owner is None:
        return None
    name = " ".join(p for p in (owner.first_name, owner.last_name) if p).strip()
    return name or owner.business_name or owner.email


def role_summary(role: UserRole) -> RoleSummary:
    return RoleSummary(
        id=str(role.id),
        role_type=role.role_type,
        access_level=role.access_level,
        status=role.status.value,
        business_owner_id=str(role.business_owner_id) if role.business_owner_id else None,
        business_owner_name=owner_display_name(role.business_owner),
    )


def grants_from_role(role: UserRole) -> tuple:
    """Unified subcontractor role -> project grants ({project_id: level} map)."""
    owner_id = str(role.business_owner_id)
    grants = []
    for project_id, level in (role.project_access or {}).items():
        grants.append(ProjectGrant(normalize_id(project_id), owner_id, AccessLevel(level)))
    return tuple(grants)


def grants_from_legacy(accesses) -> tuple:
    """Legacy subcontractor project accesses -> project grants."""
    return tuple(
        ProjectGrant(
            normalize_id(access.project_id),
            str(access.user_id),
            LEGACY_PROJECT_LEVELS[access.access_level],
        )
        for access in accesses
    )


def select_grant(grants: tuple, project_id: Optional[str]) -> ProjectGrant:
    """
    Pick the grant a subcontractor request operates under.

    An explicit ``X-Project-ID`` must match a grant. Without it a single
    grant is used as-is; several grants are ambiguous and rejected.
    """
    if not grants:
        raise AccessDeniedError("No active project access", ErrorCode.NO_PROJECT_ACCESS)

    project_id = normalize_id(project_id)
    if project_id is not None:
        for grant in grants:
            if grant.project_id == project_id:
                return grant
        raise AccessDeniedError(
            "Access denied: You can only access your assigned projects",
            ErrorCode.PROJECT_ACCESS_DENIED,
        )

    if len(grants) > 1:
        raise MissingContextError(
            "X-Project-ID header is required when you have access to several projects",
            ErrorCode.PROJECT_ID_REQUIRED,
        )
    return grants[0]


class RoleResolver:
    """Resolve the caller of a request into an ``AuthContext``."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def resolve(
        self,
        token: Optional[str],
        user_id_header: Optional[str] = None,
        project_id_header: Optional[str] = None,
        select_project: bool = True,
    ) -> AuthContext:
        """
        Resolve ``token`` into an ``AuthContext``.

        With ``select_project=False`` a unified subcontractor role resolves to
        its identity and grants without picking a project, for role discovery
        and switching.
        """
        if not token:
            raise AuthenticationError("No token, authorization denied", ErrorCode.NO_TOKEN)

        claims = decode_token(token)

        if claims.get("setup"):
            # Invitation / password setup links are not session tokens
            raise AuthenticationError("Invalid token", ErrorCode.INVALID_TOKEN)

        if claims.get("roleId") and claims.get("userId"):
            return await self._resolve_role(claims, user_id_header, project_id_header, select_project)
        if claims.get("userId"):
            return await self._resolve_user(claims["userId"])
        if claims.get("accountantId"):
            return await self._resolve_accountant(claims["accountantId"], user_id_header)
        if claims.get("subcontractorId"):
            return await self._resolve_subcontractor(claims["subcontractorId"], project_id_header)
        if claims.get("adminId"):
            return await self._resolve_admin(claims["adminId"])

        raise AuthenticationError("Invalid token format", ErrorCode.INVALID_TOKEN)

    # =========================================================================
    # Unified roles
    # =========================================================================

    async def _resolve_role(
        self,
        claims: dict,
        user_id_header: Optional[str],
        project_id_header: Optional[str],
        select_project: bool = True,
    ) -> AuthContext:
        user = await self._get_user(claims["userId"])

        role_id = _as_uuid(claims["roleId"])
        role = await self.db.get(UserRole, role_id) if role_id else None
        # A deleted role is indistinguishable from one that never existed
        if role is None or role.is_deleted or role.user_id != user.id:
            logger.info("Rejected token for missing or deleted role %s", claims.get("roleId"))
            raise AuthenticationError("Invalid token", ErrorCode.INVALID_TOKEN)

        if role.status != RoleStatus.ACTIVE:
            logger.info("Rejected token for %s role %s", role.status.value, role.id)
            raise AccessDeniedError("Role is not active", ErrorCode.ROLE_INACTIVE)

        principal = PRINCIPAL_BY_ROLE_TYPE[role.role_type]
        access_level = role.access_level
        grants: tuple = ()
        selected_project_id = None

        if role.role_type in (RoleType.BUSINESS_OWNER, RoleType.ADMIN):
            target_user_id = str(user.id)
        else:
            target_user_id = str(role.business_owner_id)

        if role.role_type == RoleType.ACCOUNTANT and user_id_header:
            if normalize_id(user_id_header) != target_user_id:
                logger.info("Accountant role %s asked for foreign client %s", role.id, user_id_header)
                raise AccessDeniedError("You don't have access to this user's data", ErrorCode.ACCESS_DENIED)

        if role.role_type == RoleType.SUBCONTRACTOR:
            grants = grants_from_role(role)
            if select_project:
                grant = select_grant(grants, project_id_header)
                access_level = grant.access_level
                selected_project_id = grant.project_id

        available = await self._available_roles(user.id)

        role.last_accessed_at = datetime.utcnow()
        await self.db.commit()

        return AuthContext(
            principal=principal,
            principal_id=str(user.id),
            target_user_id=target_user_id,
            permissions=permissions_for(principal, access_level),
            capabilities=capabilities_for(role.role_type, access_level),
            access_level=access_level,
            project_grants=grants,
            selected_project_id=selected_project_id,
            email=user.email,
            role_id=str(role.id),
            role_type=role.role_type,
            business_owner_id=str(role.business_owner_id) if role.business_owner_id else None,
            available_roles=available,
        )

    async def _available_roles(self, user_id: UUID) -> tuple:
        result = await self.db.execute(
            select(UserRole).where(
                UserRole.user_id == user_id,
                UserRole.is_deleted == False,
                UserRole.status.in_([RoleStatus.INVITED, RoleStatus.ACTIVE]),
            ).order_by(UserRole.created_at)
        )
        return tuple(role_summary(role) for role in result.scalars())

    # =========================================================================
    # Legacy principals
    # =========================================================================

    async def _get_user(self, user_id) -> User:
        uid = _as_uuid(user_id)
        user = await self.db.get(User, uid) if uid else None
        if user is None or user.is_deleted:
            raise AuthenticationError("User not found", ErrorCode.USER_NOT_FOUND)
        return user

    async def _resolve_user(self, user_id) -> AuthContext:
        user = await self._get_user(user_id)
        return AuthContext(
            principal=Principal.USER,
            principal_id=str(user.id),
            target_user_id=str(user.id),
            permissions=permissions_for(Principal.USER),
            capabilities=capabilities_for(RoleType.BUSINESS_OWNER, None),
            email=user.email,
        )

    async def _resolve_accountant(self, accountant_id, user_id_header: Optional[str]) -> AuthContext:
        aid = _as_uuid(accountant_id)
        accountant = await self.db.get(Accountant, aid) if aid else None
        if accountant is None:
            raise AuthenticationError("Accountant not found", ErrorCode.USER_NOT_FOUND)

        if not user_id_header:
            raise MissingContextError(
                "X-User-ID header required for accountant access",
                ErrorCode.MISSING_USER_ID_HEADER,
            )

        client_id = _as_uuid(user_id_header)
        access = None
        if client_id is not None:
            result = await self.db.execute(
                select(AccountantAccess).where(
                    AccountantAccess.accountant_id == accountant.id,
                    AccountantAccess.user_id == client_id,
                    AccountantAccess.status == AccountantAccessStatus.ACTIVE,
                )
            )
            access = result.scalar_one_or_none()

        if access is None:
            logger.info("Accountant %s has no active access to %s", accountant.id, user_id_header)
            raise AccessDeniedError("You don't have access to this user's data", ErrorCode.ACCESS_DENIED)

        access_level = LEGACY_ACCOUNTANT_LEVELS[access.access_level]
        return AuthContext(
            principal=Principal.ACCOUNTANT,
            principal_id=str(accountant.id),
            target_user_id=str(client_id),
            permissions=permissions_for(Principal.ACCOUNTANT, access_level),
            capabilities=capabilities_for(RoleType.ACCOUNTANT, access_level),
            access_level=access_level,
            email=accountant.email,
        )

    async def _resolve_subcontractor(self, subcontractor_id, project_id_header: Optional[str]) -> AuthContext:
        sid = _as_uuid(subcontractor_id)
        subcontractor = await self.db.get(Subcontractor, sid) if sid else None
        if subcontractor is None or subcontractor.is_deleted:
            raise AuthenticationError("Subcontractor not found", ErrorCode.USER_NOT_FOUND)

        result = await self.db.execute(
            select(SubcontractorProjectAccess).where(
                SubcontractorProjectAccess.subcontractor_id == subcontractor.id,
                SubcontractorProjectAccess.status == ProjectAccessStatus.ACTIVE,
            ).order_by(SubcontractorProjectAccess.created_at)
        )
        grants = grants_from_legacy(result.scalars().all())
        grant = select_grant(grants, project_id_header)

        return AuthContext(
            principal=Principal.SUBCONTRACTOR,
            principal_id=str(subcontractor.id),
            target_user_id=grant.owner_id,
            permissions=permissions_for(Principal.SUBCONTRACTOR),
            capabilities=capabilities_for(RoleType.SUBCONTRACTOR, grant.access_level),
            access_level=grant.access_level,
            project_grants=grants,
            selected_project_id=grant.project_id,
            email=subcontractor.email,
        )

    async def _resolve_admin(self, admin_id) -> AuthContext:
        aid = _as_uuid(admin_id)
        admin = await self.db.get(Admin, aid) if aid else None
        if admin is None:
            logger.warning("Admin token presented for unknown admin %s", admin_id)
            raise AuthenticationError("Admin not found", ErrorCode.USER_NOT_FOUND)

        return AuthContext(
            principal=Principal.ADMIN,
            principal_id=str(admin.id),
            target_user_id=str(admin.id),
            permissions=permissions_for(Principal.ADMIN),
            capabilities=capabilities_for(RoleType.ADMIN, None),
            email=admin.email,
        )
