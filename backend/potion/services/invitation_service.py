"""Invitation service - the role assignment lifecycle.

States: invited -> active <-> deactivated, plus an orthogonal soft-delete
flag. Deleted or deactivated roles stop resolving immediately; the role
resolver only ever accepts ``active``, non-deleted roles.
"""

import logging
import uuid
from datetime import datetime, timedelta
from typing import Optional, List
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from potion.config import get_settings
from potion.exceptions import (
    AuthenticationError,
    DuplicateRoleError,
    ErrorCode,
    InvalidTokenError,
    NotFoundError,
    ValidationFailedError,
)
from potion.models.role import (
    INVITABLE_ROLE_TYPES,
    AccessLevel,
    RoleStatus,
    RoleType,
    UserRole,
)
from potion.models.user import AuthProvider, User
from potion.security import create_role_token, create_setup_token, decode_token, hash_password
from potion.services.context import normalize_id
from potion.services.notification_service import (
    EmailOutbox,
    password_reset_email,
    role_invitation_email,
)
from potion.services.role_resolver import owner_display_name

settings = get_settings()
logger = logging.getLogger(__name__)


def _split_name(name: Optional[str]) -> tuple[Optional[str], Optional[str]]:
    parts = (name or "").split()
    if not parts:
        return None, None
    return parts[0], " ".join(parts[1:]) or None


class InvitationService:
    """Invite, activate, update and remove role assignments for a business owner."""

    def __init__(self, db: AsyncSession, outbox: Optional[EmailOutbox] = None):
        self.db = db
        self.outbox = outbox or EmailOutbox()

    # =========================================================================
    # Create / reactivate
    # =========================================================================

    async def invite(
        self,
        owner_id: UUID,
        email: str,
        role_type: RoleType,
        access_level: AccessLevel = AccessLevel.VIEWER,
        name: Optional[str] = None,
        note: Optional[str] = None,
        project_ids: Optional[List[str]] = None,
    ) -> tuple[UserRole, bool]:
        """
        Invite ``email`` to ``role_type`` in the owner's business.

        Returns the role and whether a soft-deleted role was reactivated
        instead of created.
        """
        if role_type not in INVITABLE_ROLE_TYPES:
            raise ValidationFailedError("Cannot invite business owners or admins", ErrorCode.INVALID_ROLE_TYPE)

        owner = await self.db.get(User, owner_id)
        if owner is None:
            raise NotFoundError("Business owner not found")

        user = await self._get_or_create_user(email, name)
        project_access = {normalize_id(pid): access_level.value for pid in (project_ids or [])}

        result = await self.db.execute(
            select(UserRole).where(
                UserRole.user_id == user.id,
                UserRole.role_type == role_type,
                UserRole.business_owner_id == owner_id,
            )
        )
        role = result.scalar_one_or_none()
        reactivated = False

        if role is not None:
            if not role.is_deleted:
                raise DuplicateRoleError(f"{user.email} is already invited/active as {role_type.value}")
            role.is_deleted = False
            role.deleted_at = None
            role.deleted_by_id = None
            role.status = RoleStatus.INVITED
            role.access_level = access_level
            role.note = note or role.note
            if project_ids is not None:
                role.project_access = project_access
            reactivated = True
        else:
            role = UserRole(
                id=uuid.uuid4(),
                user_id=user.id,
                email=user.email,
                role_type=role_type,
                business_owner_id=owner_id,
                access_level=access_level,
                status=RoleStatus.INVITED,
                note=note,
                project_access=project_access,
                profile={},
            )
            self.db.add(role)

        role.invited_by_id = owner_id
        role.invited_at = datetime.utcnow()
        self._issue_invite_token(role, timedelta(days=settings.INVITE_TOKEN_EXPIRE_DAYS))

        try:
            await self.db.commit()
        except IntegrityError:
            # Concurrent invite for the same (user, role type, owner)
            await self.db.rollback()
            raise DuplicateRoleError(f"{email.lower()} is already invited/active as {role_type.value}")
        await self.db.refresh(role)

        logger.info(
            "%s %s role %s for %s (owner %s)",
            "Reactivated" if reactivated else "Created",
            role_type.value,
            role.id,
            user.email,
            owner_id,
        )
        self.outbox.queue(role_invitation_email(
            to=user.email,
            owner_name=owner_display_name(owner),
            role_type=role_type,
            token=role.invite_token,
            role_id=role.id,
            needs_password=not user.is_password_set,
        ))
        return role, reactivated

    async def _get_or_create_user(self, email: str, name: Optional[str]) -> User:
        email = email.lower()
        result = await self.db.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()
        if user is not None:
            if user.is_deleted:
                user.is_deleted = False
            return user

        first_name, last_name = _split_name(name)
        user = User(
            email=email,
            first_name=first_name,
            last_name=last_name,
            auth_provider=AuthProvider.PASSWORD,
            is_password_set=False,
            is_active=False,
        )
        self.db.add(user)
        await self.db.flush()
        return user

    def _issue_invite_token(self, role: UserRole, lifetime: timedelta) -> None:
        role.invite_token = create_setup_token(
            user_id=role.user_id,
            role_type=role.role_type.value,
            role_id=role.id,
            expires_delta=lifetime,
        )
        role.invite_token_expires_at = datetime.utcnow() + lifetime

    async def resend_invite(self, owner_id: UUID, role_id: UUID) -> UserRole:
        role = await self._get_team_role(owner_id, role_id)
        if role.status != RoleStatus.INVITED:
            raise NotFoundError("Invited team member not found or already active")

        self._issue_invite_token(role, timedelta(days=settings.INVITE_TOKEN_EXPIRE_DAYS))
        await self.db.commit()
        await self.db.refresh(role)

        self.outbox.queue(role_invitation_email(
            to=role.email,
            owner_name=owner_display_name(role.business_owner),
            role_type=role.role_type,
            token=role.invite_token,
            role_id=role.id,
            needs_password=not role.user.is_password_set,
            trigger_event="invite_resent",
        ))
        return role

    # =========================================================================
    # Setup tokens
    # =========================================================================

    async def _get_role_by_token(self, token: str) -> UserRole:
        """Valid, unexpired, unconsumed setup token -> its role."""
        try:
            claims = decode_token(token)
        except AuthenticationError:
            raise InvalidTokenError()
        if not claims.get("setup"):
            raise InvalidTokenError()

        result = await self.db.execute(
            select(UserRole).where(
                UserRole.invite_token == token,
                UserRole.invite_token_expires_at > datetime.utcnow(),
                UserRole.is_deleted == False,
                UserRole.status.in_([RoleStatus.INVITED, RoleStatus.ACTIVE]),
            )
        )
        role = result.scalar_one_or_none()
        if role is None:
            raise InvalidTokenError()
        return role

    async def validate_token(self, token: str) -> UserRole:
        return await self._get_role_by_token(token)

    async def activate(
        self,
        token: str,
        password: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> tuple[UserRole, str]:
        """Set the password, activate the role and burn the token. Returns a session token."""
        role = await self._get_role_by_token(token)
        user = role.user

        if first_name:
            user.first_name = first_name
        if last_name:
            user.last_name = last_name
        user.password_hash = hash_password(password)
        user.is_password_set = True
        user.is_active = True

        role.status = RoleStatus.ACTIVE
        role.invite_token = None
        role.invite_token_expires_at = None

        await self.db.commit()
        await self.db.refresh(role)
        logger.info("Role %s activated for %s", role.id, user.email)

        session_token = create_role_token(
            user_id=user.id,
            role_id=role.id,
            email=user.email,
            role_type=role.role_type.value,
            business_owner_id=role.business_owner_id,
        )
        return role, session_token

    async def forgot_password(self, email: str, role_id: Optional[UUID] = None) -> UserRole:
        """Issue a 48h reset link on one of the user's roles. The role keeps its status."""
        email = email.lower()
        if role_id is not None:
            role = await self.db.get(UserRole, role_id)
            if (
                role is None
                or role.is_deleted
                or role.status == RoleStatus.DEACTIVATED
                or role.user.email.lower() != email
            ):
                raise NotFoundError("Role not found or email mismatch")
        else:
            result = await self.db.execute(
                select(UserRole).join(User, UserRole.user_id == User.id).where(
                    User.email == email,
                    UserRole.is_deleted == False,
                    UserRole.status.in_([RoleStatus.INVITED, RoleStatus.ACTIVE]),
                ).order_by(UserRole.created_at)
            )
            role = result.scalars().first()
            if role is None:
                raise NotFoundError("No active roles found for this email")

        self._issue_invite_token(role, timedelta(hours=settings.PASSWORD_SETUP_TOKEN_EXPIRE_HOURS))
        await self.db.commit()
        await self.db.refresh(role)

        self.outbox.queue(password_reset_email(email, role.invite_token, role.id))
        return role

    # =========================================================================
    # Team management
    # =========================================================================

    async def _get_team_role(self, owner_id: UUID, role_id: UUID) -> UserRole:
        # Roles of other tenants look exactly like missing ones
        result = await self.db.execute(
            select(UserRole).where(
                UserRole.id == role_id,
                UserRole.business_owner_id == owner_id,
                UserRole.role_type.in_(INVITABLE_ROLE_TYPES),
                UserRole.is_deleted == False,
            )
        )
        role = result.scalar_one_or_none()
        if role is None:
            raise NotFoundError("Team member not found")
        return role

    async def list_team(
        self,
        owner_id: UUID,
        role_type: Optional[RoleType] = None,
        status: Optional[RoleStatus] = None,
    ) -> List[UserRole]:
        query = select(UserRole).where(
            UserRole.business_owner_id == owner_id,
            UserRole.role_type.in_(INVITABLE_ROLE_TYPES),
            UserRole.is_deleted == False,
        )
        if role_type is not None:
            query = query.where(UserRole.role_type == role_type)
        if status is not None:
            query = query.where(UserRole.status == status)
        result = await self.db.execute(query.order_by(UserRole.created_at.desc()))
        return list(result.scalars())

    async def update_member(
        self,
        owner_id: UUID,
        role_id: UUID,
        access_level: Optional[AccessLevel] = None,
        status: Optional[RoleStatus] = None,
        project_access: Optional[dict] = None,
    ) -> UserRole:
        """Change access level, toggle active/deactivated, or replace project grants."""
        role = await self._get_team_role(owner_id, role_id)

        if access_level is not None:
            role.access_level = access_level

        if status is not None and status != role.status:
            if status == RoleStatus.INVITED:
                # Only invitations put a role into invited
                raise ValidationFailedError(
                    "Roles can only be activated or deactivated",
                    ErrorCode.INVALID_STATUS_TRANSITION,
                )
            if status == RoleStatus.ACTIVE and not role.user.is_password_set:
                raise ValidationFailedError(
                    "The invitation has not been accepted yet",
                    ErrorCode.INVALID_STATUS_TRANSITION,
                )
            role.status = status

        if project_access is not None:
            role.project_access = {
                normalize_id(pid): AccessLevel(level).value for pid, level in project_access.items()
            }

        await self.db.commit()
        await self.db.refresh(role)
        logger.info("Team member %s updated by %s", role.id, owner_id)
        return role

    async def remove_member(self, owner_id: UUID, role_id: UUID) -> UserRole:
        """Soft delete; the row stays for audit and for later reactivation."""
        role = await self._get_team_role(owner_id, role_id)
        role.is_deleted = True
        role.deleted_at = datetime.utcnow()
        role.deleted_by_id = owner_id
        role.invite_token = None
        role.invite_token_expires_at = None
        await self.db.commit()
        logger.info("Team member %s removed by %s", role.id, owner_id)
        return role
