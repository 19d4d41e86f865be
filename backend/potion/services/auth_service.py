"""Authentication service - login, session and role switching flows."""

import logging
import secrets
import uuid
from datetime import datetime, timedelta
from typing import Optional, List
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from potion.config import get_settings
from potion.exceptions import (
    AuthenticationError,
    ErrorCode,
    InvalidCredentialsError,
    InvalidTokenError,
    NotFoundError,
    ValidationFailedError,
)
from potion.models.accountant import Accountant, AccountantAccess, AccountantAccessStatus
from potion.models.admin import Admin
from potion.models.role import AccessLevel, RoleStatus, RoleType, UserRole
from potion.models.subcontractor import Subcontractor, SubcontractorStatus
from potion.models.user import AuthProvider, User
from potion.security import (
    create_accountant_token,
    create_admin_token,
    create_role_token,
    create_setup_token,
    create_subcontractor_token,
    create_user_tokens,
    decode_token,
    generate_otp_code,
    hash_password,
    verify_password,
)
from potion.services.context import AuthContext, Principal
from potion.services.notification_service import EmailOutbox, admin_code_email, password_reset_email

settings = get_settings()
logger = logging.getLogger(__name__)

ADMIN_CODE_MAX_ATTEMPTS = 5

ROLE_DISPLAY_NAMES = {
    RoleType.BUSINESS_OWNER: "Business Owner",
    RoleType.ACCOUNTANT: "Accountant",
    RoleType.SUBCONTRACTOR: "Subcontractor",
    RoleType.ADMIN: "Admin",
}

REDIRECTS = {
    RoleType.BUSINESS_OWNER: "/dashboard",
    RoleType.ACCOUNTANT: "/transactions",
    RoleType.SUBCONTRACTOR: "/projects",
    RoleType.ADMIN: "/admin",
}


def business_display_name(owner: Optional[User]) -> Optional[str]:
    """Business name first, then the person's name, then the email."""
    if owner is None:
        return None
    person = " ".join(p for p in (owner.first_name, owner.last_name) if p).strip()
    return owner.business_name or person or owner.email


def role_display_name(role: UserRole) -> str:
    name = ROLE_DISPLAY_NAMES[role.role_type]
    if role.role_type != RoleType.BUSINESS_OWNER and role.business_owner is not None:
        name = f"{name} for {business_display_name(role.business_owner)}"
    return name


class AuthService:
    """Credential checks and token issuance for every login flow."""

    def __init__(self, db: AsyncSession, outbox: Optional[EmailOutbox] = None):
        self.db = db
        self.outbox = outbox or EmailOutbox()

    async def _get_user_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(
            select(User).where(User.email == email.lower(), User.is_deleted == False)
        )
        return result.scalar_one_or_none()

    async def _live_roles(self, user_id: UUID) -> List[UserRole]:
        result = await self.db.execute(
            select(UserRole).where(
                UserRole.user_id == user_id,
                UserRole.is_deleted == False,
                UserRole.status.in_([RoleStatus.INVITED, RoleStatus.ACTIVE]),
            ).order_by(UserRole.created_at)
        )
        return list(result.scalars())

    # =========================================================================
    # Business owner accounts
    # =========================================================================

    async def register(
        self,
        email: str,
        password: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        business_name: Optional[str] = None,
    ) -> tuple[User, str, str]:
        """Create a business owner account together with its owner role."""
        email = email.lower()
        result = await self.db.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()

        if user is not None and user.is_password_set:
            raise ValidationFailedError("Email already registered", ErrorCode.EMAIL_ALREADY_REGISTERED)

        if user is None:
            # Invited users that never set a password keep their row and roles
            user = User(id=uuid.uuid4(), email=email)
            self.db.add(user)

        user.first_name = first_name or user.first_name
        user.last_name = last_name or user.last_name
        user.business_name = business_name or user.business_name
        user.password_hash = hash_password(password)
        user.is_password_set = True
        user.is_active = True
        user.is_deleted = False
        user.auth_provider = AuthProvider.PASSWORD

        self.db.add(UserRole(
            user_id=user.id,
            email=email,
            role_type=RoleType.BUSINESS_OWNER,
            business_owner_id=user.id,
            access_level=AccessLevel.ADMIN,
            status=RoleStatus.ACTIVE,
            project_access={},
            profile={},
        ))

        access_token, refresh_token = create_user_tokens(user.id)
        user.refresh_token = refresh_token
        user.last_login_at = datetime.utcnow()
        await self.db.commit()
        await self.db.refresh(user)

        logger.info("Registered business owner %s", user.email)
        return user, access_token, refresh_token

    async def login(self, email: str, password: str) -> tuple[User, str, str]:
        user = await self._get_user_by_email(email)
        if not user or not verify_password(password, user.password_hash):
            logger.info("Failed login for %s", email.lower())
            raise InvalidCredentialsError()

        access_token, refresh_token = create_user_tokens(user.id)
        user.refresh_token = refresh_token
        user.last_login_at = datetime.utcnow()
        await self.db.commit()
        return user, access_token, refresh_token

    async def refresh(self, refresh_token: Optional[str]) -> tuple[str, str]:
        """Rotate the token pair; the presented refresh token must be the stored one."""
        if not refresh_token:
            raise AuthenticationError("Refresh token not found", ErrorCode.NO_TOKEN)

        claims = decode_token(refresh_token)
        user_id = claims.get("userId")
        try:
            user = await self.db.get(User, UUID(str(user_id)))
        except ValueError:
            user = None
        if user is None or user.is_deleted or user.refresh_token != refresh_token:
            raise AuthenticationError("Invalid refresh token", ErrorCode.INVALID_TOKEN)

        access_token, new_refresh_token = create_user_tokens(user.id)
        user.refresh_token = new_refresh_token
        await self.db.commit()
        return access_token, new_refresh_token

    async def logout(self, refresh_token: Optional[str]) -> None:
        if not refresh_token:
            return
        result = await self.db.execute(select(User).where(User.refresh_token == refresh_token))
        user = result.scalar_one_or_none()
        if user is not None:
            user.refresh_token = None
            await self.db.commit()

    async def forgot_password(self, email: str) -> None:
        """Email a 48h password setup link; unknown emails are silently ignored."""
        user = await self._get_user_by_email(email)
        if user is None:
            logger.info("Password reset requested for unknown email")
            return

        lifetime = timedelta(hours=settings.PASSWORD_SETUP_TOKEN_EXPIRE_HOURS)
        token = create_setup_token(user.id, RoleType.BUSINESS_OWNER.value, expires_delta=lifetime)
        user.password_setup_token = token
        user.password_setup_token_expires_at = datetime.utcnow() + lifetime
        await self.db.commit()

        self.outbox.queue(password_reset_email(user.email, token))

    async def setup_password(self, token: str, password: str) -> tuple[User, str, str]:
        """Consume a user-level setup token (single use) and sign the user in."""
        try:
            claims = decode_token(token)
        except AuthenticationError:
            raise InvalidTokenError()
        if not claims.get("setup"):
            raise InvalidTokenError()

        result = await self.db.execute(
            select(User).where(
                User.password_setup_token == token,
                User.password_setup_token_expires_at > datetime.utcnow(),
                User.is_deleted == False,
            )
        )
        user = result.scalar_one_or_none()
        if user is None:
            raise InvalidTokenError()

        user.password_hash = hash_password(password)
        user.is_password_set = True
        user.is_active = True
        user.password_setup_token = None
        user.password_setup_token_expires_at = None

        access_token, refresh_token = create_user_tokens(user.id)
        user.refresh_token = refresh_token
        await self.db.commit()
        return user, access_token, refresh_token

    # =========================================================================
    # Legacy principals
    # =========================================================================

    async def accountant_login(self, email: str, password: str) -> tuple[Accountant, str, List[AccountantAccess]]:
        result = await self.db.execute(select(Accountant).where(Accountant.email == email.lower()))
        accountant = result.scalar_one_or_none()
        if not accountant or not verify_password(password, accountant.password_hash):
            raise InvalidCredentialsError()

        result = await self.db.execute(
            select(AccountantAccess).where(
                AccountantAccess.accountant_id == accountant.id,
                AccountantAccess.status == AccountantAccessStatus.ACTIVE,
            )
        )
        accesses = list(result.scalars())

        accountant.last_login_at = datetime.utcnow()
        await self.db.commit()
        return accountant, create_accountant_token(accountant.id), accesses

    async def subcontractor_login(self, email: str, password: str) -> tuple[Subcontractor, str]:
        result = await self.db.execute(
            select(Subcontractor).where(
                Subcontractor.email == email.lower(),
                Subcontractor.is_deleted == False,
            )
        )
        subcontractor = result.scalars().first()
        if (
            not subcontractor
            or not subcontractor.is_password_set
            or not verify_password(password, subcontractor.password_hash)
        ):
            raise InvalidCredentialsError()
        if subcontractor.status == SubcontractorStatus.INACTIVE:
            raise InvalidCredentialsError("Account is inactive")

        if subcontractor.status == SubcontractorStatus.INVITED:
            subcontractor.status = SubcontractorStatus.ACTIVE
            await self.db.commit()
        return subcontractor, create_subcontractor_token(subcontractor.id)

    async def request_admin_code(self, email: str) -> None:
        """Send a one-time code; unknown emails get no code and no error."""
        result = await self.db.execute(select(Admin).where(Admin.email == email.lower()))
        admin = result.scalar_one_or_none()
        if admin is None:
            logger.warning("Admin code requested for unknown email")
            return

        admin.otp_code = generate_otp_code()
        admin.otp_expires_at = datetime.utcnow() + timedelta(minutes=settings.ADMIN_CODE_EXPIRE_MINUTES)
        admin.otp_attempts = 0
        await self.db.commit()

        self.outbox.queue(admin_code_email(admin.email, admin.otp_code))

    async def verify_admin_code(self, email: str, code: str) -> tuple[Admin, str]:
        result = await self.db.execute(select(Admin).where(Admin.email == email.lower()))
        admin = result.scalar_one_or_none()
        if (
            admin is None
            or not admin.otp_code
            or admin.otp_expires_at is None
            or admin.otp_expires_at <= datetime.utcnow()
            or admin.otp_attempts >= ADMIN_CODE_MAX_ATTEMPTS
        ):
            raise InvalidCredentialsError("Invalid or expired code")

        if not secrets.compare_digest(admin.otp_code.encode(), code.encode()):
            admin.otp_attempts += 1
            await self.db.commit()
            raise InvalidCredentialsError("Invalid or expired code")

        admin.otp_code = None
        admin.otp_expires_at = None
        admin.otp_attempts = 0
        admin.last_login_at = datetime.utcnow()
        await self.db.commit()
        return admin, create_admin_token(admin.id)

    # =========================================================================
    # Unified roles
    # =========================================================================

    async def check_roles(self, email: str) -> tuple[Optional[User], List[UserRole]]:
        """Roles a login form can offer for ``email`` (empty for unknown emails)."""
        user = await self._get_user_by_email(email)
        if user is None:
            return None, []
        return user, await self._live_roles(user.id)

    async def unified_login(
        self,
        email: str,
        password: str,
        role_id: UUID,
        remember_device: bool = True,
    ) -> tuple[User, UserRole, str, List[UserRole]]:
        """
        Sign in to one specific role.

        The first successful login against an ``invited`` role activates it.
        """
        user = await self._get_user_by_email(email)
        if not user or not user.is_password_set or not user.password_hash:
            raise InvalidCredentialsError("Invalid credentials")

        result = await self.db.execute(
            select(UserRole).where(
                UserRole.id == role_id,
                UserRole.user_id == user.id,
                UserRole.is_deleted == False,
                UserRole.status.in_([RoleStatus.INVITED, RoleStatus.ACTIVE]),
            )
        )
        role = result.scalar_one_or_none()
        if role is None:
            raise InvalidCredentialsError("Invalid role or access denied")

        if not verify_password(password, user.password_hash):
            raise InvalidCredentialsError("Invalid credentials")

        if role.status == RoleStatus.INVITED:
            role.status = RoleStatus.ACTIVE
            logger.info("Role %s activated on first login", role.id)
        role.last_login_at = datetime.utcnow()
        user.last_login_at = datetime.utcnow()
        await self.db.commit()

        if remember_device:
            lifetime = timedelta(days=settings.ROLE_TOKEN_EXPIRE_DAYS)
        else:
            lifetime = timedelta(hours=settings.SWITCH_ROLE_TOKEN_EXPIRE_HOURS)
        token = create_role_token(
            user_id=user.id,
            role_id=role.id,
            email=user.email,
            role_type=role.role_type.value,
            business_owner_id=role.business_owner_id,
            expires_delta=lifetime,
        )
        return user, role, token, await self._live_roles(user.id)

    async def switch_role(self, ctx: AuthContext, role_id: UUID) -> tuple[User, UserRole, str, List[UserRole]]:
        """Mint a 24h token for another active role of the calling user."""
        user = None
        if ctx.is_unified or ctx.principal == Principal.USER:
            user = await self.db.get(User, UUID(ctx.principal_id))
        if user is None:
            raise NotFoundError("Role not found or access denied")

        result = await self.db.execute(
            select(UserRole).where(
                UserRole.id == role_id,
                UserRole.user_id == user.id,
                UserRole.is_deleted == False,
                UserRole.status == RoleStatus.ACTIVE,
            )
        )
        role = result.scalar_one_or_none()
        if role is None:
            raise NotFoundError("Role not found or access denied")

        token = create_role_token(
            user_id=user.id,
            role_id=role.id,
            email=user.email,
            role_type=role.role_type.value,
            business_owner_id=role.business_owner_id,
            expires_delta=timedelta(hours=settings.SWITCH_ROLE_TOKEN_EXPIRE_HOURS),
        )
        logger.info("User %s switched to role %s", user.id, role.id)
        return user, role, token, await self._live_roles(user.id)
