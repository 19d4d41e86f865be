"""Password hashing and token issuance.

Everything here is a pure function of its arguments plus the configured
signing secret; nothing touches storage.
"""

import logging
import secrets
from datetime import datetime, timedelta
from typing import Optional, Union
from uuid import UUID

from jose import JWTError, jwt
from passlib.context import CryptContext

from potion.config import get_settings
from potion.exceptions import AuthenticationError, ErrorCode

settings = get_settings()
logger = logging.getLogger(__name__)
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

Identifier = Union[str, UUID]


# =============================================================================
# Password Utilities
# =============================================================================

def hash_password(password: str) -> str:
    """Hash a password for storing."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    """Verify a stored password against a provided password."""
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def generate_otp_code() -> str:
    """Six digit one-time code."""
    return f"{secrets.randbelow(1_000_000):06d}"


# =============================================================================
# JWT Token Utilities
# =============================================================================

def _encode(claims: dict, expires_delta: timedelta) -> str:
    to_encode = dict(claims)
    to_encode["exp"] = datetime.utcnow() + expires_delta
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def create_access_token(user_id: Identifier, expires_delta: Optional[timedelta] = None) -> str:
    """Session token for a plain user (business owner)."""
    expires_delta = expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    return _encode({"userId": str(user_id)}, expires_delta)


def create_refresh_token(user_id: Identifier) -> str:
    return _encode(
        {"userId": str(user_id), "jti": secrets.token_hex(8)},
        timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
    )


def create_user_tokens(user_id: Identifier) -> tuple[str, str]:
    """Access (1 day) and refresh (7 days) token pair."""
    return create_access_token(user_id), create_refresh_token(user_id)


def create_accountant_token(accountant_id: Identifier) -> str:
    return _encode(
        {"accountantId": str(accountant_id)},
        timedelta(minutes=settings.PRINCIPAL_TOKEN_EXPIRE_MINUTES),
    )


def create_subcontractor_token(subcontractor_id: Identifier) -> str:
    return _encode(
        {"subcontractorId": str(subcontractor_id)},
        timedelta(minutes=settings.PRINCIPAL_TOKEN_EXPIRE_MINUTES),
    )


def create_admin_token(admin_id: Identifier) -> str:
    return _encode(
        {"adminId": str(admin_id)},
        timedelta(minutes=settings.PRINCIPAL_TOKEN_EXPIRE_MINUTES),
    )


def create_role_token(
    user_id: Identifier,
    role_id: Identifier,
    email: str,
    role_type: Optional[str] = None,
    business_owner_id: Optional[Identifier] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Session token bound to one role assignment.

    Unified login issues it for 30 days when the device is remembered and
    for 24 hours otherwise; switch-role always issues 24 hours.
    """
    expires_delta = expires_delta or timedelta(days=settings.ROLE_TOKEN_EXPIRE_DAYS)
    claims = {"userId": str(user_id), "roleId": str(role_id), "email": email}
    if role_type:
        claims["roleType"] = role_type
    if business_owner_id:
        claims["businessOwnerId"] = str(business_owner_id)
    return _encode(claims, expires_delta)


def create_setup_token(
    user_id: Identifier,
    role_type: str,
    role_id: Optional[Identifier] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Invitation / password setup link token.

    Carries ``setup: true`` so it is never accepted as a session token, and
    a random ``jti`` so two links issued in the same second still differ.
    """
    expires_delta = expires_delta or timedelta(days=settings.INVITE_TOKEN_EXPIRE_DAYS)
    claims = {
        "userId": str(user_id),
        "roleType": role_type,
        "setup": True,
        "jti": secrets.token_urlsafe(12),
    }
    if role_id:
        claims["roleId"] = str(role_id)
    return _encode(claims, expires_delta)


def decode_token(token: str) -> dict:
    """Decode and validate a JWT token."""
    try:
        return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as exc:
        logger.debug("Token rejected: %s", exc)
        raise AuthenticationError("Invalid token", ErrorCode.INVALID_TOKEN) from exc
