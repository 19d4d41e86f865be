"""Domain exceptions carrying an HTTP status and a machine-readable code.

Every rejection raised by the access core is a ``PotionError``; the handler
registered in ``potion.main`` renders it as ``{"detail": ..., "code": ...}``
so clients can branch on ``code`` instead of parsing messages.
"""

from typing import Optional

from fastapi import status


class ErrorCode:
    """Machine-readable error codes returned to clients."""

    # Authentication
    NO_TOKEN = "NO_TOKEN"
    INVALID_TOKEN = "INVALID_TOKEN"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    USER_NOT_FOUND = "USER_NOT_FOUND"

    # Missing request context
    MISSING_USER_ID_HEADER = "MISSING_USER_ID_HEADER"
    PROJECT_ID_REQUIRED = "PROJECT_ID_REQUIRED"

    # Access
    ACCESS_DENIED = "ACCESS_DENIED"
    ROLE_INACTIVE = "ROLE_INACTIVE"
    NO_PROJECT_ACCESS = "NO_PROJECT_ACCESS"
    PROJECT_ACCESS_DENIED = "PROJECT_ACCESS_DENIED"
    BUSINESS_OWNER_ONLY = "BUSINESS_OWNER_ONLY"
    ROLE_DENIED = "ROLE_DENIED"

    # Write gating
    READ_ONLY_ACCESS = "READ_ONLY_ACCESS"
    VIEWER_ONLY_ACCESS = "VIEWER_ONLY_ACCESS"
    WRITE_PERMISSION_DENIED = "WRITE_PERMISSION_DENIED"
    PERMISSION_DENIED = "PERMISSION_DENIED"

    # Invitation workflow
    INVALID_OR_EXPIRED_TOKEN = "INVALID_OR_EXPIRED_TOKEN"
    DUPLICATE_ROLE = "DUPLICATE_ROLE"
    INVALID_ROLE_TYPE = "INVALID_ROLE_TYPE"
    INVALID_STATUS_TRANSITION = "INVALID_STATUS_TRANSITION"
    EMAIL_ALREADY_REGISTERED = "EMAIL_ALREADY_REGISTERED"
    NOT_FOUND = "NOT_FOUND"


class PotionError(Exception):
    """Base class for all access-core errors."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    default_code: str = "ERROR"
    default_detail: str = "Request failed"

    def __init__(self, detail: Optional[str] = None, code: Optional[str] = None):
        self.detail = detail or self.default_detail
        self.code = code or self.default_code
        super().__init__(self.detail)

    def to_dict(self) -> dict:
        return {"detail": self.detail, "code": self.code}


class AuthenticationError(PotionError):
    """Missing, malformed, expired or tampered credentials."""

    status_code = status.HTTP_401_UNAUTHORIZED
    default_code = ErrorCode.INVALID_TOKEN
    default_detail = "Invalid token"


class InvalidCredentialsError(PotionError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_code = ErrorCode.INVALID_CREDENTIALS
    default_detail = "Invalid email or password"


class MissingContextError(PotionError):
    """Authenticated, but a required request header is missing."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_code = ErrorCode.MISSING_USER_ID_HEADER
    default_detail = "X-User-ID header is required"


class AccessDeniedError(PotionError):
    status_code = status.HTTP_403_FORBIDDEN
    default_code = ErrorCode.ACCESS_DENIED
    default_detail = "Access denied"


class PermissionDeniedError(PotionError):
    """The caller is authenticated and scoped, but may not perform this action."""

    status_code = status.HTTP_403_FORBIDDEN
    default_code = ErrorCode.PERMISSION_DENIED
    default_detail = "Permission denied"


class InvalidTokenError(PotionError):
    """Invitation / password setup link is invalid, expired or already used."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_code = ErrorCode.INVALID_OR_EXPIRED_TOKEN
    default_detail = "Invalid or expired token"


class DuplicateRoleError(PotionError):
    status_code = status.HTTP_409_CONFLICT
    default_code = ErrorCode.DUPLICATE_ROLE
    default_detail = "User already has this role for this business"


class ValidationFailedError(PotionError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = ErrorCode.INVALID_ROLE_TYPE
    default_detail = "Invalid request"


class NotFoundError(PotionError):
    status_code = status.HTTP_404_NOT_FOUND
    default_code = ErrorCode.NOT_FOUND
    default_detail = "Not found"
