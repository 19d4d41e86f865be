"""Pydantic schemas for API request/response validation."""

from potion.schemas.auth import (
    RegisterRequest,
    LoginRequest,
    RefreshRequest,
    EmailRequest,
    SetPasswordRequest,
    AdminCodeVerify,
    MessageResponse,
    UserResponse,
    TokenPairResponse,
    PrincipalTokenResponse,
    AuthInfoResponse,
)
from potion.schemas.unified import (
    CheckRolesRequest,
    CheckRolesResponse,
    UnifiedLoginRequest,
    SwitchRoleRequest,
    RoleSessionResponse,
    RoleOption,
    MyRolesResponse,
    InviteRequest,
    InviteResponse,
    TeamMemberResponse,
    TeamMemberUpdate,
    ForgotPasswordRequest,
    ValidateTokenResponse,
    SetupPasswordResponse,
)

__all__ = [
    "RegisterRequest",
    "LoginRequest",
    "RefreshRequest",
    "EmailRequest",
    "SetPasswordRequest",
    "AdminCodeVerify",
    "MessageResponse",
    "UserResponse",
    "TokenPairResponse",
    "PrincipalTokenResponse",
    "AuthInfoResponse",
    "CheckRolesRequest",
    "CheckRolesResponse",
    "UnifiedLoginRequest",
    "SwitchRoleRequest",
    "RoleSessionResponse",
    "RoleOption",
    "MyRolesResponse",
    "InviteRequest",
    "InviteResponse",
    "TeamMemberResponse",
    "TeamMemberUpdate",
    "ForgotPasswordRequest",
    "ValidateTokenResponse",
    "SetupPasswordResponse",
]
