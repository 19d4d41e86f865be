"""Schemas for the unified role endpoints under /unified-auth."""

from datetime import datetime
from typing import Optional, List, Dict
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from potion.models.role import AccessLevel, RoleStatus, RoleType


class CheckRolesRequest(BaseModel):
    email: EmailStr


class BusinessOwnerInfo(BaseModel):
    id: UUID
    name: Optional[str] = None
    email: Optional[str] = None


class RoleOption(BaseModel):
    """One role as offered in login and role-switch pickers."""
    id: UUID
    type: RoleType
    name: str
    display_name: Optional[str] = None
    business_owner: Optional[BusinessOwnerInfo] = None
    access_level: AccessLevel
    status: RoleStatus


class RoleUser(BaseModel):
    id: UUID
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    business_name: Optional[str] = None

    class Config:
        from_attributes = True


class CheckRolesResponse(BaseModel):
    success: bool = True
    email: str
    user: Optional[RoleUser] = None
    has_password: bool = False
    roles: List[RoleOption] = []
    multiple_roles: bool = False


class UnifiedLoginRequest(BaseModel):
    email: EmailStr
    password: str
    role_id: UUID
    remember_device: bool = True


class SwitchRoleRequest(BaseModel):
    role_id: UUID


class RoleSessionResponse(BaseModel):
    """Token bound to one role, plus what the client needs to render the role picker."""
    success: bool = True
    token: str
    expires_in: int
    user: Optional[RoleUser] = None
    current_role: RoleOption
    available_roles: List[RoleOption]
    user_role: str
    redirect_to: str


class MyRolesResponse(BaseModel):
    current_role_id: Optional[str] = None
    roles: List[RoleOption]


class InviteRequest(BaseModel):
    email: EmailStr
    role_type: RoleType
    access_level: AccessLevel = AccessLevel.VIEWER
    name: Optional[str] = Field(None, max_length=255)
    note: Optional[str] = None
    project_ids: Optional[List[str]] = None


class InvitedRole(BaseModel):
    id: UUID
    email: str
    role_type: RoleType
    access_level: AccessLevel
    status: RoleStatus


class InviteResponse(BaseModel):
    success: bool = True
    message: str
    role: InvitedRole


class TeamMemberResponse(BaseModel):
    id: UUID
    email: str
    full_name: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role_type: RoleType
    status: RoleStatus
    access_level: AccessLevel
    project_access: Dict[str, AccessLevel] = {}
    note: Optional[str] = None
    is_password_set: bool = False
    invited_at: Optional[datetime] = None
    last_accessed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class TeamMemberUpdate(BaseModel):
    """Partial update of a team member; omitted fields stay unchanged."""
    access_level: Optional[AccessLevel] = None
    status: Optional[RoleStatus] = None
    project_access: Optional[Dict[str, AccessLevel]] = None


class ForgotPasswordRequest(BaseModel):
    email: EmailStr
    role_id: Optional[UUID] = None


class InvitationOwner(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    business_name: Optional[str] = None


class ValidateTokenResponse(BaseModel):
    valid: bool = True
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role_type: RoleType
    business_owner: Optional[InvitationOwner] = None


class SetupPasswordResponse(BaseModel):
    success: bool = True
    message: str = "Password set successfully"
    role_type: RoleType
    token: str
    user: RoleUser
