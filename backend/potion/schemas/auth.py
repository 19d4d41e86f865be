"""Schemas for the session endpoints under /auth."""

from datetime import datetime
from typing import Optional, List
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field


class RegisterRequest(BaseModel):
    """Register a new business owner."""
    email: EmailStr
    password: str = Field(..., min_length=8)
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    business_name: Optional[str] = Field(None, max_length=255)


class LoginRequest(BaseModel):
    """Email/password login request."""
    email: EmailStr
    password: str


class RefreshRequest(BaseModel):
    """The refresh token may also arrive as the ``refreshToken`` cookie."""
    refresh_token: Optional[str] = None


class EmailRequest(BaseModel):
    email: EmailStr


class SetPasswordRequest(BaseModel):
    password: str = Field(..., min_length=8)
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)


class AdminCodeVerify(BaseModel):
    email: EmailStr
    code: str = Field(..., min_length=6, max_length=6)


class MessageResponse(BaseModel):
    success: bool = True
    message: str


class UserResponse(BaseModel):
    id: UUID
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    business_name: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TokenPairResponse(BaseModel):
    """Access + refresh token pair for business owner sessions."""
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
    user: Optional[UserResponse] = None


class ClientAccess(BaseModel):
    """A client an accountant can act for (send its id as X-User-ID)."""
    user_id: UUID
    access_level: str


class PrincipalTokenResponse(BaseModel):
    """Token for accountant, subcontractor and admin logins."""
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    principal: str
    principal_id: UUID
    email: str
    clients: List[ClientAccess] = []


class ProjectGrantResponse(BaseModel):
    project_id: str
    owner_id: str
    access_level: str


class AuthInfoResponse(BaseModel):
    """The resolved authorization context of the caller."""
    principal: str
    principal_id: str
    target_user_id: str
    email: Optional[str] = None
    permissions: List[str]
    capabilities: List[str]
    access_level: Optional[str] = None
    role_id: Optional[str] = None
    role_type: Optional[str] = None
    business_owner_id: Optional[str] = None
    selected_project_id: Optional[str] = None
    project_grants: List[ProjectGrantResponse] = []
