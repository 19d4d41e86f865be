"""Unified role endpoints: role discovery, role login/switching, team and invitations."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from potion.api.deps import get_identity_context, get_outbox, get_owner_id
from potion.config import get_settings
from potion.database import get_db
from potion.models.role import RoleStatus, RoleType, UserRole
from potion.models.user import User
from potion.schemas.auth import MessageResponse, SetPasswordRequest
from potion.schemas.unified import (
    BusinessOwnerInfo,
    CheckRolesRequest,
    CheckRolesResponse,
    ForgotPasswordRequest,
    InvitationOwner,
    InvitedRole,
    InviteRequest,
    InviteResponse,
    MyRolesResponse,
    RoleOption,
    RoleSessionResponse,
    RoleUser,
    SetupPasswordResponse,
    SwitchRoleRequest,
    TeamMemberResponse,
    TeamMemberUpdate,
    UnifiedLoginRequest,
    ValidateTokenResponse,
)
from potion.services.auth_service import REDIRECTS, AuthService, business_display_name, role_display_name
from potion.services.context import AuthContext
from potion.services.invitation_service import InvitationService
from potion.services.notification_service import EmailOutbox

settings = get_settings()
router = APIRouter()


# =============================================================================
# Response builders
# =============================================================================

def _role_option(role: UserRole, user: Optional[User] = None) -> RoleOption:
    owner = role.business_owner
    if role.role_type == RoleType.BUSINESS_OWNER:
        display = business_display_name(user or role.user)
    else:
        display = business_display_name(owner) or "Unknown Business Owner"
    return RoleOption(
        id=role.id,
        type=role.role_type,
        name=role_display_name(role),
        display_name=display,
        business_owner=BusinessOwnerInfo(
            id=owner.id,
            name=business_display_name(owner),
            email=owner.email,
        ) if owner is not None else None,
        access_level=role.access_level,
        status=role.status,
    )


def _session_response(user: User, role: UserRole, token: str, roles, expires_in: int) -> RoleSessionResponse:
    is_owner = role.role_type == RoleType.BUSINESS_OWNER
    return RoleSessionResponse(
        token=token,
        expires_in=expires_in,
        user=RoleUser.model_validate(user) if is_owner else None,
        current_role=_role_option(role, user),
        available_roles=[_role_option(r, user) for r in roles],
        user_role="user" if is_owner else role.role_type.value,
        redirect_to=REDIRECTS[role.role_type],
    )


def _team_member(role: UserRole) -> TeamMemberResponse:
    user = role.user
    return TeamMemberResponse(
        id=role.id,
        email=role.email,
        full_name=user.full_name if user.first_name or user.last_name else role.email.split("@")[0],
        first_name=user.first_name,
        last_name=user.last_name,
        role_type=role.role_type,
        status=role.status,
        access_level=role.access_level,
        project_access=role.project_access or {},
        note=role.note,
        is_password_set=user.is_password_set,
        invited_at=role.invited_at,
        last_accessed_at=role.last_accessed_at,
        created_at=role.created_at,
        updated_at=role.updated_at,
    )


# =============================================================================
# Role discovery and sessions
# =============================================================================

@router.post("/check-roles", response_model=CheckRolesResponse)
async def check_roles(
    data: CheckRolesRequest,
    db: AsyncSession = Depends(get_db),
):
    """List the roles an email can sign in to (empty for unknown emails)."""
    user, roles = await AuthService(db).check_roles(data.email)
    if user is None:
        return CheckRolesResponse(email=data.email)
    options = [_role_option(role, user) for role in roles]
    return CheckRolesResponse(
        email=data.email,
        user=RoleUser.model_validate(user),
        has_password=user.is_password_set,
        roles=options,
        multiple_roles=len(options) > 1,
    )


@router.post("/login", response_model=RoleSessionResponse)
async def unified_login(
    data: UnifiedLoginRequest,
    db: AsyncSession = Depends(get_db),
):
    user, role, token, roles = await AuthService(db).unified_login(
        data.email, data.password, data.role_id, data.remember_device
    )
    if data.remember_device:
        expires_in = settings.ROLE_TOKEN_EXPIRE_DAYS * 24 * 60 * 60
    else:
        expires_in = settings.SWITCH_ROLE_TOKEN_EXPIRE_HOURS * 60 * 60
    return _session_response(user, role, token, roles, expires_in)


@router.post("/switch-role", response_model=RoleSessionResponse)
async def switch_role(
    data: SwitchRoleRequest,
    ctx: AuthContext = Depends(get_identity_context),
    db: AsyncSession = Depends(get_db),
):
    """Exchange the current token for one bound to another active role of the same user."""
    user, role, token, roles = await AuthService(db).switch_role(ctx, data.role_id)
    return _session_response(user, role, token, roles, settings.SWITCH_ROLE_TOKEN_EXPIRE_HOURS * 60 * 60)


@router.get("/my-roles", response_model=MyRolesResponse)
async def my_roles(
    ctx: AuthContext = Depends(get_identity_context),
    db: AsyncSession = Depends(get_db),
):
    roles = []
    if ctx.is_unified:
        _, live = await AuthService(db).check_roles(ctx.email)
        roles = [_role_option(role) for role in live]
    return MyRolesResponse(current_role_id=ctx.role_id, roles=roles)


# =============================================================================
# Team management (business owners only)
# =============================================================================

@router.post("/invite", response_model=InviteResponse, status_code=status.HTTP_201_CREATED)
async def invite(
    data: InviteRequest,
    owner_id: UUID = Depends(get_owner_id),
    db: AsyncSession = Depends(get_db),
    outbox: EmailOutbox = Depends(get_outbox),
):
    role, reactivated = await InvitationService(db, outbox).invite(
        owner_id=owner_id,
        email=data.email,
        role_type=data.role_type,
        access_level=data.access_level,
        name=data.name,
        note=data.note,
        project_ids=data.project_ids,
    )
    message = "Invitation sent successfully"
    if reactivated:
        message += " (role reactivated)"
    return InviteResponse(
        message=message,
        role=InvitedRole(
            id=role.id,
            email=role.email,
            role_type=role.role_type,
            access_level=role.access_level,
            status=role.status,
        ),
    )


@router.get("/team", response_model=list[TeamMemberResponse])
async def list_team(
    role_type: Optional[RoleType] = Query(None),
    role_status: Optional[RoleStatus] = Query(None, alias="status"),
    owner_id: UUID = Depends(get_owner_id),
    db: AsyncSession = Depends(get_db),
):
    roles = await InvitationService(db).list_team(owner_id, role_type, role_status)
    return [_team_member(role) for role in roles]


@router.patch("/team/{role_id}", response_model=TeamMemberResponse)
async def update_team_member(
    role_id: UUID,
    data: TeamMemberUpdate,
    owner_id: UUID = Depends(get_owner_id),
    db: AsyncSession = Depends(get_db),
):
    """Change a member's access level, toggle active/deactivated, or replace project grants."""
    role = await InvitationService(db).update_member(
        owner_id,
        role_id,
        access_level=data.access_level,
        status=data.status,
        project_access=data.project_access,
    )
    return _team_member(role)


@router.delete("/team/{role_id}", response_model=MessageResponse)
async def remove_team_member(
    role_id: UUID,
    owner_id: UUID = Depends(get_owner_id),
    db: AsyncSession = Depends(get_db),
):
    await InvitationService(db).remove_member(owner_id, role_id)
    return MessageResponse(message="Team member removed successfully")


@router.post("/team/{role_id}/resend-invite", response_model=MessageResponse)
async def resend_invite(
    role_id: UUID,
    owner_id: UUID = Depends(get_owner_id),
    db: AsyncSession = Depends(get_db),
    outbox: EmailOutbox = Depends(get_outbox),
):
    await InvitationService(db, outbox).resend_invite(owner_id, role_id)
    return MessageResponse(message="Invitation resent successfully")


# =============================================================================
# Invitation links and password reset
# =============================================================================

@router.post("/setup-password/{token}", response_model=SetupPasswordResponse)
async def setup_role_password(
    token: str,
    data: SetPasswordRequest,
    db: AsyncSession = Depends(get_db),
):
    """Accept an invitation (or reset link): set the password and activate the role."""
    role, session_token = await InvitationService(db).activate(
        token, data.password, data.first_name, data.last_name
    )
    return SetupPasswordResponse(
        role_type=role.role_type,
        token=session_token,
        user=RoleUser.model_validate(role.user),
    )


@router.get("/validate-token/{token}", response_model=ValidateTokenResponse)
async def validate_token(
    token: str,
    db: AsyncSession = Depends(get_db),
):
    role = await InvitationService(db).validate_token(token)
    owner = role.business_owner
    return ValidateTokenResponse(
        email=role.user.email,
        first_name=role.user.first_name,
        last_name=role.user.last_name,
        role_type=role.role_type,
        business_owner=InvitationOwner(
            first_name=owner.first_name,
            last_name=owner.last_name,
            business_name=owner.business_name,
        ) if owner is not None else None,
    )


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    data: ForgotPasswordRequest,
    db: AsyncSession = Depends(get_db),
    outbox: EmailOutbox = Depends(get_outbox),
):
    await InvitationService(db, outbox).forgot_password(data.email, data.role_id)
    return MessageResponse(message="Password reset email sent")
