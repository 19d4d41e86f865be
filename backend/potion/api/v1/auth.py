"""Session endpoints: business owner accounts and the per-principal logins."""

from typing import Optional

from fastapi import APIRouter, Cookie, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from potion.api.deps import get_auth_context, get_outbox
from potion.config import get_settings
from potion.database import get_db
from potion.schemas.auth import (
    AdminCodeVerify,
    AuthInfoResponse,
    ClientAccess,
    EmailRequest,
    LoginRequest,
    MessageResponse,
    PrincipalTokenResponse,
    ProjectGrantResponse,
    RefreshRequest,
    RegisterRequest,
    SetPasswordRequest,
    TokenPairResponse,
    UserResponse,
)
from potion.services.auth_service import AuthService
from potion.services.context import AuthContext, Principal
from potion.services.notification_service import EmailOutbox

settings = get_settings()
router = APIRouter()

REFRESH_COOKIE = "refreshToken"


def _set_refresh_cookie(response: Response, refresh_token: str) -> None:
    response.set_cookie(
        REFRESH_COOKIE,
        refresh_token,
        httponly=True,
        secure=not settings.DEBUG,
        samesite="strict",
        max_age=settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
    )


def _token_pair(user, access_token: str, refresh_token: str) -> TokenPairResponse:
    return TokenPairResponse(
        access_token=access_token,
        refresh_token=refresh_token,
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        user=UserResponse.model_validate(user) if user is not None else None,
    )


# =============================================================================
# Business Owner Sessions
# =============================================================================

@router.post("/register", response_model=TokenPairResponse, status_code=status.HTTP_201_CREATED)
async def register(
    data: RegisterRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    """Create a business owner account and sign it in."""
    user, access_token, refresh_token = await AuthService(db).register(
        email=data.email,
        password=data.password,
        first_name=data.first_name,
        last_name=data.last_name,
        business_name=data.business_name,
    )
    _set_refresh_cookie(response, refresh_token)
    return _token_pair(user, access_token, refresh_token)


@router.post("/login", response_model=TokenPairResponse)
async def login(
    data: LoginRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    user, access_token, refresh_token = await AuthService(db).login(data.email, data.password)
    _set_refresh_cookie(response, refresh_token)
    return _token_pair(user, access_token, refresh_token)


@router.post("/refresh-token", response_model=TokenPairResponse)
async def refresh_token(
    response: Response,
    data: Optional[RefreshRequest] = None,
    refresh_cookie: Optional[str] = Cookie(None, alias=REFRESH_COOKIE),
    db: AsyncSession = Depends(get_db),
):
    """
    Rotate the session tokens.
    The refresh token is read from the body or the ``refreshToken`` cookie.
    """
    presented = (data.refresh_token if data else None) or refresh_cookie
    access_token, new_refresh_token = await AuthService(db).refresh(presented)
    _set_refresh_cookie(response, new_refresh_token)
    return _token_pair(None, access_token, new_refresh_token)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    response: Response,
    data: Optional[RefreshRequest] = None,
    refresh_cookie: Optional[str] = Cookie(None, alias=REFRESH_COOKIE),
    db: AsyncSession = Depends(get_db),
):
    presented = (data.refresh_token if data else None) or refresh_cookie
    await AuthService(db).logout(presented)
    response.delete_cookie(REFRESH_COOKIE)
    return MessageResponse(message="Logged out successfully")


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    data: EmailRequest,
    db: AsyncSession = Depends(get_db),
    outbox: EmailOutbox = Depends(get_outbox),
):
    await AuthService(db, outbox).forgot_password(data.email)
    return MessageResponse(message="If an account exists, a password setup link has been sent")


@router.post("/setup-password/{token}", response_model=TokenPairResponse)
async def setup_password(
    token: str,
    data: SetPasswordRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    user, access_token, refresh_token = await AuthService(db).setup_password(token, data.password)
    _set_refresh_cookie(response, refresh_token)
    return _token_pair(user, access_token, refresh_token)


@router.get("/info", response_model=AuthInfoResponse)
async def auth_info(ctx: AuthContext = Depends(get_auth_context)):
    """Describe the caller's resolved authorization context."""
    return AuthInfoResponse(
        principal=ctx.principal.value,
        principal_id=ctx.principal_id,
        target_user_id=ctx.target_user_id,
        email=ctx.email,
        permissions=sorted(p.value for p in ctx.permissions),
        capabilities=sorted(c.value for c in ctx.capabilities),
        access_level=ctx.access_level.value if ctx.access_level else None,
        role_id=ctx.role_id,
        role_type=ctx.role_type.value if ctx.role_type else None,
        business_owner_id=ctx.business_owner_id,
        selected_project_id=ctx.selected_project_id,
        project_grants=[
            ProjectGrantResponse(
                project_id=g.project_id,
                owner_id=g.owner_id,
                access_level=g.access_level.value,
            )
            for g in ctx.project_grants
        ],
    )


# =============================================================================
# Legacy Principal Logins
# =============================================================================

@router.post("/accountant/login", response_model=PrincipalTokenResponse)
async def accountant_login(
    data: LoginRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Login for accountants.
    Send one of the returned client ids as ``X-User-ID`` on later requests.
    """
    accountant, token, accesses = await AuthService(db).accountant_login(data.email, data.password)
    return PrincipalTokenResponse(
        access_token=token,
        expires_in=settings.PRINCIPAL_TOKEN_EXPIRE_MINUTES * 60,
        principal=Principal.ACCOUNTANT.value,
        principal_id=accountant.id,
        email=accountant.email,
        clients=[
            ClientAccess(user_id=a.user_id, access_level=a.access_level.value)
            for a in accesses
        ],
    )


@router.post("/subcontractor/login", response_model=PrincipalTokenResponse)
async def subcontractor_login(
    data: LoginRequest,
    db: AsyncSession = Depends(get_db),
):
    subcontractor, token = await AuthService(db).subcontractor_login(data.email, data.password)
    return PrincipalTokenResponse(
        access_token=token,
        expires_in=settings.PRINCIPAL_TOKEN_EXPIRE_MINUTES * 60,
        principal=Principal.SUBCONTRACTOR.value,
        principal_id=subcontractor.id,
        email=subcontractor.email,
    )


@router.post("/admin/request-code", response_model=MessageResponse)
async def admin_request_code(
    data: EmailRequest,
    db: AsyncSession = Depends(get_db),
    outbox: EmailOutbox = Depends(get_outbox),
):
    """Email a one-time sign-in code to a platform admin."""
    await AuthService(db, outbox).request_admin_code(data.email)
    return MessageResponse(message="If the email belongs to an admin, a code has been sent")


@router.post("/admin/verify-code", response_model=PrincipalTokenResponse)
async def admin_verify_code(
    data: AdminCodeVerify,
    db: AsyncSession = Depends(get_db),
):
    admin, token = await AuthService(db).verify_admin_code(data.email, data.code)
    return PrincipalTokenResponse(
        access_token=token,
        expires_in=settings.PRINCIPAL_TOKEN_EXPIRE_MINUTES * 60,
        principal=Principal.ADMIN.value,
        principal_id=admin.id,
        email=admin.email,
    )
