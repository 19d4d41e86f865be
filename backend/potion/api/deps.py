"""API dependencies for dependency injection and authorization.

Routers protect themselves by depending on ``get_auth_context`` (or one of
the guards built on it). Collaborating services mount their routers with
``dependencies=PROTECTED`` to get project scoping and write gating on every
route without touching the handlers.
"""

import json
import logging
from typing import Optional
from uuid import UUID

from fastapi import BackgroundTasks, Depends, Header, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from potion.database import get_db
from potion.services import permissions
from potion.services.context import AuthContext, Principal
from potion.services.notification_service import EmailOutbox
from potion.services.permissions import Capability, Permission
from potion.services.role_resolver import RoleResolver

logger = logging.getLogger(__name__)
security = HTTPBearer(auto_error=False)

PROJECT_ID_KEYS = ("project_id", "projectId")


# =============================================================================
# Authorization Context
# =============================================================================

async def get_auth_context(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    x_user_id: Optional[str] = Header(None, alias="X-User-ID"),
    x_project_id: Optional[str] = Header(None, alias="X-Project-ID"),
    db: AsyncSession = Depends(get_db),
) -> AuthContext:
    """Resolve the bearer token and context headers into an ``AuthContext``."""
    token = credentials.credentials if credentials else None
    return await RoleResolver(db).resolve(token, x_user_id, x_project_id)


async def get_identity_context(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    x_user_id: Optional[str] = Header(None, alias="X-User-ID"),
    db: AsyncSession = Depends(get_db),
) -> AuthContext:
    """Caller identity without project selection, for role discovery and switching."""
    token = credentials.credentials if credentials else None
    return await RoleResolver(db).resolve(token, x_user_id, select_project=False)


async def get_request_project_id(request: Request) -> Optional[str]:
    """Project named by the request: path params, then query string, then JSON body."""
    for key in PROJECT_ID_KEYS:
        if request.path_params.get(key):
            return request.path_params[key]
    for key in PROJECT_ID_KEYS:
        if request.query_params.get(key):
            return request.query_params[key]

    if request.method in ("GET", "HEAD", "OPTIONS"):
        return None
    if "application/json" not in request.headers.get("content-type", ""):
        return None
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    if isinstance(body, dict):
        for key in PROJECT_ID_KEYS:
            if body.get(key):
                return str(body[key])
    return None


# =============================================================================
# Guards
# =============================================================================

async def enforce_project_access(
    ctx: AuthContext = Depends(get_auth_context),
    project_id: Optional[str] = Depends(get_request_project_id),
) -> AuthContext:
    permissions.enforce_project_scope(ctx, project_id)
    return ctx


async def check_write_permission(
    request: Request,
    ctx: AuthContext = Depends(get_auth_context),
    project_id: Optional[str] = Depends(get_request_project_id),
) -> AuthContext:
    permissions.check_write_permission(ctx, request.method, project_id)
    return ctx


async def require_business_owner(
    ctx: AuthContext = Depends(get_auth_context),
) -> AuthContext:
    permissions.require_business_owner(ctx)
    return ctx


def require_permission(*required: Permission):
    """Dependency factory: at least one of ``required`` must be held."""

    async def dependency(ctx: AuthContext = Depends(get_auth_context)) -> AuthContext:
        permissions.require_permission(ctx, *required)
        return ctx

    return dependency


def require_capability(capability: Capability):
    async def dependency(ctx: AuthContext = Depends(get_auth_context)) -> AuthContext:
        permissions.require_capability(ctx, capability)
        return ctx

    return dependency


def require_principal(*principals: Principal):
    async def dependency(ctx: AuthContext = Depends(get_auth_context)) -> AuthContext:
        permissions.require_principal(ctx, *principals)
        return ctx

    return dependency


# Scope first, then write gating
PROTECTED = [Depends(enforce_project_access), Depends(check_write_permission)]


# =============================================================================
# Helpers
# =============================================================================

def get_owner_id(ctx: AuthContext = Depends(require_business_owner)) -> UUID:
    """Tenant id for business-owner-only routes."""
    return UUID(ctx.target_user_id)


def get_outbox(background_tasks: BackgroundTasks) -> EmailOutbox:
    """Emails queued during the request are sent after the response."""
    return EmailOutbox(background_tasks)
