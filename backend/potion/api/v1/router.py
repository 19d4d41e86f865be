"""Main router for API v1."""

from fastapi import APIRouter

from potion.api.v1 import auth, unified_auth

api_router = APIRouter()

# =============================================================================
# Sessions (business owners and legacy principals)
# =============================================================================
api_router.include_router(
    auth.router,
    prefix="/auth",
    tags=["Authentication"]
)

# =============================================================================
# Unified roles, team management and invitations
# =============================================================================
api_router.include_router(
    unified_auth.router,
    prefix="/unified-auth",
    tags=["Unified Auth"]
)
