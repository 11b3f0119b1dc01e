"""Login bootstrap endpoint.  Unauthenticated."""

from __future__ import annotations

from fastapi import APIRouter

from dave.user_api.auth import build_authentication_information
from dave.user_api.deps import Settings
from dave.user_api.models.api import AuthenticationInformation

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/info", response_model=AuthenticationInformation)
async def authentication_information(settings: Settings) -> AuthenticationInformation:
    """Authorize and token URLs plus a fresh PKCE code verifier."""
    return build_authentication_information(settings)
