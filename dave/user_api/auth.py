"""Access token verification and login bootstrap information.

Tokens are RS256 JWTs issued by ``https://<auth_domain>/`` for the configured
audience.  Signing keys come from the issuer's JWKS endpoint and are cached
by ``jwt.PyJWKClient``.
"""

from __future__ import annotations

import base64
import hashlib
import secrets
from typing import Protocol
from urllib.parse import quote

import jwt
from loguru import logger

from dave.user_api.errors import UnauthorizedError
from dave.user_api.models.api import AuthenticationInformation
from dave.user_api.models.auth import UserInfo
from dave.user_api.settings import DaveSettings


class TokenVerifier(Protocol):
    """Turns a raw bearer token into a verified identity, or raises ``UnauthorizedError``."""

    def verify(self, token: str) -> UserInfo: ...


class JwtTokenVerifier:
    """JWKS-backed implementation of :class:`TokenVerifier`."""

    def __init__(self, settings: DaveSettings, jwks_client: jwt.PyJWKClient | None = None) -> None:
        self._settings = settings
        self._issuer = f"https://{settings.auth_domain}/"
        self._jwks = jwks_client or jwt.PyJWKClient(
            f"https://{settings.auth_domain}/.well-known/jwks.json",
            cache_keys=True,
            timeout=2,
        )

    def verify(self, token: str) -> UserInfo:
        try:
            signing_key = self._jwks.get_signing_key_from_jwt(token)
            claims = jwt.decode(
                token,
                signing_key.key,
                algorithms=["RS256"],
                audience=self._settings.auth_audience,
                issuer=self._issuer,
                options={"require": ["exp", "iss", "aud"]},
            )
        except jwt.PyJWTError as exc:
            logger.opt(exception=exc).error("Error parsing token")
            raise UnauthorizedError from exc

        username = claims.get(self._settings.username_claim)
        if not isinstance(username, str) or not username:
            logger.error("Token has no '{}' claim", self._settings.username_claim)
            raise UnauthorizedError
        return UserInfo(
            username=username,
            email=claims.get(self._settings.email_claim),
            email_verified=claims.get(self._settings.email_verified_claim),
            name=claims.get(self._settings.name_claim),
        )


def strip_bearer(header: str) -> str:
    """Accept either ``Bearer <token>`` or a raw token."""
    if header.startswith("Bearer "):
        return header.split(" ", 1)[1].strip()
    return header.strip()


# -- Login bootstrap -----------------------------------------------------------


def _generate_code_verifier() -> str:
    return base64.urlsafe_b64encode(secrets.token_bytes(32)).rstrip(b"=").decode("ascii")


def _generate_code_challenge(verifier: str) -> str:
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def build_authentication_information(settings: DaveSettings) -> AuthenticationInformation:
    """Authorize/token URLs and a fresh PKCE verifier for the authorization-code flow."""
    base = f"https://{settings.auth_domain}"
    verifier = _generate_code_verifier()
    authorize_url = (
        f"{base}/authorize"
        f"?audience={quote(settings.auth_audience, safe='')}"
        f"&response_type=code"
        f"&client_id={settings.auth_client_id}"
        f"&redirect_uri={quote(settings.auth_redirect_uri, safe='')}"
        f"&scope={quote(' '.join(settings.auth_scopes), safe='')}"
        f"&code_challenge={_generate_code_challenge(verifier)}"
        f"&code_challenge_method=S256"
    )
    return AuthenticationInformation(
        authorize_url=authorize_url,
        token_url=f"{base}/oauth/token",
        client_id=settings.auth_client_id,
        verifier=verifier,
    )
