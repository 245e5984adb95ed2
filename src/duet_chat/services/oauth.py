"""Google sign-in through ID tokens issued to the browser."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

import httpx
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from duet_chat.core.errors import AuthError
from duet_chat.core.settings import settings
from duet_chat.models.user import AUTH_PROVIDER_GOOGLE
from duet_chat.services.auth import AuthSession, issue_session
from duet_chat.services.users import ensure_profile

logger = logging.getLogger(__name__)

JWKS_CACHE_SECONDS = 3600


class GoogleTokenVerifier:
    """Verifies Google ID tokens against the published signing keys."""

    def __init__(
        self,
        client_id: str | None = None,
        jwks_url: str | None = None,
        issuers: list[str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.client_id = client_id if client_id is not None else settings.google_client_id
        self.jwks_url = jwks_url or settings.google_jwks_url
        self.issuers = issuers or settings.google_issuers
        self._transport = transport
        self._jwks: dict[str, Any] | None = None
        self._fetched_at = 0.0
        self._lock = asyncio.Lock()

    @property
    def enabled(self) -> bool:
        return bool(self.client_id)

    async def _signing_keys(self) -> dict[str, Any]:
        async with self._lock:
            fresh = time.monotonic() - self._fetched_at < JWKS_CACHE_SECONDS
            if self._jwks is not None and fresh:
                return self._jwks
            try:
                async with httpx.AsyncClient(transport=self._transport, timeout=10.0) as client:
                    response = await client.get(self.jwks_url)
                    response.raise_for_status()
            except httpx.HTTPError as exc:
                logger.error("Could not fetch Google signing keys: %s", exc)
                raise AuthError("auth/network-request-failed", status_code=503) from exc
            self._jwks = response.json()
            self._fetched_at = time.monotonic()
            return self._jwks

    async def verify(self, id_token: str) -> dict[str, Any]:
        """Return the token claims, or raise ``AuthError``."""
        if not self.enabled:
            raise AuthError("auth/operation-not-allowed", status_code=400)

        keys = await self._signing_keys()
        try:
            claims: dict[str, Any] = jwt.decode(
                id_token,
                keys,
                algorithms=["RS256"],
                audience=self.client_id,
                options={"verify_at_hash": False},
            )
        except JWTError as exc:
            logger.info("Rejected Google ID token: %s", exc)
            raise AuthError("auth/invalid-credential") from exc

        if claims.get("iss") not in self.issuers:
            raise AuthError("auth/invalid-credential")
        if not claims.get("email") or claims.get("email_verified") is False:
            raise AuthError("auth/invalid-credential")
        return claims


_verifier: GoogleTokenVerifier | None = None


def get_google_verifier() -> GoogleTokenVerifier:
    global _verifier
    if _verifier is None:
        _verifier = GoogleTokenVerifier()
    return _verifier


async def sign_in_with_google(
    db: Session,
    id_token: str,
    *,
    remember: bool = True,
    verifier: GoogleTokenVerifier | None = None,
) -> AuthSession:
    """Sign in (and on first use sign up) with a Google ID token."""
    verifier = verifier or get_google_verifier()
    claims = await verifier.verify(id_token)
    user = ensure_profile(
        db,
        email=claims["email"],
        name=claims.get("name"),
        image=claims.get("picture"),
        provider=AUTH_PROVIDER_GOOGLE,
        google_subject=claims.get("sub"),
    )
    return issue_session(user, remember)
