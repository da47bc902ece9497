# File: portal/core/security.py

"""
Identity assertion verification.

The identity provider issues signed JWTs. We only need to turn one of those
into a subject id plus a few profile claims:

  - JWKS mode (IDENTITY_JWKS_URL set): RS256 tokens, keys fetched from the
    provider with a bounded timeout.
  - Shared-secret mode: HS256 tokens signed with IDENTITY_SECRET, used for
    local development and tests.

Failures are split the way callers need them: a bad token is InvalidToken
(force re-authentication), an unreachable provider is Unavailable (retry).
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Protocol

import jwt

from portal.core.config import Settings, settings
from portal.core.errors import InvalidToken, Unavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IdentityClaims:
    subject: str
    email: Optional[str] = None
    name: Optional[str] = None
    photo_url: Optional[str] = None


class IdentityVerifier(Protocol):
    def verify(self, token: str) -> IdentityClaims:
        ...


class JwtIdentityVerifier:
    def __init__(self, config: Settings = settings):
        self._config = config
        self._jwks_client: Optional[jwt.PyJWKClient] = None
        if config.identity_jwks_url:
            self._jwks_client = jwt.PyJWKClient(
                config.identity_jwks_url,
                timeout=int(config.identity_timeout_seconds),
            )

    def _signing_key(self, token: str) -> Any:
        if self._jwks_client is None:
            return self._config.identity_secret
        try:
            return self._jwks_client.get_signing_key_from_jwt(token).key
        except jwt.PyJWKClientConnectionError as e:
            logger.warning("[SESSION] Identity provider unreachable: %s", e)
            raise Unavailable("Identity provider unreachable, please retry") from e
        except (jwt.PyJWKClientError, jwt.DecodeError) as e:
            raise InvalidToken() from e

    def verify(self, token: str) -> IdentityClaims:
        if not token:
            raise InvalidToken("Missing session token")

        key = self._signing_key(token)
        try:
            payload = jwt.decode(
                token,
                key,
                algorithms=self._config.identity_signing_algorithms,
                audience=self._config.identity_audience,
                issuer=self._config.identity_issuer,
                options={
                    "require": ["exp", "sub"],
                    "verify_aud": self._config.identity_audience is not None,
                },
            )
        except jwt.InvalidTokenError as e:
            logger.debug("[SESSION] Token rejected: %s", e)
            raise InvalidToken() from e

        subject = str(payload["sub"]).strip()
        if not subject:
            raise InvalidToken("Token has an empty subject")

        return IdentityClaims(
            subject=subject,
            email=payload.get("email"),
            name=payload.get("name"),
            photo_url=payload.get("picture"),
        )


def create_access_token(
    subject: str,
    claims: Optional[dict] = None,
    expires_delta: Optional[timedelta] = None,
    config: Settings = settings,
) -> str:
    """
    Mint an HS256 identity token with the shared secret.

    Only meaningful in shared-secret mode: local tooling and tests use it to
    stand in for the identity provider.
    """
    to_encode: dict[str, Any] = dict(claims or {})
    now = datetime.now(timezone.utc)
    to_encode["sub"] = subject
    to_encode["iat"] = now
    to_encode["exp"] = now + (expires_delta or timedelta(hours=1))
    if config.identity_audience:
        to_encode["aud"] = config.identity_audience
    if config.identity_issuer:
        to_encode["iss"] = config.identity_issuer
    return jwt.encode(to_encode, config.identity_secret, algorithm="HS256")
