"""Access-token signing/verification and opaque refresh-token generation."""

from __future__ import annotations

import base64
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import ExpiredSignatureError, JWTError, jwt

from identity_core.auth.models import AccessTokenClaims
from identity_core.core.config import AuthConfig
from identity_core.users.models import IdentityRecord

LOGGER = logging.getLogger(__name__)

REFRESH_TOKEN_BYTES = 32

CLAIM_SUBJECT = "sub"
CLAIM_EMAIL = "email"
CLAIM_GIVEN_NAME = "given_name"
CLAIM_FAMILY_NAME = "family_name"
CLAIM_ROLE = "role"


class TokenIssuer:
    """Stateless signer/verifier for access tokens.

    Access tokens are HS256 JWTs carrying ``sub``, ``email``, ``given_name``,
    ``family_name``, ``role``, ``iss``, ``aud`` and ``exp``. Refresh tokens are
    random opaque strings with no embedded claims; they are only meaningful
    through the session ledger.
    """

    def __init__(self, config: AuthConfig) -> None:
        if not config.secret_key.strip():
            raise ValueError("Token signing secret is not configured")
        if not config.issuer.strip():
            raise ValueError("Token issuer is not configured")
        if not config.audience.strip():
            raise ValueError("Token audience is not configured")
        self._config = config

    @property
    def access_token_ttl_seconds(self) -> int:
        return self._config.access_token_ttl_seconds

    def issue_access(self, identity: IdentityRecord, *, now: datetime | None = None) -> str:
        """Sign an access token for the identity, expiring after the configured TTL."""
        issued_at = now or datetime.now(timezone.utc)
        expires_at = issued_at + timedelta(minutes=self._config.access_token_ttl_minutes)
        payload: dict[str, Any] = {
            CLAIM_SUBJECT: identity.user_id,
            CLAIM_EMAIL: identity.email,
            CLAIM_GIVEN_NAME: identity.first_name,
            CLAIM_FAMILY_NAME: identity.last_name,
            CLAIM_ROLE: str(identity.role),
            "iss": self._config.issuer,
            "aud": self._config.audience,
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        return jwt.encode(payload, self._config.secret_key, algorithm=self._config.algorithm)

    @staticmethod
    def issue_refresh() -> str:
        """Return a fresh 256-bit random value, base64 encoded."""
        return base64.b64encode(secrets.token_bytes(REFRESH_TOKEN_BYTES)).decode("ascii")

    def verify(self, token: str) -> AccessTokenClaims | None:
        """Return claims for a valid token, ``None`` for any kind of invalid token."""
        if not token or not token.strip():
            LOGGER.warning("Attempted to verify an empty access token")
            return None
        try:
            payload = jwt.decode(
                token,
                self._config.secret_key,
                algorithms=[self._config.algorithm],
                audience=self._config.audience,
                issuer=self._config.issuer,
                options={"require_exp": True, "leeway": 0},
            )
        except ExpiredSignatureError:
            LOGGER.warning("Access token has expired")
            return None
        except JWTError as exc:
            LOGGER.warning("Access token validation failed: %s", exc)
            return None

        try:
            return AccessTokenClaims(
                user_id=str(payload[CLAIM_SUBJECT]),
                email=str(payload.get(CLAIM_EMAIL) or ""),
                given_name=str(payload.get(CLAIM_GIVEN_NAME) or ""),
                family_name=str(payload.get(CLAIM_FAMILY_NAME) or ""),
                role=str(payload.get(CLAIM_ROLE) or ""),
                issuer=str(payload["iss"]),
                audience=str(payload["aud"]),
                expires_at=datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc),
            )
        except (KeyError, TypeError, ValueError):
            LOGGER.warning("Access token is missing required claims")
            return None

    def extract_claim(self, token: str, name: str) -> str | None:
        """Return a single raw claim from a verified token."""
        claims = self.verify(token)
        if claims is None:
            return None
        by_name = {
            CLAIM_SUBJECT: claims.user_id,
            CLAIM_EMAIL: claims.email,
            CLAIM_GIVEN_NAME: claims.given_name,
            CLAIM_FAMILY_NAME: claims.family_name,
            CLAIM_ROLE: claims.role,
            "iss": claims.issuer,
            "aud": claims.audience,
        }
        return by_name.get(name)

    def user_id_from_token(self, token: str) -> str | None:
        return self.extract_claim(token, CLAIM_SUBJECT)

    def email_from_token(self, token: str) -> str | None:
        return self.extract_claim(token, CLAIM_EMAIL)
