"""Pydantic models for authentication domain."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, Field

from identity_core.users.models import UserView


class LoginRequest(BaseModel):
    """Login request payload."""

    email: str = Field(min_length=1)
    password: str = Field(min_length=1)


class RefreshRequest(BaseModel):
    """Refresh request payload."""

    refresh_token: str = Field(min_length=1)


class RevokeRequest(BaseModel):
    """Single refresh-token revocation payload."""

    refresh_token: str = Field(min_length=1)


class RevokeAllRequest(BaseModel):
    """Bulk revocation payload; defaults to the caller's own sessions."""

    user_id: str | None = None


class AuthSession(BaseModel):
    """Auth session response payload with tokens."""

    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_in: int
    user: UserView


class AccessTokenClaims(BaseModel):
    """Verified access-token claim set."""

    user_id: str
    email: str
    given_name: str = ""
    family_name: str = ""
    role: str
    issuer: str
    audience: str
    expires_at: datetime


class SessionRecord(BaseModel):
    """Refresh token persistence record.

    Only the SHA-256 digest of the refresh token is stored; the raw value is
    handed to the client once and cannot be recovered from the record.
    """

    session_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    user_id: str
    token_hash: str
    expires_at: datetime
    revoked: bool = False
    revoked_at: datetime | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    ip_address: str | None = None
    user_agent: str | None = None

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or datetime.now(timezone.utc)) >= self.expires_at

    def is_valid(self, now: datetime | None = None) -> bool:
        return not self.revoked and not self.is_expired(now)
