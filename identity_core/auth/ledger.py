"""Refresh-token session ledger."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Protocol

from identity_core.auth.models import SessionRecord
from identity_core.auth.repository import hash_token
from identity_core.auth.tokens import TokenIssuer
from identity_core.core.config import AuthConfig

LOGGER = logging.getLogger(__name__)


class SessionRepositoryProtocol(Protocol):
    def find_session_by_token(self, token: str) -> SessionRecord | None: ...

    def insert_session(self, record: SessionRecord) -> SessionRecord: ...

    def revoke_session(self, session_id: str) -> bool: ...

    def revoke_all_sessions_for_identity(self, user_id: str) -> int: ...

    def delete_expired_sessions(self, now: datetime, *, dry_run: bool = False) -> int: ...


class SessionLedger:
    """Opens, finds, rotates and revokes refresh-token sessions.

    A refresh token is usable at most once: rotation revokes the presented
    session before a replacement is opened, so a concurrent second presentation
    loses the conditional revoke and gets ``None`` back.
    """

    def __init__(self, repo: SessionRepositoryProtocol, config: AuthConfig) -> None:
        self._repo = repo
        self._config = config

    @property
    def refresh_token_ttl(self) -> timedelta:
        return timedelta(days=self._config.refresh_token_ttl_days)

    def open_session(
        self,
        user_id: str,
        *,
        ip_address: str | None = None,
        user_agent: str | None = None,
        now: datetime | None = None,
    ) -> tuple[str, SessionRecord]:
        """Create a session and return the raw refresh token with its stored record."""
        created_at = now or datetime.now(timezone.utc)
        raw_token = TokenIssuer.issue_refresh()
        record = SessionRecord(
            user_id=user_id,
            token_hash=hash_token(raw_token),
            expires_at=created_at + self.refresh_token_ttl,
            created_at=created_at,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        self._repo.insert_session(record)
        LOGGER.info(
            "Refresh session opened",
            extra={"user_id": user_id, "session_id": record.session_id},
        )
        return raw_token, record

    def find(self, raw_token: str) -> SessionRecord | None:
        return self._repo.find_session_by_token(raw_token)

    def revoke(self, record: SessionRecord) -> bool:
        """Revoke one session; ``False`` when it was already revoked."""
        revoked = self._repo.revoke_session(record.session_id)
        if revoked:
            LOGGER.info(
                "Refresh session revoked",
                extra={"user_id": record.user_id, "session_id": record.session_id},
            )
        return revoked

    def rotate(
        self,
        record: SessionRecord,
        *,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> tuple[str, SessionRecord] | None:
        """Revoke ``record`` and open its successor, or ``None`` if it was already consumed."""
        if not self.revoke(record):
            return None
        return self.open_session(
            record.user_id,
            ip_address=ip_address or record.ip_address,
            user_agent=user_agent or record.user_agent,
        )

    def revoke_all(self, user_id: str) -> int:
        count = self._repo.revoke_all_sessions_for_identity(user_id)
        LOGGER.info("Revoked %s refresh sessions", count, extra={"user_id": user_id})
        return count

    def purge_expired(self, *, now: datetime | None = None, dry_run: bool = False) -> int:
        """Delete sessions past their expiry; returns the number removed (or removable)."""
        moment = now or datetime.now(timezone.utc)
        count = self._repo.delete_expired_sessions(moment, dry_run=dry_run)
        LOGGER.info("Expired refresh sessions purged: count=%s dry_run=%s", count, dry_run)
        return count
