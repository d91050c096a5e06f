"""Authentication service for login, refresh rotation, revocation and token checks."""

from __future__ import annotations

import logging
from typing import Protocol

from identity_core.auth.ledger import SessionLedger
from identity_core.auth.models import AccessTokenClaims, AuthSession
from identity_core.auth.tokens import TokenIssuer
from identity_core.core.config import AuthConfig
from identity_core.core.exceptions import StoreError
from identity_core.core.normalizers import normalize_email
from identity_core.core.results import ErrorCode, Result
from identity_core.core.security import CredentialHasher
from identity_core.users.models import IdentityRecord, UserStatus, UserView

LOGGER = logging.getLogger(__name__)


class IdentityReaderProtocol(Protocol):
    def find_identity_by_email(
        self, email: str, *, include_deleted: bool
    ) -> IdentityRecord | None: ...

    def find_identity_by_id(
        self, user_id: str, *, include_deleted: bool
    ) -> IdentityRecord | None: ...


class AuthService:
    """Authentication domain service.

    Holds no state of its own; identities live in the identity store and
    refresh sessions in the session ledger.
    """

    def __init__(
        self,
        repo: IdentityReaderProtocol,
        ledger: SessionLedger,
        issuer: TokenIssuer,
        hasher: CredentialHasher,
        config: AuthConfig,
    ) -> None:
        """Initialize service dependencies."""
        self._repo = repo
        self._ledger = ledger
        self._issuer = issuer
        self._hasher = hasher
        self._config = config
        self._decoy_hash = ""

    @property
    def enabled(self) -> bool:
        """Return whether auth checks should be enforced."""
        return self._config.enabled

    def _store_failure(self, operation: str, exc: StoreError) -> Result:
        LOGGER.error(
            "Store failure during %s: %s",
            operation,
            exc,
            exc_info=exc,
            extra={"error_code": ErrorCode.STORE_ERROR},
        )
        return Result.fail(ErrorCode.STORE_ERROR, "Authentication store is unavailable")

    def _verify_against_decoy(self, password: str) -> None:
        # Unknown emails pay the same hashing cost as a wrong password.
        if not self._decoy_hash:
            self._decoy_hash = self._hasher.hash("decoy-password-never-assigned")
        self._hasher.verify(password, self._decoy_hash)

    @staticmethod
    def _reject(code: ErrorCode, message: str, user_id: str = "") -> Result:
        LOGGER.warning(message, extra={"user_id": user_id, "error_code": code})
        return Result.fail(code, message)

    def _build_session(self, identity: IdentityRecord, refresh_token: str) -> AuthSession:
        return AuthSession(
            access_token=self._issuer.issue_access(identity),
            refresh_token=refresh_token,
            token_type="Bearer",
            expires_in=self._issuer.access_token_ttl_seconds,
            user=UserView.from_record(identity),
        )

    def authenticate(
        self,
        email: str,
        password: str,
        *,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> Result[AuthSession]:
        """Check credentials and open a new refresh session."""
        normalized_email = normalize_email(email)
        if not normalized_email or not password:
            return Result.fail(ErrorCode.MISSING_CREDENTIALS, "Email and password are required")

        try:
            identity = self._repo.find_identity_by_email(normalized_email, include_deleted=True)
            # Unknown email and wrong password share one failure to prevent account enumeration.
            if identity is None:
                self._verify_against_decoy(password)
                return self._reject(ErrorCode.INVALID_CREDENTIALS, "Invalid credentials")
            if identity.is_deleted:
                return self._reject(ErrorCode.USER_DELETED, "User is deleted", identity.user_id)
            if not self._hasher.verify(password, identity.password_hash):
                return self._reject(
                    ErrorCode.INVALID_CREDENTIALS, "Invalid credentials", identity.user_id
                )
            if identity.status == UserStatus.DEACTIVATED:
                return self._reject(
                    ErrorCode.USER_DEACTIVATED, "User is deactivated", identity.user_id
                )
            if identity.status == UserStatus.BANNED:
                return self._reject(ErrorCode.USER_BANNED, "User is banned", identity.user_id)

            refresh_token, _ = self._ledger.open_session(
                identity.user_id, ip_address=ip_address, user_agent=user_agent
            )
        except StoreError as exc:
            return self._store_failure("authenticate", exc)

        LOGGER.info("User authenticated", extra={"user_id": identity.user_id})
        return Result.ok(self._build_session(identity, refresh_token))

    def refresh(
        self,
        refresh_token: str,
        *,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> Result[AuthSession]:
        """Exchange a refresh token for a new pair; the presented token is consumed."""
        if not refresh_token:
            return Result.fail(ErrorCode.MISSING_REFRESH_TOKEN, "Refresh token is required")

        try:
            record = self._ledger.find(refresh_token)
            if record is None:
                return self._reject(ErrorCode.INVALID_REFRESH_TOKEN, "Invalid refresh token")
            if record.revoked:
                return self._reject(
                    ErrorCode.TOKEN_REVOKED, "Refresh token has been revoked", record.user_id
                )
            if record.is_expired():
                return self._reject(
                    ErrorCode.TOKEN_EXPIRED, "Refresh token has expired", record.user_id
                )

            identity = self._repo.find_identity_by_id(record.user_id, include_deleted=True)
            if identity is None:
                return self._reject(ErrorCode.USER_NOT_FOUND, "User not found", record.user_id)
            if identity.is_deleted:
                return self._reject(ErrorCode.USER_DELETED, "User is deleted", record.user_id)

            rotated = self._ledger.rotate(
                record, ip_address=ip_address, user_agent=user_agent
            )
            if rotated is None:
                return self._reject(
                    ErrorCode.TOKEN_REVOKED, "Refresh token has been revoked", record.user_id
                )
            new_token, _ = rotated
        except StoreError as exc:
            return self._store_failure("refresh", exc)

        return Result.ok(self._build_session(identity, new_token))

    def revoke(self, refresh_token: str) -> Result[None]:
        """Revoke the single session behind a refresh token."""
        if not refresh_token:
            return Result.fail(ErrorCode.MISSING_REFRESH_TOKEN, "Refresh token is required")
        try:
            record = self._ledger.find(refresh_token)
            if record is None:
                return self._reject(ErrorCode.INVALID_REFRESH_TOKEN, "Invalid refresh token")
            self._ledger.revoke(record)
        except StoreError as exc:
            return self._store_failure("revoke", exc)
        return Result.ok()

    def revoke_all(self, user_id: str) -> Result[int]:
        """Revoke every live session of the identity; zero sessions is still a success."""
        if not user_id:
            return Result.fail(ErrorCode.MISSING_USER_ID, "User id is required")
        try:
            count = self._ledger.revoke_all(user_id)
        except StoreError as exc:
            return self._store_failure("revoke_all", exc)
        return Result.ok(count)

    def verify_access_token(self, token: str) -> Result[AccessTokenClaims]:
        claims = self._issuer.verify(token)
        if claims is None:
            return Result.fail(ErrorCode.INVALID_TOKEN, "Invalid or expired access token")
        return Result.ok(claims)
