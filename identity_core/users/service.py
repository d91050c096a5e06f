"""Identity mutation service: register, update, delete, password and status changes."""

from __future__ import annotations

import logging
from typing import Protocol

from identity_core.core.config import ValidationConfig
from identity_core.core.exceptions import DuplicateRecordError, StoreError
from identity_core.core.normalizers import normalize_email, normalize_phone
from identity_core.core.results import ErrorCode, Result
from identity_core.core.security import CredentialHasher
from identity_core.users.models import (
    IdentityRecord,
    PagedResult,
    RegisterUserRequest,
    UpdateUserRequest,
    UserListQuery,
    UserRole,
    UserStatus,
    UserView,
    utc_now,
)
from identity_core.users.validators import ValidationPipeline

LOGGER = logging.getLogger(__name__)

_PATCHABLE_FIELDS = ("first_name", "last_name", "display_name", "date_of_birth", "phone_number")


class IdentityRepositoryProtocol(Protocol):
    def find_identity_by_email(
        self, email: str, *, include_deleted: bool
    ) -> IdentityRecord | None: ...

    def find_identity_by_id(
        self, user_id: str, *, include_deleted: bool
    ) -> IdentityRecord | None: ...

    def insert_identity(self, record: IdentityRecord) -> IdentityRecord: ...

    def replace_identity_if_version(
        self, user_id: str, expected_version: int, record: IdentityRecord
    ) -> bool: ...

    def set_soft_deleted(self, user_id: str) -> bool: ...

    def list_identities(self, query: UserListQuery) -> tuple[list[IdentityRecord], int]: ...


class UserService:
    """Mutates identity records under optimistic concurrency.

    Every successful mutation bumps ``version`` by exactly one. Writes to an
    existing record go through ``replace_identity_if_version`` so a concurrent
    writer that got there first turns this call into ``CONCURRENCY_CONFLICT``
    instead of a lost update.
    """

    def __init__(
        self,
        repo: IdentityRepositoryProtocol,
        pipeline: ValidationPipeline,
        hasher: CredentialHasher,
        config: ValidationConfig,
    ) -> None:
        """Initialize service dependencies."""
        self._repo = repo
        self._pipeline = pipeline
        self._hasher = hasher
        self._config = config

    def _store_failure(self, operation: str, exc: StoreError, user_id: str = "") -> Result:
        LOGGER.error(
            "Identity store failure during %s: %s",
            operation,
            exc,
            exc_info=exc,
            extra={"user_id": user_id, "error_code": ErrorCode.STORE_ERROR},
        )
        return Result.fail(ErrorCode.STORE_ERROR, "Identity store is unavailable")

    @staticmethod
    def _not_found() -> Result:
        return Result.fail(ErrorCode.USER_NOT_FOUND, "User not found")

    @staticmethod
    def _conflict() -> Result:
        return Result.fail(
            ErrorCode.CONCURRENCY_CONFLICT,
            "User was modified by another request; reload and retry",
        )

    def _check_password_policy(self, password: str) -> Result[None]:
        if len(password) < self._config.min_password_length:
            return Result.fail(
                ErrorCode.PASSWORD_TOO_WEAK,
                f"Password must be at least {self._config.min_password_length} characters long",
            )
        if password.lower() in self._config.weak_passwords:
            return Result.fail(
                ErrorCode.PASSWORD_TOO_WEAK, "Password is too common and easily guessable"
            )
        return Result.ok()

    def register(self, request: RegisterUserRequest) -> Result[UserView]:
        """Create a ``PendingVerification`` identity at version 1."""
        email = normalize_email(request.email)
        if not email:
            return Result.fail(ErrorCode.MISSING_EMAIL, "Email is required")
        if not request.password:
            return Result.fail(ErrorCode.MISSING_PASSWORD, "Password is required")
        policy = self._check_password_policy(request.password)
        if not policy.is_success:
            return policy.cast_failure()

        candidate = IdentityRecord(
            email=email,
            first_name=request.first_name.strip(),
            last_name=request.last_name.strip(),
            display_name=request.display_name,
            date_of_birth=request.date_of_birth,
            phone_number=normalize_phone(request.phone_number),
            role=UserRole.USER,
            status=UserStatus.PENDING_VERIFICATION,
            version=1,
            password_history=[],
            terms_accepted_version=request.terms_accepted_version,
            privacy_policy_accepted_version=request.privacy_policy_accepted_version,
            registration_ip=request.registration_ip,
            registration_user_agent=request.registration_user_agent,
        )

        try:
            outcome = self._pipeline.validate(candidate)
            if not outcome.is_success:
                return outcome.cast_failure()

            candidate.password_hash = self._hasher.hash(request.password)
            self._repo.insert_identity(candidate)
        except DuplicateRecordError as exc:
            LOGGER.warning(
                "Registration lost a uniqueness race on %s",
                exc.key,
                extra={"error_code": ErrorCode.DUPLICATE},
            )
            return Result.fail(
                ErrorCode.DUPLICATE, f"A user with the same {exc.key} already exists"
            )
        except StoreError as exc:
            return self._store_failure("register", exc)

        LOGGER.info("User registered", extra={"user_id": candidate.user_id})
        return Result.ok(UserView.from_record(candidate))

    def bootstrap_admin(self, email: str, password: str) -> Result[UserView]:
        """Create an active administrator unless the email is already taken."""
        normalized_email = normalize_email(email)
        if not normalized_email:
            return Result.fail(ErrorCode.MISSING_EMAIL, "Email is required")
        if not password:
            return Result.fail(ErrorCode.MISSING_PASSWORD, "Password is required")

        try:
            existing = self._repo.find_identity_by_email(normalized_email, include_deleted=True)
            if existing is not None:
                return Result.ok(UserView.from_record(existing))
            admin = IdentityRecord(
                email=normalized_email,
                password_hash=self._hasher.hash(password),
                first_name="Admin",
                role=UserRole.ADMIN,
                status=UserStatus.ACTIVE,
            )
            self._repo.insert_identity(admin)
        except DuplicateRecordError:
            return Result.fail(ErrorCode.DUPLICATE, "Administrator already exists")
        except StoreError as exc:
            return self._store_failure("bootstrap_admin", exc)

        LOGGER.info("Bootstrap administrator created", extra={"user_id": admin.user_id})
        return Result.ok(UserView.from_record(admin))

    def get_user(self, user_id: str) -> Result[UserView]:
        if not user_id:
            return Result.fail(ErrorCode.MISSING_USER_ID, "User id is required")
        try:
            record = self._repo.find_identity_by_id(user_id, include_deleted=False)
        except StoreError as exc:
            return self._store_failure("get_user", exc, user_id)
        if record is None:
            return self._not_found()
        return Result.ok(UserView.from_record(record))

    def list_users(self, query: UserListQuery) -> Result[PagedResult[UserView]]:
        """Return one page of public identity views."""
        bounded = query.model_copy(
            update={
                "page_number": max(1, query.page_number),
                "page_size": min(max(1, query.page_size), self._config.max_page_size),
            }
        )
        try:
            records, total = self._repo.list_identities(bounded)
        except StoreError as exc:
            return self._store_failure("list_users", exc)
        return Result.ok(
            PagedResult[UserView].create(
                [UserView.from_record(record) for record in records],
                total,
                bounded.page_number,
                bounded.page_size,
            )
        )

    def update(self, user_id: str, request: UpdateUserRequest) -> Result[UserView]:
        """Apply the provided profile fields if ``request.version`` is still current."""
        if not user_id:
            return Result.fail(ErrorCode.MISSING_USER_ID, "User id is required")

        try:
            current = self._repo.find_identity_by_id(user_id, include_deleted=False)
            if current is None:
                return self._not_found()
            if request.version != current.version:
                LOGGER.info(
                    "Stale update rejected: expected=%s stored=%s",
                    request.version,
                    current.version,
                    extra={"user_id": user_id, "error_code": ErrorCode.CONCURRENCY_CONFLICT},
                )
                return self._conflict()

            patch = request.model_dump(exclude_unset=True, include=set(_PATCHABLE_FIELDS))
            if "phone_number" in patch:
                patch["phone_number"] = normalize_phone(patch["phone_number"])
            for key in ("first_name", "last_name"):
                if key in patch:
                    patch[key] = (patch[key] or "").strip()
            candidate = current.model_copy(
                update={**patch, "version": current.version + 1, "updated_at": utc_now()}
            )

            outcome = self._pipeline.validate(candidate)
            if not outcome.is_success:
                return outcome.cast_failure()

            if not self._repo.replace_identity_if_version(user_id, current.version, candidate):
                LOGGER.info(
                    "Concurrent update won the race",
                    extra={"user_id": user_id, "error_code": ErrorCode.CONCURRENCY_CONFLICT},
                )
                return self._conflict()
        except DuplicateRecordError as exc:
            return Result.fail(
                ErrorCode.DUPLICATE, f"A user with the same {exc.key} already exists"
            )
        except StoreError as exc:
            return self._store_failure("update", exc, user_id)

        LOGGER.info("User updated: version=%s", candidate.version, extra={"user_id": user_id})
        return Result.ok(UserView.from_record(candidate))

    def change_password(
        self, user_id: str, current_password: str, new_password: str
    ) -> Result[None]:
        """Verify the current password and replace it with one not seen in history."""
        if not user_id:
            return Result.fail(ErrorCode.MISSING_USER_ID, "User id is required")
        if not current_password or not new_password:
            return Result.fail(ErrorCode.MISSING_PASSWORD, "Password is required")
        policy = self._check_password_policy(new_password)
        if not policy.is_success:
            return policy.cast_failure()

        try:
            current = self._repo.find_identity_by_id(user_id, include_deleted=False)
            if current is None:
                return self._not_found()
            if not self._hasher.verify(current_password, current.password_hash):
                LOGGER.warning(
                    "Password change rejected: current password mismatch",
                    extra={"user_id": user_id, "error_code": ErrorCode.INVALID_PASSWORD},
                )
                return Result.fail(ErrorCode.INVALID_PASSWORD, "Current password is incorrect")

            # Plaintext is checked against each stored hash; bcrypt hashes never compare equal.
            if any(self._hasher.verify(new_password, old) for old in current.password_history):
                return Result.fail(
                    ErrorCode.PASSWORD_USED_BEFORE,
                    "New password was used recently; choose a different one",
                )

            limit = self._config.password_history_limit
            history = [*current.password_history, current.password_hash][-limit:]
            candidate = current.model_copy(
                update={
                    "password_hash": self._hasher.hash(new_password),
                    "password_history": history,
                    "version": current.version + 1,
                    "updated_at": utc_now(),
                }
            )
            if not self._repo.replace_identity_if_version(user_id, current.version, candidate):
                return self._conflict()
        except StoreError as exc:
            return self._store_failure("change_password", exc, user_id)

        LOGGER.info("Password changed", extra={"user_id": user_id})
        return Result.ok()

    def soft_delete(self, user_id: str) -> Result[None]:
        """Flag the identity deleted; repeating the call on a deleted identity succeeds."""
        if not user_id:
            return Result.fail(ErrorCode.MISSING_USER_ID, "User id is required")
        try:
            matched = self._repo.set_soft_deleted(user_id)
        except StoreError as exc:
            return self._store_failure("soft_delete", exc, user_id)
        if not matched:
            return self._not_found()
        LOGGER.info("User soft-deleted", extra={"user_id": user_id})
        return Result.ok()

    def update_status(
        self, user_id: str, new_status: UserStatus, reason_code: str = ""
    ) -> Result[UserView]:
        if not user_id:
            return Result.fail(ErrorCode.MISSING_USER_ID, "User id is required")
        try:
            current = self._repo.find_identity_by_id(user_id, include_deleted=True)
            if current is None:
                return self._not_found()
            candidate = current.model_copy(
                update={
                    "status": new_status,
                    "version": current.version + 1,
                    "updated_at": utc_now(),
                }
            )
            if not self._repo.replace_identity_if_version(user_id, current.version, candidate):
                return self._conflict()
        except StoreError as exc:
            return self._store_failure("update_status", exc, user_id)

        LOGGER.info(
            "User status changed: %s -> %s reason=%s",
            current.status,
            new_status,
            reason_code or "-",
            extra={"user_id": user_id},
        )
        return Result.ok(UserView.from_record(candidate))
