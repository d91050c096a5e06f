"""Pluggable business validators run before identity writes."""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Protocol

from identity_core.core.results import ErrorCode, Result
from identity_core.users.models import IdentityRecord

LOGGER = logging.getLogger(__name__)


class IdentityLookupProtocol(Protocol):
    def find_identity_by_email(
        self, email: str, *, include_deleted: bool
    ) -> IdentityRecord | None: ...

    def find_identity_by_phone(self, phone_number: str) -> IdentityRecord | None: ...


class BusinessValidator(Protocol):
    """A single rule checked against a candidate identity."""

    name: str

    def validate(self, candidate: IdentityRecord) -> Result[None]: ...


class EmailUniquenessValidator:
    """Reject a candidate whose email already belongs to another identity.

    Soft-deleted identities still hold their email.
    """

    name = "email_uniqueness"

    def __init__(self, repo: IdentityLookupProtocol) -> None:
        self._repo = repo

    def validate(self, candidate: IdentityRecord) -> Result[None]:
        existing = self._repo.find_identity_by_email(candidate.email, include_deleted=True)
        if existing is not None and existing.user_id != candidate.user_id:
            return Result.fail(ErrorCode.EMAIL_ALREADY_EXISTS, "Email is already registered")
        return Result.ok()


class PhoneUniquenessValidator:
    """Reject a candidate whose phone number already belongs to another identity."""

    name = "phone_uniqueness"

    def __init__(self, repo: IdentityLookupProtocol) -> None:
        self._repo = repo

    def validate(self, candidate: IdentityRecord) -> Result[None]:
        if not candidate.phone_number:
            return Result.ok()
        existing = self._repo.find_identity_by_phone(candidate.phone_number)
        if existing is not None and existing.user_id != candidate.user_id:
            return Result.fail(
                ErrorCode.PHONE_ALREADY_EXISTS, "Phone number is already registered"
            )
        return Result.ok()


class ValidationPipeline:
    """Ordered validator chain that stops at the first failure."""

    def __init__(self, validators: Iterable[BusinessValidator]) -> None:
        self._validators = tuple(validators)

    @property
    def validator_names(self) -> tuple[str, ...]:
        return tuple(validator.name for validator in self._validators)

    def validate(self, candidate: IdentityRecord) -> Result[None]:
        for validator in self._validators:
            outcome = validator.validate(candidate)
            if not outcome.is_success:
                LOGGER.info(
                    "Business validation rejected candidate: validator=%s",
                    validator.name,
                    extra={"error_code": outcome.error_code},
                )
                return outcome
        return Result.ok()


VALIDATOR_REGISTRY: dict[str, Callable[[IdentityLookupProtocol], BusinessValidator]] = {
    EmailUniquenessValidator.name: EmailUniquenessValidator,
    PhoneUniquenessValidator.name: PhoneUniquenessValidator,
}


def build_validation_pipeline(
    names: Iterable[str], repo: IdentityLookupProtocol
) -> ValidationPipeline:
    """Build a pipeline from configured validator names, in the order given."""
    validators: list[BusinessValidator] = []
    for name in names:
        factory = VALIDATOR_REGISTRY.get(name)
        if factory is None:
            raise ValueError(f"Unknown business validator: {name}")
        validators.append(factory(repo))
    return ValidationPipeline(validators)
