"""Explicit success/failure results returned by the identity core."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Generic, TypeVar

T = TypeVar("T")


class ErrorCode(StrEnum):
    """Stable machine-readable error codes."""

    INVALID_REQUEST = "INVALID_REQUEST"
    MISSING_EMAIL = "MISSING_EMAIL"
    MISSING_PASSWORD = "MISSING_PASSWORD"
    MISSING_USER_ID = "MISSING_USER_ID"
    MISSING_CREDENTIALS = "MISSING_CREDENTIALS"
    MISSING_REFRESH_TOKEN = "MISSING_REFRESH_TOKEN"
    EMAIL_ALREADY_EXISTS = "EMAIL_ALREADY_EXISTS"
    PHONE_ALREADY_EXISTS = "PHONE_ALREADY_EXISTS"
    DUPLICATE = "DUPLICATE"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    USER_DELETED = "USER_DELETED"
    USER_DEACTIVATED = "USER_DEACTIVATED"
    USER_BANNED = "USER_BANNED"
    CONCURRENCY_CONFLICT = "CONCURRENCY_CONFLICT"
    INVALID_PASSWORD = "INVALID_PASSWORD"
    PASSWORD_USED_BEFORE = "PASSWORD_USED_BEFORE"
    PASSWORD_TOO_WEAK = "PASSWORD_TOO_WEAK"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    INVALID_REFRESH_TOKEN = "INVALID_REFRESH_TOKEN"
    TOKEN_REVOKED = "TOKEN_REVOKED"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    INVALID_TOKEN = "INVALID_TOKEN"
    FORBIDDEN = "FORBIDDEN"
    STORE_ERROR = "STORE_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    AUTH_MISSING_TOKEN = "AUTH_MISSING_TOKEN"
    REQUEST_TOO_LARGE = "REQUEST_TOO_LARGE"
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"


@dataclass(frozen=True)
class Result(Generic[T]):
    """Tagged outcome: a success payload or an ``(error_code, message, details)`` triple."""

    is_success: bool
    value: T | None = None
    error_code: ErrorCode | None = None
    message: str = ""
    details: list[str] = field(default_factory=list)

    @classmethod
    def ok(cls, value: T | None = None) -> "Result[T]":
        return cls(is_success=True, value=value)

    @classmethod
    def fail(
        cls,
        error_code: ErrorCode,
        message: str,
        details: list[str] | None = None,
    ) -> "Result[T]":
        return cls(
            is_success=False,
            error_code=error_code,
            message=message,
            details=list(details) if details else [message],
        )

    def cast_failure(self) -> "Result":
        """Re-tag a failure so it can be returned from an operation of another payload type."""
        if self.is_success:
            raise ValueError("cast_failure() called on a successful result")
        return Result(
            is_success=False,
            error_code=self.error_code,
            message=self.message,
            details=list(self.details),
        )
