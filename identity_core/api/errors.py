"""Shared API error types and helpers."""

from __future__ import annotations

from typing import Any

from fastapi import HTTPException

from identity_core.core.results import ErrorCode, Result

_STATUS_BY_CODE: dict[ErrorCode, int] = {
    ErrorCode.INVALID_REQUEST: 400,
    ErrorCode.MISSING_EMAIL: 400,
    ErrorCode.MISSING_PASSWORD: 400,
    ErrorCode.MISSING_USER_ID: 400,
    ErrorCode.MISSING_CREDENTIALS: 400,
    ErrorCode.MISSING_REFRESH_TOKEN: 400,
    ErrorCode.INVALID_PASSWORD: 400,
    ErrorCode.PASSWORD_USED_BEFORE: 400,
    ErrorCode.PASSWORD_TOO_WEAK: 400,
    ErrorCode.INVALID_CREDENTIALS: 401,
    ErrorCode.INVALID_REFRESH_TOKEN: 401,
    ErrorCode.TOKEN_REVOKED: 401,
    ErrorCode.TOKEN_EXPIRED: 401,
    ErrorCode.INVALID_TOKEN: 401,
    ErrorCode.AUTH_MISSING_TOKEN: 401,
    ErrorCode.USER_DELETED: 403,
    ErrorCode.USER_DEACTIVATED: 403,
    ErrorCode.USER_BANNED: 403,
    ErrorCode.FORBIDDEN: 403,
    ErrorCode.USER_NOT_FOUND: 404,
    ErrorCode.EMAIL_ALREADY_EXISTS: 409,
    ErrorCode.PHONE_ALREADY_EXISTS: 409,
    ErrorCode.DUPLICATE: 409,
    ErrorCode.CONCURRENCY_CONFLICT: 409,
    ErrorCode.REQUEST_TOO_LARGE: 413,
    ErrorCode.VALIDATION_ERROR: 422,
    ErrorCode.INTERNAL_SERVER_ERROR: 500,
    ErrorCode.STORE_ERROR: 503,
}


def status_for(error_code: ErrorCode | None) -> int:
    """Map an error code to its HTTP status; unknown codes are server errors."""
    if error_code is None:
        return 500
    return _STATUS_BY_CODE.get(error_code, 500)


class ApiError(HTTPException):
    """HTTP exception carrying stable API error envelope."""

    def __init__(
        self,
        *,
        status_code: int,
        error_code: ErrorCode,
        message: str,
        details: list[str] | None = None,
    ) -> None:
        """Build an HTTP exception with standard detail structure."""
        super().__init__(
            status_code=status_code,
            detail={
                "error_code": str(error_code),
                "message": message,
                "details": list(details or []),
            },
        )


def raise_for_failure(result: Result[Any]) -> None:
    """Raise ``ApiError`` for a failed result; no-op on success."""
    if result.is_success:
        return
    error_code = result.error_code or ErrorCode.INTERNAL_SERVER_ERROR
    raise ApiError(
        status_code=status_for(error_code),
        error_code=error_code,
        message=result.message,
        details=result.details,
    )


def to_error_payload(detail: Any, status_code: int) -> dict[str, Any]:
    """Normalize HTTP exception detail into stable error payload."""
    if isinstance(detail, dict):
        error_code = str(detail.get("error_code") or f"HTTP_{status_code}")
        message = str(detail.get("message") or detail.get("detail") or "HTTP error")
        details = [str(item) for item in detail.get("details") or []]
        return {"error_code": error_code, "message": message, "details": details}
    return {
        "error_code": f"HTTP_{status_code}",
        "message": str(detail or "HTTP error"),
        "details": [],
    }
