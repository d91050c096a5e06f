from __future__ import annotations

import pytest

from identity_core.api.errors import ApiError, raise_for_failure, status_for, to_error_payload
from identity_core.core.results import ErrorCode, Result


def test_to_error_payload_preserves_structured_detail() -> None:
    payload = to_error_payload(
        {"error_code": "INVALID_TOKEN", "message": "Invalid", "details": ["expired"]},
        401,
    )

    assert payload == {"error_code": "INVALID_TOKEN", "message": "Invalid", "details": ["expired"]}


def test_to_error_payload_normalizes_plain_string() -> None:
    payload = to_error_payload("boom", 500)

    assert payload == {"error_code": "HTTP_500", "message": "boom", "details": []}


@pytest.mark.parametrize(
    ("code", "status"),
    [
        (ErrorCode.MISSING_EMAIL, 400),
        (ErrorCode.INVALID_CREDENTIALS, 401),
        (ErrorCode.TOKEN_REVOKED, 401),
        (ErrorCode.USER_BANNED, 403),
        (ErrorCode.USER_NOT_FOUND, 404),
        (ErrorCode.CONCURRENCY_CONFLICT, 409),
        (ErrorCode.EMAIL_ALREADY_EXISTS, 409),
        (ErrorCode.STORE_ERROR, 503),
        (None, 500),
    ],
)
def test_status_for_maps_error_codes(code: ErrorCode | None, status: int) -> None:
    assert status_for(code) == status


def test_raise_for_failure_builds_api_error() -> None:
    raise_for_failure(Result.ok("fine"))

    with pytest.raises(ApiError) as exc:
        raise_for_failure(Result.fail(ErrorCode.CONCURRENCY_CONFLICT, "stale"))

    assert exc.value.status_code == 409
    assert exc.value.detail == {
        "error_code": "CONCURRENCY_CONFLICT",
        "message": "stale",
        "details": ["stale"],
    }
