"""HTTP middleware and exception handler wiring for the identity API."""

from __future__ import annotations

import logging
import time
import uuid
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from identity_core.api.contracts import ApiErrorResponse
from identity_core.api.errors import status_for, to_error_payload
from identity_core.core.config import SecurityConfig
from identity_core.core.exceptions import StoreError
from identity_core.core.logging import bind_request_context
from identity_core.core.results import ErrorCode

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    # Responses carry tokens and profile data.
    "Cache-Control": "no-store",
}


def error_response(
    status_code: int,
    error_code: str,
    message: str,
    details: list[str] | None = None,
) -> JSONResponse:
    """Render the standard error envelope."""
    return JSONResponse(
        status_code=status_code,
        content=ApiErrorResponse(
            error_code=error_code,
            message=message,
            details=details if details is not None else [message],
        ).model_dump(),
    )


def _request_fields(request: Request, status_code: int) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "path": request.url.path,
        "method": request.method,
        "status_code": status_code,
        "client_ip": request.client.host if request.client else "",
    }
    claims = getattr(request.state, "user", None)
    if claims is not None:
        fields["user_id"] = claims.user_id
    return fields


def register_http_middleware(
    app: FastAPI, *, config: SecurityConfig, logger: logging.Logger
) -> None:
    """Attach the body-size guard and the request log/correlation middleware."""

    @app.middleware("http")
    async def request_size_limit_middleware(request: Request, call_next):
        content_length = request.headers.get("content-length")
        if not content_length:
            return await call_next(request)
        if not content_length.isdigit():
            return error_response(
                400, ErrorCode.INVALID_REQUEST, "Content-Length header is not a valid size"
            )
        if int(content_length) > config.request_max_bytes:
            return error_response(
                status_for(ErrorCode.REQUEST_TOO_LARGE),
                ErrorCode.REQUEST_TOO_LARGE,
                f"Request size exceeds configured limit ({config.request_max_bytes} bytes).",
            )
        return await call_next(request)

    @app.middleware("http")
    async def request_logging_middleware(request: Request, call_next):
        correlation_id = (
            request.headers.get("x-request-id")
            or request.headers.get("x-correlation-id")
            or uuid.uuid4().hex
        )
        bind_request_context(correlation_id)
        started = time.perf_counter()
        response = await call_next(request)
        response.headers["X-Request-ID"] = correlation_id
        response.headers.update(SECURITY_HEADERS)
        fields = _request_fields(request, response.status_code)
        fields["duration_ms"] = round((time.perf_counter() - started) * 1000, 2)
        logger.info("request_completed", extra=fields)
        return response


def register_exception_handlers(app: FastAPI, *, logger: logging.Logger) -> None:
    """Map framework, store and unexpected failures onto the error envelope."""

    @app.exception_handler(HTTPException)
    async def handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:
        payload = to_error_payload(exc.detail, exc.status_code)
        logger.warning(
            "http_exception",
            extra={
                **_request_fields(request, exc.status_code),
                "error_code": payload["error_code"],
            },
        )
        return error_response(
            exc.status_code, payload["error_code"], payload["message"], payload["details"]
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_exception(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        logger.warning(
            "validation_exception",
            extra={**_request_fields(request, 422), "error_code": ErrorCode.VALIDATION_ERROR},
        )
        details = [
            f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg', '')}"
            for error in exc.errors()
        ]
        return error_response(
            422, ErrorCode.VALIDATION_ERROR, "Request validation failed", details
        )

    @app.exception_handler(StoreError)
    async def handle_store_exception(request: Request, exc: StoreError) -> JSONResponse:
        status_code = status_for(ErrorCode.STORE_ERROR)
        logger.error(
            "store_exception: %s",
            exc,
            exc_info=exc,
            extra={**_request_fields(request, status_code), "error_code": ErrorCode.STORE_ERROR},
        )
        return error_response(status_code, ErrorCode.STORE_ERROR, "Identity store is unavailable")

    @app.exception_handler(Exception)
    async def handle_unexpected_exception(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(
            "unexpected_exception",
            extra={
                **_request_fields(request, 500),
                "error_code": ErrorCode.INTERNAL_SERVER_ERROR,
            },
        )
        return error_response(500, ErrorCode.INTERNAL_SERVER_ERROR, "Internal server error")
