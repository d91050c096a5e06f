"""HTTP middleware that enforces auth on protected API routes."""

from __future__ import annotations

from typing import Callable

from fastapi import Request

from identity_core.api.errors import ApiError, status_for
from identity_core.api.http_setup import error_response
from identity_core.auth.models import AccessTokenClaims
from identity_core.auth.service import AuthService
from identity_core.core.logging import bind_user_id
from identity_core.core.results import ErrorCode
from identity_core.users.models import UserRole

PUBLIC_ROUTES = {
    ("GET", "/api/health"),
    ("POST", "/api/auth/login"),
    ("POST", "/api/auth/refresh"),
    ("POST", "/api/auth/revoke"),
    ("POST", "/api/users"),
}


def extract_bearer_token(authorization: str | None) -> str:
    """Extract bearer token from authorization header value."""
    parts = (authorization or "").strip().split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return ""
    return parts[1].strip()


def current_claims(request: Request) -> AccessTokenClaims | None:
    """Return verified claims attached by the auth middleware, if any."""
    return getattr(request.state, "user", None)


def ensure_admin(claims: AccessTokenClaims | None) -> None:
    """Reject non-admin callers; anonymous callers only reach here with auth disabled."""
    if claims is None:
        return
    if claims.role != UserRole.ADMIN:
        raise ApiError(
            status_code=status_for(ErrorCode.FORBIDDEN),
            error_code=ErrorCode.FORBIDDEN,
            message="Administrator role required",
        )


def ensure_self_or_admin(claims: AccessTokenClaims | None, user_id: str) -> None:
    if claims is None or claims.user_id == user_id:
        return
    ensure_admin(claims)


def create_auth_middleware(service: AuthService) -> Callable:
    """Create middleware function that validates access tokens."""

    async def auth_middleware(request: Request, call_next: Callable):
        """Validate auth for protected API paths and attach claims to request state."""
        path = request.url.path
        if not path.startswith("/api/"):
            return await call_next(request)

        token = extract_bearer_token(request.headers.get("authorization"))
        if not service.enabled:
            # Enforcement is off; still attach claims when a valid token is sent.
            if token:
                verified = service.verify_access_token(token)
                if verified.is_success:
                    request.state.user = verified.value
                    bind_user_id(verified.value.user_id)
            return await call_next(request)

        if (request.method, path) in PUBLIC_ROUTES:
            return await call_next(request)

        if not token:
            return error_response(401, ErrorCode.AUTH_MISSING_TOKEN, "Missing bearer token")

        verified = service.verify_access_token(token)
        if not verified.is_success:
            return error_response(
                status_for(verified.error_code),
                str(verified.error_code),
                verified.message,
                verified.details,
            )

        request.state.user = verified.value
        bind_user_id(verified.value.user_id)
        return await call_next(request)

    return auth_middleware
