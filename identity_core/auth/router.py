"""Authentication API router."""

from __future__ import annotations

from fastapi import APIRouter, Request

from identity_core.api.contracts import (
    ApiErrorResponse,
    AuthMeResponse,
    AuthSessionResponse,
    RevokeAllResponse,
    StatusResponse,
)
from identity_core.api.errors import ApiError, raise_for_failure
from identity_core.auth.middleware import current_claims, ensure_self_or_admin
from identity_core.auth.models import (
    LoginRequest,
    RefreshRequest,
    RevokeAllRequest,
    RevokeRequest,
)
from identity_core.auth.service import AuthService
from identity_core.core.results import ErrorCode


def _client_metadata(request: Request) -> tuple[str | None, str | None]:
    client_ip = request.client.host if request.client else None
    return client_ip, request.headers.get("user-agent")


def create_auth_router(service: AuthService) -> APIRouter:
    """Build authentication router with login/refresh/revoke/me endpoints."""
    router = APIRouter(tags=["auth"])

    @router.post(
        "/api/auth/login",
        response_model=AuthSessionResponse,
        responses={401: {"model": ApiErrorResponse}, 403: {"model": ApiErrorResponse}},
    )
    def login(req: LoginRequest, request: Request) -> AuthSessionResponse:
        """Authenticate user and return token pair."""
        client_ip, user_agent = _client_metadata(request)
        result = service.authenticate(
            req.email, req.password, ip_address=client_ip, user_agent=user_agent
        )
        raise_for_failure(result)
        return AuthSessionResponse.model_validate(result.value.model_dump())

    @router.post(
        "/api/auth/refresh",
        response_model=AuthSessionResponse,
        responses={401: {"model": ApiErrorResponse}},
    )
    def refresh(req: RefreshRequest, request: Request) -> AuthSessionResponse:
        """Rotate refresh token and issue new session tokens."""
        client_ip, user_agent = _client_metadata(request)
        result = service.refresh(
            req.refresh_token, ip_address=client_ip, user_agent=user_agent
        )
        raise_for_failure(result)
        return AuthSessionResponse.model_validate(result.value.model_dump())

    @router.post(
        "/api/auth/revoke",
        response_model=StatusResponse,
        responses={401: {"model": ApiErrorResponse}},
    )
    def revoke(req: RevokeRequest) -> StatusResponse:
        """Invalidate supplied refresh token."""
        raise_for_failure(service.revoke(req.refresh_token))
        return StatusResponse(status="ok")

    @router.post(
        "/api/auth/revoke-all",
        response_model=RevokeAllResponse,
        responses={401: {"model": ApiErrorResponse}, 403: {"model": ApiErrorResponse}},
    )
    def revoke_all(req: RevokeAllRequest, request: Request) -> RevokeAllResponse:
        """Revoke every refresh session of the caller, or of ``user_id`` for admins."""
        claims = current_claims(request)
        user_id = req.user_id or (claims.user_id if claims else "")
        if user_id:
            ensure_self_or_admin(claims, user_id)
        result = service.revoke_all(user_id or "")
        raise_for_failure(result)
        return RevokeAllResponse(status="ok", revoked_count=int(result.value or 0))

    @router.get(
        "/api/auth/me",
        response_model=AuthMeResponse,
        responses={401: {"model": ApiErrorResponse}},
    )
    def me(request: Request) -> AuthMeResponse:
        """Return current authenticated user claims from access token."""
        claims = current_claims(request)
        if claims is None:
            raise ApiError(
                status_code=401,
                error_code=ErrorCode.AUTH_MISSING_TOKEN,
                message="Missing bearer token",
            )
        return AuthMeResponse(
            user_id=claims.user_id,
            email=claims.email,
            given_name=claims.given_name,
            family_name=claims.family_name,
            role=claims.role,
            expires_at=claims.expires_at,
        )

    return router
