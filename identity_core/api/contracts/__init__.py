"""Public API response contracts."""

from identity_core.api.contracts.models import (
    ApiErrorResponse,
    AuthMeResponse,
    AuthSessionResponse,
    HealthResponse,
    PagedUsersResponse,
    RevokeAllResponse,
    StatusResponse,
    UserResponse,
)

__all__ = [
    "ApiErrorResponse",
    "AuthMeResponse",
    "AuthSessionResponse",
    "HealthResponse",
    "PagedUsersResponse",
    "RevokeAllResponse",
    "StatusResponse",
    "UserResponse",
]
