"""Identity management API router."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Query, Request

from identity_core.api.contracts import (
    ApiErrorResponse,
    PagedUsersResponse,
    StatusResponse,
    UserResponse,
)
from identity_core.api.errors import ApiError, raise_for_failure
from identity_core.auth.middleware import current_claims, ensure_admin, ensure_self_or_admin
from identity_core.core.results import ErrorCode
from identity_core.users.models import (
    ChangePasswordRequest,
    RegisterUserRequest,
    SortField,
    UpdateUserRequest,
    UpdateUserStatusRequest,
    UserListQuery,
    UserRole,
)
from identity_core.users.service import UserService

_ERROR_RESPONSES = {
    400: {"model": ApiErrorResponse},
    401: {"model": ApiErrorResponse},
    403: {"model": ApiErrorResponse},
    404: {"model": ApiErrorResponse},
    409: {"model": ApiErrorResponse},
}


def create_users_router(service: UserService) -> APIRouter:
    """Build identity router with register/list/get/update/delete endpoints."""
    router = APIRouter(tags=["users"])

    @router.post(
        "/api/users",
        response_model=UserResponse,
        status_code=201,
        responses=_ERROR_RESPONSES,
    )
    def register(req: RegisterUserRequest, request: Request) -> UserResponse:
        """Register a new identity in ``PendingVerification`` state."""
        payload = req.model_copy(
            update={
                "registration_ip": request.client.host if request.client else None,
                "registration_user_agent": request.headers.get("user-agent"),
            }
        )
        result = service.register(payload)
        raise_for_failure(result)
        return UserResponse.model_validate(result.value.model_dump())

    @router.get("/api/users", response_model=PagedUsersResponse, responses=_ERROR_RESPONSES)
    def list_users(
        request: Request,
        page_number: int = Query(default=1, ge=1),
        page_size: int = Query(default=10, ge=1),
        search_term: str | None = Query(default=None),
        sort_by: SortField = Query(default="created_at"),
        sort_order: str = Query(default="desc", pattern="^(asc|desc)$"),
        role: UserRole | None = Query(default=None),
        created_after: datetime | None = Query(default=None),
        created_before: datetime | None = Query(default=None),
        include_deleted: bool = Query(default=False),
    ) -> PagedUsersResponse:
        """List identities page by page (administrators only)."""
        ensure_admin(current_claims(request))
        query = UserListQuery(
            page_number=page_number,
            page_size=page_size,
            search_term=search_term,
            sort_by=sort_by,
            sort_order=sort_order,
            role=role,
            created_after=created_after,
            created_before=created_before,
            include_deleted=include_deleted,
        )
        result = service.list_users(query)
        raise_for_failure(result)
        return PagedUsersResponse.model_validate(result.value.model_dump())

    @router.get("/api/users/{user_id}", response_model=UserResponse, responses=_ERROR_RESPONSES)
    def get_user(user_id: str, request: Request) -> UserResponse:
        ensure_self_or_admin(current_claims(request), user_id)
        result = service.get_user(user_id)
        raise_for_failure(result)
        return UserResponse.model_validate(result.value.model_dump())

    @router.put("/api/users/{user_id}", response_model=UserResponse, responses=_ERROR_RESPONSES)
    def update_user(
        user_id: str, req: UpdateUserRequest, request: Request
    ) -> UserResponse:
        """Apply a profile patch guarded by the caller's last-seen ``version``."""
        ensure_self_or_admin(current_claims(request), user_id)
        result = service.update(user_id, req)
        raise_for_failure(result)
        return UserResponse.model_validate(result.value.model_dump())

    @router.delete(
        "/api/users/{user_id}", response_model=StatusResponse, responses=_ERROR_RESPONSES
    )
    def delete_user(user_id: str, request: Request) -> StatusResponse:
        ensure_self_or_admin(current_claims(request), user_id)
        raise_for_failure(service.soft_delete(user_id))
        return StatusResponse(status="ok")

    @router.post(
        "/api/users/{user_id}/password",
        response_model=StatusResponse,
        responses=_ERROR_RESPONSES,
    )
    def change_password(
        user_id: str, req: ChangePasswordRequest, request: Request
    ) -> StatusResponse:
        """Change own password."""
        claims = current_claims(request)
        if claims is not None and claims.user_id != user_id:
            raise ApiError(
                status_code=403,
                error_code=ErrorCode.FORBIDDEN,
                message="Password can only be changed by its owner",
            )
        result = service.change_password(user_id, req.current_password, req.new_password)
        raise_for_failure(result)
        return StatusResponse(status="ok")

    @router.patch(
        "/api/users/{user_id}/status",
        response_model=UserResponse,
        responses=_ERROR_RESPONSES,
    )
    def update_status(
        user_id: str, req: UpdateUserStatusRequest, request: Request
    ) -> UserResponse:
        """Transition account status (administrators only)."""
        ensure_admin(current_claims(request))
        result = service.update_status(user_id, req.new_status, req.reason_code)
        raise_for_failure(result)
        return UserResponse.model_validate(result.value.model_dump())

    return router
