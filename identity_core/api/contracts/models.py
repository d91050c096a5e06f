"""Pydantic API response models used in OpenAPI contracts."""

from __future__ import annotations

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, Field


class ApiErrorResponse(BaseModel):
    """Stable error envelope for API responses."""

    error_code: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error message")
    details: list[str] = Field(default_factory=list, description="Additional error details")


class HealthResponse(BaseModel):
    """Health check response payload."""

    status: Literal["ok"]


class UserResponse(BaseModel):
    """Public identity payload."""

    user_id: str
    email: str
    first_name: str
    last_name: str
    display_name: str | None = None
    date_of_birth: date | None = None
    phone_number: str | None = None
    role: str
    status: str
    created_at: datetime
    updated_at: datetime
    version: int


class PagedUsersResponse(BaseModel):
    """Paged identity listing payload."""

    items: list[UserResponse]
    total_count: int
    page_number: int
    page_size: int
    total_pages: int
    has_next_page: bool
    has_previous_page: bool


class AuthSessionResponse(BaseModel):
    """Authentication session response payload."""

    access_token: str
    refresh_token: str
    token_type: str
    expires_in: int
    user: UserResponse


class AuthMeResponse(BaseModel):
    """Current user endpoint response payload."""

    user_id: str
    email: str
    given_name: str
    family_name: str
    role: str
    expires_at: datetime


class RevokeAllResponse(BaseModel):
    """Bulk session revocation payload."""

    status: Literal["ok"]
    revoked_count: int


class StatusResponse(BaseModel):
    """Plain acknowledgement payload."""

    status: Literal["ok"]
