"""Pydantic models for the identity domain."""

from __future__ import annotations

import math
import uuid
from datetime import date, datetime, timezone
from enum import StrEnum
from typing import Generic, Literal, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_user_id() -> str:
    return uuid.uuid4().hex


class UserRole(StrEnum):
    USER = "User"
    ADMIN = "Admin"


class UserStatus(StrEnum):
    """Account lifecycle state. ``Deactivated`` and ``Banned`` block login."""

    PENDING_VERIFICATION = "PendingVerification"
    ACTIVE = "Active"
    DEACTIVATED = "Deactivated"
    BANNED = "Banned"


class IdentityRecord(BaseModel):
    """Persisted identity record."""

    user_id: str = Field(default_factory=new_user_id)
    email: str
    password_hash: str = ""
    first_name: str = ""
    last_name: str = ""
    display_name: str | None = None
    date_of_birth: date | None = None
    phone_number: str | None = None
    role: UserRole = UserRole.USER
    status: UserStatus = UserStatus.PENDING_VERIFICATION
    version: int = 1
    password_history: list[str] = Field(default_factory=list)
    is_deleted: bool = False
    terms_accepted_version: str | None = None
    privacy_policy_accepted_version: str | None = None
    registration_ip: str | None = None
    registration_user_agent: str | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class UserView(BaseModel):
    """Public projection of an identity; never carries credential material."""

    user_id: str
    email: str
    first_name: str
    last_name: str
    display_name: str | None = None
    date_of_birth: date | None = None
    phone_number: str | None = None
    role: UserRole
    status: UserStatus
    created_at: datetime
    updated_at: datetime
    version: int

    @classmethod
    def from_record(cls, record: IdentityRecord) -> "UserView":
        return cls(
            user_id=record.user_id,
            email=record.email,
            first_name=record.first_name,
            last_name=record.last_name,
            display_name=record.display_name,
            date_of_birth=record.date_of_birth,
            phone_number=record.phone_number,
            role=record.role,
            status=record.status,
            created_at=record.created_at,
            updated_at=record.updated_at,
            version=record.version,
        )


class RegisterUserRequest(BaseModel):
    """Registration payload."""

    email: str = ""
    password: str = ""
    first_name: str = ""
    last_name: str = ""
    display_name: str | None = None
    date_of_birth: date | None = None
    phone_number: str | None = None
    terms_accepted_version: str | None = None
    privacy_policy_accepted_version: str | None = None
    registration_ip: str | None = None
    registration_user_agent: str | None = None


class UpdateUserRequest(BaseModel):
    """Profile update payload; only fields explicitly provided are applied."""

    version: int
    first_name: str | None = None
    last_name: str | None = None
    display_name: str | None = None
    date_of_birth: date | None = None
    phone_number: str | None = None


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=1)


class UpdateUserStatusRequest(BaseModel):
    new_status: UserStatus
    reason_code: str = ""


SortField = Literal["created_at", "email", "first_name", "last_name", "role"]


class UserListQuery(BaseModel):
    """Paged listing filters."""

    page_number: int = 1
    page_size: int = 10
    search_term: str | None = None
    sort_by: SortField = "created_at"
    sort_order: Literal["asc", "desc"] = "desc"
    role: UserRole | None = None
    created_after: datetime | None = None
    created_before: datetime | None = None
    include_deleted: bool = False


class PagedResult(BaseModel, Generic[T]):
    items: list[T] = Field(default_factory=list)
    total_count: int = 0
    page_number: int = 1
    page_size: int = 10
    total_pages: int = 0
    has_next_page: bool = False
    has_previous_page: bool = False

    @classmethod
    def create(
        cls, items: list[T], total_count: int, page_number: int, page_size: int
    ) -> "PagedResult[T]":
        total_pages = math.ceil(total_count / page_size) if page_size else 0
        return cls(
            items=items,
            total_count=total_count,
            page_number=page_number,
            page_size=page_size,
            total_pages=total_pages,
            has_next_page=page_number < total_pages,
            has_previous_page=page_number > 1,
        )
