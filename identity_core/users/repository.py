"""Repository for identity records with MongoDB primary and file-store fallback."""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Any

import pymongo
from pymongo.errors import DuplicateKeyError, PyMongoError

from identity_core.core.config import StorageConfig
from identity_core.core.exceptions import DuplicateRecordError, StoreError
from identity_core.core.json_store import JsonListStore
from identity_core.users.models import IdentityRecord, UserListQuery

LOGGER = logging.getLogger(__name__)

USERS_COLLECTION = "users"
_DATETIME_FIELDS = ("created_at", "updated_at")


def _to_document(record: IdentityRecord) -> dict[str, Any]:
    doc = record.model_dump(mode="json")
    for key in _DATETIME_FIELDS:
        doc[key] = getattr(record, key)
    return doc


def _duplicate_key_from_error(exc: DuplicateKeyError) -> str:
    details = exc.details or {}
    key_pattern = details.get("keyPattern") or {}
    if key_pattern:
        return next(iter(key_pattern))
    message = str(exc)
    for key in ("email", "phone_number", "user_id"):
        if key in message:
            return key
    return "unknown"


def _as_utc(value: datetime | None) -> datetime | None:
    """Read offset-less bounds as UTC; stored timestamps are always aware."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _matches_query(record: IdentityRecord, query: UserListQuery) -> bool:
    if not query.include_deleted and record.is_deleted:
        return False
    if query.role is not None and record.role != query.role:
        return False
    created_after = _as_utc(query.created_after)
    if created_after is not None and record.created_at < created_after:
        return False
    created_before = _as_utc(query.created_before)
    if created_before is not None and record.created_at > created_before:
        return False
    term = (query.search_term or "").strip().lower()
    if term:
        haystack = (record.email, record.first_name.lower(), record.last_name.lower())
        if not any(term in value for value in haystack):
            return False
    return True


class IdentityRepository:
    """Identity store.

    Soft-deleted records are never filtered implicitly: every lookup that can
    return one takes an explicit ``include_deleted`` flag.
    """

    def __init__(self, config: StorageConfig) -> None:
        """Initialize repository storage backend."""
        self._collection: Any | None = None
        self._file_store: JsonListStore | None = None

        if config.mongo_uri:
            try:
                client: Any = pymongo.MongoClient(
                    config.mongo_uri,
                    serverSelectionTimeoutMS=config.server_selection_timeout_ms,
                    tz_aware=True,
                )
                client.admin.command("ping")
                self._collection = client[config.mongo_db][USERS_COLLECTION]
                self._ensure_indexes()
            except PyMongoError as exc:
                LOGGER.exception("MongoDB connection failed for identity store")
                raise StoreError("Identity store is unavailable") from exc
            LOGGER.info("IdentityRepository using MongoDB: db=%s", config.mongo_db)
        else:
            self._file_store = JsonListStore(
                config.runtime_dir / "identity_store" / "users.json"
            )
            LOGGER.warning(
                "MONGODB_URI is not set. Using local identity store at %s",
                self._file_store.path,
            )

    def _ensure_indexes(self) -> None:
        assert self._collection is not None
        self._collection.create_index("user_id", unique=True)
        self._collection.create_index("email", unique=True)
        self._collection.create_index(
            "phone_number",
            unique=True,
            partialFilterExpression={"phone_number": {"$type": "string"}},
        )
        self._collection.create_index([("created_at", pymongo.DESCENDING)])
        self._collection.create_index("role")
        self._collection.create_index("is_deleted")

    def _find_one(self, field: str, value: str, *, include_deleted: bool) -> IdentityRecord | None:
        if self._collection is not None:
            query: dict[str, Any] = {field: value}
            if not include_deleted:
                query["is_deleted"] = False
            try:
                doc = self._collection.find_one(query, {"_id": 0})
            except PyMongoError as exc:
                raise StoreError(f"Identity lookup by {field} failed") from exc
            return IdentityRecord.model_validate(doc) if doc else None

        assert self._file_store is not None
        for row in self._file_store.read_all():
            if row.get(field) != value:
                continue
            record = IdentityRecord.model_validate(row)
            if record.is_deleted and not include_deleted:
                return None
            return record
        return None

    def find_identity_by_email(
        self, email: str, *, include_deleted: bool
    ) -> IdentityRecord | None:
        """Get identity by normalized email."""
        return self._find_one("email", email, include_deleted=include_deleted)

    def find_identity_by_id(
        self, user_id: str, *, include_deleted: bool
    ) -> IdentityRecord | None:
        """Get identity by id."""
        return self._find_one("user_id", user_id, include_deleted=include_deleted)

    def find_identity_by_phone(self, phone_number: str) -> IdentityRecord | None:
        """Get identity holding a normalized phone number, deleted or not."""
        return self._find_one("phone_number", phone_number, include_deleted=True)

    def exists_by_phone(self, phone_number: str) -> bool:
        return self.find_identity_by_phone(phone_number) is not None

    def insert_identity(self, record: IdentityRecord) -> IdentityRecord:
        """Insert a new identity, raising ``DuplicateRecordError`` on unique-key collision."""
        if self._collection is not None:
            try:
                self._collection.insert_one(_to_document(record))
            except DuplicateKeyError as exc:
                raise DuplicateRecordError(_duplicate_key_from_error(exc)) from exc
            except PyMongoError as exc:
                raise StoreError("Identity insert failed") from exc
            return record

        assert self._file_store is not None
        with self._file_store.transaction() as items:
            for row in items:
                if row.get("user_id") == record.user_id:
                    raise DuplicateRecordError("user_id")
                if row.get("email") == record.email:
                    raise DuplicateRecordError("email")
                if record.phone_number and row.get("phone_number") == record.phone_number:
                    raise DuplicateRecordError("phone_number")
            items.append(record.model_dump(mode="json"))
        return record

    def replace_identity_if_version(
        self, user_id: str, expected_version: int, record: IdentityRecord
    ) -> bool:
        """Replace the stored identity only if its version still equals ``expected_version``."""
        if self._collection is not None:
            try:
                result = self._collection.replace_one(
                    {"user_id": user_id, "version": expected_version},
                    _to_document(record),
                )
            except DuplicateKeyError as exc:
                raise DuplicateRecordError(_duplicate_key_from_error(exc)) from exc
            except PyMongoError as exc:
                raise StoreError("Identity conditional replace failed") from exc
            return result.matched_count == 1

        assert self._file_store is not None
        with self._file_store.transaction() as items:
            target_index: int | None = None
            for index, row in enumerate(items):
                if row.get("user_id") == user_id:
                    target_index = index
                elif record.phone_number and row.get("phone_number") == record.phone_number:
                    raise DuplicateRecordError("phone_number")
            if target_index is None or items[target_index].get("version") != expected_version:
                return False
            items[target_index] = record.model_dump(mode="json")
        return True

    def set_soft_deleted(self, user_id: str) -> bool:
        """Flag identity as deleted, refreshing ``updated_at`` and bumping version."""
        now = datetime.now(timezone.utc)
        if self._collection is not None:
            try:
                result = self._collection.update_one(
                    {"user_id": user_id},
                    {"$set": {"is_deleted": True, "updated_at": now}, "$inc": {"version": 1}},
                )
            except PyMongoError as exc:
                raise StoreError("Identity soft delete failed") from exc
            return result.matched_count == 1

        assert self._file_store is not None
        with self._file_store.transaction() as items:
            for row in items:
                if row.get("user_id") == user_id:
                    row["is_deleted"] = True
                    row["updated_at"] = now.isoformat()
                    row["version"] = int(row.get("version") or 0) + 1
                    return True
        return False

    def list_identities(self, query: UserListQuery) -> tuple[list[IdentityRecord], int]:
        """Return one page of identities matching the query, plus the total match count."""
        skip = (query.page_number - 1) * query.page_size
        if self._collection is not None:
            mongo_filter = self._build_list_filter(query)
            direction = pymongo.ASCENDING if query.sort_order == "asc" else pymongo.DESCENDING
            try:
                total = self._collection.count_documents(mongo_filter)
                cursor = (
                    self._collection.find(mongo_filter, {"_id": 0})
                    .sort(query.sort_by, direction)
                    .skip(skip)
                    .limit(query.page_size)
                )
                items = [IdentityRecord.model_validate(doc) for doc in cursor]
            except PyMongoError as exc:
                raise StoreError("Identity listing failed") from exc
            return items, total

        assert self._file_store is not None
        records = [IdentityRecord.model_validate(row) for row in self._file_store.read_all()]
        matched = [record for record in records if _matches_query(record, query)]
        matched.sort(
            key=lambda record: getattr(record, query.sort_by),
            reverse=query.sort_order == "desc",
        )
        return matched[skip : skip + query.page_size], len(matched)

    @staticmethod
    def _build_list_filter(query: UserListQuery) -> dict[str, Any]:
        clauses: list[dict[str, Any]] = []
        if not query.include_deleted:
            clauses.append({"is_deleted": False})
        term = (query.search_term or "").strip()
        if term:
            pattern = {"$regex": re.escape(term), "$options": "i"}
            clauses.append(
                {"$or": [{"email": pattern}, {"first_name": pattern}, {"last_name": pattern}]}
            )
        if query.role is not None:
            clauses.append({"role": str(query.role)})
        created: dict[str, Any] = {}
        if query.created_after is not None:
            created["$gte"] = _as_utc(query.created_after)
        if query.created_before is not None:
            created["$lte"] = _as_utc(query.created_before)
        if created:
            clauses.append({"created_at": created})
        if not clauses:
            return {}
        return clauses[0] if len(clauses) == 1 else {"$and": clauses}
