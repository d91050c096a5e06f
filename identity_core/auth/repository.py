"""Repository for refresh-token sessions with MongoDB primary and file-store fallback."""

from __future__ import annotations

import hashlib
import logging
from datetime import datetime, timezone
from typing import Any

import pymongo
from pymongo.errors import DuplicateKeyError, PyMongoError

from identity_core.auth.models import SessionRecord
from identity_core.core.config import StorageConfig
from identity_core.core.exceptions import DuplicateRecordError, StoreError
from identity_core.core.json_store import JsonListStore

LOGGER = logging.getLogger(__name__)

SESSIONS_COLLECTION = "refresh_sessions"
_DATETIME_FIELDS = ("expires_at", "revoked_at", "created_at")


def hash_token(token: str) -> str:
    """Hash raw refresh token for storage/comparison."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _to_document(record: SessionRecord) -> dict[str, Any]:
    doc = record.model_dump(mode="json")
    for key in _DATETIME_FIELDS:
        doc[key] = getattr(record, key)
    return doc


class SessionRepository:
    """Refresh session store keyed by token hash."""

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
                self._collection = client[config.mongo_db][SESSIONS_COLLECTION]
                self._collection.create_index("session_id", unique=True)
                self._collection.create_index("token_hash", unique=True)
                self._collection.create_index("user_id")
                self._collection.create_index("expires_at")
            except PyMongoError as exc:
                LOGGER.exception("MongoDB connection failed for session store")
                raise StoreError("Session store is unavailable") from exc
        else:
            self._file_store = JsonListStore(
                config.runtime_dir / "identity_store" / "sessions.json"
            )

    def find_session_by_token(self, token: str) -> SessionRecord | None:
        """Get session record for a raw refresh token, revoked or not."""
        token_hash = hash_token(token)
        if self._collection is not None:
            try:
                doc = self._collection.find_one({"token_hash": token_hash}, {"_id": 0})
            except PyMongoError as exc:
                raise StoreError("Session lookup failed") from exc
            return SessionRecord.model_validate(doc) if doc else None

        assert self._file_store is not None
        for row in self._file_store.read_all():
            if row.get("token_hash") == token_hash:
                return SessionRecord.model_validate(row)
        return None

    def insert_session(self, record: SessionRecord) -> SessionRecord:
        if self._collection is not None:
            try:
                self._collection.insert_one(_to_document(record))
            except DuplicateKeyError as exc:
                raise DuplicateRecordError("token_hash") from exc
            except PyMongoError as exc:
                raise StoreError("Session insert failed") from exc
            return record

        assert self._file_store is not None
        with self._file_store.transaction() as items:
            if any(row.get("token_hash") == record.token_hash for row in items):
                raise DuplicateRecordError("token_hash")
            items.append(record.model_dump(mode="json"))
        return record

    def revoke_session(self, session_id: str) -> bool:
        """Mark one session revoked; ``False`` if it was missing or already revoked."""
        now = datetime.now(timezone.utc)
        if self._collection is not None:
            try:
                result = self._collection.update_one(
                    {"session_id": session_id, "revoked": False},
                    {"$set": {"revoked": True, "revoked_at": now}},
                )
            except PyMongoError as exc:
                raise StoreError("Session revoke failed") from exc
            return result.modified_count == 1

        assert self._file_store is not None
        with self._file_store.transaction() as items:
            for row in items:
                if row.get("session_id") == session_id and not row.get("revoked"):
                    row["revoked"] = True
                    row["revoked_at"] = now.isoformat()
                    return True
        return False

    def revoke_all_sessions_for_identity(self, user_id: str) -> int:
        """Revoke every live session of the identity and return how many changed."""
        now = datetime.now(timezone.utc)
        if self._collection is not None:
            try:
                result = self._collection.update_many(
                    {"user_id": user_id, "revoked": False},
                    {"$set": {"revoked": True, "revoked_at": now}},
                )
            except PyMongoError as exc:
                raise StoreError("Session bulk revoke failed") from exc
            return int(result.modified_count)

        assert self._file_store is not None
        revoked = 0
        with self._file_store.transaction() as items:
            for row in items:
                if row.get("user_id") == user_id and not row.get("revoked"):
                    row["revoked"] = True
                    row["revoked_at"] = now.isoformat()
                    revoked += 1
        return revoked

    def list_active_sessions(
        self, user_id: str, *, now: datetime | None = None
    ) -> list[SessionRecord]:
        """Return non-revoked, unexpired sessions of the identity, newest first."""
        moment = now or datetime.now(timezone.utc)
        if self._collection is not None:
            try:
                cursor = self._collection.find(
                    {"user_id": user_id, "revoked": False, "expires_at": {"$gt": moment}},
                    {"_id": 0},
                ).sort("created_at", pymongo.DESCENDING)
                return [SessionRecord.model_validate(doc) for doc in cursor]
            except PyMongoError as exc:
                raise StoreError("Session listing failed") from exc

        assert self._file_store is not None
        records = [
            SessionRecord.model_validate(row)
            for row in self._file_store.read_all()
            if row.get("user_id") == user_id
        ]
        active = [record for record in records if record.is_valid(moment)]
        active.sort(key=lambda record: record.created_at, reverse=True)
        return active

    def delete_expired_sessions(self, now: datetime, *, dry_run: bool = False) -> int:
        """Remove sessions whose expiry is at or before ``now``."""
        if self._collection is not None:
            query = {"expires_at": {"$lte": now}}
            try:
                if dry_run:
                    return int(self._collection.count_documents(query))
                return int(self._collection.delete_many(query).deleted_count)
            except PyMongoError as exc:
                raise StoreError("Expired session purge failed") from exc

        assert self._file_store is not None
        with self._file_store.transaction() as items:
            kept = [row for row in items if not SessionRecord.model_validate(row).is_expired(now)]
            removed = len(items) - len(kept)
            if not dry_run:
                items[:] = kept
        return removed
