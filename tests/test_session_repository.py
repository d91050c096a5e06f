from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

from identity_core.auth.models import SessionRecord
from identity_core.auth.repository import SessionRepository, hash_token
from identity_core.core.config import StorageConfig


def _record(user_id: str, token: str, *, expires_in: timedelta) -> SessionRecord:
    return SessionRecord(
        user_id=user_id,
        token_hash=hash_token(token),
        expires_at=datetime.now(timezone.utc) + expires_in,
    )


def test_session_repository_find_by_raw_token(tmp_path: Path) -> None:
    repo = SessionRepository(StorageConfig(runtime_dir=tmp_path))
    record = repo.insert_session(_record("u1", "raw-token", expires_in=timedelta(days=1)))

    found = repo.find_session_by_token("raw-token")

    assert found is not None
    assert found.session_id == record.session_id
    assert repo.find_session_by_token(record.token_hash) is None
    stored_text = (tmp_path / "identity_store" / "sessions.json").read_text(encoding="utf-8")
    assert "raw-token" not in stored_text


def test_session_repository_revoke_is_conditional(tmp_path: Path) -> None:
    repo = SessionRepository(StorageConfig(runtime_dir=tmp_path))
    record = repo.insert_session(_record("u1", "t1", expires_in=timedelta(days=1)))

    assert repo.revoke_session(record.session_id) is True
    assert repo.revoke_session(record.session_id) is False
    revoked = repo.find_session_by_token("t1")
    assert revoked is not None
    assert revoked.revoked is True
    assert revoked.revoked_at is not None


def test_session_repository_revoke_all_and_list_active(tmp_path: Path) -> None:
    repo = SessionRepository(StorageConfig(runtime_dir=tmp_path))
    repo.insert_session(_record("u1", "a", expires_in=timedelta(days=1)))
    repo.insert_session(_record("u1", "b", expires_in=timedelta(days=1)))
    repo.insert_session(_record("u1", "old", expires_in=timedelta(seconds=-1)))
    repo.insert_session(_record("u2", "c", expires_in=timedelta(days=1)))

    assert len(repo.list_active_sessions("u1")) == 2
    assert repo.revoke_all_sessions_for_identity("u1") == 3
    assert repo.revoke_all_sessions_for_identity("u1") == 0
    assert repo.list_active_sessions("u1") == []
    assert len(repo.list_active_sessions("u2")) == 1


def test_session_repository_deletes_expired(tmp_path: Path) -> None:
    repo = SessionRepository(StorageConfig(runtime_dir=tmp_path))
    repo.insert_session(_record("u1", "live", expires_in=timedelta(days=1)))
    repo.insert_session(_record("u1", "dead", expires_in=timedelta(seconds=-5)))
    now = datetime.now(timezone.utc)

    assert repo.delete_expired_sessions(now, dry_run=True) == 1
    assert repo.find_session_by_token("dead") is not None
    assert repo.delete_expired_sessions(now) == 1
    assert repo.find_session_by_token("dead") is None
    assert repo.find_session_by_token("live") is not None
