from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from identity_core.auth.models import SessionRecord
from identity_core.auth.repository import SessionRepository, hash_token
from identity_core.core.config import StorageConfig
from scripts.purge_expired_sessions_once import main


def _seed(runtime_dir: Path) -> SessionRepository:
    repo = SessionRepository(StorageConfig(runtime_dir=runtime_dir))
    now = datetime.now(timezone.utc)
    repo.insert_session(SessionRecord(user_id="u1", token_hash=hash_token("live"), expires_at=now + timedelta(days=1)))
    repo.insert_session(SessionRecord(user_id="u1", token_hash=hash_token("dead"), expires_at=now - timedelta(days=1)))
    return repo


def test_purge_script_dry_run_keeps_sessions(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.delenv("MONGODB_URI", raising=False)
    repo = _seed(tmp_path)

    exit_code = main(["--runtime-dir", str(tmp_path), "--dry-run"])

    assert exit_code == 0
    assert "Expired sessions found: 1" in capsys.readouterr().out
    assert repo.find_session_by_token("dead") is not None


def test_purge_script_deletes_expired_sessions(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.delenv("MONGODB_URI", raising=False)
    monkeypatch.setenv("RUNTIME_DIR", str(tmp_path))
    repo = _seed(tmp_path)

    assert main([]) == 0
    assert repo.find_session_by_token("dead") is None
    assert repo.find_session_by_token("live") is not None
