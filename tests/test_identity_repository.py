from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from identity_core.core.config import StorageConfig
from identity_core.core.exceptions import DuplicateRecordError, StoreError
from identity_core.users.models import IdentityRecord, UserListQuery, UserRole
from identity_core.users.repository import IdentityRepository


def _repo(tmp_path: Path) -> IdentityRepository:
    return IdentityRepository(StorageConfig(runtime_dir=tmp_path))


def test_identity_repository_insert_and_find_respects_include_deleted(tmp_path: Path) -> None:
    repo = _repo(tmp_path)
    repo.insert_identity(IdentityRecord(user_id="u1", email="a@example.com", phone_number="+1555"))

    assert repo.find_identity_by_email("a@example.com", include_deleted=False) is not None
    assert repo.set_soft_deleted("u1") is True
    assert repo.find_identity_by_email("a@example.com", include_deleted=False) is None
    assert repo.find_identity_by_id("u1", include_deleted=False) is None
    deleted = repo.find_identity_by_id("u1", include_deleted=True)
    assert deleted is not None
    assert deleted.is_deleted is True
    assert deleted.version == 2
    assert repo.exists_by_phone("+1555") is True
    assert repo.set_soft_deleted("missing") is False


def test_identity_repository_insert_rejects_duplicate_keys(tmp_path: Path) -> None:
    repo = _repo(tmp_path)
    repo.insert_identity(IdentityRecord(email="a@example.com", phone_number="+1555"))

    with pytest.raises(DuplicateRecordError) as email_exc:
        repo.insert_identity(IdentityRecord(email="a@example.com"))
    with pytest.raises(DuplicateRecordError) as phone_exc:
        repo.insert_identity(IdentityRecord(email="b@example.com", phone_number="+1555"))

    assert email_exc.value.key == "email"
    assert phone_exc.value.key == "phone_number"


def test_identity_repository_concurrent_inserts_admit_exactly_one(tmp_path: Path) -> None:
    repo = _repo(tmp_path)

    def attempt(index: int) -> bool:
        try:
            repo.insert_identity(IdentityRecord(user_id=f"u{index}", email="race@example.com"))
        except DuplicateRecordError:
            return False
        return True

    with ThreadPoolExecutor(max_workers=8) as pool:
        outcomes = list(pool.map(attempt, range(8)))

    assert outcomes.count(True) == 1


def test_identity_repository_replace_if_version(tmp_path: Path) -> None:
    repo = _repo(tmp_path)
    record = repo.insert_identity(IdentityRecord(user_id="u1", email="a@example.com"))
    updated = record.model_copy(update={"first_name": "Ann", "version": 2})

    assert repo.replace_identity_if_version("u1", 1, updated) is True
    assert repo.replace_identity_if_version("u1", 1, updated) is False
    assert repo.replace_identity_if_version("missing", 1, updated) is False
    stored = repo.find_identity_by_id("u1", include_deleted=False)
    assert stored is not None
    assert stored.first_name == "Ann"
    assert stored.version == 2


def test_identity_repository_lists_with_filters_and_paging(tmp_path: Path) -> None:
    repo = _repo(tmp_path)
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    for index, name in enumerate(["Carol", "alice", "Bob", "Dave"]):
        repo.insert_identity(
            IdentityRecord(
                user_id=f"u{index}",
                email=f"{name.lower()}@example.com",
                first_name=name,
                role=UserRole.ADMIN if name == "Dave" else UserRole.USER,
                created_at=base + timedelta(days=index),
            )
        )
    repo.set_soft_deleted("u0")

    first_page, total = repo.list_identities(
        UserListQuery(page_number=1, page_size=2, sort_by="email", sort_order="asc")
    )
    searched, search_total = repo.list_identities(UserListQuery(search_term="ALI"))
    admins, _ = repo.list_identities(UserListQuery(role=UserRole.ADMIN))
    ranged, _ = repo.list_identities(
        UserListQuery(created_after=base + timedelta(days=2), include_deleted=True)
    )

    assert total == 3
    assert [item.email for item in first_page] == ["alice@example.com", "bob@example.com"]
    assert search_total == 1
    assert searched[0].user_id == "u1"
    assert [item.user_id for item in admins] == ["u3"]
    assert [item.user_id for item in ranged] == ["u3", "u2"]


def test_identity_repository_treats_offsetless_date_bounds_as_utc(tmp_path: Path) -> None:
    repo = _repo(tmp_path)
    for index in range(3):
        repo.insert_identity(
            IdentityRecord(
                user_id=f"u{index}",
                email=f"user{index}@example.com",
                created_at=datetime(2024, 1, 1 + index, 12, tzinfo=timezone.utc),
            )
        )

    ranged, total = repo.list_identities(
        UserListQuery.model_validate(
            {"created_after": "2024-01-02T00:00:00", "created_before": "2024-01-02T23:59:59"}
        )
    )

    assert total == 1
    assert [item.user_id for item in ranged] == ["u1"]


def test_identity_repository_raises_store_error_on_corrupted_file(tmp_path: Path) -> None:
    repo = _repo(tmp_path)
    store_file = tmp_path / "identity_store" / "users.json"
    store_file.write_text("{broken", encoding="utf-8")

    with pytest.raises(StoreError):
        repo.find_identity_by_email("a@example.com", include_deleted=True)


def test_identity_repository_unreachable_mongo_raises_store_error(tmp_path: Path) -> None:
    config = StorageConfig(
        runtime_dir=tmp_path,
        mongo_uri="mongodb://127.0.0.1:1/?directConnection=true",
        server_selection_timeout_ms=50,
    )

    with pytest.raises(StoreError):
        IdentityRepository(config)
