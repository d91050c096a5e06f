from __future__ import annotations

import pytest

from identity_core.core.security import CredentialHasher

_HASHER = CredentialHasher()
_PASSWORD = "P@ssw0rd123!"
_HASH = _HASHER.hash(_PASSWORD)


def test_hash_is_salted_bcrypt_at_configured_cost() -> None:
    assert _HASH.startswith("$2b$12$")
    assert _PASSWORD not in _HASH


def test_verify_accepts_correct_and_rejects_wrong_password() -> None:
    assert _HASHER.verify(_PASSWORD, _HASH) is True
    assert _HASHER.verify("p@ssw0rd123!", _HASH) is False


@pytest.mark.parametrize("stored_hash", ["", "not-a-hash", "$2b$12$short"])
def test_verify_never_raises_on_malformed_hash(stored_hash: str) -> None:
    assert _HASHER.verify(_PASSWORD, stored_hash) is False


def test_verify_rejects_empty_password() -> None:
    assert _HASHER.verify("", _HASH) is False


def test_work_factor_below_minimum_is_rejected() -> None:
    with pytest.raises(ValueError):
        CredentialHasher(work_factor=10)

