from __future__ import annotations

import base64
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from identity_core.auth.tokens import TokenIssuer
from identity_core.core.config import AuthConfig
from identity_core.users.models import IdentityRecord, UserRole


def _config(**overrides) -> AuthConfig:
    config = AuthConfig(
        secret_key="unit-test-secret",
        issuer="identity-core-test",
        audience="identity-core-test-clients",
        access_token_ttl_minutes=15,
    )
    return replace(config, **overrides)


def _identity() -> IdentityRecord:
    return IdentityRecord(
        user_id="user-42",
        email="alice@example.com",
        first_name="Alice",
        last_name="Doe",
        role=UserRole.ADMIN,
    )


def test_issue_access_embeds_identity_claims() -> None:
    issuer = TokenIssuer(_config())

    token = issuer.issue_access(_identity())
    claims = issuer.verify(token)

    assert claims is not None
    assert claims.user_id == "user-42"
    assert claims.email == "alice@example.com"
    assert claims.given_name == "Alice"
    assert claims.family_name == "Doe"
    assert claims.role == "Admin"
    assert claims.issuer == "identity-core-test"
    assert claims.audience == "identity-core-test-clients"


def test_access_token_expires_after_ttl() -> None:
    issuer = TokenIssuer(_config(access_token_ttl_minutes=1))
    issued_at = datetime.now(timezone.utc) - timedelta(minutes=1, seconds=1)

    token = issuer.issue_access(_identity(), now=issued_at)

    assert issuer.verify(token) is None


def test_verify_rejects_wrong_audience_issuer_and_secret() -> None:
    token = TokenIssuer(_config()).issue_access(_identity())

    assert TokenIssuer(_config(audience="someone-else")).verify(token) is None
    assert TokenIssuer(_config(issuer="someone-else")).verify(token) is None
    assert TokenIssuer(_config(secret_key="other-secret")).verify(token) is None


def test_verify_rejects_tampered_and_malformed_tokens() -> None:
    issuer = TokenIssuer(_config())
    token = issuer.issue_access(_identity())
    header, payload, signature = token.split(".")
    forged_payload = jwt.encode(
        {"sub": "attacker", "iss": "identity-core-test", "aud": "identity-core-test-clients"},
        "guess",
        algorithm="HS256",
    ).split(".")[1]

    assert issuer.verify(f"{header}.{forged_payload}.{signature}") is None
    assert issuer.verify("garbage") is None
    assert issuer.verify("") is None


def test_verify_requires_exp_claim() -> None:
    config = _config()
    token = jwt.encode(
        {"sub": "user-42", "iss": config.issuer, "aud": config.audience},
        config.secret_key,
        algorithm="HS256",
    )

    assert TokenIssuer(config).verify(token) is None


def test_extract_claim_helpers() -> None:
    issuer = TokenIssuer(_config())
    token = issuer.issue_access(_identity())

    assert issuer.user_id_from_token(token) == "user-42"
    assert issuer.email_from_token(token) == "alice@example.com"
    assert issuer.extract_claim(token, "role") == "Admin"
    assert issuer.extract_claim(token, "unknown") is None
    assert issuer.user_id_from_token("invalid") is None


def test_issue_refresh_is_random_256_bit_base64() -> None:
    first = TokenIssuer.issue_refresh()
    second = TokenIssuer.issue_refresh()

    assert first != second
    assert len(base64.b64decode(first)) == 32


@pytest.mark.parametrize("field_name", ["secret_key", "issuer", "audience"])
def test_issuer_requires_signing_configuration(field_name: str) -> None:
    with pytest.raises(ValueError):
        TokenIssuer(_config(**{field_name: " "}))
