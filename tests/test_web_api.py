from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from identity_core.core.config import (
    AppConfig,
    AuthConfig,
    LoggingConfig,
    SecurityConfig,
    StorageConfig,
    ValidationConfig,
)
from identity_core.web_api import create_app

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "Adm1n-pass!"
ALICE_PASSWORD = "P@ssw0rd123!"


def _config(runtime_dir: Path) -> AppConfig:
    return AppConfig(
        auth=AuthConfig(
            secret_key="web-test-secret",
            issuer="identity-core-test",
            audience="identity-core-test-clients",
            admin_email=ADMIN_EMAIL,
            admin_password=ADMIN_PASSWORD,
        ),
        validation=ValidationConfig(),
        storage=StorageConfig(runtime_dir=runtime_dir),
        logging=LoggingConfig(level="INFO"),
        security=SecurityConfig(cors_allowed_origins=["http://localhost:3000"]),
    )


@pytest.fixture(scope="module")
def client(tmp_path_factory: pytest.TempPathFactory) -> TestClient:
    app = create_app(_config(tmp_path_factory.mktemp("runtime")))
    return TestClient(app)


@pytest.fixture(scope="module")
def alice(client: TestClient) -> dict:
    registered = client.post(
        "/api/users",
        json={"email": "Alice@Example.com", "password": ALICE_PASSWORD, "first_name": "Alice"},
    )
    assert registered.status_code == 201
    login = client.post(
        "/api/auth/login", json={"email": "alice@example.com", "password": ALICE_PASSWORD}
    )
    assert login.status_code == 200
    return login.json()


def _bearer(session: dict) -> dict[str, str]:
    return {"Authorization": f"Bearer {session['access_token']}"}


def test_health_is_public(client: TestClient) -> None:
    response = client.get("/api/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert response.headers["X-Content-Type-Options"] == "nosniff"


def test_login_returns_bearer_session(alice: dict) -> None:
    assert alice["token_type"] == "Bearer"
    assert alice["expires_in"] == 900
    assert alice["user"]["email"] == "alice@example.com"
    assert alice["user"]["status"] == "PendingVerification"
    assert "password_hash" not in alice["user"]


def test_me_returns_claims(client: TestClient, alice: dict) -> None:
    response = client.get("/api/auth/me", headers=_bearer(alice))

    assert response.status_code == 200
    assert response.json()["user_id"] == alice["user"]["user_id"]
    assert response.json()["given_name"] == "Alice"


def test_protected_routes_require_bearer_token(client: TestClient) -> None:
    missing = client.get("/api/auth/me")
    invalid = client.get("/api/auth/me", headers={"Authorization": "Bearer nope"})

    assert missing.status_code == 401
    assert missing.json()["error_code"] == "AUTH_MISSING_TOKEN"
    assert invalid.status_code == 401
    assert invalid.json()["error_code"] == "INVALID_TOKEN"


def test_listing_users_requires_admin(client: TestClient, alice: dict) -> None:
    forbidden = client.get("/api/users", headers=_bearer(alice))
    admin = client.post(
        "/api/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD}
    ).json()
    listed = client.get("/api/users", params={"sort_by": "email", "sort_order": "asc"}, headers=_bearer(admin))

    assert forbidden.status_code == 403
    assert forbidden.json()["error_code"] == "FORBIDDEN"
    assert listed.status_code == 200
    assert [item["email"] for item in listed.json()["items"]] == [ADMIN_EMAIL, "alice@example.com"]


def test_listing_accepts_offsetless_created_bounds(client: TestClient, alice: dict) -> None:
    admin = client.post(
        "/api/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD}
    ).json()

    response = client.get(
        "/api/users", params={"created_after": "2020-01-01T00:00:00"}, headers=_bearer(admin)
    )

    assert response.status_code == 200
    assert response.json()["total_count"] == 2


def test_registration_rejects_weak_password(client: TestClient) -> None:
    response = client.post("/api/users", json={"email": "weak@example.com", "password": "a"})

    assert response.status_code == 400
    assert response.json()["error_code"] == "PASSWORD_TOO_WEAK"


def test_update_uses_optimistic_version(client: TestClient, alice: dict) -> None:
    user_id = alice["user"]["user_id"]
    current = client.get(f"/api/users/{user_id}", headers=_bearer(alice)).json()

    updated = client.put(
        f"/api/users/{user_id}",
        json={"version": current["version"], "last_name": "Liddell"},
        headers=_bearer(alice),
    )
    stale = client.put(
        f"/api/users/{user_id}",
        json={"version": current["version"], "last_name": "Stale"},
        headers=_bearer(alice),
    )

    assert updated.status_code == 200
    assert updated.json()["version"] == current["version"] + 1
    assert stale.status_code == 409
    assert stale.json()["error_code"] == "CONCURRENCY_CONFLICT"


def test_refresh_rotation_over_http(client: TestClient, alice: dict) -> None:
    rotated = client.post("/api/auth/refresh", json={"refresh_token": alice["refresh_token"]})
    replay = client.post("/api/auth/refresh", json={"refresh_token": alice["refresh_token"]})

    assert rotated.status_code == 200
    assert rotated.json()["refresh_token"] != alice["refresh_token"]
    assert replay.status_code == 401
    assert replay.json()["error_code"] == "TOKEN_REVOKED"


def test_duplicate_registration_conflicts(client: TestClient, alice: dict) -> None:
    response = client.post(
        "/api/users", json={"email": "alice@example.com", "password": "Whatever-passw0rd"}
    )

    assert response.status_code == 409
    assert response.json()["error_code"] == "EMAIL_ALREADY_EXISTS"


def test_request_validation_uses_error_envelope(client: TestClient) -> None:
    response = client.post("/api/auth/login", json={})

    assert response.status_code == 422
    body = response.json()
    assert body["error_code"] == "VALIDATION_ERROR"
    assert body["details"]


def test_openapi_declares_error_contracts(client: TestClient) -> None:
    schema = client.app.openapi()
    login = schema["paths"]["/api/auth/login"]["post"]

    assert login["responses"]["401"]["content"]["application/json"]["schema"][
        "$ref"
    ].endswith("ApiErrorResponse")
    assert "/api/users/{user_id}/password" in schema["paths"]
