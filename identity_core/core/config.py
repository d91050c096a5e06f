"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

MIN_PASSWORD_HASH_WORK_FACTOR = 12
DEFAULT_BUSINESS_VALIDATORS = ("email_uniqueness", "phone_uniqueness")
DEFAULT_WEAK_PASSWORDS = (
    "password",
    "password123",
    "1234567890",
    "qwertyuiop",
    "admin123",
    "welcome123",
)


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


def _env_list(name: str, default: str) -> list[str]:
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


@dataclass(frozen=True)
class AuthConfig:
    """Token signing and session lifetime configuration."""

    secret_key: str
    issuer: str
    audience: str
    access_token_ttl_minutes: int = 15
    refresh_token_ttl_days: int = 7
    algorithm: str = "HS256"
    enabled: bool = True
    admin_email: str = ""
    admin_password: str = ""

    @property
    def access_token_ttl_seconds(self) -> int:
        return self.access_token_ttl_minutes * 60


@dataclass(frozen=True)
class ValidationConfig:
    """Business-rule settings shared by the identity mutation flows."""

    password_hash_work_factor: int = MIN_PASSWORD_HASH_WORK_FACTOR
    password_history_limit: int = 5
    min_password_length: int = 12
    weak_passwords: tuple[str, ...] = DEFAULT_WEAK_PASSWORDS
    business_validators: tuple[str, ...] = DEFAULT_BUSINESS_VALIDATORS
    max_page_size: int = 100

    def __post_init__(self) -> None:
        if self.password_history_limit < 1:
            raise ValueError("password_history_limit must be at least 1")


@dataclass(frozen=True)
class StorageConfig:
    """Persistence backend selection."""

    runtime_dir: Path
    mongo_uri: str = ""
    mongo_db: str = "identity_core"
    server_selection_timeout_ms: int = 3000


@dataclass(frozen=True)
class LoggingConfig:
    """Structured logging configuration."""

    level: str = "INFO"


@dataclass(frozen=True)
class SecurityConfig:
    """API perimeter security settings."""

    cors_allowed_origins: list[str] = field(default_factory=list)
    request_max_bytes: int = 1024 * 1024


@dataclass(frozen=True)
class AppConfig:
    """Top-level application configuration."""

    auth: AuthConfig
    validation: ValidationConfig
    storage: StorageConfig
    logging: LoggingConfig
    security: SecurityConfig

    @staticmethod
    def from_env() -> "AppConfig":
        """Build app config from process environment."""
        secret_key = (
            os.getenv("AUTH_SECRET_KEY", "").strip() or "dev-insecure-secret-change-me"
        )
        issuer = os.getenv("AUTH_ISSUER", "identity-core").strip() or "identity-core"
        audience = (
            os.getenv("AUTH_AUDIENCE", "identity-core-clients").strip()
            or "identity-core-clients"
        )
        access_ttl = int(os.getenv("AUTH_ACCESS_TOKEN_TTL_MINUTES", "15"))
        refresh_ttl = int(os.getenv("AUTH_REFRESH_TOKEN_TTL_DAYS", "7"))
        work_factor = max(
            MIN_PASSWORD_HASH_WORK_FACTOR,
            int(os.getenv("PASSWORD_HASH_WORK_FACTOR", "12")),
        )
        history_limit = int(os.getenv("PASSWORD_HISTORY_LIMIT", "5"))
        validators = tuple(
            _env_list("BUSINESS_VALIDATORS", ",".join(DEFAULT_BUSINESS_VALIDATORS))
        )
        runtime_dir = Path(os.getenv("RUNTIME_DIR", "runtime").strip() or "runtime")

        return AppConfig(
            auth=AuthConfig(
                secret_key=secret_key,
                issuer=issuer,
                audience=audience,
                access_token_ttl_minutes=access_ttl,
                refresh_token_ttl_days=refresh_ttl,
                enabled=_env_flag("AUTH_ENABLED", "1"),
                admin_email=os.getenv("AUTH_ADMIN_EMAIL", "").strip(),
                admin_password=os.getenv("AUTH_ADMIN_PASSWORD", "").strip(),
            ),
            validation=ValidationConfig(
                password_hash_work_factor=work_factor,
                password_history_limit=max(1, history_limit),
                min_password_length=int(os.getenv("PASSWORD_MIN_LENGTH", "12")),
                weak_passwords=tuple(
                    item.lower()
                    for item in _env_list("WEAK_PASSWORDS", ",".join(DEFAULT_WEAK_PASSWORDS))
                ),
                business_validators=validators,
                max_page_size=int(os.getenv("MAX_PAGE_SIZE", "100")),
            ),
            storage=StorageConfig(
                runtime_dir=runtime_dir,
                mongo_uri=os.getenv("MONGODB_URI", "").strip(),
                mongo_db=os.getenv("MONGODB_DB", "identity_core").strip()
                or "identity_core",
                server_selection_timeout_ms=int(
                    os.getenv("MONGODB_SERVER_SELECTION_TIMEOUT_MS", "3000")
                ),
            ),
            logging=LoggingConfig(level=os.getenv("LOG_LEVEL", "INFO").strip() or "INFO"),
            security=SecurityConfig(
                cors_allowed_origins=_env_list(
                    "CORS_ALLOWED_ORIGINS",
                    "http://localhost:3000,http://127.0.0.1:3000",
                ),
                request_max_bytes=int(os.getenv("REQUEST_MAX_BYTES", str(1024 * 1024))),
            ),
        )
