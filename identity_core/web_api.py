"""FastAPI application factory for the identity service."""

from __future__ import annotations

import logging

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from identity_core.api.contracts import HealthResponse
from identity_core.api.http_setup import register_exception_handlers, register_http_middleware
from identity_core.auth.ledger import SessionLedger
from identity_core.auth.middleware import create_auth_middleware
from identity_core.auth.repository import SessionRepository
from identity_core.auth.router import create_auth_router
from identity_core.auth.service import AuthService
from identity_core.auth.tokens import TokenIssuer
from identity_core.core.config import AppConfig
from identity_core.core.logging import setup_logging
from identity_core.core.security import CredentialHasher
from identity_core.users.repository import IdentityRepository
from identity_core.users.router import create_users_router
from identity_core.users.service import UserService
from identity_core.users.validators import build_validation_pipeline

LOGGER = logging.getLogger(__name__)


def create_app(config: AppConfig | None = None) -> FastAPI:
    """Wire repositories, services and routers into a FastAPI app."""
    if config is None:
        load_dotenv()
        config = AppConfig.from_env()
        setup_logging(config.logging.level)

    app = FastAPI(title="Identity Core API", version="1.0.0")

    identity_repo = IdentityRepository(config.storage)
    session_repo = SessionRepository(config.storage)
    hasher = CredentialHasher(config.validation.password_hash_work_factor)
    pipeline = build_validation_pipeline(config.validation.business_validators, identity_repo)
    user_service = UserService(identity_repo, pipeline, hasher, config.validation)
    auth_service = AuthService(
        identity_repo,
        SessionLedger(session_repo, config.auth),
        TokenIssuer(config.auth),
        hasher,
        config.auth,
    )

    if config.auth.admin_email and config.auth.admin_password:
        bootstrap = user_service.bootstrap_admin(
            config.auth.admin_email, config.auth.admin_password
        )
        if not bootstrap.is_success:
            LOGGER.error(
                "Bootstrap administrator was not created: %s",
                bootstrap.message,
                extra={"error_code": bootstrap.error_code},
            )

    app.include_router(create_auth_router(auth_service))
    app.include_router(create_users_router(user_service))

    @app.get("/api/health", response_model=HealthResponse)
    def health() -> HealthResponse:
        return HealthResponse(status="ok")

    # Middleware added last runs outermost.
    app.middleware("http")(create_auth_middleware(auth_service))
    register_http_middleware(app, config=config.security, logger=LOGGER)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.security.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
    )
    register_exception_handlers(app, logger=LOGGER)

    LOGGER.info(
        "Identity API ready: validators=%s",
        ",".join(pipeline.validator_names),
    )
    return app


def main() -> int:
    """Serve the API with uvicorn."""
    uvicorn.run("identity_core.web_api:create_app", factory=True, host="0.0.0.0", port=8000)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
