"""Application factory: wires Vault secrets, clients, services and routes."""

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

import psycopg2
import redis
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from api.base import ErrorCodes, error_response
from api.errors import register_error_handlers
from api.middleware import RequestIDMiddleware
from auth.api import create_auth_router
from auth.config import AuthConfig
from auth.database import AccountRepository
from auth.delivery import DevResetDelivery, EmailResetDelivery
from auth.oauth_service import OAuthService
from auth.recovery import PasswordRecoveryService
from auth.recovery_store import RecoveryTokenStore
from auth.security_logger import SecurityLogger
from auth.security_middleware import AuthMiddleware
from auth.session import SessionManager
from clients.email_client import EmailGatewayClient
from clients.postgres_client import PostgresClient
from clients.valkey_client import ValkeyClient
from clients.vault_client import get_database_url, get_email_config, get_valkey_url

logger = logging.getLogger(__name__)


def load_config() -> AuthConfig:
    """AuthConfig from environment, falling back to field defaults."""
    overrides = {
        "environment": os.getenv("APP_ENV"),
        "app_base_url": os.getenv("APP_WEB_BASE_URL"),
        "app_name": os.getenv("APP_NAME"),
    }
    return AuthConfig(**{k: v for k, v in overrides.items() if v})


def create_app(config: AuthConfig | None = None) -> FastAPI:
    load_dotenv(Path(__file__).parent / ".env")
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))

    config = config or load_config()

    postgres = PostgresClient(get_database_url())
    valkey = ValkeyClient(get_valkey_url())

    accounts = AccountRepository(postgres)
    security_logger = SecurityLogger(postgres)
    session_manager = SessionManager(valkey, accounts, config)

    if config.is_production:
        delivery = EmailResetDelivery(EmailGatewayClient(**get_email_config()), config)
    else:
        delivery = DevResetDelivery()

    oauth_service = OAuthService(config, accounts, session_manager, security_logger)
    recovery_service = PasswordRecoveryService(
        config,
        accounts,
        RecoveryTokenStore(postgres),
        delivery,
        security_logger,
    )

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        yield
        valkey.close()
        postgres.close()

    app = FastAPI(title=f"{config.app_name} identity", lifespan=lifespan)
    # Last added runs first: request ids exist before auth can reject
    app.add_middleware(AuthMiddleware, session_manager=session_manager)
    app.add_middleware(RequestIDMiddleware)
    register_error_handlers(app)
    app.include_router(
        create_auth_router(oauth_service, recovery_service, session_manager),
        prefix="/auth",
    )

    @app.get("/health")
    def health(request: Request):
        try:
            valkey.ping()
            postgres.execute_scalar("SELECT 1")
        except (redis.RedisError, psycopg2.Error) as e:
            logger.error(f"Health check failed: {e}")
            return JSONResponse(
                status_code=503,
                content=error_response(
                    ErrorCodes.SERVICE_UNAVAILABLE,
                    "Backing store unreachable",
                    getattr(request.state, "request_id", None),
                ).model_dump(mode="json"),
            )
        return {"status": "ok"}

    logger.info(f"Identity service configured (environment={config.environment})")
    return app
