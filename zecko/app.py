"""FastAPI application factory for the Zecko auth service."""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any

from aiosqlite import connect as aiosqlite_connect
from fastapi import APIRouter, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from zecko.auth import (
    AuthQueries,
    LoginRateLimiter,
    Validate,
    configure_auth_router,
)
from zecko.auth.models import RegisterRequest
from zecko.common import Role, TransportMode
from zecko.config import configure_logging, load_config_from_env

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from zecko.auth import SecurityManager
    from zecko.config import AppConfig

LOGGER = logging.getLogger(__name__)

_VALUE_ERROR_PREFIX = "Value error, "


async def seed_admin_account(
    auth_queries: AuthQueries,
    security_manager: SecurityManager,
    admin_credentials: tuple[str, str] | None,
) -> None:
    """Create the administrator account when the database has no users.

    :param auth_queries: Repository for the users table
    :param security_manager: Used to hash the admin password
    :param admin_credentials: (email, password) collected at startup, if any
    """
    if await auth_queries.count_users() != 0:
        return

    if admin_credentials is None:
        LOGGER.warning(
            "No users found in database and no admin credentials provided. "
            "The server will start without an admin account.",
        )
        return

    email, password = admin_credentials
    # Admins are never self-registered, so the payload skips request validation.
    registration = RegisterRequest.model_construct(
        email=email.strip().lower(),
        password=password,
        userType=Role.ADMIN,
    )
    user, error = await auth_queries.create_account(
        registration,
        security_manager.hash_password(password),
        super_admin=True,
    )
    if user is None:
        LOGGER.error("Could not create admin account: %s", error)
        return
    LOGGER.info("No users found in database; created admin account %s", user.id)


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"

    first = errors[0]
    message = str(first.get("msg", "Invalid request"))
    if message.startswith(_VALUE_ERROR_PREFIX):
        return message.removeprefix(_VALUE_ERROR_PREFIX)

    field_path = [str(part) for part in first.get("loc", ()) if part != "body"]
    if field_path:
        return f"{'.'.join(field_path)}: {message}"
    return message


def _allowed_origins(origins: list[str], *, cookie_mode: bool) -> list[str]:
    """Origins for CORS. Credentialed cookie requests only go to named origins."""
    if not cookie_mode:
        return origins or ["*"]
    if "*" in origins:
        LOGGER.warning("Ignoring wildcard CORS origin, cookie sessions need named origins")
    return [origin for origin in origins if origin != "*"]


def configure_exception_handlers(app: FastAPI) -> None:
    """Return every error to clients as a ``{message}`` body."""

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request,
        exc: StarletteHTTPException,
    ) -> JSONResponse:
        if exc.status_code >= 500:  # noqa: PLR2004
            LOGGER.error("HTTP %s on %s: %s", exc.status_code, request.url.path, exc.detail)
        return JSONResponse(
            status_code=exc.status_code,
            content={"message": str(exc.detail)},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        message = _validation_message(exc)
        LOGGER.debug("Rejected request to %s: %s", request.url.path, message)
        return JSONResponse(status_code=400, content={"message": message})


def configure_fastapi_app(
    config: AppConfig,
    admin_credentials: tuple[str, str] | None = None,
) -> FastAPI:
    """Configure and return the FastAPI application.

    :param config: Application configuration
    :param admin_credentials: Optional (email, password) for the first admin
    :return: Configured FastAPI application
    """
    database_parent = Path(config.database_path).parent
    if not database_parent.exists():
        database_parent.mkdir(parents=True, exist_ok=True)
        LOGGER.info("Created directory for database at %s", database_parent)

    if not Path(config.database_path).exists():
        LOGGER.info("Database file does not exist at %s", config.database_path)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[Any, Any]:
        """Application lifespan manager.

        Opens the database connection and mounts the auth routes.
        """
        LOGGER.info("Zecko auth service is starting")

        async with aiosqlite_connect(config.database_path) as db_connection:
            auth_queries = AuthQueries(db_connection)
            await auth_queries.initialize_tables()
            await seed_admin_account(
                auth_queries,
                config.security_manager,
                admin_credentials,
            )

            validate = Validate(
                auth_queries,
                config.security_manager,
                transport_mode=config.session_transport,
                cookie_name=config.cookie_name,
            )
            rate_limiter = LoginRateLimiter(
                auth_queries,
                max_attempts=config.max_login_attempts,
                lockout_minutes=config.lockout_minutes,
            )

            auth_router = configure_auth_router(
                APIRouter(),
                auth_queries,
                config.security_manager,
                validate,
                rate_limiter,
                cookie_secure=config.cookie_secure,
            )

            app.include_router(auth_router, prefix="/api", tags=["auth"])
            app.state.auth_queries = auth_queries
            app.state.validate = validate

            LOGGER.info(
                "Accepting %s credentials on /api",
                config.session_transport,
            )
            yield

            LOGGER.info("Zecko auth service is shutting down")

    app = FastAPI(
        title="Zecko Auth API",
        version="0.1.0",
        lifespan=lifespan,
        root_path=config.root_path,
    )

    cookie_mode = config.session_transport == TransportMode.COOKIE
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_allowed_origins(config.cors_origins, cookie_mode=cookie_mode),
        allow_credentials=cookie_mode,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    configure_exception_handlers(app)

    @app.get("/")
    def read_root() -> str:
        return "Zecko Auth API"

    return app


def create_app(
    env_file: str | None = os.environ.get("ENV_FILE", ".env"),
    admin_credentials: tuple[str, str] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    The default here is for uvicorn command line usage, in which case the user
    should set ENV_FILE environment variable if they want a different file.

    :param env_file: Optional path to the environment configuration file
    :param admin_credentials: Optional (email, password) for the first admin
    :return: Configured FastAPI application
    """
    config = load_config_from_env(env_file)
    configure_logging(config)
    return configure_fastapi_app(config, admin_credentials)
