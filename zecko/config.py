"""Configuration management for the Zecko auth service and session client.

This module provides utilities for loading and validating configuration
from environment variables.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from dotenv import load_dotenv
from jwt.algorithms import get_default_algorithms

from zecko.auth import SecurityManager
from zecko.common import TransportMode

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

LOGGER = logging.getLogger(__name__)
LOGGER.setLevel(logging.DEBUG)

_MINUTES_IN_DAY = 60 * 24
_DEFAULT_PASSWORD_MIN_LENGTH = 8
_DEFAULT_MAX_LOGIN_ATTEMPTS = 5
_DEFAULT_LOCKOUT_MINUTES = 15
_DEFAULT_POLL_INTERVAL_MS = 30_000
_DEFAULT_REQUEST_TIMEOUT_SECONDS = 10
_TRUTHY = frozenset({"1", "true", "yes", "on"})
_FALSY = frozenset({"0", "false", "no", "off"})


def configure_logging(app_config: AppConfig) -> None:
    """Configure logging based on the application configuration.

    :param app_config: The application configuration instance
    """
    if not app_config.logging_level:
        logging.basicConfig(level=logging.INFO)
        return

    numeric_level = getattr(logging, app_config.logging_level.upper(), None)
    if numeric_level is None:
        LOGGER.warning("Invalid log level: %s, using INFO", app_config.logging_level)
        numeric_level = logging.INFO
    logging.basicConfig(level=numeric_level)


@dataclass
class AppConfig:
    """Holds server configuration loaded from environment variables."""

    database_path: str
    logging_level: str | None
    root_path: str

    secret_key: str
    algorithm: str
    access_token_expire_minutes: int
    password_min_length: int

    session_transport: TransportMode
    cookie_name: str
    cookie_secure: bool

    max_login_attempts: int
    lockout_minutes: int

    # Browser origins allowed to call the API; cookie mode never allows a wildcard.
    cors_origins: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        """Initialize derived configuration attributes."""
        self.security_manager = SecurityManager(
            secret_key=self.secret_key,
            algorithm=self.algorithm,
            expire_minutes=self.access_token_expire_minutes,
            password_min_length=self.password_min_length,
        )


@dataclass
class ClientConfig:
    """Holds session client configuration loaded from environment variables.

    :param base_url: Origin of the auth service
    :param transport: Credential transport the service was deployed with
    :param poll_interval_ms: Delay between background session verifications
    :param request_timeout: Per-request network timeout in seconds
    :param token_path: File holding the bearer token; None keeps it in memory
    """

    base_url: str
    transport: TransportMode = TransportMode.TOKEN
    poll_interval_ms: int = _DEFAULT_POLL_INTERVAL_MS
    request_timeout: float = _DEFAULT_REQUEST_TIMEOUT_SECONDS
    token_path: str | None = None


def get_env_str(
    var_name: str,
    default: str | None,
    value_checker: Callable[[str], bool] | None = None,
) -> str:
    """Get an environment variable as a string with optional constraints.

    :param var_name: Name of the environment variable
    :param default: Default value if the variable is not set
    :param value_checker: Optional function to validate the value
    :return: The environment variable value
    :raises ValueError: If the value does not meet the constraints
    """
    value = os.getenv(var_name, default)
    if value is None:
        msg = f"Environment variable {var_name} is required"
        raise ValueError(msg)

    if value_checker and not value_checker(value):
        msg = f"Environment variable {var_name} has invalid value: {value}"
        raise ValueError(msg)

    return value


def get_env_optional_str(var_name: str) -> str | None:
    """Get an environment variable, treating unset and empty alike as None."""
    return os.getenv(var_name) or None


def get_env_int(
    var_name: str,
    default: int,
    value_checker: Callable[[int], bool] | None = None,
) -> int:
    """Get an environment variable as an integer with optional constraints.

    :param var_name: Name of the environment variable
    :param default: Default value if the variable is not set
    :param value_checker: Optional function to validate the value
    :return: The environment variable value as an integer
    :raises ValueError: If the value does not meet the constraints or is not an integer
    """
    value_str = os.getenv(var_name)
    if value_str is None or value_str == "":
        return default

    if not value_str.isnumeric():
        msg = f"Environment variable {var_name} must be an integer, got: {value_str}"
        raise ValueError(msg)

    value = int(value_str)

    if value_checker and not value_checker(value):
        msg = f"Environment variable {var_name} has invalid value: {value}"
        raise ValueError(msg)

    return value


def get_env_bool(var_name: str, *, default: bool) -> bool:
    """Get an environment variable as a boolean.

    Accepts 1/0, true/false, yes/no and on/off in any case.

    :param var_name: Name of the environment variable
    :param default: Default value if the variable is not set
    :return: The parsed boolean
    :raises ValueError: If the value is not a recognised boolean
    """
    value_str = os.getenv(var_name)
    if value_str is None or value_str == "":
        return default

    lowered = value_str.strip().lower()
    if lowered in _TRUTHY:
        return True
    if lowered in _FALSY:
        return False

    msg = f"Environment variable {var_name} must be a boolean, got: {value_str}"
    raise ValueError(msg)


def get_env_list(var_name: str) -> list[str]:
    """Get a comma separated environment variable as a list of non-empty items."""
    value = os.getenv(var_name) or ""
    return [item.strip() for item in value.split(",") if item.strip()]


def get_env_transport(var_name: str) -> TransportMode:
    """Get the credential transport mode, defaulting to bearer tokens."""
    value = get_env_str(
        var_name,
        TransportMode.TOKEN.value,
        lambda mode: mode.lower() in set(TransportMode),
    )
    return TransportMode(value.lower())


def load_config_from_env(env_file: str | Path | None) -> AppConfig:
    """Load server configuration from environment variables.

    :param env_file: Optional .env file loaded before reading the environment
    :return: An AppConfig instance populated with environment variable values
    """
    if env_file:
        load_dotenv(dotenv_path=env_file)

    return AppConfig(
        database_path=get_env_str("DATABASE_PATH", "./zecko_sqlite.db"),
        logging_level=get_env_str("LOGGING_LEVEL", "INFO"),
        root_path=get_env_str("ROOT_PATH", ""),
        secret_key=get_env_str("SECRET_KEY", os.urandom(32).hex()),
        algorithm=get_env_str(
            "ALGORITHM",
            "HS512",
            lambda algorithm: algorithm in get_default_algorithms(),
        ),
        access_token_expire_minutes=get_env_int(
            "ACCESS_TOKEN_EXPIRE_MINUTES",
            _MINUTES_IN_DAY,  # default 1 day
            lambda minutes: minutes > 0,
        ),
        password_min_length=get_env_int(
            "PASSWORD_MIN_LENGTH",
            _DEFAULT_PASSWORD_MIN_LENGTH,
            lambda length: length > 0,
        ),
        session_transport=get_env_transport("SESSION_TRANSPORT"),
        cookie_name=get_env_str("COOKIE_NAME", "zecko_session", lambda name: bool(name)),
        cookie_secure=get_env_bool("COOKIE_SECURE", default=False),
        max_login_attempts=get_env_int(
            "MAX_LOGIN_ATTEMPTS",
            _DEFAULT_MAX_LOGIN_ATTEMPTS,
            lambda attempts: attempts > 0,
        ),
        lockout_minutes=get_env_int(
            "LOCKOUT_MINUTES",
            _DEFAULT_LOCKOUT_MINUTES,
            lambda minutes: minutes > 0,
        ),
        cors_origins=get_env_list("CORS_ORIGINS"),
    )


def load_client_config_from_env(env_file: str | Path | None = None) -> ClientConfig:
    """Load session client configuration from environment variables.

    :param env_file: Optional .env file loaded before reading the environment
    :return: A ClientConfig instance populated with environment variable values
    """
    if env_file:
        load_dotenv(dotenv_path=env_file)

    return ClientConfig(
        base_url=get_env_str("ZECKO_BASE_URL", "http://127.0.0.1:8000"),
        transport=get_env_transport("ZECKO_SESSION_TRANSPORT"),
        poll_interval_ms=get_env_int(
            "ZECKO_POLL_INTERVAL_MS",
            _DEFAULT_POLL_INTERVAL_MS,
            lambda interval: interval > 0,
        ),
        request_timeout=get_env_int(
            "ZECKO_REQUEST_TIMEOUT",
            _DEFAULT_REQUEST_TIMEOUT_SECONDS,
            lambda timeout: timeout > 0,
        ),
        token_path=get_env_optional_str("ZECKO_TOKEN_PATH"),
    )
