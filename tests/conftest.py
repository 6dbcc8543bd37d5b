"""Pytest configuration file for setting up test environment."""

import sys
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio

# Add the repository root to Python path so tests can import zecko uninstalled
root_dir = Path(__file__).parent.parent
sys.path.insert(0, str(root_dir))

from zecko.auth import AuthQueries, SecurityManager  # noqa: E402
from zecko.common import TransportMode  # noqa: E402
from zecko.config import AppConfig  # noqa: E402

TEST_SECRET_KEY = "zecko-test-secret-" + "0" * 64

@pytest.fixture
def security_manager() -> SecurityManager:
    """Create a SecurityManager with a fixed key."""
    return SecurityManager(secret_key=TEST_SECRET_KEY)


@pytest.fixture
def app_config(tmp_path: Path) -> AppConfig:
    """Create a server configuration backed by a temporary database."""
    return AppConfig(
        database_path=str(tmp_path / "zecko.db"),
        logging_level="DEBUG",
        root_path="",
        secret_key=TEST_SECRET_KEY,
        algorithm="HS512",
        access_token_expire_minutes=60,
        password_min_length=8,
        session_transport=TransportMode.TOKEN,
        cookie_name="zecko_session",
        cookie_secure=False,
        max_login_attempts=5,
        lockout_minutes=15,
    )


@pytest_asyncio.fixture
async def auth_queries(tmp_path: Path) -> AsyncGenerator[AuthQueries, None]:
    """Create an AuthQueries repository with initialized tables."""
    queries = await AuthQueries.create(str(tmp_path / "queries.db"))
    await queries.initialize_tables()
    yield queries
    await queries.close()


@pytest.fixture
def vendor_record() -> dict:
    """A user record exactly as the server would send it."""
    return {
        "id": 1,
        "email": "a@b.com",
        "userType": "vendor",
        "superAdmin": False,
        "subscriptionActive": True,
        "subscriptionTier": "vendor",
        "countryCode": "GB",
        "businessName": "Acme Ltd",
        "phoneNumber": None,
    }
