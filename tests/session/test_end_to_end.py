"""Drive AuthSession against the real FastAPI application, in both transports."""

from collections.abc import AsyncGenerator
from dataclasses import replace

import httpx
import pytest
import pytest_asyncio

from zecko.app import configure_fastapi_app
from zecko.common import TransportMode
from zecko.config import AppConfig, ClientConfig
from zecko.session import (
    AuthSession,
    CredentialRejectedError,
    CredentialTransport,
    SessionState,
)

SERVER_URL = "http://testserver"
PASSWORD = "correct-horse-battery"  # noqa: S105

VENDOR_SIGNUP = {
    "email": "a@b.com",
    "password": PASSWORD,
    "userType": "vendor",
    "countryCode": "GB",
    "businessName": "Acme Ltd",
    "companyNumber": "12345678",
    "utrNumber": "1234567890",
}


@pytest_asyncio.fixture
async def live_session(
    app_config: AppConfig,
    mode: TransportMode,
) -> AsyncGenerator[AuthSession, None]:
    """Create an AuthSession talking to the application in-process."""
    app = configure_fastapi_app(replace(app_config, session_transport=mode))
    async with (
        app.router.lifespan_context(app),
        httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app),
            base_url=SERVER_URL,
        ) as client,
    ):
        session = AuthSession(
            ClientConfig(base_url=SERVER_URL, transport=mode),
            transport=CredentialTransport(SERVER_URL, mode, client=client),
        )
        yield session
        await session.close()


@pytest.mark.asyncio
class TestEndToEnd:
    """Test suite for the full client and server round trip."""

    async def test_signup_logout_login(self, live_session: AuthSession) -> None:
        """Test the whole lifecycle of a vendor account."""
        assert await live_session.current_user() is None

        signup = await live_session.register(VENDOR_SIGNUP)
        assert signup.redirect == "/subscription"
        assert signup.user["userType"] == "vendor"
        assert signup.user["subscriptionActive"] is False

        await live_session.logout()
        assert live_session.store.user is None
        assert await live_session.current_user() is None

        login = await live_session.login("a@b.com", PASSWORD)
        assert login.redirect == "/vendor/dashboard"
        assert login.user == signup.user
        assert live_session.store.user is login.user

    async def test_invalid_credentials(self, live_session: AuthSession) -> None:
        await live_session.register(VENDOR_SIGNUP)
        await live_session.logout()

        with pytest.raises(CredentialRejectedError) as exc_info:
            await live_session.login("a@b.com", "wrongpass")

        assert exc_info.value.message == "Invalid credentials"
        assert exc_info.value.status_code == 401
        assert live_session.store.user is None

    async def test_registration_errors_are_surfaced(
        self,
        live_session: AuthSession,
    ) -> None:
        with pytest.raises(CredentialRejectedError) as exc_info:
            await live_session.register({**VENDOR_SIGNUP, "utrNumber": None})

        assert exc_info.value.status_code == 400
        assert "UTR" in exc_info.value.message

    async def test_verification_and_authenticated_calls(
        self,
        live_session: AuthSession,
    ) -> None:
        await live_session.register(VENDOR_SIGNUP)

        assert await live_session.poller.verify_once()
        assert live_session.store.state is SessionState.AUTHENTICATED

        response = await live_session.request("GET", "/api/user")
        assert response.json() == live_session.store.user


@pytest.mark.asyncio
class TestTokenRejection:
    """Test suite for a session the server no longer accepts."""

    @pytest.fixture
    def mode(self) -> TransportMode:
        return TransportMode.TOKEN

    async def test_poll_clears_rejected_session(
        self,
        live_session: AuthSession,
    ) -> None:
        await live_session.register(VENDOR_SIGNUP)
        live_session.transport.token_store.save("tampered-token")

        assert await live_session.poller.verify_once()

        assert live_session.store.user is None
        assert live_session.store.state is SessionState.UNAUTHENTICATED
