"""Fixtures for the client session layer: a scripted auth server over httpx.MockTransport."""

import asyncio
import json
from collections.abc import AsyncGenerator

import httpx
import pytest
import pytest_asyncio

from zecko.common import TransportMode
from zecko.config import ClientConfig
from zecko.session import AuthSession, CredentialTransport, SessionStore

BASE_URL = "http://zecko.test"
GOOD_PASSWORD = "secret-password"  # noqa: S105
SERVER_TOKEN = "server-issued-token"  # noqa: S105
COOKIE_NAME = "zecko_session"


class FakeAuthServer:
    """Answers the five auth endpoints and records every call.

    :ivar session_valid: Whether the server still honours the issued artifact
    :ivar verify_error: Exception raised instead of answering /api/auth/verify
    :ivar verify_gate: When set, /api/auth/verify waits for it before answering
    :ivar override: Canned response for a path, replacing the normal behaviour
    """

    def __init__(self, user: dict, mode: TransportMode) -> None:
        self.user = user
        self.mode = mode
        self.session_valid = True
        self.verify_error: Exception | None = None
        self.verify_gate: asyncio.Event | None = None
        self.override: dict[str, httpx.Response] = {}
        self.calls: list[httpx.Request] = []

    def paths(self, path: str | None = None) -> list[str]:
        return [
            request.url.path
            for request in self.calls
            if path is None or request.url.path == path
        ]

    def _authorized(self, request: httpx.Request) -> bool:
        if not self.session_valid:
            return False
        if self.mode == TransportMode.TOKEN:
            return request.headers.get("Authorization") == f"Bearer {SERVER_TOKEN}"
        return f"{COOKIE_NAME}=cookie-value" in request.headers.get("Cookie", "")

    def _session_response(self, status_code: int) -> httpx.Response:
        if self.mode == TransportMode.TOKEN:
            return httpx.Response(
                status_code,
                json={"token": SERVER_TOKEN, "user": self.user},
            )
        return httpx.Response(
            status_code,
            json={"user": self.user},
            headers={"Set-Cookie": f"{COOKIE_NAME}=cookie-value; Path=/; HttpOnly"},
        )

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        path = request.url.path
        if path in self.override:
            return self.override[path]

        if path == "/api/login":
            body = json.loads(request.content)
            if body.get("password") != GOOD_PASSWORD:
                return httpx.Response(401, json={"message": "Invalid credentials"})
            self.session_valid = True
            return self._session_response(200)

        if path == "/api/register":
            self.session_valid = True
            return self._session_response(201)

        if path == "/api/logout":
            return httpx.Response(
                200,
                json={"message": "Logged out successfully"},
                headers={"Set-Cookie": f"{COOKIE_NAME}=; Max-Age=0; Path=/"},
            )

        if path == "/api/user":
            if not self._authorized(request):
                return httpx.Response(401, json={"message": "Authentication required"})
            return httpx.Response(200, json=self.user)

        if path == "/api/auth/verify":
            if self.verify_error is not None:
                raise self.verify_error
            if self.verify_gate is not None:
                await self.verify_gate.wait()
            if not self._authorized(request):
                return httpx.Response(200, json={"authenticated": False})
            return httpx.Response(200, json={"authenticated": True, "user": self.user})

        if path == "/api/orders":
            if not self._authorized(request):
                return httpx.Response(401, json={"message": "Authentication required"})
            return httpx.Response(200, json=[])

        return httpx.Response(404, json={"message": "Not Found"})


@pytest.fixture(params=[TransportMode.TOKEN, TransportMode.COOKIE])
def mode(request: pytest.FixtureRequest) -> TransportMode:
    """Run a test once per credential transport."""
    return request.param


@pytest.fixture
def server(vendor_record: dict, mode: TransportMode) -> FakeAuthServer:
    return FakeAuthServer(vendor_record, mode)


@pytest_asyncio.fixture
async def http_client(server: FakeAuthServer) -> AsyncGenerator[httpx.AsyncClient, None]:
    async with httpx.AsyncClient(
        transport=httpx.MockTransport(server.handler),
        base_url=BASE_URL,
    ) as client:
        yield client


@pytest.fixture
def transport(http_client: httpx.AsyncClient, mode: TransportMode) -> CredentialTransport:
    return CredentialTransport(BASE_URL, mode, client=http_client)


@pytest.fixture
def client_config(mode: TransportMode) -> ClientConfig:
    return ClientConfig(base_url=BASE_URL, transport=mode, poll_interval_ms=20)


@pytest.fixture
def store() -> SessionStore:
    return SessionStore()


@pytest.fixture
def navigations() -> list[str]:
    return []


@pytest_asyncio.fixture
async def session(
    client_config: ClientConfig,
    transport: CredentialTransport,
    store: SessionStore,
    navigations: list[str],
) -> AsyncGenerator[AuthSession, None]:
    """Create an AuthSession wired to the fake server."""
    auth_session = AuthSession(
        client_config,
        transport=transport,
        store=store,
        navigate=navigations.append,
    )
    yield auth_session
    await auth_session.close()


async def wait_until(condition, timeout: float = 2.0) -> None:  # noqa: ANN001
    """Yield to the event loop until ``condition()`` holds."""

    async def spin() -> None:
        while not condition():
            await asyncio.sleep(0.005)

    await asyncio.wait_for(spin(), timeout)
