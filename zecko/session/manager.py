"""The auth session service tying transport, cache, poller and router together.

**Example Usage:**

.. code-block:: python

    config = load_client_config_from_env()
    async with AuthSession(config) as session:
        result = await session.login("a@b.com", "correct horse")
        print(result.redirect)  # e.g. /vendor/dashboard
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Self

from .errors import UnauthorizedError
from .poller import VerificationPoller
from .roles import landing_path, registration_landing_path
from .store import SessionStore
from .transport import CredentialTransport, FileTokenStore, MemoryTokenStore

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

    import httpx

    from zecko.config import ClientConfig

LOGGER = logging.getLogger(__name__)
LOGGER.setLevel(logging.DEBUG)


@dataclass
class AuthResult:
    """Outcome of a successful login or registration.

    :param user: The server's user record, as cached
    :param redirect: Where the client should navigate next
    """

    user: dict[str, Any]
    redirect: str


class AuthSession:
    """Owns the client session for the lifetime of an application.

    Use it as an async context manager, or call :meth:`start` and
    :meth:`close` around the application's life.

    :param config: Client configuration
    :param transport: Credential transport; built from ``config`` if omitted
    :param store: Session cache; a fresh one if omitted
    :param navigate: Optional callback invoked with the redirect path
    """

    def __init__(
        self,
        config: ClientConfig,
        transport: CredentialTransport | None = None,
        store: SessionStore | None = None,
        navigate: Callable[[str], None] | None = None,
    ) -> None:
        self.config = config
        self.transport = transport or CredentialTransport(
            config.base_url,
            config.transport,
            token_store=(
                FileTokenStore(config.token_path)
                if config.token_path
                else MemoryTokenStore()
            ),
            timeout=config.request_timeout,
        )
        self.store = store or SessionStore()
        self.poller = VerificationPoller(
            self.store,
            self.transport,
            config.poll_interval_ms,
        )
        self.navigate = navigate

    async def __aenter__(self) -> Self:
        try:
            await self.start()
        except BaseException:
            await self.close()
            raise
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def start(self) -> None:
        """Resolve any existing session and begin verifying it."""
        await self.current_user()
        LOGGER.info(
            "Auth session started (%s transport, %s)",
            self.transport.mode,
            "signed in" if self.store.is_authenticated else "signed out",
        )

    async def close(self) -> None:
        """Stop background work and release the HTTP client."""
        await self.poller.stop()
        await self.transport.aclose()

    async def current_user(self) -> dict[str, Any] | None:
        """Return the cached user, loading it on first use."""
        user = await self.store.load(self.transport.fetch_user)
        if user is not None:
            self.poller.start()
        return user

    async def _begin_session(self, user: dict[str, Any], redirect: str) -> AuthResult:
        await self.poller.stop()
        self.store.set_user(user)
        self.poller.start()
        if self.navigate is not None:
            self.navigate(redirect)
        return AuthResult(user=user, redirect=redirect)

    async def login(self, identifier: str, password: str) -> AuthResult:
        """Sign in and route by role.

        :raises SessionError: If the exchange fails; the cache is left alone
        """
        user = await self.transport.login(identifier, password)
        return await self._begin_session(user, landing_path(user.get("userType")))

    async def register(self, payload: dict[str, Any]) -> AuthResult:
        """Create an account, sign in, and route paid accounts to checkout."""
        user = await self.transport.register(payload)
        return await self._begin_session(
            user,
            registration_landing_path(user.get("userType")),
        )

    async def logout(self) -> None:
        """End the session locally first, then on the server."""
        self.store.invalidate("logout", intentional=True)
        await self.poller.stop()
        await self.transport.logout()

    async def request(
        self,
        method: str,
        path: str,
        **kwargs: Any,  # noqa: ANN401
    ) -> httpx.Response:
        """Make an authenticated call; a 401 signs the client out."""
        try:
            return await self.transport.request(method, path, **kwargs)
        except UnauthorizedError:
            self.store.invalidate("unauthorized response")
            await self.poller.stop()
            raise
