"""Credential transport: how the client exchanges and presents session artifacts.

A transport runs in exactly one :class:`~zecko.common.TransportMode`. In token
mode the bearer token returned by login or registration is kept in a
:class:`TokenStore` and attached to authenticated calls. In cookie mode the
server sets an HTTP-only cookie which the underlying ``httpx`` cookie jar
replays; no token is ever read from a response body.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, Self

import httpx

from zecko.common import TransportMode

from .errors import (
    CredentialRejectedError,
    MalformedResponseError,
    SessionError,
    TransientNetworkError,
    UnauthorizedError,
)

if TYPE_CHECKING:
    from types import TracebackType

LOGGER = logging.getLogger(__name__)
LOGGER.setLevel(logging.DEBUG)

LOGIN_PATH = "/api/login"
REGISTER_PATH = "/api/register"
LOGOUT_PATH = "/api/logout"
USER_PATH = "/api/user"
VERIFY_PATH = "/api/auth/verify"

DEFAULT_TIMEOUT_SECONDS = 10.0

_UNAUTHORIZED = 401
_FORBIDDEN = 403
_SERVER_ERROR = 500


class TokenStore(Protocol):
    """Where the bearer token lives between calls."""

    def load(self) -> str | None: ...

    def save(self, token: str) -> None: ...

    def clear(self) -> None: ...


class MemoryTokenStore:
    """Keeps the token for the lifetime of the process only."""

    def __init__(self, token: str | None = None) -> None:
        self._token = token

    def load(self) -> str | None:
        return self._token

    def save(self, token: str) -> None:
        self._token = token

    def clear(self) -> None:
        self._token = None


class FileTokenStore:
    """Persists the token to a local file readable only by the current user.

    :param path: File the token is written to
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def load(self) -> str | None:
        try:
            token = self.path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        return token or None

    def save(self, token: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(token, encoding="utf-8")
        os.chmod(self.path, 0o600)  # noqa: PTH101

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


@dataclass
class VerifyResult:
    """Outcome of a session verification.

    :param authenticated: Whether the server still recognizes the session
    :param user: The server's user record when authenticated
    """

    authenticated: bool
    user: dict[str, Any] | None = field(default=None)


def _error_message(response: httpx.Response, default: str) -> str:
    """Pull a human readable message out of an error response."""
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        for key in ("message", "detail"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value

    text = response.text.strip()
    if text and body is None:
        return text
    return default


def _json_object(response: httpx.Response) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError as e:
        msg = f"Expected a JSON body from {response.request.url.path}"
        raise MalformedResponseError(msg) from e
    if not isinstance(body, dict):
        msg = f"Expected a JSON object from {response.request.url.path}"
        raise MalformedResponseError(msg)
    return body


class CredentialTransport:
    """Sends credential exchanges and authenticated calls to the auth service.

    Every method performs at most one network round trip; nothing is retried.

    :param base_url: Origin of the auth service
    :param mode: The credential transport this deployment uses
    :param token_store: Token persistence for token mode (memory by default)
    :param timeout: Per-request timeout in seconds
    :param client: Pre-built ``httpx.AsyncClient``, mainly for tests
    """

    def __init__(
        self,
        base_url: str,
        mode: TransportMode = TransportMode.TOKEN,
        token_store: TokenStore | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.mode = TransportMode(mode)
        self.token_store: TokenStore = token_store or MemoryTokenStore()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
        )

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client if this transport created it."""
        if self._owns_client:
            await self._client.aclose()

    @property
    def has_credential(self) -> bool:
        """Whether a session artifact may be presented on the next call.

        Cookie mode cannot inspect the HTTP-only cookie, so it always answers True.
        """
        if self.mode == TransportMode.COOKIE:
            return True
        return self.token_store.load() is not None

    def discard_credential(self) -> None:
        """Forget the local session artifact."""
        self.token_store.clear()
        self._client.cookies.clear()

    async def _send(
        self,
        method: str,
        path: str,
        *,
        authenticated: bool = False,
        **kwargs: Any,  # noqa: ANN401
    ) -> httpx.Response:
        headers = dict(kwargs.pop("headers", None) or {})
        if authenticated and self.mode == TransportMode.TOKEN:
            token = self.token_store.load()
            if token:
                headers["Authorization"] = f"Bearer {token}"

        try:
            return await self._client.request(method, path, headers=headers, **kwargs)
        except httpx.TransportError as e:
            LOGGER.warning("%s %s failed: %s", method, path, type(e).__name__)
            raise TransientNetworkError from e

    def _accept_session(self, response: httpx.Response) -> dict[str, Any]:
        """Validate a login/register body and keep the token in token mode."""
        body = _json_object(response)
        user = body.get("user")
        if not isinstance(user, dict):
            msg = "Response is missing the user record"
            raise MalformedResponseError(msg)

        if self.mode == TransportMode.TOKEN:
            token = body.get("token")
            if not isinstance(token, str) or not token:
                msg = "Response is missing the session token"
                raise MalformedResponseError(msg)
            self.token_store.save(token)

        return user

    async def login(self, identifier: str, password: str) -> dict[str, Any]:
        """Exchange credentials for a session.

        :param identifier: Email address, or a username
        :param password: The plaintext password, never stored
        :return: The server's user record
        :raises CredentialRejectedError: On any non-2xx answer
        :raises TransientNetworkError: If the server could not be reached
        :raises MalformedResponseError: If the body lacks the session fields
        """
        identifier_field = "email" if "@" in identifier else "username"
        response = await self._send(
            "POST",
            LOGIN_PATH,
            json={identifier_field: identifier, "password": password},
        )
        if not response.is_success:
            LOGGER.info("Login rejected with status %s", response.status_code)
            raise CredentialRejectedError(
                _error_message(response, "Login failed"),
                response.status_code,
            )
        return self._accept_session(response)

    async def register(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Create an account and start its session.

        :param payload: camelCase registration body
        :return: The server's user record
        """
        response = await self._send("POST", REGISTER_PATH, json=payload)
        if not response.is_success:
            LOGGER.info("Registration rejected with status %s", response.status_code)
            raise CredentialRejectedError(
                _error_message(response, "Registration failed"),
                response.status_code,
            )
        return self._accept_session(response)

    async def logout(self) -> None:
        """Tell the server the session ended, then drop the local artifact.

        The server call is best effort: the local artifact is discarded even
        when it fails.
        """
        try:
            response = await self._send("POST", LOGOUT_PATH, authenticated=True)
            if not response.is_success:
                LOGGER.info("Server logout answered %s", response.status_code)
        except TransientNetworkError:
            LOGGER.warning("Server logout failed, discarding local session anyway")
        finally:
            self.discard_credential()

    async def fetch_user(self) -> dict[str, Any] | None:
        """Fetch the current user record.

        :return: The user record, or None when no session exists
        :raises SessionError: If the server fails in any other way
        """
        if not self.has_credential:
            return None

        response = await self._send("GET", USER_PATH, authenticated=True)
        if response.status_code == _UNAUTHORIZED:
            self.discard_credential()
            return None
        if not response.is_success:
            raise SessionError(_error_message(response, "Could not load user"))

        body = _json_object(response)
        # Tolerate both a bare record and one wrapped as {"user": ...}.
        user = body.get("user") if isinstance(body.get("user"), dict) else body
        if "id" not in user:
            msg = "User record is missing an id"
            raise MalformedResponseError(msg)
        return user

    async def verify(self) -> VerifyResult:
        """Ask the server whether the current session is still valid.

        :raises TransientNetworkError: On network failure or a 5xx answer
        :raises MalformedResponseError: If a 2xx body cannot be read
        """
        if not self.has_credential:
            return VerifyResult(authenticated=False)

        response = await self._send("GET", VERIFY_PATH, authenticated=True)
        if response.status_code in (_UNAUTHORIZED, _FORBIDDEN):
            return VerifyResult(authenticated=False)
        if response.status_code >= _SERVER_ERROR:
            raise TransientNetworkError(
                _error_message(response, TransientNetworkError.default_message),
            )
        if not response.is_success:
            return VerifyResult(authenticated=False)

        body = _json_object(response)
        if body.get("authenticated") is not True:
            return VerifyResult(authenticated=False)

        user = body.get("user")
        return VerifyResult(
            authenticated=True,
            user=user if isinstance(user, dict) else None,
        )

    async def request(
        self,
        method: str,
        path: str,
        **kwargs: Any,  # noqa: ANN401
    ) -> httpx.Response:
        """Make an authenticated call.

        :raises UnauthorizedError: If the server answers 401
        """
        response = await self._send(method, path, authenticated=True, **kwargs)
        if response.status_code == _UNAUTHORIZED:
            self.discard_credential()
            raise UnauthorizedError(
                _error_message(response, UnauthorizedError.default_message),
            )
        return response
