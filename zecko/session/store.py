"""Session cache: the single client-side record of who is signed in.

The store holds the server's user record exactly as received and a small
state machine::

    unauthenticated --set_user--> authenticated --begin_verification--> verifying
    verifying --poll success--> authenticated
    verifying --poll unauthorized--> unauthenticated
    authenticated --invalidate--> unauthenticated

Every change of identity bumps :attr:`SessionStore.generation`. Background
results are tagged with the generation they started under and are dropped
if it moved on, so an explicit logout always beats an in-flight poll.
"""

from __future__ import annotations

import asyncio
import logging
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from zecko.common import Role

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from .transport import VerifyResult

    UserRecord = dict[str, Any]
    Listener = Callable[["SessionStore"], None]

LOGGER = logging.getLogger(__name__)
LOGGER.setLevel(logging.DEBUG)


class SessionState(StrEnum):
    """States of the client session."""

    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    VERIFYING = "verifying"


class SessionStore:
    """Injectable holder of the current user record.

    :ivar user: The server's user record, or None when signed out
    :ivar state: Current :class:`SessionState`
    :ivar generation: Counter bumped on every identity change
    :ivar intentional_logout: Set by an explicit logout, cleared by the next sign in
    :ivar loaded: Whether the user has been resolved at least once
    """

    def __init__(self) -> None:
        self.user: UserRecord | None = None
        self.state = SessionState.UNAUTHENTICATED
        self.generation = 0
        self.intentional_logout = False
        self.loaded = False
        self._needs_fetch = True
        self._load_task: asyncio.Task[UserRecord | None] | None = None
        self._listeners: list[Listener] = []

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    @property
    def role(self) -> Role | None:
        """Role of the cached user, None when signed out or unrecognized."""
        if self.user is None:
            return None
        return Role.parse(self.user.get("userType"))

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a callback run after every change of the cached user.

        :param listener: Called with this store
        :return: A callable that removes the listener again
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)

    def set_user(self, user: UserRecord) -> None:
        """Store the record returned by a successful credential exchange.

        The record is kept by reference, without copying or merging.
        """
        self.user = user
        self.state = SessionState.AUTHENTICATED
        self.generation += 1
        self.intentional_logout = False
        self.loaded = True
        self._needs_fetch = False
        LOGGER.debug("Session started (generation %d)", self.generation)
        self._notify()

    def invalidate(self, reason: str, *, intentional: bool = False) -> bool:
        """Drop the cached user.

        Invalidating an empty store changes nothing and notifies nobody.

        :param reason: Short description for the log
        :param intentional: True for an explicit logout
        :return: Whether a session was actually cleared
        """
        if intentional:
            self.intentional_logout = True
        self._needs_fetch = True
        # Any fetch or poll already in flight belongs to the old session.
        self.generation += 1

        if self.user is None and self.state == SessionState.UNAUTHENTICATED:
            return False

        self.user = None
        self.state = SessionState.UNAUTHENTICATED
        self.loaded = True
        LOGGER.info("Session cleared: %s", reason)
        self._notify()
        return True

    async def load(
        self,
        fetcher: Callable[[], Awaitable[UserRecord | None]],
    ) -> UserRecord | None:
        """Resolve the current user, fetching at most once per load cycle.

        Concurrent callers share the same fetch. Once resolved, later calls
        return the cache until the next invalidation.

        :param fetcher: Coroutine function returning the user record or None
        :return: The cached user record, or None
        """
        if not self._needs_fetch:
            return self.user

        if self._load_task is None:
            self._load_task = asyncio.ensure_future(
                self._fetch(fetcher, self.generation),
            )
        return await asyncio.shield(self._load_task)

    async def _fetch(
        self,
        fetcher: Callable[[], Awaitable[UserRecord | None]],
        generation: int,
    ) -> UserRecord | None:
        try:
            user = await fetcher()
        finally:
            self._load_task = None

        if generation != self.generation:
            LOGGER.debug("Discarding user fetched under stale generation %d", generation)
            return self.user

        self._needs_fetch = False
        if user is None:
            self.loaded = True
            return None

        self.user = user
        self.state = SessionState.AUTHENTICATED
        self.generation += 1
        # A session found on the server is a new sign in, not the one logged out.
        self.intentional_logout = False
        self.loaded = True
        self._notify()
        return user

    def begin_verification(self) -> int | None:
        """Move authenticated to verifying.

        :return: The generation tag for the poll, or None if nobody is signed in
        """
        if self.state != SessionState.AUTHENTICATED:
            return None
        self.state = SessionState.VERIFYING
        return self.generation

    def _is_current(self, tag: int) -> bool:
        return tag == self.generation and not self.intentional_logout

    def apply_verification(self, tag: int, result: VerifyResult) -> bool:
        """Apply a poll result if it still describes the current session.

        :param tag: Generation returned by :meth:`begin_verification`
        :param result: What the server answered
        :return: Whether the result was applied
        """
        if not self._is_current(tag):
            LOGGER.debug("Discarding stale verification for generation %d", tag)
            return False

        if result.authenticated:
            self.state = SessionState.AUTHENTICATED
            return True

        self.invalidate("verification rejected")
        return True

    def abort_verification(self, tag: int) -> None:
        """Return to authenticated after a poll that produced no answer."""
        if self._is_current(tag) and self.state == SessionState.VERIFYING:
            self.state = SessionState.AUTHENTICATED
