"""Background verification of the current session.

**Example Usage:**

.. code-block:: python

    async with VerificationPoller(store, transport, interval_ms=30_000):
        ...  # the session is re-checked every 30 seconds
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Self

from .errors import MalformedResponseError, TransientNetworkError

if TYPE_CHECKING:
    from types import TracebackType

    from .store import SessionStore
    from .transport import CredentialTransport

LOGGER = logging.getLogger(__name__)
LOGGER.setLevel(logging.DEBUG)

DEFAULT_POLL_INTERVAL_MS = 30_000


class VerificationPoller:
    """Periodically asks the server whether the cached session is still valid.

    Only an explicit "not authenticated" answer clears the session. Network
    failures and timeouts leave it as it was.

    :param store: The session cache to keep in sync
    :param transport: Used for the verification call
    :param interval_ms: Delay between checks in milliseconds
    """

    def __init__(
        self,
        store: SessionStore,
        transport: CredentialTransport,
        interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
    ) -> None:
        if interval_ms <= 0:
            msg = "Poll interval must be a positive number of milliseconds"
            raise ValueError(msg)
        self.store = store
        self.transport = transport
        self.interval_ms = interval_ms
        self._task: asyncio.Task[None] | None = None

    async def __aenter__(self) -> Self:
        self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.stop()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start polling if a session is active and no poll loop is running."""
        if self.running or not self.store.is_authenticated:
            return
        LOGGER.debug("Starting session verification every %d ms", self.interval_ms)
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Cancel the poll loop and wait for it to finish."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        LOGGER.debug("Session verification stopped")

    async def _run(self) -> None:
        while self.store.is_authenticated:
            await asyncio.sleep(self.interval_ms / 1000)
            await self.verify_once()
        LOGGER.debug("No active session, verification loop exiting")

    async def verify_once(self) -> bool:
        """Run a single verification tick.

        :return: Whether a result was applied to the store
        """
        tag = self.store.begin_verification()
        if tag is None:
            return False

        try:
            result = await self.transport.verify()
        except (TransientNetworkError, MalformedResponseError) as e:
            LOGGER.warning("Session verification skipped: %s", e.message)
            self.store.abort_verification(tag)
            return False
        except asyncio.CancelledError:
            self.store.abort_verification(tag)
            raise

        return self.store.apply_verification(tag, result)
