"""Login throttling based on recent failed attempts per client address."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .queries import AuthQueries

LOGGER = logging.getLogger(__name__)


@dataclass
class LoginAllowance:
    """Outcome of a rate limit check.

    :param allowed: Whether a login attempt may proceed
    :param remaining_attempts: Failed attempts left before lockout
    :param lockout_minutes: Whole minutes until the lockout ends
    """

    allowed: bool
    remaining_attempts: int = 0
    lockout_minutes: int = 0


@dataclass
class LoginRateLimiter:
    """Locks an address out after too many failed logins inside a window.

    :param auth_queries: Repository storing the attempts
    :param max_attempts: Failed attempts allowed inside the window
    :param lockout_minutes: Length of the window and of the lockout
    """

    DEFAULT_MAX_ATTEMPTS = 5
    DEFAULT_LOCKOUT_MINUTES = 15

    auth_queries: AuthQueries
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    lockout_minutes: int = DEFAULT_LOCKOUT_MINUTES

    async def check(self, ip_address: str, now: datetime | None = None) -> LoginAllowance:
        """Decide whether an address may attempt another login."""
        now = now or datetime.now(UTC)
        lockout = timedelta(minutes=self.lockout_minutes)
        failed, latest = await self.auth_queries.count_recent_failed_attempts(
            ip_address,
            now - lockout,
        )

        if failed >= self.max_attempts and latest is not None:
            lockout_end = latest + lockout
            if lockout_end > now:
                remaining = math.ceil((lockout_end - now).total_seconds() / 60)
                LOGGER.warning("Login locked out for %s", ip_address)
                return LoginAllowance(allowed=False, lockout_minutes=remaining)

        return LoginAllowance(
            allowed=True,
            remaining_attempts=max(self.max_attempts - failed, 0),
        )

    async def record(
        self,
        ip_address: str,
        email: str | None,
        *,
        successful: bool,
        user_id: int | None = None,
        now: datetime | None = None,
    ) -> None:
        await self.auth_queries.record_login_attempt(
            ip_address,
            email,
            successful=successful,
            attempted_at=now or datetime.now(UTC),
            user_id=user_id,
        )
