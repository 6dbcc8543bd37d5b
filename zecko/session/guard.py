"""What a protected route needs to decide before rendering."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from .roles import HOME_PATH, landing_path

if TYPE_CHECKING:
    from collections.abc import Iterable

    from zecko.common import Role

    from .manager import AuthSession
    from .store import SessionStore

LOGIN_PATH = "/auth"


class GuardOutcome(StrEnum):
    ALLOW = "allow"
    WAIT = "wait"
    REDIRECT = "redirect"


@dataclass(frozen=True)
class GuardDecision:
    """Result of an access check.

    :param outcome: Render, show a loading state, or navigate away
    :param redirect_to: Target path when the outcome is a redirect
    """

    outcome: GuardOutcome
    redirect_to: str | None = None

    @property
    def allowed(self) -> bool:
        return self.outcome == GuardOutcome.ALLOW


ALLOW = GuardDecision(GuardOutcome.ALLOW)
WAIT = GuardDecision(GuardOutcome.WAIT)


def evaluate_access(
    store: SessionStore,
    *,
    admin_required: bool = False,
    required_roles: Iterable[Role] | None = None,
) -> GuardDecision:
    """Decide whether the cached session may see a protected route.

    :param store: The session cache
    :param admin_required: Only super admins may enter
    :param required_roles: Roles allowed in; None allows every signed in user
    :return: The decision
    """
    if not store.loaded:
        return WAIT

    user = store.user
    if user is None:
        return GuardDecision(GuardOutcome.REDIRECT, LOGIN_PATH)

    if admin_required and not user.get("superAdmin"):
        return GuardDecision(GuardOutcome.REDIRECT, HOME_PATH)

    if required_roles is not None and store.role not in set(required_roles):
        return GuardDecision(GuardOutcome.REDIRECT, landing_path(store.role))

    return ALLOW


async def protected(
    session: AuthSession,
    *,
    admin_required: bool = False,
    required_roles: Iterable[Role] | None = None,
) -> GuardDecision:
    """Load the session if needed, then evaluate access."""
    await session.current_user()
    return evaluate_access(
        session.store,
        admin_required=admin_required,
        required_roles=required_roles,
    )
