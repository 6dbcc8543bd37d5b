"""Role router: where each account type lands after signing in."""

from types import MappingProxyType

from zecko.common import Role

HOME_PATH = "/"
SUBSCRIPTION_PATH = "/subscription"

ROLE_LANDING = MappingProxyType(
    {
        Role.FREE: "/leads",
        Role.BUSINESS: "/leads",
        Role.VENDOR: "/vendor/dashboard",
        Role.ADMIN: "/admin",
    },
)


def landing_path(role: object) -> str:
    """Return the landing path for a role.

    Total over its input: unknown values, None and empty strings all map to
    the home path.

    :param role: A Role or the raw ``userType`` string of a user record
    :return: The path to navigate to
    """
    parsed = Role.parse(role)
    if parsed is None:
        return HOME_PATH
    return ROLE_LANDING.get(parsed, HOME_PATH)


def registration_landing_path(role: object) -> str:
    """Paid account types go to checkout before their dashboard."""
    parsed = Role.parse(role)
    if parsed is not None and parsed.requires_subscription:
        return SUBSCRIPTION_PATH
    return landing_path(parsed)
