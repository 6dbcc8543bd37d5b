"""How a session artifact travels between client and server."""

from enum import StrEnum


class TransportMode(StrEnum):
    """Credential transport schemes.

    A deployment uses exactly one of them; the server never accepts both.
    """

    COOKIE = "cookie"
    TOKEN = "token"  # noqa: S105
