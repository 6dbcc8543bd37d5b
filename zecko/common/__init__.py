"""Common data models and utilities for the application."""

from .transport import TransportMode
from .user import Role, User

__all__ = ["Role", "TransportMode", "User"]
