"""FastAPI dependency validators for authentication and authorization."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import Depends, HTTPException, Request, status
from fastapi.security.utils import get_authorization_scheme_param

from zecko.common import Role, TransportMode, User

if TYPE_CHECKING:
    from collections.abc import Callable

    from .queries import AuthQueries
    from .security_manager import SecurityManager

LOGGER = logging.getLogger(__name__)
LOGGER.setLevel(logging.DEBUG)

DEFAULT_COOKIE_NAME = "zecko_session"


class Validate:
    """Holds validator dependencies for FastAPI authentication/authorization.

    Only one credential source is consulted: the bearer header when the
    token transport is active, the session cookie when the cookie
    transport is active.
    """

    def __init__(
        self,
        auth_queries: AuthQueries,
        security_manager: SecurityManager,
        transport_mode: TransportMode = TransportMode.TOKEN,
        cookie_name: str = DEFAULT_COOKIE_NAME,
    ) -> None:
        """Create a new validator instance.

        :param auth_queries: Database connector
        :param security_manager: JWT security manager
        :param transport_mode: Which credential transport this server accepts
        :param cookie_name: Name of the session cookie in cookie mode
        """
        self.auth_queries = auth_queries
        self.security_manager = security_manager
        self.transport_mode = transport_mode
        self.cookie_name = cookie_name

    def extract_credential(self, request: Request) -> str | None:
        """Pull the raw session artifact out of a request."""
        if self.transport_mode == TransportMode.COOKIE:
            return request.cookies.get(self.cookie_name) or None

        scheme, credentials = get_authorization_scheme_param(
            request.headers.get("Authorization"),
        )
        if scheme.lower() != "bearer" or not credentials:
            return None
        return credentials

    async def optional_user(self, request: Request) -> User | None:
        """Resolve the caller, or None when they are not authenticated."""
        credential = self.extract_credential(request)
        if not credential:
            return None

        claims = self.security_manager.verify_token(credential)
        if claims is None:
            LOGGER.debug("Session artifact validation failed")
            return None

        user = await self.auth_queries.get_user_by_id(claims.user_id)
        if user is None:
            LOGGER.debug("Session refers to missing or inactive user %s", claims.user_id)
        return user

    async def current_user(self, request: Request) -> User:
        """Require an authenticated caller."""
        user = await self.optional_user(request)
        if user is None:
            headers = (
                {"WWW-Authenticate": "Bearer"}
                if self.transport_mode == TransportMode.TOKEN
                else None
            )
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Authentication required",
                headers=headers,
            )
        LOGGER.debug("Session validated for user: %s", user.id)
        return user

    def role(self, *allowed_roles: Role) -> Callable[..., User]:
        """Return a role-based dependency validator."""

        def validator(user: User = Depends(self.current_user)) -> User:  # noqa: B008
            if user.role not in allowed_roles and not user.super_admin:
                LOGGER.debug("Role validation failed for user: %s", user.id)
                raise HTTPException(status_code=403, detail="Forbidden")
            return user

        return validator

    async def super_admin(self, request: Request) -> User:
        """Require a caller with administrator rights."""
        user = await self.current_user(request)
        if not user.super_admin:
            LOGGER.debug("Admin validation failed for user: %s", user.id)
            raise HTTPException(status_code=403, detail="Forbidden")
        return user
