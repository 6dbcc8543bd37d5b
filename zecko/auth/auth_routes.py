"""Authentication routes for the FastAPI application.

Provides endpoints for login, registration, logout, the current user and
session verification.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from zecko.common import TransportMode, User

from .models import (
    AuthResponse,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    UserResponse,
    VerifyResponse,
)
from .queries import AuthQueries
from .rate_limiter import LoginRateLimiter
from .security_manager import SecurityManager
from .validation import Validate

LOG = logging.getLogger(__name__)
LOG.setLevel(logging.DEBUG)


def _client_address(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def _issue_session(
    user: User,
    response: Response,
    security_manager: SecurityManager,
    validate: Validate,
    *,
    cookie_secure: bool,
) -> AuthResponse:
    """Hand the session artifact to the client through the active transport."""
    token = security_manager.create_access_token(user.to_record())
    user_response = UserResponse.from_user(user)

    if validate.transport_mode == TransportMode.COOKIE:
        response.set_cookie(
            validate.cookie_name,
            token,
            max_age=security_manager.expire_minutes * 60,
            httponly=True,
            secure=cookie_secure,
            samesite="lax",
        )
        return AuthResponse(user=user_response)

    return AuthResponse(user=user_response, token=token)


async def _login(
    credentials: LoginRequest,
    request: Request,
    auth_queries: AuthQueries,
    security_manager: SecurityManager,
    rate_limiter: LoginRateLimiter,
) -> User:
    identifier = credentials.identifier
    if not identifier or not credentials.password:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email and password are required",
        )

    address = _client_address(request)
    allowance = await rate_limiter.check(address)
    if not allowance.allowed:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=(
                "Too many login attempts. "
                f"Please try again in {allowance.lockout_minutes} minutes."
            ),
        )

    user = await auth_queries.authenticate_user(
        identifier,
        credentials.password,
        security_manager.check_password,
    )
    await rate_limiter.record(
        address,
        identifier,
        successful=user is not None,
        user_id=user.id if user else None,
    )

    if not user:
        LOG.info("Failed login attempt from %s", address)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )

    LOG.info("Login successful for user: %s", user.id)
    return user


async def _register(
    registration: RegisterRequest,
    auth_queries: AuthQueries,
    security_manager: SecurityManager,
) -> User:
    error = security_manager.validate_password(registration.password)
    if error:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=error)

    if await auth_queries.email_exists(registration.email):
        LOG.info("Registration rejected: email already registered")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered",
        )

    user, error = await auth_queries.create_account(
        registration,
        security_manager.hash_password(registration.password),
    )
    if error or user is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=error or "Registration failed",
        )

    LOG.info("User created: ID %s, type %s", user.id, user.role)
    return user


def configure_auth_router(  # noqa: PLR0913
    router: APIRouter,
    auth_queries: AuthQueries,
    security_manager: SecurityManager,
    validate: Validate,
    rate_limiter: LoginRateLimiter,
    *,
    cookie_secure: bool = False,
) -> APIRouter:
    """Configure the authentication router.

    :param router: The APIRouter to configure
    :param auth_queries: The AuthQueries instance for database operations
    :param security_manager: The SecurityManager instance for JWT operations
    :param validate: Dependency validators bound to the active transport
    :param rate_limiter: Failed login throttling
    :param cookie_secure: Mark the session cookie Secure in cookie mode
    :return: The configured APIRouter
    """

    @router.post(
        "/login",
        response_model=AuthResponse,
        response_model_exclude_unset=True,
    )
    async def login(
        credentials: LoginRequest,
        request: Request,
        response: Response,
    ) -> AuthResponse:
        user = await _login(
            credentials,
            request,
            auth_queries,
            security_manager,
            rate_limiter,
        )
        return _issue_session(
            user,
            response,
            security_manager,
            validate,
            cookie_secure=cookie_secure,
        )

    @router.post(
        "/register",
        response_model=AuthResponse,
        response_model_exclude_unset=True,
        status_code=status.HTTP_201_CREATED,
    )
    async def register(
        registration: RegisterRequest,
        response: Response,
    ) -> AuthResponse:
        user = await _register(registration, auth_queries, security_manager)
        return _issue_session(
            user,
            response,
            security_manager,
            validate,
            cookie_secure=cookie_secure,
        )

    @router.post("/logout", response_model=MessageResponse)
    def logout(response: Response) -> MessageResponse:
        """Tokens are discarded client-side; the cookie is cleared here."""
        if validate.transport_mode == TransportMode.COOKIE:
            response.delete_cookie(validate.cookie_name)
        return MessageResponse(message="Logged out successfully")

    @router.get("/user", response_model=UserResponse)
    def get_current_user(
        user: Annotated[User, Depends(validate.current_user)],
    ) -> UserResponse:
        return UserResponse.from_user(user)

    @router.get(
        "/auth/verify",
        response_model=VerifyResponse,
        response_model_exclude_unset=True,
    )
    def verify(
        user: Annotated[User | None, Depends(validate.optional_user)],
    ) -> VerifyResponse:
        if user is None:
            return VerifyResponse(authenticated=False)
        return VerifyResponse(authenticated=True, user=UserResponse.from_user(user))

    return router
