"""Password and JWT utility functions.

Includes password requirement checks, hashing, JWT token creation and
verification.
"""

import getpass
import logging
import os
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
from bcrypt import checkpw, gensalt, hashpw

LOGGER = logging.getLogger(__name__)
LOGGER.setLevel(logging.DEBUG)


@dataclass
class TokenClaims:
    """Identity carried inside a verified access token."""

    user_id: int
    email: str
    user_type: str
    subscription_active: bool
    subscription_tier: str


@dataclass
class SecurityManager:
    """Manager for security configurations and validations.

    :param str secret_key: Secret key for JWT signing (generated if not provided)
    :param str algorithm: JWT signing algorithm
    :param int expire_minutes: Token expiration time in minutes
    :param int password_min_length: Minimum length for passwords
    """

    DEFAULT_JWT_ALGORITHM = "HS512"
    DEFAULT_TOKEN_EXPIRE_MINUTES = 60 * 24
    DEFAULT_PASSWORD_MIN_LENGTH = 8
    MINIMUM_JWT_SECRET_KEY_LENGTH = 32

    secret_key: str | None = None
    algorithm: str = DEFAULT_JWT_ALGORITHM
    expire_minutes: int = DEFAULT_TOKEN_EXPIRE_MINUTES
    password_min_length: int = DEFAULT_PASSWORD_MIN_LENGTH

    def __post_init__(self) -> None:
        """Generate secret key if not provided."""
        if (
            self.secret_key is None
            or len(self.secret_key) < self.MINIMUM_JWT_SECRET_KEY_LENGTH
        ):
            self.secret_key = os.urandom(64).hex()

    def validate_password(self, password: str) -> str | None:
        """Validate password against configured requirements.

        :param str password: The password to validate
        :return: An error message if the password does not meet requirements,
        None otherwise
        """
        if len(password) >= self.password_min_length:
            return None

        return f"Password must be at least {self.password_min_length} characters"

    @staticmethod
    def hash_password(password: str) -> bytes:
        """Hash a password with a fresh bcrypt salt."""
        return hashpw(password.encode(), gensalt())

    @staticmethod
    def check_password(password: str, hashed_password: bytes) -> bool:
        """Compare a plaintext password with a stored bcrypt hash."""
        return checkpw(password.encode(), hashed_password)

    def initialize_admin_account(self) -> tuple[str, str]:
        """Prompt for the first admin account on the command line.

        :return: A tuple of (email, password)
        """
        email = input("Please enter the admin email: ")
        admin_password = None
        while not admin_password:
            admin_password = getpass.getpass("Please enter the admin password: ")
            error = self.validate_password(admin_password)
            if error:
                LOGGER.error(error)
                admin_password = None
                continue
            admin_password_confirm = getpass.getpass(
                "Please re-enter the admin password: ",
            )
            if admin_password != admin_password_confirm:
                LOGGER.error("Passwords do not match. Please try again.")
                admin_password = None
                continue
        return email, admin_password

    def create_access_token(self, user_record: dict[str, Any]) -> str:
        """Create a new JWT access token for a user record.

        :param user_record: The camelCase user record the token identifies
        :return: A JWT access token as a string
        """
        now = datetime.now(UTC)
        payload = {
            "sub": str(user_record["id"]),
            "email": user_record["email"],
            "userType": user_record["userType"],
            "subscriptionActive": bool(user_record["subscriptionActive"]),
            "subscriptionTier": user_record["subscriptionTier"],
            "exp": now + timedelta(minutes=self.expire_minutes),
            "iat": now,
            "type": "access_token",
        }

        return jwt.encode(payload, self.secret_key, algorithm=self.algorithm)

    def verify_token(self, token: str) -> TokenClaims | None:
        """Verify and decode a JWT token.

        :param token: The JWT token string to verify
        :return: The token claims if the token is valid, None otherwise
        """
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
            )
        except jwt.ExpiredSignatureError:
            LOGGER.debug("Rejected expired access token")
            return None
        except jwt.InvalidTokenError:
            return None

        if payload.get("type") != "access_token":
            return None

        subject = payload.get("sub")
        email = payload.get("email")
        if subject is None or email is None or not str(subject).isdigit():
            return None

        return TokenClaims(
            user_id=int(subject),
            email=email,
            user_type=payload.get("userType", "free"),
            subscription_active=bool(payload.get("subscriptionActive", False)),
            subscription_tier=payload.get("subscriptionTier", "none"),
        )
