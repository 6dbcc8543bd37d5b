"""All queries related to accounts, authentication and login attempts.

Using the AuthQueries class as a repository for
authentication-related queries.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime
from typing import TYPE_CHECKING

import aiosqlite

from zecko.common import Role, User

if TYPE_CHECKING:
    from collections.abc import Callable

    from aiosqlite import Connection

    from .models import RegisterRequest

LOGGER = logging.getLogger(__name__)
LOGGER.setLevel(logging.DEBUG)


class AuthQueries:
    """Repository for authentication-related queries."""

    CREATE_USERS_TABLE = """
        CREATE TABLE IF NOT EXISTS users (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            email TEXT UNIQUE NOT NULL,
            hashed_password BLOB NOT NULL,
            user_type TEXT NOT NULL DEFAULT 'free',
            super_admin INTEGER NOT NULL DEFAULT 0,
            subscription_active INTEGER NOT NULL DEFAULT 0,
            subscription_tier TEXT NOT NULL DEFAULT 'none',
            country_code TEXT NOT NULL DEFAULT 'GB',
            phone_number TEXT,
            business_name TEXT,
            company_number TEXT UNIQUE,
            vat_number TEXT UNIQUE,
            utr_number TEXT UNIQUE,
            ein_number TEXT UNIQUE,
            state_registration_number TEXT,
            registered_state TEXT,
            payment_frequency TEXT,
            active INTEGER NOT NULL DEFAULT 1,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        );
        """

    CREATE_LOGIN_ATTEMPTS_TABLE = """
        CREATE TABLE IF NOT EXISTS login_attempts (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            ip_address TEXT NOT NULL,
            email TEXT,
            successful INTEGER NOT NULL,
            user_id INTEGER,
            created_at TEXT NOT NULL
        );
        """

    USER_COLUMNS = """
        id, email, user_type, super_admin, subscription_active,
        subscription_tier, country_code, business_name, phone_number
        """

    COUNT_USERS = """SELECT COUNT(*) FROM users;"""

    GET_USER_AUTH_INFO = f"""
        SELECT hashed_password, {USER_COLUMNS}
        FROM users WHERE email = ? AND active = 1;
        """  # noqa: S608

    GET_USER_BY_ID = f"""
        SELECT {USER_COLUMNS} FROM users WHERE id = ? AND active = 1;
        """  # noqa: S608

    EMAIL_EXISTS = """
        SELECT 1 FROM users WHERE email = ?;
        """

    ADD_USER = """
        INSERT INTO users (
            email, hashed_password, user_type, super_admin, subscription_active,
            subscription_tier, country_code, phone_number, business_name,
            company_number, vat_number, utr_number, ein_number,
            state_registration_number, registered_state, payment_frequency
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
        """

    ADD_LOGIN_ATTEMPT = """
        INSERT INTO login_attempts (ip_address, email, successful, user_id, created_at)
        VALUES (?, ?, ?, ?, ?);
        """

    RECENT_FAILED_ATTEMPTS = """
        SELECT COUNT(*), MAX(created_at) FROM login_attempts
        WHERE ip_address = ? AND successful = 0 AND created_at >= ?;
        """

    def __init__(self, connection: Connection) -> None:
        self.connection = connection

    @classmethod
    async def create(cls, db_path: str) -> AuthQueries:
        """Create an AuthQueries instance with an aiosqlite connection.

        :param db_path: Path to the SQLite database file
        :return: Configured AuthQueries instance
        """
        connection = await aiosqlite.connect(db_path)
        return cls(connection)

    async def close(self) -> None:
        """Close the database connection."""
        await self.connection.close()

    @staticmethod
    def _row_to_user(row: tuple) -> User:
        (
            user_id,
            email,
            user_type,
            super_admin,
            subscription_active,
            subscription_tier,
            country_code,
            business_name,
            phone_number,
        ) = row
        return User(
            id=int(user_id),
            email=email,
            role=Role(user_type),
            super_admin=bool(super_admin),
            subscription_active=bool(subscription_active),
            subscription_tier=subscription_tier,
            country_code=country_code,
            business_name=business_name,
            phone_number=phone_number,
        )

    async def initialize_tables(self) -> None:
        """Create the users and login_attempts tables if they do not exist.

        This method should be called during application startup.
        """
        try:
            await self.connection.execute(AuthQueries.CREATE_USERS_TABLE)
            await self.connection.execute(AuthQueries.CREATE_LOGIN_ATTEMPTS_TABLE)
            await self.connection.commit()
        except sqlite3.Error:
            await self.connection.rollback()
            LOGGER.exception("Error initializing tables")
            raise

    async def count_users(self) -> int:
        """Return the number of users in the users table."""
        cursor = await self.connection.execute(AuthQueries.COUNT_USERS)
        result = await cursor.fetchone()
        return result[0] if result else 0

    async def authenticate_user(
        self,
        email: str,
        password: str,
        check_password: Callable[[str, bytes], bool],
    ) -> User | None:
        """Look up an active user and check their password.

        :param email: The account email
        :param password: The plaintext password to verify
        :param check_password: Comparison of plaintext against the stored hash
        :return: The User if authentication is successful, None otherwise
        """
        cursor = await self.connection.execute(
            AuthQueries.GET_USER_AUTH_INFO,
            (email.strip().lower(),),
        )
        row = await cursor.fetchone()
        if row is None:
            return None

        stored_hashed_password, *user_row = row
        if not check_password(password, stored_hashed_password):
            return None
        return self._row_to_user(tuple(user_row))

    async def get_user_by_id(self, user_id: int) -> User | None:
        """Fetch an active user by primary key."""
        cursor = await self.connection.execute(AuthQueries.GET_USER_BY_ID, (user_id,))
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_user(tuple(row))

    async def email_exists(self, email: str) -> bool:
        cursor = await self.connection.execute(
            AuthQueries.EMAIL_EXISTS,
            (email.strip().lower(),),
        )
        return await cursor.fetchone() is not None

    async def create_account(
        self,
        registration: RegisterRequest,
        hashed_password: bytes,
        *,
        super_admin: bool = False,
    ) -> tuple[User | None, str | None]:
        """Create a new account from a validated registration payload.

        Free accounts are active immediately. Business and vendor accounts
        start with an inactive subscription on the tier matching their role.

        :param registration: The validated registration payload
        :param hashed_password: bcrypt hash of the chosen password
        :param super_admin: Whether the account gets administrator rights
        :return: (user, None) on success, (None, error message) otherwise
        """
        role = registration.user_type
        if role.requires_subscription:
            subscription_active, subscription_tier = False, str(role)
        else:
            subscription_active, subscription_tier = True, "none"

        try:
            cursor = await self.connection.execute(
                AuthQueries.ADD_USER,
                (
                    registration.email,
                    hashed_password,
                    str(role),
                    int(super_admin),
                    int(subscription_active),
                    subscription_tier,
                    registration.country_code,
                    registration.phone_number,
                    registration.business_name,
                    registration.company_number,
                    registration.vat_number,
                    registration.utr_number,
                    registration.ein_number,
                    registration.state_registration_number,
                    registration.registered_state,
                    registration.payment_frequency,
                ),
            )
            await self.connection.commit()
        except sqlite3.IntegrityError as e:
            await self.connection.rollback()
            LOGGER.info("Rejected duplicate registration: %s", e)
            if "users.email" in str(e):
                return None, "Email already registered"
            return None, "Business identifier already registered"
        except sqlite3.Error:
            await self.connection.rollback()
            LOGGER.exception("Error creating account for %s", registration.email)
            return None, "Registration failed"

        user = await self.get_user_by_id(cursor.lastrowid)
        return user, None

    async def record_login_attempt(
        self,
        ip_address: str,
        email: str | None,
        *,
        successful: bool,
        attempted_at: datetime,
        user_id: int | None = None,
    ) -> None:
        """Store one login attempt for rate limiting."""
        try:
            await self.connection.execute(
                AuthQueries.ADD_LOGIN_ATTEMPT,
                (
                    ip_address,
                    email,
                    int(successful),
                    user_id if successful else None,
                    attempted_at.isoformat(timespec="microseconds"),
                ),
            )
            await self.connection.commit()
        except sqlite3.Error:
            await self.connection.rollback()
            LOGGER.exception("Error recording login attempt from %s", ip_address)

    async def count_recent_failed_attempts(
        self,
        ip_address: str,
        since: datetime,
    ) -> tuple[int, datetime | None]:
        """Count failed logins from an address since a point in time.

        :param ip_address: Client address
        :param since: Start of the lookback window
        :return: (failed attempt count, time of the most recent failure)
        """
        cursor = await self.connection.execute(
            AuthQueries.RECENT_FAILED_ATTEMPTS,
            (ip_address, since.isoformat(timespec="microseconds")),
        )
        row = await cursor.fetchone()
        if not row or not row[0]:
            return 0, None
        return int(row[0]), datetime.fromisoformat(row[1])
