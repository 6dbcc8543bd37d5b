"""Tests for the account repository and login throttling."""

from datetime import UTC, datetime, timedelta

import pytest

from zecko.auth import AuthQueries, LoginRateLimiter, SecurityManager
from zecko.auth.models import RegisterRequest
from zecko.common import Role

TEST_PASSWORD = "correct-horse-battery"  # noqa: S105


def _free_registration(email: str = "Free@Example.com") -> RegisterRequest:
    return RegisterRequest(email=email, password=TEST_PASSWORD, user_type=Role.FREE)


def _business_registration(
    email: str = "biz@example.com",
    company_number: str = "12345678",
) -> RegisterRequest:
    return RegisterRequest(
        email=email,
        password=TEST_PASSWORD,
        user_type=Role.BUSINESS,
        country_code="GB",
        company_number=company_number,
    )


@pytest.mark.asyncio
class TestAuthQueries:
    """Test suite for account persistence."""

    async def test_empty_database(self, auth_queries: AuthQueries) -> None:
        assert await auth_queries.count_users() == 0
        assert await auth_queries.get_user_by_id(1) is None

    async def test_free_account_is_active_immediately(
        self,
        auth_queries: AuthQueries,
    ) -> None:
        """Test the subscription defaults of a free account."""
        user, error = await auth_queries.create_account(
            _free_registration(),
            SecurityManager.hash_password(TEST_PASSWORD),
        )

        assert error is None
        assert user is not None
        assert user.email == "free@example.com"
        assert user.role is Role.FREE
        assert user.subscription_active
        assert user.subscription_tier == "none"

    async def test_paid_account_waits_for_subscription(
        self,
        auth_queries: AuthQueries,
    ) -> None:
        """Test that business accounts start on an inactive paid tier."""
        user, error = await auth_queries.create_account(
            _business_registration(),
            SecurityManager.hash_password(TEST_PASSWORD),
        )

        assert error is None
        assert user is not None
        assert not user.subscription_active
        assert user.subscription_tier == "business"

    async def test_duplicate_email(self, auth_queries: AuthQueries) -> None:
        hashed = SecurityManager.hash_password(TEST_PASSWORD)
        await auth_queries.create_account(_free_registration(), hashed)

        user, error = await auth_queries.create_account(_free_registration(), hashed)

        assert user is None
        assert error == "Email already registered"
        assert await auth_queries.email_exists("FREE@example.com")

    async def test_duplicate_business_identifier(
        self,
        auth_queries: AuthQueries,
    ) -> None:
        hashed = SecurityManager.hash_password(TEST_PASSWORD)
        await auth_queries.create_account(_business_registration(), hashed)

        user, error = await auth_queries.create_account(
            _business_registration(email="other@example.com"),
            hashed,
        )

        assert user is None
        assert error == "Business identifier already registered"

    async def test_authenticate_user(self, auth_queries: AuthQueries) -> None:
        """Test that only the right password authenticates."""
        created, _ = await auth_queries.create_account(
            _free_registration(),
            SecurityManager.hash_password(TEST_PASSWORD),
        )

        user = await auth_queries.authenticate_user(
            " free@example.com ",
            TEST_PASSWORD,
            SecurityManager.check_password,
        )
        assert user == created

        assert (
            await auth_queries.authenticate_user(
                "free@example.com",
                "wrong-password",
                SecurityManager.check_password,
            )
            is None
        )
        assert (
            await auth_queries.authenticate_user(
                "nobody@example.com",
                TEST_PASSWORD,
                SecurityManager.check_password,
            )
            is None
        )

    async def test_failed_attempt_window(self, auth_queries: AuthQueries) -> None:
        """Test that only recent failures from the same address are counted."""
        now = datetime.now(UTC)
        await auth_queries.record_login_attempt(
            "10.0.0.1",
            "a@b.com",
            successful=False,
            attempted_at=now - timedelta(hours=1),
        )
        await auth_queries.record_login_attempt(
            "10.0.0.1",
            "a@b.com",
            successful=False,
            attempted_at=now - timedelta(minutes=1),
        )
        await auth_queries.record_login_attempt(
            "10.0.0.1",
            "a@b.com",
            successful=True,
            attempted_at=now,
            user_id=1,
        )
        await auth_queries.record_login_attempt(
            "10.0.0.2",
            "a@b.com",
            successful=False,
            attempted_at=now,
        )

        count, latest = await auth_queries.count_recent_failed_attempts(
            "10.0.0.1",
            now - timedelta(minutes=15),
        )

        assert count == 1
        assert latest == now - timedelta(minutes=1)


@pytest.mark.asyncio
class TestLoginRateLimiter:
    """Test suite for failed login lockouts."""

    async def test_allows_until_limit(self, auth_queries: AuthQueries) -> None:
        limiter = LoginRateLimiter(auth_queries, max_attempts=3, lockout_minutes=15)
        now = datetime.now(UTC)

        for _ in range(2):
            await limiter.record("10.0.0.1", "a@b.com", successful=False, now=now)

        allowance = await limiter.check("10.0.0.1", now=now)
        assert allowance.allowed
        assert allowance.remaining_attempts == 1

    async def test_locks_out_after_limit(self, auth_queries: AuthQueries) -> None:
        """Test the lockout and the minutes reported until it ends."""
        limiter = LoginRateLimiter(auth_queries, max_attempts=3, lockout_minutes=15)
        now = datetime.now(UTC)

        for _ in range(3):
            await limiter.record("10.0.0.1", "a@b.com", successful=False, now=now)

        allowance = await limiter.check("10.0.0.1", now=now + timedelta(minutes=5))
        assert not allowance.allowed
        assert allowance.lockout_minutes == 10

        assert (await limiter.check("10.0.0.2", now=now)).allowed

    async def test_lockout_expires(self, auth_queries: AuthQueries) -> None:
        limiter = LoginRateLimiter(auth_queries, max_attempts=3, lockout_minutes=15)
        now = datetime.now(UTC)

        for _ in range(3):
            await limiter.record("10.0.0.1", "a@b.com", successful=False, now=now)

        later = now + timedelta(minutes=16)
        assert (await limiter.check("10.0.0.1", now=later)).allowed
