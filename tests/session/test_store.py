"""Tests for the session cache state machine."""

import asyncio

import pytest

from zecko.session import SessionState, SessionStore, VerifyResult


class Recorder:
    """Counts store notifications."""

    def __init__(self) -> None:
        self.users: list[dict | None] = []

    def __call__(self, store: SessionStore) -> None:
        self.users.append(store.user)


@pytest.fixture
def recorder(store: SessionStore) -> Recorder:
    listener = Recorder()
    store.subscribe(listener)
    return listener


class TestSetUserAndInvalidate:
    """Test suite for writes to the cache."""

    def test_initial_state(self, store: SessionStore) -> None:
        assert store.user is None
        assert store.state is SessionState.UNAUTHENTICATED
        assert not store.loaded

    def test_set_user_keeps_server_record(
        self,
        store: SessionStore,
        recorder: Recorder,
        vendor_record: dict,
    ) -> None:
        """Test that the exact record object is cached, untouched."""
        snapshot = dict(vendor_record)

        store.set_user(vendor_record)

        assert store.user is vendor_record
        assert store.user == snapshot
        assert store.state is SessionState.AUTHENTICATED
        assert store.loaded
        assert recorder.users == [vendor_record]

    def test_set_user_replaces_rather_than_merges(
        self,
        store: SessionStore,
        vendor_record: dict,
    ) -> None:
        store.set_user({**vendor_record, "legacyField": True})
        store.set_user(vendor_record)

        assert "legacyField" not in store.user

    def test_invalidate_is_idempotent(
        self,
        store: SessionStore,
        recorder: Recorder,
        vendor_record: dict,
    ) -> None:
        """Test that clearing twice notifies once."""
        store.set_user(vendor_record)

        assert store.invalidate("first")
        assert not store.invalidate("second")

        assert store.user is None
        assert store.state is SessionState.UNAUTHENTICATED
        assert recorder.users == [vendor_record, None]

    def test_generation_moves_on_every_identity_change(
        self,
        store: SessionStore,
        vendor_record: dict,
    ) -> None:
        start = store.generation
        store.set_user(vendor_record)
        after_login = store.generation
        store.invalidate("logout", intentional=True)

        assert start < after_login < store.generation
        assert store.intentional_logout

        store.set_user(vendor_record)
        assert not store.intentional_logout

    def test_unsubscribe(self, store: SessionStore, vendor_record: dict) -> None:
        recorder = Recorder()
        unsubscribe = store.subscribe(recorder)
        unsubscribe()
        unsubscribe()

        store.set_user(vendor_record)

        assert recorder.users == []

    def test_role(self, store: SessionStore, vendor_record: dict) -> None:
        assert store.role is None
        store.set_user(vendor_record)
        assert store.role == "vendor"


class TestVerification:
    """Test suite for tagged poll results."""

    def test_begin_requires_session(self, store: SessionStore) -> None:
        assert store.begin_verification() is None

    def test_success_returns_to_authenticated(
        self,
        store: SessionStore,
        vendor_record: dict,
    ) -> None:
        store.set_user(vendor_record)

        tag = store.begin_verification()
        assert store.state is SessionState.VERIFYING

        assert store.apply_verification(tag, VerifyResult(authenticated=True))
        assert store.state is SessionState.AUTHENTICATED
        assert store.user is vendor_record

    def test_rejection_clears(self, store: SessionStore, vendor_record: dict) -> None:
        store.set_user(vendor_record)

        tag = store.begin_verification()
        store.apply_verification(tag, VerifyResult(authenticated=False))

        assert store.user is None
        assert store.state is SessionState.UNAUTHENTICATED

    def test_stale_result_after_logout_is_discarded(
        self,
        store: SessionStore,
        vendor_record: dict,
    ) -> None:
        """Test that an explicit logout wins over a late poll."""
        store.set_user(vendor_record)
        tag = store.begin_verification()

        store.invalidate("logout", intentional=True)
        applied = store.apply_verification(
            tag,
            VerifyResult(authenticated=True, user=vendor_record),
        )

        assert not applied
        assert store.user is None
        assert store.state is SessionState.UNAUTHENTICATED

    def test_stale_result_after_relogin_is_discarded(
        self,
        store: SessionStore,
        vendor_record: dict,
    ) -> None:
        store.set_user(vendor_record)
        tag = store.begin_verification()
        store.set_user({**vendor_record, "id": 2})

        assert not store.apply_verification(tag, VerifyResult(authenticated=False))
        assert store.user["id"] == 2

    def test_abort_restores_state(self, store: SessionStore, vendor_record: dict) -> None:
        store.set_user(vendor_record)
        tag = store.begin_verification()

        store.abort_verification(tag)

        assert store.state is SessionState.AUTHENTICATED
        assert store.user is vendor_record


@pytest.mark.asyncio
class TestLoad:
    """Test suite for the lazy current-user load."""

    async def test_concurrent_loads_share_one_fetch(
        self,
        store: SessionStore,
        vendor_record: dict,
    ) -> None:
        calls = 0

        async def fetch() -> dict:
            nonlocal calls
            calls += 1
            await asyncio.sleep(0.01)
            return vendor_record

        results = await asyncio.gather(store.load(fetch), store.load(fetch))

        assert results == [vendor_record, vendor_record]
        assert calls == 1
        assert store.state is SessionState.AUTHENTICATED

    async def test_none_is_a_valid_answer(self, store: SessionStore) -> None:
        """Test that a signed out answer is cached, not refetched."""
        calls = 0

        async def fetch() -> None:
            nonlocal calls
            calls += 1

        assert await store.load(fetch) is None
        assert await store.load(fetch) is None
        assert calls == 1
        assert store.loaded

    async def test_invalidation_triggers_refetch(
        self,
        store: SessionStore,
        vendor_record: dict,
    ) -> None:
        calls = 0

        async def fetch() -> dict:
            nonlocal calls
            calls += 1
            return vendor_record

        await store.load(fetch)
        store.invalidate("401 from elsewhere")
        await store.load(fetch)

        assert calls == 2

    async def test_load_result_dropped_after_logout(
        self,
        store: SessionStore,
        vendor_record: dict,
    ) -> None:
        """Test that a fetch finishing after logout does not sign the user back in."""
        release = asyncio.Event()

        async def fetch() -> dict:
            await release.wait()
            return vendor_record

        pending = asyncio.create_task(store.load(fetch))
        await asyncio.sleep(0)
        store.invalidate("logout", intentional=True)
        release.set()

        assert await pending is None
        assert store.user is None

    async def test_fetch_errors_propagate(self, store: SessionStore) -> None:
        async def fetch() -> None:
            msg = "boom"
            raise RuntimeError(msg)

        with pytest.raises(RuntimeError, match="boom"):
            await store.load(fetch)
        assert not store.loaded

    async def test_session_loaded_after_logout_is_verified(
        self,
        store: SessionStore,
        vendor_record: dict,
    ) -> None:
        """Test that a session found on the server after a logout is polled normally."""

        async def fetch() -> dict:
            return vendor_record

        store.set_user(vendor_record)
        store.invalidate("logout", intentional=True)

        assert await store.load(fetch) is vendor_record
        assert not store.intentional_logout

        tag = store.begin_verification()
        assert tag is not None
        assert store.apply_verification(tag, VerifyResult(authenticated=False))
        assert store.user is None
        assert store.state is SessionState.UNAUTHENTICATED
