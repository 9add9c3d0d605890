"""Unit tests for the memory and SQLite draft session stores.

Both stores are run through the same contract tests; expiry is driven by
an injected clock.
"""

from __future__ import annotations

import pytest
import pytest_asyncio

from src.interfaces.session_store import ISessionStore
from src.providers.session.memory_session_store import MemorySessionStore
from src.providers.session.sqlite_session_store import SQLiteSessionStore


class FakeClock:
    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest_asyncio.fixture(params=["memory", "sqlite"])
async def store(request, tmp_path, clock: FakeClock) -> ISessionStore:
    if request.param == "memory":
        backend: ISessionStore = MemorySessionStore(max_sessions=10, timer=clock)
    else:
        backend = SQLiteSessionStore(db_path=tmp_path / "sessions.db", clock=clock)
    await backend.initialize()
    return backend


class TestSessionStoreContract:
    @pytest.mark.asyncio
    async def test_create_and_get(self, store: ISessionStore, session_factory) -> None:
        session = session_factory()

        assert await store.create(session, ttl=60) is True
        loaded = await store.get(session.session_id)

        assert loaded == session

    @pytest.mark.asyncio
    async def test_create_duplicate_rejected(self, store: ISessionStore, session_factory) -> None:
        session = session_factory()
        await store.create(session, ttl=60)

        assert await store.create(session, ttl=60) is False

    @pytest.mark.asyncio
    async def test_get_missing(self, store: ISessionStore) -> None:
        assert await store.get("session_missing") is None

    @pytest.mark.asyncio
    async def test_compare_and_set(self, store: ISessionStore, session_factory) -> None:
        session = session_factory()
        await store.create(session, ttl=60)
        updated = session.model_copy(update={"version": 1, "title": "New"})

        assert await store.compare_and_set(updated, expected_version=0, ttl=60) is True
        assert (await store.get(session.session_id)).title == "New"

        stale = session.model_copy(update={"version": 1, "title": "Stale"})
        assert await store.compare_and_set(stale, expected_version=0, ttl=60) is False
        assert (await store.get(session.session_id)).title == "New"

    @pytest.mark.asyncio
    async def test_compare_and_set_missing(self, store: ISessionStore, session_factory) -> None:
        assert await store.compare_and_set(session_factory(), expected_version=0, ttl=60) is False

    @pytest.mark.asyncio
    async def test_delete_and_list(self, store: ISessionStore, session_factory) -> None:
        first = session_factory(session_id="session_a")
        second = session_factory(session_id="session_b")
        await store.create(first, ttl=60)
        await store.create(second, ttl=60)

        assert sorted(await store.list_ids()) == ["session_a", "session_b"]
        assert await store.delete("session_a") is True
        assert await store.delete("session_a") is False
        assert await store.list_ids() == ["session_b"]

    @pytest.mark.asyncio
    async def test_expiry(self, store: ISessionStore, session_factory, clock: FakeClock) -> None:
        session = session_factory()
        await store.create(session, ttl=60)

        clock.advance(61)

        assert await store.get(session.session_id) is None
        assert await store.list_ids() == []
        assert await store.compare_and_set(session.model_copy(update={"version": 1}), 0, 60) is False

    @pytest.mark.asyncio
    async def test_write_refreshes_ttl(self, store: ISessionStore, session_factory, clock: FakeClock) -> None:
        session = session_factory()
        await store.create(session, ttl=60)

        clock.advance(50)
        assert await store.compare_and_set(session.model_copy(update={"version": 1}), 0, 60) is True
        clock.advance(50)

        assert await store.get(session.session_id) is not None

    @pytest.mark.asyncio
    async def test_expired_id_can_be_reused(self, store: ISessionStore, session_factory, clock: FakeClock) -> None:
        session = session_factory()
        await store.create(session, ttl=60)
        clock.advance(61)

        assert await store.create(session, ttl=60) is True


class TestMemorySessionStore:
    @pytest.mark.asyncio
    async def test_lru_eviction(self, session_factory, clock: FakeClock) -> None:
        store = MemorySessionStore(max_sessions=2, timer=clock)
        for name in ("a", "b", "c"):
            await store.create(session_factory(session_id=f"session_{name}"), ttl=60)

        assert await store.get("session_a") is None
        assert sorted(await store.list_ids()) == ["session_b", "session_c"]

    def test_provider_name(self) -> None:
        assert MemorySessionStore().get_provider_name() == "memory"


class TestSQLiteSessionStore:
    @pytest.mark.asyncio
    async def test_survives_new_instance(self, tmp_path, session_factory, clock: FakeClock) -> None:
        path = tmp_path / "nested" / "sessions.db"
        first = SQLiteSessionStore(db_path=path, clock=clock)
        await first.initialize()
        await first.create(session_factory(), ttl=60)

        second = SQLiteSessionStore(db_path=path, clock=clock)
        await second.initialize()

        assert (await second.get("session_test")).user_id == "alice"

    @pytest.mark.asyncio
    async def test_initialize_prunes_expired(self, tmp_path, session_factory, clock: FakeClock) -> None:
        store = SQLiteSessionStore(db_path=tmp_path / "s.db", clock=clock)
        await store.initialize()
        await store.create(session_factory(), ttl=10)
        clock.advance(20)

        await store.initialize()
        clock.now = 0.0  # rewind: a pruned row stays gone

        assert await store.get("session_test") is None

    def test_provider_name(self, tmp_path) -> None:
        assert SQLiteSessionStore(db_path=tmp_path / "s.db").get_provider_name() == "sqlite"
