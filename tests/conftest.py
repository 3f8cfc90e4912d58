"""Shared fixtures: in-memory database, event recording, mock Redis."""

import time
from collections.abc import AsyncGenerator
from typing import Any

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from championship.models import Base
from championship.tournament.event_bus import TournamentEventBus
from championship.tournament.models import TournamentEvent, TournamentEventType
from championship.utils.db import create_engine_for, create_session_factory

from tests.factories import FakeClock

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


# =============================================================================
# Mocks
# =============================================================================


class MockRedis:
    """Mock Redis client recording stream appends."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.streams: dict[str, list[dict[str, Any]]] = {}
        self.closed = False

    async def xadd(self, stream, data, maxlen=None, approximate=False):
        if self.fail:
            raise ConnectionError("redis unavailable")
        entries = self.streams.setdefault(stream, [])
        entries.append(dict(data))
        return f"{int(time.time() * 1000)}-{len(entries)}"

    async def ping(self):
        return True

    async def aclose(self):
        self.closed = True


class EventRecorder:
    """Collects every event published on a bus."""

    def __init__(self, bus: TournamentEventBus):
        self.events: list[TournamentEvent] = []
        bus.subscribe(set(TournamentEventType), self._record, inline=True)

    async def _record(self, event: TournamentEvent) -> None:
        self.events.append(event)

    @property
    def types(self) -> list[str]:
        return [e.event_type.value for e in self.events]

    def of_type(self, event_type: TournamentEventType) -> list[TournamentEvent]:
        return [e for e in self.events if e.event_type == event_type]

    def clear(self) -> None:
        self.events.clear()


# =============================================================================
# Fixtures
# =============================================================================


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory database per test."""
    engine = create_engine_for(TEST_DATABASE_URL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(engine)


@pytest.fixture
def event_bus() -> TournamentEventBus:
    return TournamentEventBus()


@pytest.fixture
def recorder(event_bus: TournamentEventBus) -> EventRecorder:
    return EventRecorder(event_bus)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def mock_redis() -> MockRedis:
    return MockRedis()
