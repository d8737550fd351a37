"""Pytest configuration and fixtures."""

from collections.abc import AsyncIterator
from pathlib import Path
from unittest.mock import AsyncMock
from uuid import UUID

import pytest
from httpx import ASGITransport, AsyncClient

from meeting_cost.cache import MemoryCache, SafeCache
from meeting_cost.clock import ManualClock
from meeting_cost.config import Settings
from meeting_cost.db.libsql import LibsqlClient
from meeting_cost.events import MemoryEventBus
from meeting_cost.main import app
from meeting_cost.repositories import LedgerStore
from meeting_cost.services.meeting_engine import MeetingEngine
from meeting_cost.services.oracle import (
    PermissionGrant,
    PersonSubject,
    StaticPermissionOracle,
    StaticWageSource,
)

ORG_ID = UUID("0b1e7a52-3c4d-4e5f-8a9b-1c2d3e4f5a6b")
ACTOR_ID = UUID("a1c7e0de-0000-4000-8000-000000000001")
DEFAULT_WAGE = 60.0


@pytest.fixture(autouse=True)
def fast_retries(monkeypatch: pytest.MonkeyPatch) -> None:
    """Retry transient failures without sleeping when no config is injected."""
    from meeting_cost.services import retry

    monkeypatch.setattr(retry.settings, "ledger_retry_wait_seconds", 0.0)


@pytest.fixture
def org_id() -> UUID:
    return ORG_ID


@pytest.fixture
def actor_id() -> UUID:
    return ACTOR_ID


@pytest.fixture
async def db(tmp_path: Path) -> AsyncIterator[LibsqlClient]:
    """Connected client on a throwaway database file."""
    client = LibsqlClient(url=f"file:{tmp_path / 'ledger.db'}")
    await client.connect()
    yield client
    await client.close()


@pytest.fixture
async def ledger(db: LibsqlClient) -> LedgerStore:
    store = LedgerStore(db, timeout=5.0)
    await store.initialize()
    return store


@pytest.fixture
def cache_backend() -> MemoryCache:
    return MemoryCache()


@pytest.fixture
def cache(cache_backend: MemoryCache) -> SafeCache:
    return SafeCache(cache_backend)


@pytest.fixture
async def bus() -> AsyncIterator[MemoryEventBus]:
    event_bus = MemoryEventBus()
    yield event_bus
    await event_bus.close()


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def oracle() -> StaticPermissionOracle:
    """Oracle granting the test actor every meeting activity in the org."""
    return StaticPermissionOracle(
        grants=[
            PermissionGrant(
                subject=PersonSubject(ACTOR_ID),
                org_id=ORG_ID,
                resource_kind="meeting",
                activity="*",
            )
        ]
    )


@pytest.fixture
def wages() -> StaticWageSource:
    return StaticWageSource(org_wages={ORG_ID: DEFAULT_WAGE})


@pytest.fixture
def audit() -> AsyncMock:
    sink = AsyncMock()
    sink.log = AsyncMock()
    return sink


@pytest.fixture
def engine(
    ledger: LedgerStore,
    cache: SafeCache,
    bus: MemoryEventBus,
    oracle: StaticPermissionOracle,
    wages: StaticWageSource,
    audit: AsyncMock,
    clock: ManualClock,
) -> MeetingEngine:
    return MeetingEngine(
        ledger=ledger,
        cache=cache,
        bus=bus,
        oracle=oracle,
        wages=wages,
        audit=audit,
        clock=clock,
        config=Settings(ledger_retry_wait_seconds=0.0),
    )


@pytest.fixture
async def client(
    ledger: LedgerStore,
    cache: SafeCache,
    bus: MemoryEventBus,
    engine: MeetingEngine,
) -> AsyncIterator[AsyncClient]:
    """Create async test client for FastAPI app with a test ledger."""
    # Set up app state
    app.state.ledger = ledger
    app.state.cache = cache
    app.state.event_bus = bus
    app.state.engine = engine

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    # Clean up app state
    del app.state.ledger
    del app.state.cache
    del app.state.event_bus
    del app.state.engine
