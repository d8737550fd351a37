"""FastAPI application entry point."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from meeting_cost.api.router import api_router
from meeting_cost.cache import MemoryCache, RedisCache, SafeCache
from meeting_cost.clock import SystemClock
from meeting_cost.config import Settings, settings
from meeting_cost.db.libsql import LibsqlClient
from meeting_cost.errors import MeetingCostError, status_code_for
from meeting_cost.events import MemoryEventBus, RedisEventBus
from meeting_cost.repositories import LedgerStore
from meeting_cost.services.audit import LoggingAuditSink
from meeting_cost.services.meeting_engine import MeetingEngine
from meeting_cost.services.oracle import (
    CachedPermissionOracle,
    PolicyDocument,
    StaticPermissionOracle,
    StaticWageSource,
    load_policy,
)

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def _build_cache_and_bus(config: Settings):
    """Redis-backed cache and bus when configured, in-process otherwise."""
    if config.redis_url:
        logger.info("Using Redis cache and event bus")
        return RedisCache.from_url(config.redis_url), RedisEventBus.from_url(config.redis_url)
    logger.info("REDIS_URL not set - using in-process cache and event bus")
    return MemoryCache(), MemoryEventBus()


def _load_policy(config: Settings) -> PolicyDocument:
    if config.policy_path:
        return load_policy(config.policy_path)
    logger.warning("POLICY_PATH not set - every permission check will be denied")
    return PolicyDocument()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan management.

    Startup:
    - Connect the ledger database and create its schema
    - Build cache, event bus, oracles and the meeting engine

    Shutdown:
    - Close the event bus, cache and database connection
    """
    logger.info(f"Starting {settings.app_name}...")

    db = LibsqlClient()
    await db.connect()
    app.state.db = db
    logger.info(f"Database connected: {db.url}")

    ledger = LedgerStore(db)
    await ledger.initialize()
    app.state.ledger = ledger
    logger.info("Ledger schema initialized")

    cache_backend, bus = _build_cache_and_bus(settings)
    cache = SafeCache(cache_backend)
    app.state.cache = cache
    app.state.event_bus = bus

    policy = _load_policy(settings)
    oracle = CachedPermissionOracle(
        StaticPermissionOracle.from_policy(policy),
        cache,
        settings.permission_cache_ttl_seconds,
    )

    app.state.engine = MeetingEngine(
        ledger=ledger,
        cache=cache,
        bus=bus,
        oracle=oracle,
        wages=StaticWageSource.from_policy(policy),
        audit=LoggingAuditSink(),
        clock=SystemClock(),
        config=settings,
    )
    logger.info("Meeting engine initialized")

    yield

    logger.info(f"Shutting down {settings.app_name}...")
    await bus.close()
    await cache_backend.close()
    await db.close()
    logger.info("Database connection closed")


app = FastAPI(
    title=settings.app_name,
    description="Real-time meeting cost tracking",
    version=settings.app_version,
    lifespan=lifespan,
)


@app.exception_handler(MeetingCostError)
async def meeting_cost_error_handler(request: Request, exc: MeetingCostError) -> JSONResponse:
    return JSONResponse(
        status_code=status_code_for(exc.code),
        content={"code": exc.code, "message": exc.message, "details": exc.details},
    )


app.include_router(api_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "meeting_cost.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
