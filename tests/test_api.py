"""Tests for API endpoints."""

from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from httpx import AsyncClient
from starlette.websockets import WebSocketDisconnect

from meeting_cost.api.events import CLOSE_BAD_REQUEST
from meeting_cost.main import app


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient) -> None:
    """Test basic health check endpoint."""
    response = await client.get("/health/")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert "timestamp" in data
    assert data["version"] == "0.1.0"


@pytest.mark.asyncio
async def test_liveness(client: AsyncClient) -> None:
    response = await client.get("/health/live")
    assert response.status_code == 200
    assert response.json()["status"] == "alive"


@pytest.mark.asyncio
async def test_readiness(client: AsyncClient) -> None:
    """Ledger and cache both answer."""
    response = await client.get("/health/ready")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ready"
    assert data["checks"] == {"api": "ok", "database": "ok", "cache": "ok"}


@pytest.mark.asyncio
async def test_readiness_degraded_cache_stays_ready(client: AsyncClient, cache) -> None:
    """A failing cache is reported but does not block traffic."""
    cache.ping = AsyncMock(return_value=False)
    response = await client.get("/health/ready")
    data = response.json()
    assert data["status"] == "ready"
    assert data["checks"]["cache"] == "failed"


@pytest.mark.asyncio
async def test_readiness_without_database(client: AsyncClient, ledger) -> None:
    ledger.is_healthy = AsyncMock(return_value=False)
    response = await client.get("/health/ready")
    data = response.json()
    assert data["status"] == "not_ready"
    assert data["checks"]["database"] == "failed"


def test_event_stream_requires_actor() -> None:
    """The socket is closed before any engine call when no actor is given."""
    test_client = TestClient(app)
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with test_client.websocket_connect(f"/meetings/{uuid4()}/events"):
            pass
    assert exc_info.value.code == CLOSE_BAD_REQUEST
