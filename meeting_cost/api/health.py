"""Health check endpoints for monitoring and orchestration."""

from datetime import UTC, datetime

from fastapi import APIRouter, Request
from pydantic import BaseModel

from meeting_cost.config import settings

router = APIRouter(prefix="/health", tags=["health"])


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    version: str
    environment: str


class LivenessResponse(BaseModel):
    status: str


class ReadinessResponse(BaseModel):
    """Overall readiness plus one entry per dependency."""

    status: str
    checks: dict[str, str]


@router.get("/", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(UTC),
        version=settings.app_version,
        environment=settings.app_env,
    )


@router.get("/live", response_model=LivenessResponse)
async def liveness() -> LivenessResponse:
    """Liveness probe - app is running."""
    return LivenessResponse(status="alive")


async def _component_status(component) -> str:
    if component is None:
        return "not_configured"
    try:
        return "ok" if await component() else "failed"
    except Exception:
        return "failed"


@router.get("/ready", response_model=ReadinessResponse)
async def readiness(request: Request) -> ReadinessResponse:
    """Readiness probe - app can serve traffic.

    Checks:
    - Ledger database answers a trivial query
    - Cache backend answers a ping (a failing cache degrades, it does not
      make the service unready)
    """
    state = request.app.state
    ledger = getattr(state, "ledger", None)
    cache = getattr(state, "cache", None)

    checks: dict[str, str] = {
        "api": "ok",
        "database": await _component_status(ledger.is_healthy if ledger else None),
        "cache": await _component_status(cache.ping if cache else None),
    }

    ready = checks["database"] == "ok"
    return ReadinessResponse(status="ready" if ready else "not_ready", checks=checks)
