"""API router aggregation."""

from fastapi import APIRouter

from meeting_cost.api.events import router as events_router
from meeting_cost.api.health import router as health_router

api_router = APIRouter()
api_router.include_router(health_router)
# Live meeting event streams (websocket)
api_router.include_router(events_router)
