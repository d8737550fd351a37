"""Websocket endpoint streaming a meeting's live events."""

import logging
from uuid import UUID

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from meeting_cost.errors import ForbiddenError, MeetingCostError, NotFoundError
from meeting_cost.events import EventBusError
from meeting_cost.services.event_stream import EventStreamEndpoint

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/meetings", tags=["events"])

# Application-defined close codes (4000-4999)
CLOSE_BAD_REQUEST = 4400
CLOSE_FORBIDDEN = 4403
CLOSE_NOT_FOUND = 4404
CLOSE_UNAVAILABLE = 4503


class WebSocketConnection:
    """Adapts a Starlette websocket to the subscriber connection protocol."""

    def __init__(self, websocket: WebSocket):
        self._ws = websocket

    async def send_text(self, data: str) -> None:
        await self._ws.send_text(data)

    async def wait_disconnect(self) -> None:
        # Clients do not send anything meaningful; drain until they leave
        try:
            while True:
                await self._ws.receive_text()
        except WebSocketDisconnect:
            return


def _actor_from(websocket: WebSocket) -> UUID | None:
    raw = websocket.headers.get("x-actor-id") or websocket.query_params.get("actor_id")
    if not raw:
        return None
    try:
        return UUID(raw)
    except ValueError:
        return None


@router.websocket("/{meeting_id}/events")
async def meeting_events(websocket: WebSocket, meeting_id: UUID) -> None:
    """Relay events for one meeting until the client disconnects.

    The actor is taken from the ``X-Actor-Id`` header or the ``actor_id``
    query parameter.
    """
    actor_id = _actor_from(websocket)
    if actor_id is None:
        await websocket.close(code=CLOSE_BAD_REQUEST, reason="actor id required")
        return

    await websocket.accept()
    endpoint = EventStreamEndpoint(websocket.app.state.engine)
    try:
        await endpoint.serve(meeting_id, actor_id, WebSocketConnection(websocket))
    except ForbiddenError as e:
        await websocket.close(code=CLOSE_FORBIDDEN, reason=e.message)
        return
    except NotFoundError as e:
        await websocket.close(code=CLOSE_NOT_FOUND, reason=e.message)
        return
    except (MeetingCostError, EventBusError) as e:
        logger.warning(f"Event stream for {meeting_id} failed: {e}")
        await websocket.close(code=CLOSE_UNAVAILABLE, reason="event stream unavailable")
        return

    if websocket.client_state == WebSocketState.CONNECTED:
        await websocket.close()
