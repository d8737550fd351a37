"""Meeting event envelope carried on the bus."""

from enum import StrEnum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class EventType(StrEnum):
    """Event types published on a meeting's topic."""

    STARTED = "meeting:started"
    STOPPED = "meeting:stopped"
    ATTENDEE_COUNT = "meeting:attendee_count"
    AVERAGE_WAGE = "meeting:average_wage"
    COST = "meeting:cost"
    PARTICIPANT = "meeting:participant"


class MeetingEvent(BaseModel):
    """JSON envelope ``{"type", "meeting_id", "payload"}``.

    Events are immutable records of a committed mutation. Delivery is
    best-effort; the ledger stays the source of truth.
    """

    model_config = ConfigDict(frozen=True)

    type: EventType = Field(description="What happened")
    meeting_id: UUID = Field(description="Meeting the event belongs to")
    payload: Any = Field(default=None, description="Arbitrary JSON body")

    def to_json(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_json(cls, data: str | bytes) -> "MeetingEvent":
        return cls.model_validate_json(data)
