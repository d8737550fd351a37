"""Meeting model: the aggregate that owns an increment ledger."""

from datetime import datetime
from enum import StrEnum
from uuid import UUID

from pydantic import Field

from meeting_cost.models.base import BaseEntity


class MeetingState(StrEnum):
    """Lifecycle state derived from the meeting row."""

    DRAFT = "draft"
    ACTIVE = "active"
    STOPPED = "stopped"


class Meeting(BaseEntity):
    """A meeting whose cost accrues over a ledger of increments.

    The ``*_cached`` fields are rollups over the closed increments, rebuilt
    whenever an increment is closed.
    """

    org_id: UUID = Field(description="Owning organization")
    created_by: UUID = Field(description="Actor who created the meeting")
    purpose: str = Field(default="", description="Free text, copied to increments")
    started_at: datetime | None = Field(default=None)
    stopped_at: datetime | None = Field(default=None)
    is_active: bool = Field(default=False)

    total_cost_cached: float = Field(default=0.0, ge=0)
    total_duration_cached: int = Field(default=0, ge=0, description="Seconds")
    max_attendees_cached: int = Field(default=0, ge=0)

    external_type: str = Field(default="", description="zoom, teams, slack, google")
    external_id: str = Field(default="", description="Identifier in the external system")

    @property
    def state(self) -> MeetingState:
        if self.is_active:
            return MeetingState.ACTIVE
        if self.started_at is None:
            return MeetingState.DRAFT
        return MeetingState.STOPPED

    @property
    def has_external_ref(self) -> bool:
        return self.external_id != ""
