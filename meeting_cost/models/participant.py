"""Participant model tracking membership intervals in a meeting."""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from meeting_cost.models.base import BaseEntity


class Participant(BaseEntity):
    """A person's presence in a meeting.

    Not cost-bearing; kept for analytics. ``duration`` accumulates the
    seconds of every closed join/leave interval.
    """

    meeting_id: UUID = Field(description="Meeting joined")
    person_id: UUID = Field(description="Person who joined")
    joined_at: datetime | None = Field(default=None)
    left_at: datetime | None = Field(default=None)
    duration: int = Field(default=0, ge=0, description="Seconds present")

    @property
    def is_present(self) -> bool:
        return self.joined_at is not None and self.left_at is None
