"""Increment model: one contiguous, constant-parameter slice of a meeting."""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from meeting_cost.models.base import BaseEntity


class Increment(BaseEntity):
    """A time slice with fixed attendee count, wage and purpose.

    ``stop_time is None`` marks the open tail of an active meeting. The
    derived fields (``elapsed_time``, ``cost``, ``running_total``) are
    materialized when the increment is closed.
    """

    meeting_id: UUID = Field(description="Owning meeting")
    start_time: datetime = Field(description="Inclusive start of the slice")
    stop_time: datetime | None = Field(default=None, description="Exclusive end")
    attendee_count: int = Field(default=0, ge=0)
    average_wage: float = Field(default=0.0, ge=0, description="Money per hour")
    purpose: str = Field(default="")

    elapsed_time: int = Field(default=0, ge=0, description="Whole seconds")
    cost: float = Field(default=0.0, ge=0)
    running_total: float = Field(default=0.0, ge=0)

    @property
    def is_open(self) -> bool:
        return self.stop_time is None
