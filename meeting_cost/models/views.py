"""Read-side views and query shapes returned by the engine."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from meeting_cost.models.increment import Increment
from meeting_cost.models.meeting import Meeting
from meeting_cost.models.participant import Participant


class MeetingView(BaseModel):
    """Public projection of a meeting row."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    org_id: UUID
    purpose: str
    started_at: datetime | None
    stopped_at: datetime | None
    is_active: bool
    total_cost: float
    total_duration_seconds: int
    max_attendees: int
    created_at: datetime

    @classmethod
    def from_meeting(cls, meeting: Meeting) -> "MeetingView":
        return cls(
            id=meeting.id,
            org_id=meeting.org_id,
            purpose=meeting.purpose,
            started_at=meeting.started_at,
            stopped_at=meeting.stopped_at,
            is_active=meeting.is_active,
            total_cost=meeting.total_cost_cached,
            total_duration_seconds=meeting.total_duration_cached,
            max_attendees=meeting.max_attendees_cached,
            created_at=meeting.created_at,
        )


class CostView(BaseModel):
    """Live cost figures for a meeting (unrounded)."""

    model_config = ConfigDict(frozen=True)

    total_cost: float = 0.0
    total_duration_seconds: int = 0
    cost_per_second: float = 0.0
    cost_per_minute: float = 0.0
    cost_per_hour: float = 0.0


class IncrementView(BaseModel):
    """Public projection of one ledger increment."""

    model_config = ConfigDict(frozen=True)

    id: UUID
    meeting_id: UUID
    start_time: datetime
    stop_time: datetime | None
    attendee_count: int
    average_wage: float
    purpose: str
    elapsed_time: int
    cost: float
    running_total: float

    @classmethod
    def from_increment(cls, increment: Increment) -> "IncrementView":
        return cls(
            id=increment.id,
            meeting_id=increment.meeting_id,
            start_time=increment.start_time,
            stop_time=increment.stop_time,
            attendee_count=increment.attendee_count,
            average_wage=increment.average_wage,
            purpose=increment.purpose,
            elapsed_time=increment.elapsed_time,
            cost=increment.cost,
            running_total=increment.running_total,
        )


class ParticipantView(BaseModel):
    """Public projection of a participant interval."""

    model_config = ConfigDict(frozen=True)

    person_id: UUID
    joined_at: datetime | None
    left_at: datetime | None
    duration: int

    @classmethod
    def from_participant(cls, participant: Participant) -> "ParticipantView":
        return cls(
            person_id=participant.person_id,
            joined_at=participant.joined_at,
            left_at=participant.left_at,
            duration=participant.duration,
        )


class MeetingFilters(BaseModel):
    """Optional filters for listing an organization's meetings."""

    is_active: bool | None = None
    started_after: datetime | None = None
    started_before: datetime | None = None


class Pagination(BaseModel):
    """1-based page selection."""

    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size
