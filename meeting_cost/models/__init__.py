"""Canonical data models for the meeting cost engine.

This module exports the ledger records and read-side views:
- BaseEntity: Base class with id, timestamps, soft-delete marker
- Meeting / MeetingState: The aggregate and its derived lifecycle state
- Increment: One contiguous slice of a meeting's cost ledger
- Participant: Membership intervals (analytics only)
- MeetingView, CostView, IncrementView, ParticipantView: Engine results
- MeetingFilters, Pagination: Listing query shapes
"""

from meeting_cost.models.base import BaseEntity
from meeting_cost.models.increment import Increment
from meeting_cost.models.meeting import Meeting, MeetingState
from meeting_cost.models.participant import Participant
from meeting_cost.models.views import (
    CostView,
    IncrementView,
    MeetingFilters,
    MeetingView,
    Pagination,
    ParticipantView,
)

__all__ = [
    # Base
    "BaseEntity",
    # Ledger records
    "Meeting",
    "MeetingState",
    "Increment",
    "Participant",
    # Views
    "MeetingView",
    "CostView",
    "IncrementView",
    "ParticipantView",
    # Queries
    "MeetingFilters",
    "Pagination",
]
