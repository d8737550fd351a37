"""Meeting engine: lifecycle state machine and increment cycling.

Every mutation follows the same path:

1. Read the meeting through the cache and ask the oracle for permission.
2. Re-read the meeting from the ledger inside a transaction and check the
   state-machine precondition there (cached rows never drive a transition).
3. Apply the transition, cycling the open increment when a cost parameter
   changes, and rebuild the rollups when an increment was closed.
4. After commit: invalidate the touched cache keys, publish one event on the
   meeting's topic, write the audit record.

Cache, bus and audit failures are logged and never fail the operation.
"""

import math
from typing import Any
from uuid import UUID

import structlog
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from meeting_cost.cache import (
    SafeCache,
    meeting_events_channel,
    meeting_external_key,
    meeting_increments_key,
    meeting_key,
)
from meeting_cost.clock import Clock, SystemClock
from meeting_cost.config import Settings, settings as default_settings
from meeting_cost.errors import (
    ForbiddenError,
    InvalidStateError,
    InvariantViolationError,
    NotFoundError,
    ValidationError,
    ConflictError,
)
from meeting_cost.events import EventBus, EventType, MeetingEvent, Subscription
from meeting_cost.models import (
    CostView,
    Increment,
    IncrementView,
    Meeting,
    MeetingFilters,
    MeetingState,
    MeetingView,
    Pagination,
    Participant,
    ParticipantView,
)
from meeting_cost.repositories.ledger import LedgerStore, LedgerTransaction
from meeting_cost.services.audit import AuditSink
from meeting_cost.services.cost_calculator import (
    calculate_cost,
    close_increment,
    elapsed_seconds,
    rollup,
    to_money,
)
from meeting_cost.services.oracle import PermissionOracle, WageSource
from meeting_cost.services.retry import retry_transient

logger = structlog.get_logger()

RESOURCE_MEETING = "meeting"
MAX_ATTENDEE_COUNT = 2**32 - 1

_INCREMENT_LIST = TypeAdapter(list[Increment])


class MeetingEngine:
    """Orchestrates meeting state transitions over the ledger.

    Holds no mutable state of its own: per-meeting ordering comes from the
    ledger's transactions, so any number of request tasks can share one
    engine.
    """

    def __init__(
        self,
        ledger: LedgerStore,
        cache: SafeCache,
        bus: EventBus,
        oracle: PermissionOracle,
        wages: WageSource,
        audit: AuditSink,
        clock: Clock | None = None,
        config: Settings | None = None,
    ):
        """Initialize the engine.

        Args:
            ledger: Transactional store (source of truth)
            cache: Read-through cache for meetings and increment lists
            bus: Topic-per-meeting event bus
            oracle: Permission oracle
            wages: Wage source for opening increments
            audit: Fire-and-forget audit sink
            clock: Supplier of every increment boundary (system clock default)
            config: Settings for TTLs and paging (module settings default)
        """
        self._ledger = ledger
        self._cache = cache
        self._bus = bus
        self._oracle = oracle
        self._wages = wages
        self._audit = audit
        self._clock = clock or SystemClock()
        self._config = config or default_settings

    # Lifecycle

    @retry_transient
    async def create_meeting(
        self,
        org_id: UUID,
        actor_id: UUID,
        purpose: str = "",
        external_type: str = "",
        external_id: str = "",
        ip: str | None = None,
        ua: str | None = None,
    ) -> MeetingView:
        """Create a meeting in the Draft state.

        Raises:
            ForbiddenError: Actor may not create meetings in the org
            ConflictError: A live meeting already uses the external tuple
        """
        purpose = (purpose or "").strip()
        external_type = (external_type or "").strip()
        external_id = (external_id or "").strip()

        await self._authorize(actor_id, org_id, "create", None)

        async with self._ledger.transaction() as tx:
            if external_id:
                existing = await tx.lookup_by_external(external_type, external_id)
                if existing is not None:
                    raise ConflictError(
                        "a meeting with this external reference already exists",
                        details={
                            "external_type": external_type,
                            "external_id": external_id,
                            "meeting_id": str(existing.id),
                        },
                    )
            now = self._clock.now()
            meeting = Meeting(
                org_id=org_id,
                created_by=actor_id,
                purpose=purpose,
                external_type=external_type,
                external_id=external_id,
                created_at=now,
                updated_at=now,
            )
            await tx.insert_meeting(meeting)

        logger.info("meeting created", meeting_id=str(meeting.id), org_id=str(org_id))
        await self._record_audit(
            actor_id, meeting, "create_meeting", ip=ip, ua=ua
        )
        return MeetingView.from_meeting(meeting)

    @retry_transient
    async def start_meeting(self, meeting_id: UUID, actor_id: UUID) -> MeetingView:
        """Draft -> Active: open the first increment at the org default wage.

        Raises:
            InvalidStateError: Meeting is active or already stopped
        """
        cached = await self._load_meeting(meeting_id)
        await self._authorize(actor_id, cached.org_id, "start", meeting_id)
        wage = await self._wages.default_wage(cached.org_id)

        async with self._ledger.transaction() as tx:
            meeting = await tx.get_meeting(meeting_id)
            if meeting.is_active:
                raise InvalidStateError(
                    "meeting is already active",
                    details={"meeting_id": str(meeting_id)},
                )
            if meeting.state is MeetingState.STOPPED:
                raise InvalidStateError(
                    "meeting has already been stopped",
                    details={"meeting_id": str(meeting_id)},
                )
            stray = await tx.list_open_increments(meeting.id)
            if stray:
                raise self._invariant_violation(
                    "start_meeting",
                    meeting,
                    "open increment exists on a meeting that is not active",
                    open_increments=[str(i.id) for i in stray],
                )

            now = self._clock.now()
            meeting.is_active = True
            meeting.started_at = now
            meeting.touch(now)
            opening = Increment(
                meeting_id=meeting.id,
                start_time=now,
                attendee_count=0,
                average_wage=to_money(wage),
                purpose=meeting.purpose,
                created_at=now,
                updated_at=now,
            )
            await tx.update_meeting(meeting)
            await tx.insert_increment(opening)

        logger.info("meeting started", meeting_id=str(meeting.id))
        await self._invalidate(meeting)
        await self._publish(
            EventType.STARTED,
            meeting.id,
            IncrementView.from_increment(opening).model_dump(mode="json"),
        )
        await self._record_audit(actor_id, meeting, "start_meeting")
        return MeetingView.from_meeting(meeting)

    @retry_transient
    async def stop_meeting(self, meeting_id: UUID, actor_id: UUID) -> MeetingView:
        """Active -> Stopped: close the open tail and rebuild rollups.

        Raises:
            InvalidStateError: Meeting is not active
        """
        cached = await self._load_meeting(meeting_id)
        await self._authorize(actor_id, cached.org_id, "stop", meeting_id)

        async with self._ledger.transaction() as tx:
            meeting = await tx.get_meeting(meeting_id)
            if not meeting.is_active:
                raise InvalidStateError(
                    "meeting is not active",
                    details={"meeting_id": str(meeting_id), "state": meeting.state},
                )
            tail = await self._open_tail(tx, meeting, "stop_meeting")

            now = self._clock.now()
            if now <= tail.start_time:
                # The tail never accrued time; persisting it would create a
                # zero-length increment
                await tx.delete_increment(tail.id)
                stopped_at = tail.start_time
            else:
                await tx.update_increment(close_increment(tail, now))
                stopped_at = now

            for participant in await tx.list_participants(meeting.id):
                if participant.is_present:
                    await tx.save_participant(_leave(participant, stopped_at))

            meeting.is_active = False
            meeting.stopped_at = stopped_at
            meeting.touch(now)
            await self._rebuild_rollups(tx, meeting, "stop_meeting")
            await tx.update_meeting(meeting)

        logger.info(
            "meeting stopped",
            meeting_id=str(meeting.id),
            total_cost=meeting.total_cost_cached,
            total_duration=meeting.total_duration_cached,
        )
        view = MeetingView.from_meeting(meeting)
        await self._invalidate(meeting)
        await self._publish(EventType.STOPPED, meeting.id, view.model_dump(mode="json"))
        await self._record_audit(actor_id, meeting, "stop_meeting")
        return view

    @retry_transient
    async def delete_meeting(
        self,
        meeting_id: UUID,
        actor_id: UUID,
        ip: str | None = None,
        ua: str | None = None,
    ) -> None:
        """Soft-delete a meeting; its increments are tombstoned, not removed."""
        cached = await self._load_meeting(meeting_id)
        await self._authorize(actor_id, cached.org_id, "delete", meeting_id)

        async with self._ledger.transaction() as tx:
            meeting = await tx.get_meeting(meeting_id)
            await tx.soft_delete_meeting(meeting.id, self._clock.now())

        logger.info("meeting deleted", meeting_id=str(meeting.id))
        await self._invalidate(meeting)
        await self._record_audit(actor_id, meeting, "delete_meeting", ip=ip, ua=ua)

    # Parameter changes

    @retry_transient
    async def update_attendee_count(
        self,
        meeting_id: UUID,
        count: int,
        actor_id: UUID,
        ip: str | None = None,
        ua: str | None = None,
    ) -> MeetingView:
        """Cycle the increment with a new attendee count."""
        if isinstance(count, bool) or not isinstance(count, int):
            raise ValidationError("attendee count must be an integer")
        if count < 0 or count > MAX_ATTENDEE_COUNT:
            raise ValidationError(
                "attendee count out of range", details={"count": count}
            )
        return await self._change_parameter(
            meeting_id,
            actor_id,
            field="attendee_count",
            value=count,
            event_type=EventType.ATTENDEE_COUNT,
            action="update_attendee_count",
            ip=ip,
            ua=ua,
        )

    @retry_transient
    async def update_average_wage(
        self,
        meeting_id: UUID,
        wage: float,
        actor_id: UUID,
    ) -> MeetingView:
        """Cycle the increment with a new per-attendee hourly wage."""
        if isinstance(wage, bool) or not isinstance(wage, (int, float)):
            raise ValidationError("average wage must be a number")
        if not math.isfinite(wage) or wage < 0:
            raise ValidationError("average wage must be non-negative", details={"wage": wage})
        return await self._change_parameter(
            meeting_id,
            actor_id,
            field="average_wage",
            value=to_money(float(wage)),
            event_type=EventType.AVERAGE_WAGE,
            action="update_average_wage",
        )

    @retry_transient
    async def update_purpose(
        self,
        meeting_id: UUID,
        purpose: str,
        actor_id: UUID,
    ) -> MeetingView:
        """Change the purpose: row update in Draft, increment cycle when Active."""
        purpose = (purpose or "").strip()
        if not purpose:
            raise ValidationError("purpose must not be empty")
        return await self._change_parameter(
            meeting_id,
            actor_id,
            field="purpose",
            value=purpose,
            event_type=EventType.COST,
            action="update_purpose",
            allow_draft=True,
        )

    # Participants

    @retry_transient
    async def add_participant(
        self,
        meeting_id: UUID,
        person_id: UUID,
        actor_id: UUID,
    ) -> ParticipantView:
        """Record a person joining an active meeting."""
        cached = await self._load_meeting(meeting_id)
        await self._authorize(actor_id, cached.org_id, "update", meeting_id)

        async with self._ledger.transaction() as tx:
            meeting = await tx.get_meeting(meeting_id)
            if not meeting.is_active:
                raise InvalidStateError(
                    "participants can only join an active meeting",
                    details={"meeting_id": str(meeting_id), "state": meeting.state},
                )
            participant = await tx.get_participant(meeting.id, person_id)
            if participant is not None and participant.is_present:
                return ParticipantView.from_participant(participant)

            now = self._clock.now()
            if participant is None:
                participant = Participant(
                    meeting_id=meeting.id,
                    person_id=person_id,
                    created_at=now,
                )
            participant = participant.model_copy(
                update={"joined_at": now, "left_at": None, "updated_at": now}
            )
            await tx.save_participant(participant)

        await self._publish(
            EventType.PARTICIPANT,
            meeting.id,
            {"person_id": str(person_id), "action": "joined"},
        )
        return ParticipantView.from_participant(participant)

    @retry_transient
    async def remove_participant(
        self,
        meeting_id: UUID,
        person_id: UUID,
        actor_id: UUID,
    ) -> ParticipantView:
        """Record a person leaving; accumulates their time in the meeting."""
        cached = await self._load_meeting(meeting_id)
        await self._authorize(actor_id, cached.org_id, "update", meeting_id)

        async with self._ledger.transaction() as tx:
            meeting = await tx.get_meeting(meeting_id)
            participant = await tx.get_participant(meeting.id, person_id)
            if participant is None or not participant.is_present:
                raise NotFoundError(
                    "person is not present in the meeting",
                    details={"meeting_id": str(meeting_id), "person_id": str(person_id)},
                )
            participant = _leave(participant, self._clock.now())
            await tx.save_participant(participant)

        await self._publish(
            EventType.PARTICIPANT,
            meeting.id,
            {"person_id": str(person_id), "action": "left"},
        )
        return ParticipantView.from_participant(participant)

    # Queries

    @retry_transient
    async def get_meeting(self, meeting_id: UUID, actor_id: UUID) -> MeetingView:
        meeting = await self._load_meeting(meeting_id)
        await self._authorize(actor_id, meeting.org_id, "read", meeting_id)
        return MeetingView.from_meeting(meeting)

    @retry_transient
    async def get_meeting_by_external(
        self,
        external_type: str,
        external_id: str,
        actor_id: UUID,
    ) -> MeetingView:
        """Resolve a live meeting by its deduplication tuple."""
        key = meeting_external_key(external_type, external_id)
        raw_id = await self._cache.get(key)
        if raw_id is not None:
            try:
                meeting = await self._load_meeting(UUID(raw_id))
            except (ValueError, NotFoundError):
                await self._cache.invalidate(key)
                meeting = None
        else:
            meeting = None

        if meeting is None:
            async with self._ledger.read() as tx:
                meeting = await tx.lookup_by_external(external_type, external_id)
            if meeting is None:
                raise NotFoundError(
                    "no meeting with this external reference",
                    details={"external_type": external_type, "external_id": external_id},
                )
            await self._cache.set(
                key, str(meeting.id), self._config.meeting_cache_ttl_seconds
            )

        await self._authorize(actor_id, meeting.org_id, "read", meeting.id)
        return MeetingView.from_meeting(meeting)

    @retry_transient
    async def list_meetings(
        self,
        org_id: UUID,
        actor_id: UUID,
        filters: MeetingFilters | None = None,
        pagination: Pagination | None = None,
    ) -> tuple[list[MeetingView], int]:
        """List an organization's meetings, newest first.

        Returns:
            Tuple of (page of meeting views, total matching count)
        """
        await self._authorize(actor_id, org_id, "read", None)
        filters = filters or MeetingFilters()
        pagination = pagination or Pagination(page_size=self._config.default_page_size)
        if pagination.page_size > self._config.max_page_size:
            pagination = pagination.model_copy(
                update={"page_size": self._config.max_page_size}
            )

        async with self._ledger.read() as tx:
            meetings, total = await tx.list_meetings(org_id, filters, pagination)
        return [MeetingView.from_meeting(m) for m in meetings], total

    @retry_transient
    async def get_meeting_cost(self, meeting_id: UUID, actor_id: UUID) -> CostView:
        """Live cost at the current instant (one clock read per call)."""
        meeting, increments = await self._load_cost_snapshot(meeting_id)
        await self._authorize(actor_id, meeting.org_id, "read", meeting_id)
        return calculate_cost(increments, self._clock.now(), meeting.is_active)

    @retry_transient
    async def list_increments(
        self,
        meeting_id: UUID,
        actor_id: UUID,
    ) -> list[IncrementView]:
        meeting, increments = await self._load_cost_snapshot(meeting_id)
        await self._authorize(actor_id, meeting.org_id, "read", meeting_id)
        return [IncrementView.from_increment(i) for i in increments]

    @retry_transient
    async def list_participants(
        self,
        meeting_id: UUID,
        actor_id: UUID,
    ) -> list[ParticipantView]:
        meeting = await self._load_meeting(meeting_id)
        await self._authorize(actor_id, meeting.org_id, "read", meeting_id)
        async with self._ledger.read() as tx:
            participants = await tx.list_participants(meeting_id)
        return [ParticipantView.from_participant(p) for p in participants]

    async def subscribe(self, meeting_id: UUID, actor_id: UUID) -> Subscription:
        """Open a live event subscription on the meeting's topic.

        Authorization is checked here only; the caller owns the returned
        handle and must close it.
        """
        meeting = await self._load_meeting(meeting_id)
        await self._authorize(actor_id, meeting.org_id, "read", meeting_id)
        return await self._bus.subscribe(meeting_events_channel(meeting.id))

    # Increment cycling

    async def _change_parameter(
        self,
        meeting_id: UUID,
        actor_id: UUID,
        *,
        field: str,
        value: Any,
        event_type: EventType,
        action: str,
        allow_draft: bool = False,
        ip: str | None = None,
        ua: str | None = None,
    ) -> MeetingView:
        cached = await self._load_meeting(meeting_id)
        await self._authorize(actor_id, cached.org_id, "update", meeting_id)

        current: Increment | None = None
        async with self._ledger.transaction() as tx:
            meeting = await tx.get_meeting(meeting_id)
            if meeting.is_active:
                current = await self._cycle(tx, meeting, field, value, action)
            elif allow_draft and meeting.state is MeetingState.DRAFT:
                setattr(meeting, field, value)
                meeting.touch(self._clock.now())
                await tx.update_meeting(meeting)
            else:
                raise InvalidStateError(
                    "meeting is not active",
                    details={"meeting_id": str(meeting_id), "state": meeting.state},
                )

        await self._invalidate(meeting)
        if current is not None:
            await self._publish(
                event_type,
                meeting.id,
                IncrementView.from_increment(current).model_dump(mode="json"),
            )
        await self._record_audit(
            actor_id, meeting, action, details={field: value}, ip=ip, ua=ua
        )
        return MeetingView.from_meeting(meeting)

    async def _cycle(
        self,
        tx: LedgerTransaction,
        meeting: Meeting,
        field: str,
        value: Any,
        operation: str,
    ) -> Increment:
        """Close the open tail and open its successor with one field changed.

        When the clock has not moved past the tail's start the change is
        applied to the tail in place, so zero-length increments are never
        persisted.

        Returns:
            The increment that is open after the cycle
        """
        tail = await self._open_tail(tx, meeting, operation)
        now = self._clock.now()

        if now <= tail.start_time:
            coalesced = tail.model_copy(update={field: value, "updated_at": now})
            await tx.update_increment(coalesced)
            return coalesced

        await tx.update_increment(close_increment(tail, now))
        successor = Increment(
            meeting_id=meeting.id,
            start_time=now,
            attendee_count=tail.attendee_count,
            average_wage=tail.average_wage,
            purpose=tail.purpose,
            created_at=now,
            updated_at=now,
        ).model_copy(update={field: value})
        await tx.insert_increment(successor)

        meeting.touch(now)
        await self._rebuild_rollups(tx, meeting, operation)
        await tx.update_meeting(meeting)
        return successor

    async def _open_tail(
        self,
        tx: LedgerTransaction,
        meeting: Meeting,
        operation: str,
    ) -> Increment:
        open_increments = await tx.list_open_increments(meeting.id)
        if len(open_increments) != 1:
            raise self._invariant_violation(
                operation,
                meeting,
                "active meeting must have exactly one open increment",
                open_increments=[str(i.id) for i in open_increments],
            )
        return open_increments[0]

    async def _rebuild_rollups(
        self,
        tx: LedgerTransaction,
        meeting: Meeting,
        operation: str,
    ) -> None:
        """Refresh running totals and meeting rollups from the closed ledger."""
        increments = await tx.list_increments(meeting.id)
        self._verify_contiguity(meeting, increments, operation)

        totals = rollup(increments)
        for increment in totals.stale:
            await tx.update_increment(increment)
        meeting.total_cost_cached = totals.total_cost
        meeting.total_duration_cached = totals.total_duration
        meeting.max_attendees_cached = totals.max_attendees

    def _verify_contiguity(
        self,
        meeting: Meeting,
        increments: list[Increment],
        operation: str,
    ) -> None:
        for previous, following in zip(increments, increments[1:]):
            if previous.is_open or previous.stop_time != following.start_time:
                raise self._invariant_violation(
                    operation,
                    meeting,
                    "increments are not contiguous",
                    previous_id=str(previous.id),
                    previous_stop=str(previous.stop_time),
                    following_id=str(following.id),
                    following_start=str(following.start_time),
                )
        for increment in increments:
            if not increment.is_open and increment.stop_time <= increment.start_time:
                raise self._invariant_violation(
                    operation,
                    meeting,
                    "closed increment has no positive length",
                    increment_id=str(increment.id),
                )

    def _invariant_violation(
        self,
        operation: str,
        meeting: Meeting,
        message: str,
        **context: Any,
    ) -> InvariantViolationError:
        logger.error(
            "ledger invariant violated",
            operation=operation,
            meeting_id=str(meeting.id),
            org_id=str(meeting.org_id),
            is_active=meeting.is_active,
            started_at=str(meeting.started_at),
            stopped_at=str(meeting.stopped_at),
            reason=message,
            **context,
        )
        return InvariantViolationError(
            message,
            details={"meeting_id": str(meeting.id), "operation": operation, **context},
        )

    # Collaborators

    async def _authorize(
        self,
        actor_id: UUID,
        org_id: UUID,
        activity: str,
        resource_id: UUID | None,
    ) -> None:
        allowed = await self._oracle.may(
            actor_id, org_id, RESOURCE_MEETING, resource_id, activity
        )
        if not allowed:
            raise ForbiddenError(
                f"not allowed to {activity} meeting",
                details={
                    "actor_id": str(actor_id),
                    "org_id": str(org_id),
                    "activity": activity,
                },
            )

    async def _load_meeting(self, meeting_id: UUID) -> Meeting:
        key = meeting_key(meeting_id)
        raw = await self._cache.get(key)
        if raw is not None:
            try:
                return Meeting.model_validate_json(raw)
            except PydanticValidationError:
                logger.warning("discarding malformed cache entry", key=key)

        async with self._ledger.read() as tx:
            meeting = await tx.get_meeting(meeting_id)
        await self._cache.set(
            key, meeting.model_dump_json(), self._config.meeting_cache_ttl_seconds
        )
        return meeting

    async def _load_cost_snapshot(
        self,
        meeting_id: UUID,
    ) -> tuple[Meeting, list[Increment]]:
        """Meeting plus increment list, both from cache or both from one read."""
        meeting_raw = await self._cache.get(meeting_key(meeting_id))
        increments_raw = await self._cache.get(meeting_increments_key(meeting_id))
        if meeting_raw is not None and increments_raw is not None:
            try:
                return (
                    Meeting.model_validate_json(meeting_raw),
                    _INCREMENT_LIST.validate_json(increments_raw),
                )
            except PydanticValidationError:
                logger.warning("discarding malformed cache entry", meeting_id=str(meeting_id))

        async with self._ledger.read() as tx:
            meeting = await tx.get_meeting(meeting_id)
            increments = await tx.list_increments(meeting_id)
        await self._cache.set(
            meeting_key(meeting_id),
            meeting.model_dump_json(),
            self._config.meeting_cache_ttl_seconds,
        )
        await self._cache.set(
            meeting_increments_key(meeting_id),
            _INCREMENT_LIST.dump_json(increments).decode(),
            self._config.increments_cache_ttl_seconds,
        )
        return meeting, increments

    async def _invalidate(self, meeting: Meeting) -> None:
        keys = [meeting_key(meeting.id), meeting_increments_key(meeting.id)]
        if meeting.has_external_ref:
            keys.append(meeting_external_key(meeting.external_type, meeting.external_id))
        await self._cache.invalidate(*keys)

    async def _publish(
        self,
        event_type: EventType,
        meeting_id: UUID,
        payload: Any,
    ) -> None:
        event = MeetingEvent(type=event_type, meeting_id=meeting_id, payload=payload)
        try:
            await self._bus.publish(meeting_events_channel(meeting_id), event)
        except Exception as e:
            logger.error(
                "failed to broadcast meeting event",
                meeting_id=str(meeting_id),
                type=str(event_type),
                error=str(e),
            )

    async def _record_audit(
        self,
        actor_id: UUID,
        meeting: Meeting,
        action: str,
        details: dict[str, Any] | None = None,
        ip: str | None = None,
        ua: str | None = None,
    ) -> None:
        try:
            await self._audit.log(
                actor_id=actor_id,
                org_id=meeting.org_id,
                action=action,
                resource_kind=RESOURCE_MEETING,
                resource_id=meeting.id,
                details=details,
                ip=ip,
                ua=ua,
            )
        except Exception as e:
            logger.warning(
                "audit log failed",
                action=action,
                meeting_id=str(meeting.id),
                error=str(e),
            )


def _leave(participant: Participant, at) -> Participant:
    """Close a participant's current interval at ``at``."""
    stay = elapsed_seconds(participant.joined_at, at) if participant.joined_at else 0
    return participant.model_copy(
        update={
            "left_at": at,
            "duration": participant.duration + stay,
            "updated_at": at,
        }
    )
