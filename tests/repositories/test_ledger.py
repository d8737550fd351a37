"""Tests for the ledger store over a local libSQL file."""

import asyncio
from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest

from meeting_cost.errors import (
    ConflictError,
    InternalError,
    NotFoundError,
    TransientError,
)
from meeting_cost.models import Increment, Meeting, MeetingFilters, Pagination, Participant
from meeting_cost.repositories import LedgerStore
from meeting_cost.repositories.ledger import from_db_time, to_db_time

T0 = datetime(2026, 3, 2, 14, 0, tzinfo=UTC)


def make_meeting(org_id, **overrides) -> Meeting:
    fields = {
        "org_id": org_id,
        "created_by": uuid4(),
        "created_at": T0,
        "updated_at": T0,
    }
    fields.update(overrides)
    return Meeting(**fields)


def make_increment(meeting_id, start, stop=None, **overrides) -> Increment:
    return Increment(
        meeting_id=meeting_id,
        start_time=start,
        stop_time=stop,
        created_at=start,
        updated_at=start,
        **overrides,
    )


class TestTimestamps:
    def test_round_trip_preserves_instant(self) -> None:
        instant = datetime(2026, 3, 2, 14, 0, 0, 250000, tzinfo=UTC)
        assert from_db_time(to_db_time(instant)) == instant

    def test_text_order_matches_time_order(self) -> None:
        earlier = to_db_time(T0)
        later = to_db_time(T0 + timedelta(microseconds=1))
        assert earlier < later

    def test_none_passes_through(self) -> None:
        assert to_db_time(None) is None
        assert from_db_time(None) is None


class TestMeetings:
    async def test_insert_and_get(self, ledger: LedgerStore, org_id) -> None:
        meeting = make_meeting(org_id, purpose="kickoff")
        async with ledger.transaction() as tx:
            await tx.insert_meeting(meeting)

        async with ledger.read() as tx:
            loaded = await tx.get_meeting(meeting.id)

        assert loaded == meeting

    async def test_get_missing_raises(self, ledger: LedgerStore) -> None:
        async with ledger.read() as tx:
            with pytest.raises(NotFoundError):
                await tx.get_meeting(uuid4())

    async def test_duplicate_external_tuple_conflicts(self, ledger, org_id) -> None:
        async with ledger.transaction() as tx:
            await tx.insert_meeting(
                make_meeting(org_id, external_type="zoom", external_id="abc")
            )

        with pytest.raises(ConflictError):
            async with ledger.transaction() as tx:
                await tx.insert_meeting(
                    make_meeting(org_id, external_type="zoom", external_id="abc")
                )

    async def test_blank_external_ids_do_not_conflict(self, ledger, org_id) -> None:
        async with ledger.transaction() as tx:
            await tx.insert_meeting(make_meeting(org_id))
            await tx.insert_meeting(make_meeting(org_id))

    async def test_soft_delete_tombstones_children(self, ledger, org_id) -> None:
        meeting = make_meeting(org_id)
        async with ledger.transaction() as tx:
            await tx.insert_meeting(meeting)
            await tx.insert_increment(make_increment(meeting.id, T0))
            await tx.save_participant(
                Participant(meeting_id=meeting.id, person_id=uuid4(), joined_at=T0)
            )
            await tx.soft_delete_meeting(meeting.id, T0 + timedelta(hours=1))

        async with ledger.read() as tx:
            assert await tx.find_meeting(meeting.id) is None
            deleted = await tx.find_meeting(meeting.id, include_deleted=True)
            assert deleted.is_deleted
            assert await tx.list_increments(meeting.id) == []
            assert await tx.list_participants(meeting.id) == []

    async def test_list_orders_newest_first(self, ledger, org_id) -> None:
        meetings = [
            make_meeting(org_id, created_at=T0 + timedelta(minutes=i)) for i in range(3)
        ]
        async with ledger.transaction() as tx:
            for meeting in meetings:
                await tx.insert_meeting(meeting)
            await tx.insert_meeting(make_meeting(uuid4()))

        async with ledger.read() as tx:
            page, total = await tx.list_meetings(org_id, MeetingFilters(), Pagination())

        assert total == 3
        assert [m.id for m in page] == [m.id for m in reversed(meetings)]

    async def test_list_filters_by_start_window(self, ledger, org_id) -> None:
        early = make_meeting(org_id, started_at=T0, is_active=True)
        late = make_meeting(org_id, started_at=T0 + timedelta(days=1))
        async with ledger.transaction() as tx:
            await tx.insert_meeting(early)
            await tx.insert_meeting(late)

        filters = MeetingFilters(started_after=T0 + timedelta(hours=1))
        async with ledger.read() as tx:
            page, total = await tx.list_meetings(org_id, filters, Pagination())

        assert total == 1
        assert page[0].id == late.id


class TestIncrements:
    async def test_second_open_increment_conflicts(self, ledger, org_id) -> None:
        meeting = make_meeting(org_id, is_active=True, started_at=T0)
        async with ledger.transaction() as tx:
            await tx.insert_meeting(meeting)
            await tx.insert_increment(make_increment(meeting.id, T0))

        with pytest.raises(ConflictError):
            async with ledger.transaction() as tx:
                await tx.insert_increment(
                    make_increment(meeting.id, T0 + timedelta(minutes=1))
                )

    async def test_increments_ordered_by_start(self, ledger, org_id) -> None:
        meeting = make_meeting(org_id)
        t1 = T0 + timedelta(minutes=10)
        async with ledger.transaction() as tx:
            await tx.insert_meeting(meeting)
            await tx.insert_increment(make_increment(meeting.id, t1))
            await tx.insert_increment(make_increment(meeting.id, T0, t1, cost=12.5))

        async with ledger.read() as tx:
            increments = await tx.list_increments(meeting.id)
            open_increments = await tx.list_open_increments(meeting.id)

        assert [i.start_time for i in increments] == [T0, t1]
        assert [i.id for i in open_increments] == [increments[1].id]

    async def test_delete_only_removes_open_increment(self, ledger, org_id) -> None:
        meeting = make_meeting(org_id)
        closed = make_increment(meeting.id, T0, T0 + timedelta(minutes=1))
        async with ledger.transaction() as tx:
            await tx.insert_meeting(meeting)
            await tx.insert_increment(closed)
            await tx.delete_increment(closed.id)
            assert len(await tx.list_increments(meeting.id)) == 1


class TestTransactions:
    async def test_error_rolls_back(self, ledger, org_id) -> None:
        meeting = make_meeting(org_id)
        with pytest.raises(RuntimeError):
            async with ledger.transaction() as tx:
                await tx.insert_meeting(meeting)
                raise RuntimeError("abort")

        async with ledger.read() as tx:
            assert await tx.find_meeting(meeting.id) is None

    async def test_conflict_discards_earlier_writes(self, ledger, org_id) -> None:
        meeting = make_meeting(org_id, is_active=True, started_at=T0)
        with pytest.raises(ConflictError):
            async with ledger.transaction() as tx:
                await tx.insert_meeting(meeting)
                await tx.insert_increment(make_increment(meeting.id, T0))
                await tx.insert_increment(
                    make_increment(meeting.id, T0 + timedelta(minutes=1))
                )

        async with ledger.read() as tx:
            assert await tx.find_meeting(meeting.id) is None
            assert await tx.list_increments(meeting.id) == []

    async def test_bad_sql_is_not_transient(self, db, ledger) -> None:
        with pytest.raises(InternalError):
            async with ledger.transaction():
                await db.execute("SELECT * FROM no_such_table")

    async def test_cancellation_rolls_back(self, ledger, org_id) -> None:
        meeting = make_meeting(org_id)
        inserted = asyncio.Event()

        async def stalled_writer() -> None:
            async with ledger.transaction() as tx:
                await tx.insert_meeting(meeting)
                inserted.set()
                await asyncio.Event().wait()

        task = asyncio.create_task(stalled_writer())
        await inserted.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        async with ledger.read() as tx:
            assert await tx.find_meeting(meeting.id) is None

    async def test_deadline_raises_transient(self, db, ledger, org_id) -> None:
        holder = LedgerStore(db, timeout=5.0)
        impatient = LedgerStore(db, timeout=0.05)
        acquired = asyncio.Event()
        release = asyncio.Event()

        async def hold_lock() -> None:
            async with holder.transaction():
                acquired.set()
                await release.wait()

        task = asyncio.create_task(hold_lock())
        await acquired.wait()
        try:
            with pytest.raises(TransientError):
                async with impatient.transaction() as tx:
                    await tx.insert_meeting(make_meeting(org_id))
        finally:
            release.set()
            await task

    async def test_health_check(self, ledger) -> None:
        assert await ledger.is_healthy() is True
