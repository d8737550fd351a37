"""Ledger store: durable, transactional storage of meetings and increments.

All engine writes happen inside ``LedgerStore.transaction()``; reads that
must see one consistent state use ``LedgerStore.read()``. Both hand out a
``LedgerTransaction`` exposing the row-level operations.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from libsql_client import ResultSet

from meeting_cost.config import settings
from meeting_cost.db.libsql import LibsqlClient, LibsqlTransaction
from meeting_cost.errors import NotFoundError
from meeting_cost.models import (
    Increment,
    Meeting,
    MeetingFilters,
    Pagination,
    Participant,
)

logger = logging.getLogger(__name__)

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS meetings (
        id TEXT PRIMARY KEY,
        org_id TEXT NOT NULL,
        created_by TEXT NOT NULL,
        purpose TEXT NOT NULL DEFAULT '',
        started_at TEXT,
        stopped_at TEXT,
        is_active INTEGER NOT NULL DEFAULT 0,
        total_cost_cached REAL NOT NULL DEFAULT 0,
        total_duration_cached INTEGER NOT NULL DEFAULT 0,
        max_attendees_cached INTEGER NOT NULL DEFAULT 0,
        external_type TEXT NOT NULL DEFAULT '',
        external_id TEXT NOT NULL DEFAULT '',
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        deleted_at TEXT
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_meetings_org ON meetings(org_id)",
    """
    CREATE INDEX IF NOT EXISTS idx_meetings_active
    ON meetings(is_active) WHERE is_active = 1
    """,
    """
    CREATE UNIQUE INDEX IF NOT EXISTS idx_meetings_external
    ON meetings(external_type, external_id)
    WHERE external_id != '' AND deleted_at IS NULL
    """,
    """
    CREATE TABLE IF NOT EXISTS increments (
        id TEXT PRIMARY KEY,
        meeting_id TEXT NOT NULL REFERENCES meetings(id),
        start_time TEXT NOT NULL,
        stop_time TEXT,
        attendee_count INTEGER NOT NULL DEFAULT 0,
        average_wage REAL NOT NULL DEFAULT 0,
        purpose TEXT NOT NULL DEFAULT '',
        elapsed_time INTEGER NOT NULL DEFAULT 0,
        cost REAL NOT NULL DEFAULT 0,
        running_total REAL NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        deleted_at TEXT
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_increments_meeting_start
    ON increments(meeting_id, start_time)
    """,
    """
    CREATE UNIQUE INDEX IF NOT EXISTS idx_increments_open_tail
    ON increments(meeting_id) WHERE stop_time IS NULL AND deleted_at IS NULL
    """,
    """
    CREATE TABLE IF NOT EXISTS meeting_participants (
        id TEXT PRIMARY KEY,
        meeting_id TEXT NOT NULL REFERENCES meetings(id),
        person_id TEXT NOT NULL,
        joined_at TEXT,
        left_at TEXT,
        duration INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        deleted_at TEXT,
        UNIQUE(meeting_id, person_id)
    )
    """,
]

MEETING_COLUMNS = (
    "id, org_id, created_by, purpose, started_at, stopped_at, is_active, "
    "total_cost_cached, total_duration_cached, max_attendees_cached, "
    "external_type, external_id, created_at, updated_at, deleted_at"
)
INCREMENT_COLUMNS = (
    "id, meeting_id, start_time, stop_time, attendee_count, average_wage, "
    "purpose, elapsed_time, cost, running_total, created_at, updated_at, deleted_at"
)
PARTICIPANT_COLUMNS = (
    "id, meeting_id, person_id, joined_at, left_at, duration, "
    "created_at, updated_at, deleted_at"
)


def to_db_time(value: datetime | None) -> str | None:
    """Serialize an instant as fixed-width UTC ISO-8601 (sortable as text)."""
    if value is None:
        return None
    return value.astimezone(UTC).isoformat(timespec="microseconds")


def from_db_time(value: str | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromisoformat(value)


def _rows(result: ResultSet) -> list[dict[str, Any]]:
    columns = list(result.columns)
    return [{col: row[i] for i, col in enumerate(columns)} for row in result.rows]


def _meeting_from_row(row: dict[str, Any]) -> Meeting:
    return Meeting(
        id=UUID(row["id"]),
        org_id=UUID(row["org_id"]),
        created_by=UUID(row["created_by"]),
        purpose=row["purpose"],
        started_at=from_db_time(row["started_at"]),
        stopped_at=from_db_time(row["stopped_at"]),
        is_active=bool(row["is_active"]),
        total_cost_cached=row["total_cost_cached"],
        total_duration_cached=row["total_duration_cached"],
        max_attendees_cached=row["max_attendees_cached"],
        external_type=row["external_type"],
        external_id=row["external_id"],
        created_at=from_db_time(row["created_at"]),
        updated_at=from_db_time(row["updated_at"]),
        deleted_at=from_db_time(row["deleted_at"]),
    )


def _increment_from_row(row: dict[str, Any]) -> Increment:
    return Increment(
        id=UUID(row["id"]),
        meeting_id=UUID(row["meeting_id"]),
        start_time=from_db_time(row["start_time"]),
        stop_time=from_db_time(row["stop_time"]),
        attendee_count=row["attendee_count"],
        average_wage=row["average_wage"],
        purpose=row["purpose"],
        elapsed_time=row["elapsed_time"],
        cost=row["cost"],
        running_total=row["running_total"],
        created_at=from_db_time(row["created_at"]),
        updated_at=from_db_time(row["updated_at"]),
        deleted_at=from_db_time(row["deleted_at"]),
    )


def _participant_from_row(row: dict[str, Any]) -> Participant:
    return Participant(
        id=UUID(row["id"]),
        meeting_id=UUID(row["meeting_id"]),
        person_id=UUID(row["person_id"]),
        joined_at=from_db_time(row["joined_at"]),
        left_at=from_db_time(row["left_at"]),
        duration=row["duration"],
        created_at=from_db_time(row["created_at"]),
        updated_at=from_db_time(row["updated_at"]),
        deleted_at=from_db_time(row["deleted_at"]),
    )


class LedgerTransaction:
    """Row-level ledger operations.

    Bound to a driver transaction for writes, or to the client itself for
    snapshot reads.
    """

    def __init__(self, db: LibsqlTransaction | LibsqlClient):
        self._db = db

    # Meetings

    async def find_meeting(
        self,
        meeting_id: UUID,
        include_deleted: bool = False,
    ) -> Meeting | None:
        result = await self._db.execute(
            f"SELECT {MEETING_COLUMNS} FROM meetings WHERE id = ?",
            [str(meeting_id)],
        )
        rows = _rows(result)
        if not rows:
            return None
        meeting = _meeting_from_row(rows[0])
        if meeting.is_deleted and not include_deleted:
            return None
        return meeting

    async def get_meeting(self, meeting_id: UUID) -> Meeting:
        """Load a live meeting.

        Raises:
            NotFoundError: If the meeting is absent or tombstoned
        """
        meeting = await self.find_meeting(meeting_id)
        if meeting is None:
            raise NotFoundError(
                f"meeting {meeting_id} not found",
                details={"meeting_id": str(meeting_id)},
            )
        return meeting

    async def insert_meeting(self, meeting: Meeting) -> None:
        await self._db.execute(
            f"""
            INSERT INTO meetings ({MEETING_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                str(meeting.id),
                str(meeting.org_id),
                str(meeting.created_by),
                meeting.purpose,
                to_db_time(meeting.started_at),
                to_db_time(meeting.stopped_at),
                int(meeting.is_active),
                meeting.total_cost_cached,
                meeting.total_duration_cached,
                meeting.max_attendees_cached,
                meeting.external_type,
                meeting.external_id,
                to_db_time(meeting.created_at),
                to_db_time(meeting.updated_at),
                to_db_time(meeting.deleted_at),
            ],
        )

    async def update_meeting(self, meeting: Meeting) -> None:
        result = await self._db.execute(
            """
            UPDATE meetings SET
                purpose = ?, started_at = ?, stopped_at = ?, is_active = ?,
                total_cost_cached = ?, total_duration_cached = ?,
                max_attendees_cached = ?, updated_at = ?
            WHERE id = ? AND deleted_at IS NULL
            """,
            [
                meeting.purpose,
                to_db_time(meeting.started_at),
                to_db_time(meeting.stopped_at),
                int(meeting.is_active),
                meeting.total_cost_cached,
                meeting.total_duration_cached,
                meeting.max_attendees_cached,
                to_db_time(meeting.updated_at),
                str(meeting.id),
            ],
        )
        if result.rows_affected == 0:
            raise NotFoundError(
                f"meeting {meeting.id} not found",
                details={"meeting_id": str(meeting.id)},
            )

    async def soft_delete_meeting(self, meeting_id: UUID, at: datetime) -> None:
        """Tombstone a meeting together with its increments and participants."""
        stamp = to_db_time(at)
        result = await self._db.execute(
            """
            UPDATE meetings SET deleted_at = ?, updated_at = ?
            WHERE id = ? AND deleted_at IS NULL
            """,
            [stamp, stamp, str(meeting_id)],
        )
        if result.rows_affected == 0:
            raise NotFoundError(
                f"meeting {meeting_id} not found",
                details={"meeting_id": str(meeting_id)},
            )
        for table in ("increments", "meeting_participants"):
            await self._db.execute(
                f"""
                UPDATE {table} SET deleted_at = ?, updated_at = ?
                WHERE meeting_id = ? AND deleted_at IS NULL
                """,
                [stamp, stamp, str(meeting_id)],
            )

    async def lookup_by_external(
        self,
        external_type: str,
        external_id: str,
    ) -> Meeting | None:
        """Find the live meeting registered under an external tuple."""
        result = await self._db.execute(
            f"""
            SELECT {MEETING_COLUMNS} FROM meetings
            WHERE external_type = ? AND external_id = ? AND deleted_at IS NULL
            """,
            [external_type, external_id],
        )
        rows = _rows(result)
        return _meeting_from_row(rows[0]) if rows else None

    async def list_meetings(
        self,
        org_id: UUID,
        filters: MeetingFilters,
        pagination: Pagination,
    ) -> tuple[list[Meeting], int]:
        """List an organization's live meetings, newest first.

        Returns:
            Tuple of (page of meetings, total matching count)
        """
        where_clauses = ["org_id = ?", "deleted_at IS NULL"]
        params: list[Any] = [str(org_id)]

        if filters.is_active is not None:
            where_clauses.append("is_active = ?")
            params.append(int(filters.is_active))
        if filters.started_after is not None:
            where_clauses.append("started_at >= ?")
            params.append(to_db_time(filters.started_after))
        if filters.started_before is not None:
            where_clauses.append("started_at <= ?")
            params.append(to_db_time(filters.started_before))

        where_sql = " AND ".join(where_clauses)

        count_result = await self._db.execute(
            f"SELECT COUNT(*) FROM meetings WHERE {where_sql}",
            params,
        )
        total = count_result.rows[0][0] if count_result.rows else 0

        result = await self._db.execute(
            f"""
            SELECT {MEETING_COLUMNS} FROM meetings
            WHERE {where_sql}
            ORDER BY created_at DESC, id ASC
            LIMIT ? OFFSET ?
            """,
            [*params, pagination.page_size, pagination.offset],
        )
        return [_meeting_from_row(r) for r in _rows(result)], total

    # Increments

    async def list_increments(self, meeting_id: UUID) -> list[Increment]:
        """All live increments of a meeting ordered by start_time."""
        result = await self._db.execute(
            f"""
            SELECT {INCREMENT_COLUMNS} FROM increments
            WHERE meeting_id = ? AND deleted_at IS NULL
            ORDER BY start_time ASC
            """,
            [str(meeting_id)],
        )
        return [_increment_from_row(r) for r in _rows(result)]

    async def list_open_increments(self, meeting_id: UUID) -> list[Increment]:
        result = await self._db.execute(
            f"""
            SELECT {INCREMENT_COLUMNS} FROM increments
            WHERE meeting_id = ? AND stop_time IS NULL AND deleted_at IS NULL
            ORDER BY start_time ASC
            """,
            [str(meeting_id)],
        )
        return [_increment_from_row(r) for r in _rows(result)]

    async def insert_increment(self, increment: Increment) -> None:
        await self._db.execute(
            f"""
            INSERT INTO increments ({INCREMENT_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                str(increment.id),
                str(increment.meeting_id),
                to_db_time(increment.start_time),
                to_db_time(increment.stop_time),
                increment.attendee_count,
                increment.average_wage,
                increment.purpose,
                increment.elapsed_time,
                increment.cost,
                increment.running_total,
                to_db_time(increment.created_at),
                to_db_time(increment.updated_at),
                to_db_time(increment.deleted_at),
            ],
        )

    async def update_increment(self, increment: Increment) -> None:
        result = await self._db.execute(
            """
            UPDATE increments SET
                stop_time = ?, attendee_count = ?, average_wage = ?, purpose = ?,
                elapsed_time = ?, cost = ?, running_total = ?, updated_at = ?
            WHERE id = ? AND deleted_at IS NULL
            """,
            [
                to_db_time(increment.stop_time),
                increment.attendee_count,
                increment.average_wage,
                increment.purpose,
                increment.elapsed_time,
                increment.cost,
                increment.running_total,
                to_db_time(increment.updated_at),
                str(increment.id),
            ],
        )
        if result.rows_affected == 0:
            raise NotFoundError(
                f"increment {increment.id} not found",
                details={"increment_id": str(increment.id)},
            )

    async def delete_increment(self, increment_id: UUID) -> None:
        """Physically remove an open tail that never accrued time."""
        await self._db.execute(
            "DELETE FROM increments WHERE id = ? AND stop_time IS NULL",
            [str(increment_id)],
        )

    # Participants

    async def get_participant(
        self,
        meeting_id: UUID,
        person_id: UUID,
    ) -> Participant | None:
        result = await self._db.execute(
            f"""
            SELECT {PARTICIPANT_COLUMNS} FROM meeting_participants
            WHERE meeting_id = ? AND person_id = ? AND deleted_at IS NULL
            """,
            [str(meeting_id), str(person_id)],
        )
        rows = _rows(result)
        return _participant_from_row(rows[0]) if rows else None

    async def list_participants(self, meeting_id: UUID) -> list[Participant]:
        result = await self._db.execute(
            f"""
            SELECT {PARTICIPANT_COLUMNS} FROM meeting_participants
            WHERE meeting_id = ? AND deleted_at IS NULL
            ORDER BY created_at ASC, id ASC
            """,
            [str(meeting_id)],
        )
        return [_participant_from_row(r) for r in _rows(result)]

    async def save_participant(self, participant: Participant) -> None:
        """Insert or update a participant row (unique per meeting/person)."""
        await self._db.execute(
            f"""
            INSERT INTO meeting_participants ({PARTICIPANT_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(meeting_id, person_id)
            DO UPDATE SET
                joined_at = excluded.joined_at,
                left_at = excluded.left_at,
                duration = excluded.duration,
                updated_at = excluded.updated_at
            """,
            [
                str(participant.id),
                str(participant.meeting_id),
                str(participant.person_id),
                to_db_time(participant.joined_at),
                to_db_time(participant.left_at),
                participant.duration,
                to_db_time(participant.created_at),
                to_db_time(participant.updated_at),
                to_db_time(participant.deleted_at),
            ],
        )


class LedgerStore:
    """Durable, transactional storage of meetings, increments, participants.

    Features:
    - One write transaction at a time per client (serializable)
    - Partial unique index rejecting a second open increment per meeting
    - Partial unique index on live (external_type, external_id) tuples
    - Deadline on every transaction (rolled back on expiry)
    """

    def __init__(self, db: LibsqlClient, timeout: float | None = None):
        """Initialize store.

        Args:
            db: Connected database client
            timeout: Transaction deadline in seconds (defaults to settings)
        """
        self._db = db
        self._timeout = timeout if timeout is not None else settings.ledger_timeout_seconds

    async def initialize(self) -> None:
        """Create ledger tables and indexes if they don't exist."""
        await self._db.execute_batch(SCHEMA)
        logger.info("Ledger schema initialized")

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[LedgerTransaction]:
        """Open a write transaction (commit on success, rollback on error)."""
        async with self._db.transaction(timeout=self._timeout) as tx:
            yield LedgerTransaction(tx)

    @asynccontextmanager
    async def read(self) -> AsyncIterator[LedgerTransaction]:
        """Open a consistent read view (never observes a partial commit)."""
        async with self._db.snapshot(timeout=self._timeout) as db:
            yield LedgerTransaction(db)

    async def is_healthy(self) -> bool:
        return await self._db.is_healthy()
