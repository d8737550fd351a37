"""Turso/libSQL database client wrapper with explicit transactions."""

import asyncio
import logging
import sqlite3
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from libsql_client import Client, LibsqlError, ResultSet, Transaction, create_client

from meeting_cost.config import settings
from meeting_cost.errors import ConflictError, InternalError, TransientError

logger = logging.getLogger(__name__)

_CONSTRAINT_MARKERS = ("UNIQUE constraint failed",)

# Lock contention and lost connections; anything else is a bug or bad SQL.
_TRANSIENT_CODES = (
    "SQLITE_BUSY",
    "SQLITE_LOCKED",
    "HRANA_WEBSOCKET_ERROR",
    "STREAM_CLOSED",
    "SERVER_ERROR",
)
_TRANSIENT_MARKERS = ("database is locked", "database is busy", "database table is locked")


def translate_error(exc: Exception, operation: str) -> Exception:
    """Map a driver exception onto the ledger failure taxonomy.

    Uniqueness violations become ``ConflictError``. Lock contention and
    transport failures become ``TransientError`` so the engine retries them.
    Everything else (SQL errors, schema mismatches, a closed client) is an
    ``InternalError`` and is not retried.
    """
    text = str(exc)
    code = getattr(exc, "code", None) or ""
    if (
        isinstance(exc, sqlite3.IntegrityError)
        or code.startswith("SQLITE_CONSTRAINT")
        or any(marker in text for marker in _CONSTRAINT_MARKERS)
    ):
        return ConflictError(
            f"{operation}: uniqueness constraint violated",
            details={"cause": text},
        )
    if (
        isinstance(exc, OSError)
        or code.startswith(_TRANSIENT_CODES)
        or any(marker in text for marker in _TRANSIENT_MARKERS)
    ):
        return TransientError(f"{operation}: {text}", details={"cause": text})
    return InternalError(f"{operation}: {text}", details={"cause": text, "code": code})


class LibsqlTransaction:
    """An open driver transaction bound to its own connection.

    Statements run on the connection that issued BEGIN, so they commit or
    roll back together.
    """

    def __init__(self, handle: Transaction):
        self._handle = handle

    async def execute(
        self,
        sql: str,
        params: list[Any] | None = None,
    ) -> ResultSet:
        try:
            return await self._handle.execute(sql, params or [])
        except (LibsqlError, sqlite3.Error, OSError) as e:
            raise translate_error(e, "execute") from e

    async def commit(self) -> None:
        try:
            await self._handle.commit()
        except (LibsqlError, sqlite3.Error, OSError) as e:
            await self.rollback()
            raise translate_error(e, "commit") from e

    async def rollback(self) -> None:
        try:
            if not self._handle.closed:
                await self._handle.rollback()
        except (LibsqlError, sqlite3.Error, OSError) as e:
            # The driver may already have aborted the transaction
            logger.warning("Rollback failed: %s", e)
        finally:
            self._handle.close()


class LibsqlClient:
    """Wrapper for the Turso/libSQL async client.

    Supports both cloud Turso (with auth token) and local SQLite files.
    Write transactions are serialized in-process, which gives the ledger
    serializable isolation: a transaction never observes another
    transaction's uncommitted writes.
    """

    def __init__(
        self,
        url: str | None = None,
        auth_token: str | None = None,
    ):
        """Initialize client with connection parameters.

        Args:
            url: Database URL. Defaults to settings or local file.
            auth_token: Auth token for Turso cloud. Defaults to settings.
        """
        self.url = url or settings.turso_database_url or "file:meeting_cost.db"
        self.auth_token = auth_token or settings.turso_auth_token
        self._client: Client | None = None
        self._tx_lock = asyncio.Lock()

    async def connect(self) -> None:
        """Establish database connection."""
        if self._client is not None:
            return

        if self.auth_token and self.url.startswith("libsql://"):
            self._client = create_client(url=self.url, auth_token=self.auth_token)
        else:
            self._client = create_client(url=self.url)

        logger.info("Connected to ledger database: %s", self.url)

    def _require_client(self) -> Client:
        if not self._client:
            msg = "Not connected. Call connect() first."
            raise RuntimeError(msg)
        return self._client

    async def execute(
        self,
        sql: str,
        params: list[Any] | None = None,
    ) -> ResultSet:
        """Execute a single autocommitted SQL statement.

        Args:
            sql: SQL query with ? placeholders
            params: Query parameters

        Returns:
            ResultSet with rows and metadata

        Raises:
            ConflictError: On a uniqueness violation
            TransientError: On lock contention or a lost connection
            InternalError: On any other driver failure
        """
        client = self._require_client()
        try:
            return await client.execute(sql, params or [])
        except (LibsqlError, sqlite3.Error, OSError) as e:
            raise translate_error(e, "execute") from e

    async def execute_batch(self, statements: list[str]) -> None:
        """Execute multiple SQL statements atomically.

        Args:
            statements: List of SQL statements
        """
        client = self._require_client()
        try:
            await client.batch(statements)
        except (LibsqlError, sqlite3.Error, OSError) as e:
            raise translate_error(e, "batch") from e

    @asynccontextmanager
    async def transaction(
        self,
        timeout: float | None = None,
    ) -> AsyncIterator[LibsqlTransaction]:
        """Run a block inside a driver transaction.

        The block is rolled back on any exception, including cancellation.
        When ``timeout`` elapses before the block finishes, the transaction
        is rolled back and ``TransientError`` is raised.

        Args:
            timeout: Deadline in seconds for lock wait plus the whole block
        """
        client = self._require_client()
        try:
            async with asyncio.timeout(timeout):
                async with self._tx_lock:
                    try:
                        tx = LibsqlTransaction(client.transaction())
                    except (LibsqlError, sqlite3.Error, OSError) as e:
                        raise translate_error(e, "begin") from e
                    try:
                        yield tx
                    except BaseException:
                        await tx.rollback()
                        raise
                    else:
                        await tx.commit()
        except TimeoutError as e:
            logger.warning("Ledger transaction exceeded %ss deadline", timeout)
            raise TransientError(
                "ledger transaction deadline exceeded",
                details={"timeout_seconds": timeout},
            ) from e

    @asynccontextmanager
    async def snapshot(self, timeout: float | None = None) -> AsyncIterator["LibsqlClient"]:
        """Exclude writers for a consistent multi-statement read."""
        try:
            async with asyncio.timeout(timeout):
                async with self._tx_lock:
                    yield self
        except TimeoutError as e:
            raise TransientError(
                "ledger read deadline exceeded",
                details={"timeout_seconds": timeout},
            ) from e

    async def close(self) -> None:
        """Close the database connection."""
        if self._client:
            await self._client.close()
            self._client = None
            logger.info("Ledger database connection closed")

    async def is_healthy(self) -> bool:
        """Check if database connection is healthy."""
        try:
            if not self._client:
                return False
            result = await self._client.execute("SELECT 1")
            return len(result.rows) == 1
        except Exception:
            return False
