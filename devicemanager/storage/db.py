"""Async SQLite storage handle for the Device Manager."""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional, Sequence, Union

import aiosqlite

from devicemanager.storage.errors import DatabaseInitError
from devicemanager.storage.models import AuditAction, AuditRecord
from devicemanager.storage.schema import TABLES, apply_schema, reset_database
from devicemanager.storage.settings import DATA_INITIALIZED_KEY, SettingsStore

logger = logging.getLogger(__name__)

DEFAULT_CACHE_SIZE_MB = 16
DEFAULT_SETTINGS_FILE = "settings.json"

Params = Union[Sequence[Any], Mapping[str, Any]]


@dataclass
class QueryResult:
    """Rows and counters from one statement."""

    rows: List[Dict[str, Any]] = field(default_factory=list)
    rowcount: int = 0
    lastrowid: Optional[int] = None

    def first(self) -> Optional[Dict[str, Any]]:
        return self.rows[0] if self.rows else None

    def __len__(self) -> int:
        return len(self.rows)


async def _run(conn: aiosqlite.Connection, sql: str, params: Params) -> QueryResult:
    t0 = time.monotonic()
    try:
        cursor = await conn.execute(sql, params)
        try:
            rows = await cursor.fetchall()
            result = QueryResult(
                rows=[dict(r) for r in rows],
                rowcount=cursor.rowcount,
                lastrowid=cursor.lastrowid,
            )
        finally:
            await cursor.close()
    except sqlite3.Error:
        logger.exception("Error executing SQL: %s", " ".join(sql.split()))
        raise

    logger.debug(
        "SQL %r: %d rows, %d affected in %.3fs",
        " ".join(sql.split())[:80], len(result.rows), result.rowcount, time.monotonic() - t0,
    )
    return result


class Transaction:
    """Unit of work bound to an open ``BEGIN IMMEDIATE`` transaction.

    Obtained from :meth:`DatabaseManager.transaction`; every statement run
    through it commits or rolls back together.
    """

    def __init__(self, conn: aiosqlite.Connection):
        self._conn = conn

    async def execute(self, sql: str, params: Params = ()) -> QueryResult:
        return await _run(self._conn, sql, params)

    async def log_audit(
        self,
        table: str,
        action: Union[AuditAction, str],
        actor_id: Optional[int] = None,
        before: Optional[Mapping[str, Any]] = None,
        after: Optional[Mapping[str, Any]] = None,
    ) -> int:
        """Append an audit entry inside this transaction. Returns its id."""
        record = AuditRecord(
            table_name=table,
            action=AuditAction(action),
            actor_id=actor_id,
            date=datetime.now(timezone.utc),
            before=dict(before) if before is not None else None,
            after=dict(after) if after is not None else None,
        )
        row = record.to_row()
        result = await self.execute(
            """INSERT INTO audit (table_name, action, actor_id, date, before_json, after_json)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (
                row["table_name"],
                row["action"],
                row["actor_id"],
                row["date"],
                row["before_json"],
                row["after_json"],
            ),
        )
        return result.lastrowid or 0


class DatabaseManager:
    """Sole owner of the SQLite connection.

    The connection is opened lazily on first use and the schema is created
    if absent.  After :meth:`close` the next call opens it again.  Callers
    are serialized by a single lock, so one transaction never interleaves
    with another statement.

    Usage:
        db = DatabaseManager("data/devicemanager.db")
        rows = (await db.execute("SELECT * FROM devices")).rows
        async with db.transaction() as tx:
            await tx.execute(...)
            await tx.log_audit(...)
        await db.close()
    """

    def __init__(
        self,
        db_path: str,
        settings_path: Optional[str] = None,
        cache_size_mb: int = DEFAULT_CACHE_SIZE_MB,
    ):
        self.db_path = db_path
        self.cache_size_mb = cache_size_mb
        if settings_path is None:
            base = Path(".") if self.in_memory else Path(db_path).parent
            settings_path = str(base / DEFAULT_SETTINGS_FILE)
        self.settings = SettingsStore(settings_path)
        self._conn: Optional[aiosqlite.Connection] = None
        self._init_lock = asyncio.Lock()
        self._write_lock = asyncio.Lock()

    @property
    def in_memory(self) -> bool:
        return self.db_path == ":memory:" or self.db_path.startswith("file::memory:")

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    async def initialize(self) -> None:
        """Open the connection, configure pragmas and create the schema."""
        if self._conn is not None:
            return
        async with self._init_lock:
            if self._conn is not None:
                return

            conn: Optional[aiosqlite.Connection] = None
            try:
                if not self.in_memory:
                    Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
                conn = await aiosqlite.connect(self.db_path)
                conn.row_factory = aiosqlite.Row

                await conn.execute("PRAGMA foreign_keys=ON")
                if not self.in_memory:
                    await conn.execute("PRAGMA journal_mode=WAL")
                await conn.execute(f"PRAGMA cache_size=-{self.cache_size_mb * 1000}")

                await apply_schema(conn)
            except (sqlite3.Error, OSError) as exc:
                logger.exception("Error initializing database: %s", self.db_path)
                if conn is not None:
                    await conn.close()
                raise DatabaseInitError(f"Could not initialize database {self.db_path}: {exc}") from exc

            self._conn = conn
            logger.info("Database initialized: %s", self.db_path)

    async def close(self) -> None:
        """Close the database connection."""
        async with self._write_lock:
            if self._conn:
                await self._conn.close()
                self._conn = None
                logger.info("Database closed: %s", self.db_path)

    async def _connection(self) -> aiosqlite.Connection:
        if self._conn is None:
            await self.initialize()
        assert self._conn is not None
        return self._conn

    async def execute(self, sql: str, params: Params = ()) -> QueryResult:
        """Run one parameterized statement and commit it.

        A failed statement is rolled back before its error propagates.
        """
        async with self._write_lock:
            conn = await self._connection()
            try:
                result = await _run(conn, sql, params)
                await conn.commit()
            except BaseException:
                await conn.rollback()
                raise
        return result

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[Transaction]:
        """Acquire the write lock and run a multi-statement transaction.

        Commits when the block exits normally, rolls back and re-raises on
        any exception.  Do not call :meth:`execute` from inside the block;
        use the yielded :class:`Transaction` instead.
        """
        async with self._write_lock:
            conn = await self._connection()
            await conn.execute("BEGIN IMMEDIATE")
            try:
                yield Transaction(conn)
                await conn.commit()
            except BaseException:
                logger.warning("Transaction rolled back")
                await conn.rollback()
                raise

    async def log_audit(
        self,
        table: str,
        action: Union[AuditAction, str],
        actor_id: Optional[int] = None,
        before: Optional[Mapping[str, Any]] = None,
        after: Optional[Mapping[str, Any]] = None,
    ) -> int:
        """Append a standalone audit entry. Returns its id."""
        async with self.transaction() as tx:
            return await tx.log_audit(table, action, actor_id, before, after)

    # --- First-run flag ---

    async def is_data_initialized(self) -> bool:
        """Whether sample data has already been seeded."""
        try:
            return self.settings.get(DATA_INITIALIZED_KEY) == "true"
        except (OSError, ValueError):
            logger.exception("Error checking if data is initialized")
            return False

    async def mark_data_initialized(self) -> None:
        """Record that sample data has been seeded. Failures are logged only."""
        try:
            self.settings.set(DATA_INITIALIZED_KEY, "true")
        except (OSError, ValueError):
            logger.exception("Error marking data as initialized")

    async def clear_data_initialized(self) -> None:
        try:
            self.settings.delete(DATA_INITIALIZED_KEY)
        except (OSError, ValueError):
            logger.exception("Error clearing data initialized flag")

    # --- Maintenance ---

    async def reset(self) -> None:
        """Drop and recreate every table, then clear the first-run flag."""
        async with self._write_lock:
            conn = await self._connection()
            await reset_database(conn)
        await self.clear_data_initialized()

    async def vacuum(self) -> None:
        """Run VACUUM to reclaim space and defragment."""
        await self.execute("VACUUM")

    async def integrity_check(self) -> bool:
        """Run integrity check on the database."""
        result = await self.execute("PRAGMA integrity_check")
        row = result.first()
        return row is not None and list(row.values())[0] == "ok"

    async def get_stats(self) -> Dict[str, Any]:
        """Get database statistics."""
        stats: Dict[str, Any] = {}

        for table in TABLES:
            result = await self.execute(f"SELECT COUNT(*) AS cnt FROM {table}")
            stats[f"total_{table}"] = result.rows[0]["cnt"]

        result = await self.execute(
            """SELECT status, COUNT(*) AS cnt FROM devices
               GROUP BY status ORDER BY cnt DESC"""
        )
        stats["devices_by_status"] = {r["status"]: r["cnt"] for r in result.rows}

        result = await self.execute("SELECT COUNT(*) AS cnt FROM loans WHERE status = 'Active'")
        stats["active_loans"] = result.rows[0]["cnt"]

        result = await self.execute("SELECT COUNT(*) AS cnt FROM alerts WHERE resolved = 0")
        stats["unresolved_alerts"] = result.rows[0]["cnt"]

        result = await self.execute(
            "SELECT page_count * page_size AS size FROM pragma_page_count(), pragma_page_size()"
        )
        row = result.first()
        stats["db_size_bytes"] = row["size"] if row else 0

        return stats
