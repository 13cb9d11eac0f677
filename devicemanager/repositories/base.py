"""Shared CRUD, search and filter behaviour for entity repositories."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, ClassVar, Dict, Generic, List, Optional, Protocol, Sequence, Type, TypeVar

from devicemanager.storage.db import DatabaseManager, Params, QueryResult, Transaction
from devicemanager.storage.models import AuditAction

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Executor(Protocol):
    """Anything that runs a statement: the manager itself or an open transaction."""

    async def execute(self, sql: str, params: Params = ...) -> QueryResult:
        ...


def like_pattern(query: str) -> str:
    """Wrap ``query`` in wildcards, escaping LIKE metacharacters."""
    escaped = query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class BaseRepository(Generic[T]):
    """Data access for one table.

    Subclasses set ``model`` (an entity with ``to_row``/``from_row``/
    ``snapshot``), ``table``, ``alias``, ``select_sql`` (the base SELECT,
    including display-name joins), ``search_columns`` and ``filter_columns``.

    Every mutation runs in a single transaction together with its audit
    entry.  Not-found is reported as ``None``/``False``; query errors
    propagate unchanged.
    """

    model: ClassVar[Type[Any]]
    table: ClassVar[str]
    alias: ClassVar[str]
    select_sql: ClassVar[str]
    search_columns: ClassVar[Sequence[str]] = ()
    filter_columns: ClassVar[Dict[str, str]] = {}

    def __init__(self, db: DatabaseManager):
        self.db = db

    # --- Reads ---

    async def _select(self, executor: Executor, where: str = "", params: Params = ()) -> List[T]:
        sql = self.select_sql
        if where:
            sql += f" WHERE {where}"
        sql += f" ORDER BY {self.alias}.id"
        result = await executor.execute(sql, params)
        return [self.model.from_row(r) for r in result.rows]

    async def _get(self, executor: Executor, entity_id: int) -> Optional[T]:
        found = await self._select(executor, f"{self.alias}.id = ?", (entity_id,))
        return found[0] if found else None

    async def list_all(self) -> List[T]:
        """Return every row, ordered by id."""
        return await self._select(self.db)

    async def get_by_id(self, entity_id: int) -> Optional[T]:
        """Return the entity with ``entity_id`` or ``None``."""
        return await self._get(self.db, entity_id)

    async def search(self, query: str) -> List[T]:
        """Case-insensitive substring match over the searchable columns."""
        if not self.search_columns:
            return []
        where = " OR ".join(f"{col} LIKE ? ESCAPE '\\'" for col in self.search_columns)
        pattern = like_pattern(query)
        results = await self._select(self.db, where, [pattern] * len(self.search_columns))
        logger.debug("Search %s for %r: %d results", self.table, query, len(results))
        return results

    async def filter_by(self, field: str, value: Any) -> List[T]:
        """Equality filter on one of ``filter_columns``."""
        column = self.filter_columns.get(field)
        if column is None:
            raise ValueError(
                f"Cannot filter {self.table} by {field!r}; allowed: {', '.join(self.filter_columns)}"
            )
        if isinstance(value, Enum):
            value = value.value
        return await self._select(self.db, f"{column} = ?", (value,))

    # --- Writes ---

    async def _insert(self, tx: Transaction, row: Dict[str, Any]) -> int:
        columns = ", ".join(row)
        placeholders = ", ".join("?" for _ in row)
        result = await tx.execute(
            f"INSERT INTO {self.table} ({columns}) VALUES ({placeholders})",
            tuple(row.values()),
        )
        return result.lastrowid or 0

    async def _update_row(self, tx: Transaction, entity_id: int, row: Dict[str, Any]) -> int:
        assignments = ", ".join(f"{col} = ?" for col in row)
        result = await tx.execute(
            f"UPDATE {self.table} SET {assignments} WHERE id = ?",
            (*row.values(), entity_id),
        )
        return result.rowcount

    async def _delete_row(self, tx: Transaction, entity_id: int) -> int:
        result = await tx.execute(f"DELETE FROM {self.table} WHERE id = ?", (entity_id,))
        return result.rowcount

    async def create(self, entity: T, actor_id: Optional[int] = None) -> int:
        """Insert ``entity`` and audit it. Returns the new id."""
        row = entity.to_row()  # type: ignore[attr-defined]
        async with self.db.transaction() as tx:
            new_id = await self._insert(tx, row)
            await tx.log_audit(self.table, AuditAction.CREATE, actor_id, None, {"id": new_id, **row})
        logger.info("Created %s %d", self.table, new_id)
        return new_id

    async def update(self, entity_id: int, entity: T, actor_id: Optional[int] = None) -> bool:
        """Overwrite every column of ``entity_id``. False if it does not exist."""
        row = entity.to_row()  # type: ignore[attr-defined]
        async with self.db.transaction() as tx:
            current = await self._get(tx, entity_id)
            if current is None:
                logger.debug("Update skipped, %s %d not found", self.table, entity_id)
                return False
            changed = await self._update_row(tx, entity_id, row)
            await tx.log_audit(
                self.table,
                AuditAction.UPDATE,
                actor_id,
                current.snapshot(),  # type: ignore[attr-defined]
                {"id": entity_id, **row},
            )
        return changed > 0

    async def delete(self, entity_id: int, actor_id: Optional[int] = None) -> bool:
        """Delete ``entity_id``. False if it does not exist."""
        async with self.db.transaction() as tx:
            current = await self._get(tx, entity_id)
            if current is None:
                logger.debug("Delete skipped, %s %d not found", self.table, entity_id)
                return False
            deleted = await self._delete_row(tx, entity_id)
            await tx.log_audit(
                self.table,
                AuditAction.DELETE,
                actor_id,
                current.snapshot(),  # type: ignore[attr-defined]
                None,
            )
        if deleted:
            logger.info("Deleted %s %d", self.table, entity_id)
        return deleted > 0
