"""Read access to the append-only audit log."""

from __future__ import annotations

from typing import Any, List, Optional, Union

from devicemanager.storage.db import DatabaseManager
from devicemanager.storage.models import AuditAction, AuditRecord

DEFAULT_LIMIT = 50


class AuditRepository:
    """Query audit entries. There are no write or delete operations here."""

    def __init__(self, db: DatabaseManager):
        self.db = db

    async def list_entries(
        self,
        table_name: Optional[str] = None,
        action: Optional[Union[AuditAction, str]] = None,
        limit: int = DEFAULT_LIMIT,
    ) -> List[AuditRecord]:
        """Newest entries first, optionally filtered by table and action."""
        conditions = []
        params: List[Any] = []
        if table_name:
            conditions.append("table_name = ?")
            params.append(table_name)
        if action:
            conditions.append("action = ?")
            params.append(AuditAction(action).value)

        sql = "SELECT * FROM audit"
        if conditions:
            sql += " WHERE " + " AND ".join(conditions)
        sql += " ORDER BY id DESC LIMIT ?"
        params.append(limit)

        result = await self.db.execute(sql, params)
        return [AuditRecord.from_row(r) for r in result.rows]

    async def get_for_record(self, table_name: str, record_id: int) -> List[AuditRecord]:
        """Every entry whose before or after snapshot belongs to ``record_id``, oldest first."""
        result = await self.db.execute(
            """SELECT * FROM audit
               WHERE table_name = ?
                 AND (json_extract(before_json, '$.id') = ?
                      OR json_extract(after_json, '$.id') = ?)
               ORDER BY id""",
            (table_name, record_id, record_id),
        )
        return [AuditRecord.from_row(r) for r in result.rows]

    async def count(self, table_name: Optional[str] = None) -> int:
        if table_name:
            result = await self.db.execute(
                "SELECT COUNT(*) AS cnt FROM audit WHERE table_name = ?", (table_name,)
            )
        else:
            result = await self.db.execute("SELECT COUNT(*) AS cnt FROM audit")
        return result.rows[0]["cnt"]
