"""Alert repository."""

from __future__ import annotations

import logging
from typing import List, Optional

from devicemanager.repositories.base import BaseRepository
from devicemanager.storage.models import Alert, AuditAction

logger = logging.getLogger(__name__)


class AlertRepository(BaseRepository[Alert]):
    model = Alert
    table = "alerts"
    alias = "a"
    select_sql = """
        SELECT a.*, m.name AS device_name
        FROM alerts a
        LEFT JOIN devices m ON a.device_id = m.id
    """
    search_columns = ("a.description", "a.type")
    filter_columns = {"type": "a.type", "resolved": "a.resolved"}

    async def get_for_device(self, device_id: int) -> List[Alert]:
        return await self._select(self.db, "a.device_id = ?", (device_id,))

    async def get_unresolved(self) -> List[Alert]:
        return await self._select(self.db, "a.resolved = 0")

    async def resolve(self, alert_id: int, actor_id: Optional[int] = None) -> bool:
        """Mark an alert resolved.

        Returns False only when the alert does not exist.  Resolving an
        already resolved alert is a no-op that still returns True.
        """
        async with self.db.transaction() as tx:
            current = await self._get(tx, alert_id)
            if current is None:
                return False
            if current.resolved:
                logger.debug("Alert %d already resolved", alert_id)
                return True

            await tx.execute("UPDATE alerts SET resolved = 1 WHERE id = ?", (alert_id,))
            after = current.snapshot()
            after["resolved"] = 1
            await tx.log_audit(self.table, AuditAction.RESOLVE, actor_id, current.snapshot(), after)
        logger.info("Resolved alert %d", alert_id)
        return True
