"""Device repository."""

from __future__ import annotations

import logging
from typing import List, Optional, Union

from devicemanager.repositories.base import BaseRepository
from devicemanager.storage.db import Transaction
from devicemanager.storage.models import AuditAction, Device, DeviceStatus

logger = logging.getLogger(__name__)


class DeviceRepository(BaseRepository[Device]):
    """CRUD, search and filters for ``devices``.

    Owns every device status change, including the ones driven by loans,
    through :meth:`apply_status`.
    """

    model = Device
    table = "devices"
    alias = "d"
    select_sql = """
        SELECT d.*, s.name AS supervisor_name
        FROM devices d
        LEFT JOIN supervisors s ON d.supervisor_id = s.id
    """
    search_columns = ("d.name", "d.category", "d.location")
    filter_columns = {"status": "d.status", "category": "d.category"}

    async def get_by_scan_code(self, scan_code: str) -> Optional[Device]:
        found = await self._select(self.db, "d.scan_code = ?", (scan_code,))
        return found[0] if found else None

    async def get_by_supervisor(self, supervisor_id: int) -> List[Device]:
        return await self._select(self.db, "d.supervisor_id = ?", (supervisor_id,))

    async def filter_by_status(self, status: Union[DeviceStatus, str]) -> List[Device]:
        return await self.filter_by("status", status)

    async def filter_by_category(self, category: str) -> List[Device]:
        return await self.filter_by("category", category)

    async def set_status(
        self,
        device_id: int,
        status: Union[DeviceStatus, str],
        actor_id: Optional[int] = None,
    ) -> bool:
        """Change only the status of a device. False if it does not exist."""
        async with self.db.transaction() as tx:
            return await self.apply_status(tx, device_id, status, actor_id)

    async def apply_status(
        self,
        tx: Transaction,
        device_id: int,
        status: Union[DeviceStatus, str],
        actor_id: Optional[int] = None,
    ) -> bool:
        """Set the status of ``device_id`` inside an open transaction.

        Writes an audit ``update`` entry when the status actually changes.
        """
        status = DeviceStatus(status)
        current = await self._get(tx, device_id)
        if current is None:
            logger.warning("Cannot set status %s: device %d not found", status.value, device_id)
            return False
        if current.status == status:
            return True

        await tx.execute("UPDATE devices SET status = ? WHERE id = ?", (status.value, device_id))
        after = current.snapshot()
        after["status"] = status.value
        await tx.log_audit(self.table, AuditAction.UPDATE, actor_id, current.snapshot(), after)
        logger.debug("Device %d: %s -> %s", device_id, current.status.value, status.value)
        return True
