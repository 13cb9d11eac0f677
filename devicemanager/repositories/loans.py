"""Loan repository.

Loans drive the device status: creating one marks the device "In Use",
returning it or deleting an active one marks it "Available" again.  Each
of those runs in one transaction with the loan write and both audit
entries, so a failure anywhere leaves neither table changed.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from typing import List, Optional, Union

from devicemanager.repositories.base import BaseRepository, Executor
from devicemanager.repositories.devices import DeviceRepository
from devicemanager.storage.db import DatabaseManager
from devicemanager.storage.models import AuditAction, DeviceStatus, Loan, LoanStatus

logger = logging.getLogger(__name__)


class LoanRepository(BaseRepository[Loan]):
    model = Loan
    table = "loans"
    alias = "l"
    select_sql = """
        SELECT l.*, d.name AS device_name, s.name AS supervisor_name
        FROM loans l
        LEFT JOIN devices d ON l.device_id = d.id
        LEFT JOIN supervisors s ON l.supervisor_id = s.id
    """
    search_columns = ("d.name", "s.name")
    filter_columns = {"status": "l.status"}

    def __init__(self, db: DatabaseManager, devices: Optional[DeviceRepository] = None):
        super().__init__(db)
        self.devices = devices or DeviceRepository(db)

    async def _active_for_device(self, executor: Executor, device_id: int) -> List[Loan]:
        return await self._select(
            executor, "l.device_id = ? AND l.status = ?", (device_id, LoanStatus.ACTIVE.value)
        )

    async def get_active_for_device(self, device_id: int) -> List[Loan]:
        return await self._active_for_device(self.db, device_id)

    async def get_by_supervisor(self, supervisor_id: int) -> List[Loan]:
        return await self._select(self.db, "l.supervisor_id = ?", (supervisor_id,))

    async def filter_by_status(self, status: Union[LoanStatus, str]) -> List[Loan]:
        return await self.filter_by("status", status)

    async def create(self, entity: Loan, actor_id: Optional[int] = None) -> int:
        """Insert a loan and mark its device "In Use". Returns the new id."""
        row = entity.to_row()
        async with self.db.transaction() as tx:
            if entity.is_active:
                existing = await self._active_for_device(tx, entity.device_id)
                if existing:
                    logger.warning(
                        "Device %d already has %d active loan(s); creating another",
                        entity.device_id, len(existing),
                    )
            new_id = await self._insert(tx, row)
            if entity.is_active:
                await self.devices.apply_status(tx, entity.device_id, DeviceStatus.IN_USE, actor_id)
            await tx.log_audit(self.table, AuditAction.CREATE, actor_id, None, {"id": new_id, **row})
        logger.info("Created loan %d for device %d", new_id, entity.device_id)
        return new_id

    async def return_device(self, loan_id: int, actor_id: Optional[int] = None) -> bool:
        """Complete an active loan and release its device.

        False if the loan does not exist or is not active.
        """
        async with self.db.transaction() as tx:
            current = await self._get(tx, loan_id)
            if current is None or not current.is_active:
                return False

            returned = replace(current, status=LoanStatus.RETURNED, return_date=date.today())
            result = await tx.execute(
                "UPDATE loans SET status = ?, return_date = ? WHERE id = ?",
                (returned.status.value, returned.return_date.isoformat(), loan_id),
            )
            await self.devices.apply_status(tx, current.device_id, DeviceStatus.AVAILABLE, actor_id)
            await tx.log_audit(
                self.table, AuditAction.RETURN, actor_id, current.snapshot(), returned.snapshot()
            )
        logger.info("Loan %d returned, device %d available", loan_id, current.device_id)
        return result.rowcount > 0

    async def delete(self, entity_id: int, actor_id: Optional[int] = None) -> bool:
        """Delete a loan; an active one releases its device."""
        async with self.db.transaction() as tx:
            current = await self._get(tx, entity_id)
            if current is None:
                return False
            deleted = await self._delete_row(tx, entity_id)
            if current.is_active:
                await self.devices.apply_status(
                    tx, current.device_id, DeviceStatus.AVAILABLE, actor_id
                )
            await tx.log_audit(self.table, AuditAction.DELETE, actor_id, current.snapshot(), None)
        logger.info("Deleted loan %d", entity_id)
        return deleted > 0
