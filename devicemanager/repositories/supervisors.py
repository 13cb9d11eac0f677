"""Supervisor repository."""

from __future__ import annotations

from typing import List, Optional, Union

from devicemanager.repositories.base import BaseRepository
from devicemanager.storage.models import Permission, Supervisor, SupervisorStatus


class SupervisorRepository(BaseRepository[Supervisor]):
    model = Supervisor
    table = "supervisors"
    alias = "s"
    select_sql = "SELECT s.* FROM supervisors s"
    search_columns = ("s.name", "s.email")
    filter_columns = {"permission": "s.permission", "status": "s.status"}

    async def get_by_email(self, email: str) -> Optional[Supervisor]:
        found = await self._select(self.db, "s.email = ? COLLATE NOCASE", (email,))
        return found[0] if found else None

    async def filter_by_permission(self, permission: Union[Permission, str]) -> List[Supervisor]:
        return await self.filter_by("permission", permission)

    async def filter_by_status(self, status: Union[SupervisorStatus, str]) -> List[Supervisor]:
        return await self.filter_by("status", status)
