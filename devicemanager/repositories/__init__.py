"""Per-entity data access: CRUD, search, filters and audit history."""

from devicemanager.repositories.alerts import AlertRepository
from devicemanager.repositories.audit import AuditRepository
from devicemanager.repositories.base import BaseRepository
from devicemanager.repositories.devices import DeviceRepository
from devicemanager.repositories.loans import LoanRepository
from devicemanager.repositories.supervisors import SupervisorRepository

__all__ = [
    "AlertRepository",
    "AuditRepository",
    "BaseRepository",
    "DeviceRepository",
    "LoanRepository",
    "SupervisorRepository",
]
