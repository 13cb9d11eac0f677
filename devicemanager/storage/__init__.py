"""Storage layer - SQLite connection, schema, entity models and audit log."""

from devicemanager.storage.db import DatabaseManager, QueryResult, Transaction
from devicemanager.storage.errors import DatabaseInitError, RowDecodeError, StorageError
from devicemanager.storage.models import (
    Alert,
    AuditAction,
    AuditRecord,
    Device,
    DeviceStatus,
    Loan,
    LoanStatus,
    Permission,
    Supervisor,
    SupervisorStatus,
)

__all__ = [
    "DatabaseManager",
    "QueryResult",
    "Transaction",
    "StorageError",
    "DatabaseInitError",
    "RowDecodeError",
    "Alert",
    "AuditAction",
    "AuditRecord",
    "Device",
    "DeviceStatus",
    "Loan",
    "LoanStatus",
    "Permission",
    "Supervisor",
    "SupervisorStatus",
]
