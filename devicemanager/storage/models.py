"""Entity models for the Device Manager storage layer.

Each entity converts to a flat column dict (``to_row``) and back
(``from_row``).  Decoding validates the row: missing required columns,
NULLs in required columns, unparsable dates or flags and unknown
enumeration values raise :class:`RowDecodeError`.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, ClassVar, Dict, Mapping, Optional, Type, TypeVar

from dateutil.parser import parse as dateparse

from devicemanager.storage.errors import RowDecodeError

E = TypeVar("E", bound=Enum)

_MISSING = object()


class DeviceStatus(str, Enum):
    AVAILABLE = "Available"
    IN_USE = "In Use"
    MAINTENANCE = "Maintenance"


class LoanStatus(str, Enum):
    ACTIVE = "Active"
    RETURNED = "Returned"


class Permission(str, Enum):
    ADMIN = "Admin"
    BASIC = "Basic"
    AUDITOR = "Auditor"


class SupervisorStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"


class AuditAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    RESOLVE = "resolve"
    RETURN = "return"


@dataclass
class Supervisor:
    """A person allowed to own devices and take loans."""

    TABLE: ClassVar[str] = "supervisors"

    name: str
    email: str
    phone: Optional[str] = None
    permission: Permission = Permission.BASIC
    status: SupervisorStatus = SupervisorStatus.ACTIVE
    registration_date: date = field(default_factory=date.today)
    id: Optional[int] = None

    def to_row(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "permission": _enum_value(self.permission),
            "status": _enum_value(self.status),
            "registration_date": _iso(self.registration_date),
        }

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> Supervisor:
        t = cls.TABLE
        return cls(
            id=_optional_int(row, t, "id"),
            name=_required(row, t, "name"),
            email=_required(row, t, "email"),
            phone=row.get("phone"),
            permission=_parse_enum(Permission, _required(row, t, "permission"), t, "permission"),
            status=_parse_enum(SupervisorStatus, _required(row, t, "status"), t, "status"),
            registration_date=_parse_date(_required(row, t, "registration_date"), t, "registration_date"),
        )

    def snapshot(self) -> Dict[str, Any]:
        return {"id": self.id, **self.to_row()}


@dataclass
class Device:
    """An inventory item that can be lent out."""

    TABLE: ClassVar[str] = "devices"

    name: str
    category: str
    status: DeviceStatus = DeviceStatus.AVAILABLE
    location: Optional[str] = None
    last_maintenance: Optional[date] = None
    scan_code: Optional[str] = None
    supervisor_id: Optional[int] = None
    id: Optional[int] = None

    # Display only, filled by joins
    supervisor_name: Optional[str] = field(default=None, compare=False)

    def to_row(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "category": self.category,
            "status": _enum_value(self.status),
            "location": self.location,
            "last_maintenance": _iso(self.last_maintenance),
            "scan_code": self.scan_code,
            "supervisor_id": self.supervisor_id,
        }

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> Device:
        t = cls.TABLE
        return cls(
            id=_optional_int(row, t, "id"),
            name=_required(row, t, "name"),
            category=_required(row, t, "category"),
            status=_parse_enum(DeviceStatus, _required(row, t, "status"), t, "status"),
            location=row.get("location"),
            last_maintenance=_parse_date(row.get("last_maintenance"), t, "last_maintenance"),
            scan_code=row.get("scan_code"),
            supervisor_id=_optional_int(row, t, "supervisor_id"),
            supervisor_name=row.get("supervisor_name"),
        )

    def snapshot(self) -> Dict[str, Any]:
        return {"id": self.id, **self.to_row()}


@dataclass
class Loan:
    """A device lent to a supervisor."""

    TABLE: ClassVar[str] = "loans"

    device_id: int
    supervisor_id: int
    loan_date: date
    status: LoanStatus = LoanStatus.ACTIVE
    return_date: Optional[date] = None
    notes: Optional[str] = None
    id: Optional[int] = None

    # Display only, filled by joins
    device_name: Optional[str] = field(default=None, compare=False)
    supervisor_name: Optional[str] = field(default=None, compare=False)

    @property
    def is_active(self) -> bool:
        return self.status == LoanStatus.ACTIVE

    def to_row(self) -> Dict[str, Any]:
        return {
            "device_id": self.device_id,
            "supervisor_id": self.supervisor_id,
            "loan_date": _iso(self.loan_date),
            "return_date": _iso(self.return_date),
            "notes": self.notes,
            "status": _enum_value(self.status),
        }

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> Loan:
        t = cls.TABLE
        return cls(
            id=_optional_int(row, t, "id"),
            device_id=_required_int(row, t, "device_id"),
            supervisor_id=_required_int(row, t, "supervisor_id"),
            loan_date=_parse_date(_required(row, t, "loan_date"), t, "loan_date"),
            return_date=_parse_date(row.get("return_date"), t, "return_date"),
            notes=row.get("notes"),
            status=_parse_enum(LoanStatus, _required(row, t, "status"), t, "status"),
            device_name=row.get("device_name"),
            supervisor_name=row.get("supervisor_name"),
        )

    def snapshot(self) -> Dict[str, Any]:
        return {"id": self.id, **self.to_row()}


@dataclass
class Alert:
    """A notice raised about a device (or about the inventory in general)."""

    TABLE: ClassVar[str] = "alerts"

    type: str
    description: str
    date: datetime
    device_id: Optional[int] = None
    resolved: bool = False
    id: Optional[int] = None

    # Display only, filled by joins
    device_name: Optional[str] = field(default=None, compare=False)

    def to_row(self) -> Dict[str, Any]:
        return {
            "device_id": self.device_id,
            "type": self.type,
            "description": self.description,
            "date": _iso(self.date),
            "resolved": int(bool(self.resolved)),
        }

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> Alert:
        t = cls.TABLE
        return cls(
            id=_optional_int(row, t, "id"),
            device_id=_optional_int(row, t, "device_id"),
            type=_required(row, t, "type"),
            description=_required(row, t, "description"),
            date=_parse_ts(_required(row, t, "date"), t, "date"),
            resolved=_parse_flag(row.get("resolved", 0), t, "resolved"),
            device_name=row.get("device_name"),
        )

    def snapshot(self) -> Dict[str, Any]:
        return {"id": self.id, **self.to_row()}


@dataclass
class AuditRecord:
    """One append-only entry of the audit log."""

    TABLE: ClassVar[str] = "audit"

    table_name: str
    action: AuditAction
    date: datetime
    actor_id: Optional[int] = None
    before: Optional[Dict[str, Any]] = None
    after: Optional[Dict[str, Any]] = None
    id: Optional[int] = None

    def to_row(self) -> Dict[str, Any]:
        return {
            "table_name": self.table_name,
            "action": _enum_value(self.action),
            "actor_id": self.actor_id,
            "date": _iso(self.date),
            "before_json": dump_snapshot(self.before),
            "after_json": dump_snapshot(self.after),
        }

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> AuditRecord:
        t = cls.TABLE
        return cls(
            id=_optional_int(row, t, "id"),
            table_name=_required(row, t, "table_name"),
            action=_parse_enum(AuditAction, _required(row, t, "action"), t, "action"),
            actor_id=_optional_int(row, t, "actor_id"),
            date=_parse_ts(_required(row, t, "date"), t, "date"),
            before=_parse_json(row.get("before_json"), t, "before_json"),
            after=_parse_json(row.get("after_json"), t, "after_json"),
        )


# --- Helpers ---

def dump_snapshot(snapshot: Optional[Mapping[str, Any]]) -> Optional[str]:
    """Serialize an audit snapshot to JSON text; ``None`` stays NULL."""
    if snapshot is None:
        return None
    return json.dumps(dict(snapshot), default=_json_default, sort_keys=True)


def _json_default(val: Any) -> Any:
    if isinstance(val, Enum):
        return val.value
    if isinstance(val, (date, datetime)):
        return val.isoformat()
    raise TypeError(f"Object of type {type(val).__name__} is not JSON serializable")


def _iso(val: Optional[date]) -> Optional[str]:
    return val.isoformat() if val is not None else None


def _enum_value(val: Any) -> Any:
    return val.value if isinstance(val, Enum) else val


def _required(row: Mapping[str, Any], table: str, column: str) -> Any:
    val = row.get(column, _MISSING)
    if val is _MISSING:
        raise RowDecodeError(table, column, "missing column")
    if val is None:
        raise RowDecodeError(table, column, "NULL in required column")
    return val


def _required_int(row: Mapping[str, Any], table: str, column: str) -> int:
    val = _required(row, table, column)
    return _coerce_int(val, table, column)


def _optional_int(row: Mapping[str, Any], table: str, column: str) -> Optional[int]:
    val = row.get(column)
    if val is None:
        return None
    return _coerce_int(val, table, column)


def _coerce_int(val: Any, table: str, column: str) -> int:
    if isinstance(val, bool):
        raise RowDecodeError(table, column, "expected integer", val)
    try:
        return int(val)
    except (TypeError, ValueError):
        raise RowDecodeError(table, column, "expected integer", val) from None


def _parse_enum(enum_cls: Type[E], val: Any, table: str, column: str) -> E:
    try:
        return enum_cls(val)
    except ValueError:
        raise RowDecodeError(table, column, f"unknown {enum_cls.__name__} value {val!r}", val) from None


def _parse_flag(val: Any, table: str, column: str) -> bool:
    if val is None:
        return False
    if isinstance(val, bool):
        return val
    if val in (0, 1):
        return bool(val)
    raise RowDecodeError(table, column, "expected 0/1 flag", val)


def _parse_ts(val: Any, table: str, column: str) -> Optional[datetime]:
    """Parse a timestamp string or return None."""
    if val is None:
        return None
    if isinstance(val, datetime):
        return val
    if isinstance(val, date):
        return datetime(val.year, val.month, val.day)
    try:
        return dateparse(str(val))
    except (ValueError, OverflowError, TypeError):
        raise RowDecodeError(table, column, "invalid timestamp", val) from None


def _parse_date(val: Any, table: str, column: str) -> Optional[date]:
    if val is None:
        return None
    if isinstance(val, datetime):
        return val.date()
    if isinstance(val, date):
        return val
    ts = _parse_ts(val, table, column)
    return ts.date() if ts else None


def _parse_json(val: Any, table: str, column: str) -> Optional[Dict[str, Any]]:
    if val is None:
        return None
    if isinstance(val, dict):
        return val
    try:
        parsed = json.loads(val)
    except (json.JSONDecodeError, TypeError):
        raise RowDecodeError(table, column, "invalid JSON snapshot", val) from None
    if parsed is not None and not isinstance(parsed, dict):
        raise RowDecodeError(table, column, "snapshot is not an object", val)
    return parsed
