"""Tests for the entity repositories and their audit trail."""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from dataclasses import replace
from datetime import date, datetime, timezone

import pytest

from devicemanager.repositories import (
    AlertRepository,
    AuditRepository,
    DeviceRepository,
    LoanRepository,
    SupervisorRepository,
)
from devicemanager.repositories.base import like_pattern
from devicemanager.storage.db import DatabaseManager
from devicemanager.storage.models import (
    Alert,
    AuditAction,
    Device,
    DeviceStatus,
    Loan,
    LoanStatus,
    Permission,
    Supervisor,
    SupervisorStatus,
)


# --- Fixtures ---

@pytest.fixture
async def db(tmp_path):
    manager = DatabaseManager(str(tmp_path / "test.db"))
    await manager.initialize()
    yield manager
    await manager.close()


@pytest.fixture
def supervisors(db):
    return SupervisorRepository(db)


@pytest.fixture
def devices(db):
    return DeviceRepository(db)


@pytest.fixture
def loans(db, devices):
    return LoanRepository(db, devices=devices)


@pytest.fixture
def alerts(db):
    return AlertRepository(db)


@pytest.fixture
def audit(db):
    return AuditRepository(db)


def make_supervisor(name: str = "John Doe", email: str = "john.doe@example.com", **kwargs) -> Supervisor:
    kwargs.setdefault("registration_date", date(2023, 1, 15))
    return Supervisor(name=name, email=email, **kwargs)


def make_device(name: str = "Router A", category: str = "Hardware", **kwargs) -> Device:
    return Device(name=name, category=category, **kwargs)


async def audit_count(db: DatabaseManager, table: str) -> int:
    result = await db.execute("SELECT COUNT(*) AS cnt FROM audit WHERE table_name = ?", (table,))
    return result.rows[0]["cnt"]


# --- Base Behaviour Tests ---

class TestLikePattern:
    def test_plain(self):
        assert like_pattern("mac") == "%mac%"

    def test_escapes_wildcards(self):
        assert like_pattern("50%_off\\") == "%50\\%\\_off\\\\%"


# --- Supervisor Tests ---

class TestSupervisorRepository:
    @pytest.mark.asyncio
    async def test_create_and_get(self, supervisors, audit):
        sup_id = await supervisors.create(make_supervisor(phone="555-123-4567", permission=Permission.ADMIN))
        assert sup_id == 1

        sup = await supervisors.get_by_id(sup_id)
        assert sup is not None
        assert sup.id == sup_id
        assert sup.name == "John Doe"
        assert sup.permission is Permission.ADMIN
        assert sup.registration_date == date(2023, 1, 15)

        entries = await audit.list_entries("supervisors")
        assert len(entries) == 1
        assert entries[0].action is AuditAction.CREATE
        assert entries[0].before is None
        assert entries[0].after["id"] == sup_id
        assert entries[0].after["email"] == "john.doe@example.com"

    @pytest.mark.asyncio
    async def test_get_missing_returns_none(self, supervisors):
        assert await supervisors.get_by_id(999) is None

    @pytest.mark.asyncio
    async def test_list_all_ordered_by_id(self, supervisors):
        for i in range(3):
            await supervisors.create(make_supervisor(f"User {i}", f"user{i}@example.com"))
        listed = await supervisors.list_all()
        assert [s.name for s in listed] == ["User 0", "User 1", "User 2"]

    @pytest.mark.asyncio
    async def test_duplicate_email_rolls_back(self, db, supervisors):
        await supervisors.create(make_supervisor())
        with pytest.raises(sqlite3.IntegrityError):
            await supervisors.create(make_supervisor("Other", "john.doe@example.com"))

        assert len(await supervisors.list_all()) == 1
        assert await audit_count(db, "supervisors") == 1

    @pytest.mark.asyncio
    async def test_update(self, supervisors, audit):
        sup_id = await supervisors.create(make_supervisor())
        ok = await supervisors.update(
            sup_id, make_supervisor(email="john@example.com", status=SupervisorStatus.INACTIVE)
        )
        assert ok is True

        sup = await supervisors.get_by_id(sup_id)
        assert sup.email == "john@example.com"
        assert sup.status is SupervisorStatus.INACTIVE

        entry = (await audit.list_entries("supervisors", AuditAction.UPDATE))[0]
        assert entry.before["email"] == "john.doe@example.com"
        assert entry.after["email"] == "john@example.com"

    @pytest.mark.asyncio
    async def test_update_missing_returns_false(self, db, supervisors):
        assert await supervisors.update(42, make_supervisor()) is False
        assert await audit_count(db, "supervisors") == 0

    @pytest.mark.asyncio
    async def test_delete(self, supervisors, audit):
        sup_id = await supervisors.create(make_supervisor())
        assert await supervisors.delete(sup_id, actor_id=sup_id) is True
        assert await supervisors.get_by_id(sup_id) is None
        assert await supervisors.delete(sup_id) is False

        entry = (await audit.list_entries("supervisors", "delete"))[0]
        assert entry.actor_id == sup_id
        assert entry.before["name"] == "John Doe"
        assert entry.after is None

    @pytest.mark.asyncio
    async def test_search_is_case_insensitive(self, supervisors):
        await supervisors.create(make_supervisor())
        await supervisors.create(make_supervisor("Jane Smith", "jane.smith@example.com"))

        assert [s.name for s in await supervisors.search("JOHN")] == ["John Doe"]
        assert [s.name for s in await supervisors.search("smith@")] == ["Jane Smith"]
        assert len(await supervisors.search("example")) == 2
        assert await supervisors.search("nobody") == []

    @pytest.mark.asyncio
    async def test_search_treats_wildcards_literally(self, supervisors):
        await supervisors.create(make_supervisor("Plain Name", "plain@example.com"))
        await supervisors.create(make_supervisor("Under_score", "under@example.com"))

        assert [s.name for s in await supervisors.search("_")] == ["Under_score"]
        assert await supervisors.search("%") == []

    @pytest.mark.asyncio
    async def test_filters(self, supervisors):
        await supervisors.create(make_supervisor(permission=Permission.ADMIN))
        await supervisors.create(make_supervisor(
            "Sarah Williams", "sarah@example.com", status=SupervisorStatus.INACTIVE,
        ))

        admins = await supervisors.filter_by_permission(Permission.ADMIN)
        assert [s.name for s in admins] == ["John Doe"]
        inactive = await supervisors.filter_by_status("Inactive")
        assert [s.name for s in inactive] == ["Sarah Williams"]

    @pytest.mark.asyncio
    async def test_filter_unknown_field_rejected(self, supervisors):
        with pytest.raises(ValueError):
            await supervisors.filter_by("email; DROP TABLE supervisors", "x")

    @pytest.mark.asyncio
    async def test_get_by_email(self, supervisors):
        sup_id = await supervisors.create(make_supervisor())
        found = await supervisors.get_by_email("John.Doe@Example.com")
        assert found is not None and found.id == sup_id
        assert await supervisors.get_by_email("nobody@example.com") is None


# --- Device Tests ---

class TestDeviceRepository:
    @pytest.mark.asyncio
    async def test_create_with_supervisor_name(self, supervisors, devices):
        sup_id = await supervisors.create(make_supervisor())
        dev_id = await devices.create(make_device(
            location="Main Office", scan_code="QR-1", supervisor_id=sup_id,
            last_maintenance=date(2024, 1, 1),
        ))

        device = await devices.get_by_id(dev_id)
        assert device.supervisor_name == "John Doe"
        assert device.status is DeviceStatus.AVAILABLE
        assert device.last_maintenance == date(2024, 1, 1)

    @pytest.mark.asyncio
    async def test_unknown_supervisor_rejected(self, db, devices):
        with pytest.raises(sqlite3.IntegrityError):
            await devices.create(make_device(supervisor_id=99))
        assert await devices.list_all() == []
        assert await audit_count(db, "devices") == 0

    @pytest.mark.asyncio
    async def test_scan_code(self, devices):
        dev_id = await devices.create(make_device(scan_code="QR-1"))
        found = await devices.get_by_scan_code("QR-1")
        assert found.id == dev_id
        assert await devices.get_by_scan_code("QR-2") is None

        with pytest.raises(sqlite3.IntegrityError):
            await devices.create(make_device("Router B", scan_code="QR-1"))

    @pytest.mark.asyncio
    async def test_search_and_filters(self, devices):
        await devices.create(make_device("MacBook Pro", location="Main Office"))
        await devices.create(make_device("Adobe Creative Suite", "Software", location="Design Dept"))
        await devices.create(make_device("iPad Pro", status=DeviceStatus.MAINTENANCE))

        assert {d.name for d in await devices.search("pro")} == {"MacBook Pro", "iPad Pro"}
        assert [d.name for d in await devices.search("design")] == ["Adobe Creative Suite"]
        assert [d.name for d in await devices.search("software")] == ["Adobe Creative Suite"]

        assert [d.name for d in await devices.filter_by_category("Software")] == ["Adobe Creative Suite"]
        assert [d.name for d in await devices.filter_by_status(DeviceStatus.MAINTENANCE)] == ["iPad Pro"]
        assert len(await devices.filter_by("status", "Available")) == 2
        with pytest.raises(ValueError):
            await devices.filter_by("location", "Main Office")

    @pytest.mark.asyncio
    async def test_get_by_supervisor(self, supervisors, devices):
        sup_id = await supervisors.create(make_supervisor())
        await devices.create(make_device(supervisor_id=sup_id))
        await devices.create(make_device("Unowned"))

        owned = await devices.get_by_supervisor(sup_id)
        assert [d.name for d in owned] == ["Router A"]

    @pytest.mark.asyncio
    async def test_set_status(self, db, devices, audit):
        dev_id = await devices.create(make_device())

        assert await devices.set_status(dev_id, DeviceStatus.MAINTENANCE, actor_id=3) is True
        assert (await devices.get_by_id(dev_id)).status is DeviceStatus.MAINTENANCE

        entry = (await audit.list_entries("devices", "update"))[0]
        assert entry.actor_id == 3
        assert entry.before["status"] == "Available"
        assert entry.after["status"] == "Maintenance"

        # Unchanged status writes nothing
        before = await audit_count(db, "devices")
        assert await devices.set_status(dev_id, "Maintenance") is True
        assert await audit_count(db, "devices") == before

        assert await devices.set_status(999, DeviceStatus.IN_USE) is False

    @pytest.mark.asyncio
    async def test_set_status_rejects_unknown_value(self, devices):
        dev_id = await devices.create(make_device())
        with pytest.raises(ValueError):
            await devices.set_status(dev_id, "Lost")
        assert (await devices.get_by_id(dev_id)).status is DeviceStatus.AVAILABLE

    @pytest.mark.asyncio
    async def test_delete_referenced_device_fails(self, supervisors, devices, loans):
        sup_id = await supervisors.create(make_supervisor())
        dev_id = await devices.create(make_device())
        await loans.create(Loan(device_id=dev_id, supervisor_id=sup_id, loan_date=date(2024, 1, 1)))

        with pytest.raises(sqlite3.IntegrityError):
            await devices.delete(dev_id)
        assert await devices.get_by_id(dev_id) is not None


# --- Loan Tests ---

class TestLoanRepository:
    @pytest.fixture
    async def ids(self, supervisors, devices):
        sup_id = await supervisors.create(make_supervisor())
        dev_id = await devices.create(make_device())
        return sup_id, dev_id

    @pytest.mark.asyncio
    async def test_lend_and_return(self, ids, devices, loans):
        sup_id, dev_id = ids

        loan_id = await loans.create(
            Loan(device_id=dev_id, supervisor_id=sup_id, loan_date=date.today(), notes="Demo")
        )
        device = await devices.get_by_id(dev_id)
        assert device.status is DeviceStatus.IN_USE

        loan = await loans.get_by_id(loan_id)
        assert loan.status is LoanStatus.ACTIVE
        assert loan.device_name == "Router A"
        assert loan.supervisor_name == "John Doe"
        assert loan.return_date is None

        assert await loans.return_device(loan_id) is True

        loan = await loans.get_by_id(loan_id)
        assert loan.status is LoanStatus.RETURNED
        assert loan.return_date == date.today()
        assert (await devices.get_by_id(dev_id)).status is DeviceStatus.AVAILABLE

    @pytest.mark.asyncio
    async def test_return_twice(self, ids, loans):
        sup_id, dev_id = ids
        loan_id = await loans.create(Loan(device_id=dev_id, supervisor_id=sup_id, loan_date=date.today()))

        assert await loans.return_device(loan_id) is True
        assert await loans.return_device(loan_id) is False

    @pytest.mark.asyncio
    async def test_return_missing_loan(self, db, loans):
        assert await loans.return_device(999) is False
        assert await audit_count(db, "loans") == 0

    @pytest.mark.asyncio
    async def test_returned_loan_leaves_device_alone(self, ids, devices, loans):
        sup_id, dev_id = ids
        await loans.create(Loan(
            device_id=dev_id, supervisor_id=sup_id, loan_date=date(2023, 4, 20),
            status=LoanStatus.RETURNED, return_date=date(2023, 4, 30),
        ))
        assert (await devices.get_by_id(dev_id)).status is DeviceStatus.AVAILABLE

    @pytest.mark.asyncio
    async def test_delete_active_loan_releases_device(self, ids, devices, loans, audit):
        sup_id, dev_id = ids
        loan_id = await loans.create(Loan(device_id=dev_id, supervisor_id=sup_id, loan_date=date.today()))

        assert await loans.delete(loan_id) is True
        assert await loans.get_by_id(loan_id) is None
        assert (await devices.get_by_id(dev_id)).status is DeviceStatus.AVAILABLE
        assert (await audit.list_entries("loans", "delete"))[0].before["id"] == loan_id
        assert await loans.delete(loan_id) is False

    @pytest.mark.asyncio
    async def test_unknown_device_rejected(self, db, ids, loans):
        sup_id, _ = ids
        with pytest.raises(sqlite3.IntegrityError):
            await loans.create(Loan(device_id=999, supervisor_id=sup_id, loan_date=date.today()))
        assert await loans.list_all() == []
        assert await audit_count(db, "loans") == 0

    @pytest.mark.asyncio
    async def test_failure_rolls_back_loan_and_device(self, db, ids, devices, loans, monkeypatch):
        sup_id, dev_id = ids

        async def failing_apply_status(*args, **kwargs):
            raise RuntimeError("disk on fire")

        monkeypatch.setattr(devices, "apply_status", failing_apply_status)
        with pytest.raises(RuntimeError):
            await loans.create(Loan(device_id=dev_id, supervisor_id=sup_id, loan_date=date.today()))

        assert await loans.list_all() == []
        assert await audit_count(db, "loans") == 0
        assert (await devices.get_by_id(dev_id)).status is DeviceStatus.AVAILABLE

    @pytest.mark.asyncio
    async def test_status_changes_are_audited(self, ids, loans, audit):
        sup_id, dev_id = ids
        loan_id = await loans.create(
            Loan(device_id=dev_id, supervisor_id=sup_id, loan_date=date.today()), actor_id=sup_id,
        )
        await loans.return_device(loan_id, actor_id=sup_id)

        device_entries = await audit.get_for_record("devices", dev_id)
        assert [e.action for e in device_entries] == [
            AuditAction.CREATE, AuditAction.UPDATE, AuditAction.UPDATE,
        ]
        assert device_entries[1].after["status"] == "In Use"
        assert device_entries[2].after["status"] == "Available"
        assert device_entries[1].actor_id == sup_id

        loan_entries = await audit.get_for_record("loans", loan_id)
        assert [e.action for e in loan_entries] == [AuditAction.CREATE, AuditAction.RETURN]
        assert loan_entries[1].before["status"] == "Active"
        assert loan_entries[1].after["status"] == "Returned"
        assert loan_entries[1].after["return_date"] == date.today().isoformat()

    @pytest.mark.asyncio
    async def test_second_active_loan_warns(self, ids, supervisors, loans, caplog):
        sup_id, dev_id = ids
        other_id = await supervisors.create(make_supervisor("Jane Smith", "jane@example.com"))
        await loans.create(Loan(device_id=dev_id, supervisor_id=sup_id, loan_date=date.today()))

        with caplog.at_level(logging.WARNING, logger="devicemanager.repositories.loans"):
            await loans.create(Loan(device_id=dev_id, supervisor_id=other_id, loan_date=date.today()))

        assert "already has 1 active loan" in caplog.text
        assert len(await loans.get_active_for_device(dev_id)) == 2

    @pytest.mark.asyncio
    async def test_queries(self, ids, supervisors, devices, loans):
        sup_id, dev_id = ids
        other_dev = await devices.create(make_device("Projector"))
        other_sup = await supervisors.create(make_supervisor("Jane Smith", "jane@example.com"))

        first = await loans.create(Loan(device_id=dev_id, supervisor_id=sup_id, loan_date=date.today()))
        await loans.create(Loan(device_id=other_dev, supervisor_id=other_sup, loan_date=date.today()))
        await loans.return_device(first)

        assert [l.id for l in await loans.get_by_supervisor(sup_id)] == [first]
        assert [l.device_name for l in await loans.filter_by_status(LoanStatus.ACTIVE)] == ["Projector"]
        assert [l.device_name for l in await loans.search("jane")] == ["Projector"]
        assert [l.supervisor_name for l in await loans.search("router")] == ["John Doe"]
        assert await loans.get_active_for_device(dev_id) == []

    @pytest.mark.asyncio
    async def test_interleaved_operations_stay_consistent(self, supervisors, devices, loans):
        sup_id = await supervisors.create(make_supervisor())
        device_ids = [await devices.create(make_device(f"Device {i}")) for i in range(6)]

        loan_ids = await asyncio.gather(*(
            loans.create(Loan(device_id=d, supervisor_id=sup_id, loan_date=date.today()))
            for d in device_ids
        ))
        await asyncio.gather(*(loans.return_device(l) for l in loan_ids[:3]))

        statuses = {d.id: d.status for d in await devices.list_all()}
        for dev_id in device_ids[:3]:
            assert statuses[dev_id] is DeviceStatus.AVAILABLE
        for dev_id in device_ids[3:]:
            assert statuses[dev_id] is DeviceStatus.IN_USE
        assert len(await loans.filter_by_status("Active")) == 3


# --- Alert Tests ---

class TestAlertRepository:
    @pytest.fixture
    async def dev_id(self, devices):
        return await devices.create(make_device())

    def make_alert(self, device_id, **kwargs) -> Alert:
        kwargs.setdefault("type", "Overdue")
        kwargs.setdefault("description", "Device has been on loan for 8 days")
        return Alert(date=datetime(2024, 1, 2, 9, 30, tzinfo=timezone.utc), device_id=device_id, **kwargs)

    @pytest.mark.asyncio
    async def test_create_with_device_name(self, alerts, dev_id):
        alert_id = await alerts.create(self.make_alert(dev_id))
        alert = await alerts.get_by_id(alert_id)
        assert alert.device_name == "Router A"
        assert alert.resolved is False
        assert alert.date == datetime(2024, 1, 2, 9, 30, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_alert_without_device(self, alerts):
        alert_id = await alerts.create(self.make_alert(None, type="System"))
        alert = await alerts.get_by_id(alert_id)
        assert alert.device_id is None
        assert alert.device_name is None

    @pytest.mark.asyncio
    async def test_resolve(self, db, alerts, audit, dev_id):
        alert_id = await alerts.create(self.make_alert(dev_id))

        assert await alerts.resolve(alert_id, actor_id=1) is True
        assert (await alerts.get_by_id(alert_id)).resolved is True

        entry = (await audit.list_entries("alerts", AuditAction.RESOLVE))[0]
        assert entry.before["resolved"] == 0
        assert entry.after["resolved"] == 1

        # Already resolved: no change, no new entry
        before = await audit_count(db, "alerts")
        assert await alerts.resolve(alert_id) is True
        assert await audit_count(db, "alerts") == before

        assert await alerts.resolve(999) is False

    @pytest.mark.asyncio
    async def test_queries(self, alerts, devices, dev_id):
        other_dev = await devices.create(make_device("Projector"))
        first = await alerts.create(self.make_alert(dev_id))
        await alerts.create(self.make_alert(other_dev, type="Maintenance", description="Lamp check"))
        await alerts.resolve(first)

        assert [a.type for a in await alerts.get_unresolved()] == ["Maintenance"]
        assert [a.id for a in await alerts.get_for_device(dev_id)] == [first]
        assert [a.type for a in await alerts.search("lamp")] == ["Maintenance"]
        assert [a.id for a in await alerts.filter_by("resolved", 1)] == [first]
        assert [a.type for a in await alerts.filter_by("type", "Maintenance")] == ["Maintenance"]


# --- Round-trip Tests (all entities) ---

ENTITY_TABLES = ["supervisors", "devices", "loans", "alerts"]


def entity_pair(table: str, sup_id: int, dev_id: int):
    """Return an entity for ``table`` and a differing replacement for it."""
    if table == "supervisors":
        return (
            make_supervisor("Jane Smith", "jane.smith@example.com", phone="555-987-6543"),
            make_supervisor(
                "Jane Doe", "jane.doe@example.com",
                permission=Permission.AUDITOR, status=SupervisorStatus.INACTIVE,
                registration_date=date(2023, 2, 20),
            ),
        )
    if table == "devices":
        return (
            make_device("Projector", location="Conference Room", supervisor_id=sup_id),
            make_device(
                "Projector 2", "AV", status=DeviceStatus.MAINTENANCE, location="Room 4",
                last_maintenance=date(2024, 3, 1), scan_code="QR-9",
            ),
        )
    if table == "loans":
        return (
            Loan(
                device_id=dev_id, supervisor_id=sup_id, loan_date=date(2024, 1, 1),
                status=LoanStatus.RETURNED, return_date=date(2024, 1, 5), notes="Field work",
            ),
            Loan(
                device_id=dev_id, supervisor_id=sup_id, loan_date=date(2024, 1, 2),
                status=LoanStatus.RETURNED, return_date=date(2024, 1, 9), notes="Extended",
            ),
        )
    return (
        Alert(
            type="Overdue", description="Device has been on loan for 8 days",
            date=datetime(2024, 1, 2, 9, 30, tzinfo=timezone.utc), device_id=dev_id,
        ),
        Alert(
            type="Maintenance", description="Lamp check",
            date=datetime(2024, 2, 3, 17, 45, 10, tzinfo=timezone.utc), device_id=None,
            resolved=True,
        ),
    )


class TestEntityRoundTrips:
    @pytest.fixture
    async def seeded(self, supervisors, devices, loans, alerts):
        sup_id = await supervisors.create(make_supervisor())
        dev_id = await devices.create(make_device())
        repos = {"supervisors": supervisors, "devices": devices, "loans": loans, "alerts": alerts}
        return repos, sup_id, dev_id

    @pytest.mark.asyncio
    @pytest.mark.parametrize("table", ENTITY_TABLES)
    async def test_create_then_get(self, seeded, table):
        repos, sup_id, dev_id = seeded
        original, _ = entity_pair(table, sup_id, dev_id)

        new_id = await repos[table].create(original)
        assert await repos[table].get_by_id(new_id) == replace(original, id=new_id)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("table", ENTITY_TABLES)
    async def test_update_then_get(self, db, seeded, table, audit):
        repos, sup_id, dev_id = seeded
        original, replacement = entity_pair(table, sup_id, dev_id)
        new_id = await repos[table].create(original)

        assert await repos[table].update(new_id, replacement, actor_id=sup_id) is True
        assert await repos[table].get_by_id(new_id) == replace(replacement, id=new_id)

        entry = (await audit.list_entries(table, AuditAction.UPDATE))[0]
        assert entry.actor_id == sup_id
        assert entry.before == {"id": new_id, **original.to_row()}
        assert entry.after == {"id": new_id, **replacement.to_row()}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("table", ENTITY_TABLES)
    async def test_update_missing_id(self, db, seeded, table):
        repos, sup_id, dev_id = seeded
        _, replacement = entity_pair(table, sup_id, dev_id)
        before = await audit_count(db, table)

        assert await repos[table].update(999, replacement) is False
        assert await repos[table].get_by_id(999) is None
        assert await audit_count(db, table) == before

    @pytest.mark.asyncio
    @pytest.mark.parametrize("table", ENTITY_TABLES)
    async def test_delete_then_get(self, db, seeded, table):
        repos, sup_id, dev_id = seeded
        original, _ = entity_pair(table, sup_id, dev_id)
        new_id = await repos[table].create(original)

        assert await repos[table].delete(new_id) is True
        assert await repos[table].get_by_id(new_id) is None

        before = await audit_count(db, table)
        assert await repos[table].delete(new_id) is False
        assert await audit_count(db, table) == before


# --- Audit Tests ---

class TestAuditRepository:
    @pytest.mark.asyncio
    async def test_newest_first_with_limit(self, supervisors, audit):
        for i in range(5):
            await supervisors.create(make_supervisor(f"User {i}", f"user{i}@example.com"))

        entries = await audit.list_entries(limit=3)
        assert len(entries) == 3
        assert [e.after["name"] for e in entries] == ["User 4", "User 3", "User 2"]

    @pytest.mark.asyncio
    async def test_filters_and_count(self, supervisors, devices, audit):
        sup_id = await supervisors.create(make_supervisor())
        await devices.create(make_device(supervisor_id=sup_id))
        await supervisors.delete(await supervisors.create(make_supervisor("Temp", "temp@example.com")))

        assert await audit.count() == 4
        assert await audit.count("supervisors") == 3
        assert len(await audit.list_entries("devices")) == 1
        assert len(await audit.list_entries(action=AuditAction.DELETE)) == 1
        assert await audit.list_entries("alerts") == []

        with pytest.raises(ValueError):
            await audit.list_entries(action="frobnicate")

    @pytest.mark.asyncio
    async def test_history_of_one_record(self, supervisors, audit):
        sup_id = await supervisors.create(make_supervisor())
        other_id = await supervisors.create(make_supervisor("Jane Smith", "jane@example.com"))
        await supervisors.update(sup_id, make_supervisor(phone="555-000-0000"))
        await supervisors.delete(sup_id)

        history = await audit.get_for_record("supervisors", sup_id)
        assert [e.action for e in history] == [
            AuditAction.CREATE, AuditAction.UPDATE, AuditAction.DELETE,
        ]
        assert len(await audit.get_for_record("supervisors", other_id)) == 1
        assert await audit.get_for_record("devices", sup_id) == []

    @pytest.mark.asyncio
    async def test_exposes_no_mutations(self, audit):
        for name in ("create", "update", "delete", "insert"):
            assert not hasattr(audit, name)
