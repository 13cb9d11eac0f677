"""One-time sample data for a fresh inventory."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, datetime, timezone
from typing import TYPE_CHECKING, Dict, List

from devicemanager.storage.models import (
    Alert,
    Device,
    DeviceStatus,
    Loan,
    LoanStatus,
    Permission,
    Supervisor,
    SupervisorStatus,
)

if TYPE_CHECKING:
    from devicemanager.app.context import InventoryContext

logger = logging.getLogger(__name__)

SAMPLE_SUPERVISORS: List[Supervisor] = [
    Supervisor("John Doe", "john.doe@example.com", "555-123-4567",
               Permission.ADMIN, SupervisorStatus.ACTIVE, date(2023, 1, 15)),
    Supervisor("Jane Smith", "jane.smith@example.com", "555-987-6543",
               Permission.BASIC, SupervisorStatus.ACTIVE, date(2023, 2, 20)),
    Supervisor("Mike Johnson", "mike.johnson@example.com", "555-456-7890",
               Permission.AUDITOR, SupervisorStatus.ACTIVE, date(2023, 3, 10)),
    Supervisor("Sarah Williams", "sarah.williams@example.com", "555-789-0123",
               Permission.BASIC, SupervisorStatus.INACTIVE, date(2023, 1, 5)),
    Supervisor("Robert Brown", "robert.brown@example.com", "555-234-5678",
               Permission.ADMIN, SupervisorStatus.ACTIVE, date(2023, 4, 12)),
]

# (device, owner email)
SAMPLE_DEVICES = [
    (Device("MacBook Pro", "Hardware", DeviceStatus.AVAILABLE, "Main Office",
            date(2023, 5, 1), "DEV-0001"), "john.doe@example.com"),
    (Device("Dell XPS", "Hardware", DeviceStatus.AVAILABLE, "Engineering Dept",
            date(2023, 4, 28), "DEV-0002"), "jane.smith@example.com"),
    (Device("iPad Pro", "Hardware", DeviceStatus.MAINTENANCE, "IT Department",
            date(2023, 5, 3), "DEV-0003"), "mike.johnson@example.com"),
    (Device("Adobe Creative Suite", "Software", DeviceStatus.AVAILABLE, "Design Dept",
            date(2023, 4, 25), "DEV-0004"), "sarah.williams@example.com"),
    (Device("Projector", "Hardware", DeviceStatus.AVAILABLE, "Conference Room",
            date(2023, 5, 2), "DEV-0005"), "john.doe@example.com"),
]

# (device scan code, supervisor email, loan date, return date, notes)
SAMPLE_LOANS = [
    ("DEV-0002", "jane.smith@example.com", date(2023, 4, 28), None, "For client presentation"),
    ("DEV-0005", "john.doe@example.com", date(2023, 5, 2), None, "For team meeting"),
    ("DEV-0003", "mike.johnson@example.com", date(2023, 4, 20), date(2023, 4, 30), "For field work"),
    ("DEV-0004", "sarah.williams@example.com", date(2023, 4, 15), date(2023, 4, 25), "For design project"),
]

# (device scan code, type, description)
SAMPLE_ALERTS = [
    ("DEV-0002", "Overdue", "Device has been on loan for 8 days"),
    ("DEV-0003", "Maintenance", "Device requires maintenance"),
]


async def seed_sample_data(app: InventoryContext) -> bool:
    """Insert the sample inventory once. Returns False if already seeded."""
    if await app.db.is_data_initialized():
        logger.debug("Sample data already present, skipping seed")
        return False

    supervisor_ids: Dict[str, int] = {}
    for supervisor in SAMPLE_SUPERVISORS:
        supervisor_ids[supervisor.email] = await app.supervisors.create(supervisor)

    device_ids: Dict[str, int] = {}
    for device, owner_email in SAMPLE_DEVICES:
        owned = replace(device, supervisor_id=supervisor_ids[owner_email])
        device_ids[device.scan_code] = await app.devices.create(owned)

    for scan_code, email, loan_date, return_date, notes in SAMPLE_LOANS:
        await app.loans.create(
            Loan(
                device_id=device_ids[scan_code],
                supervisor_id=supervisor_ids[email],
                loan_date=loan_date,
                status=LoanStatus.RETURNED if return_date else LoanStatus.ACTIVE,
                return_date=return_date,
                notes=notes,
            )
        )

    now = datetime.now(timezone.utc)
    for scan_code, alert_type, description in SAMPLE_ALERTS:
        await app.alerts.create(
            Alert(type=alert_type, description=description, date=now, device_id=device_ids[scan_code])
        )

    await app.db.mark_data_initialized()
    logger.info(
        "Seeded sample data: %d supervisors, %d devices, %d loans, %d alerts",
        len(SAMPLE_SUPERVISORS), len(SAMPLE_DEVICES), len(SAMPLE_LOANS), len(SAMPLE_ALERTS),
    )
    return True
