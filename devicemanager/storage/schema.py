"""Idempotent schema bootstrap for the Device Manager database."""

from __future__ import annotations

import logging
from typing import List

import aiosqlite

logger = logging.getLogger(__name__)

TABLES = ("supervisors", "devices", "loans", "alerts", "audit")

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS supervisors (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    email TEXT NOT NULL UNIQUE,
    phone TEXT,
    permission TEXT NOT NULL,
    status TEXT NOT NULL,
    registration_date TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS devices (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    category TEXT NOT NULL,
    status TEXT NOT NULL,
    location TEXT,
    last_maintenance TEXT,
    scan_code TEXT UNIQUE,
    supervisor_id INTEGER,
    FOREIGN KEY (supervisor_id) REFERENCES supervisors (id)
);

CREATE TABLE IF NOT EXISTS loans (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    device_id INTEGER NOT NULL,
    supervisor_id INTEGER NOT NULL,
    loan_date TEXT NOT NULL,
    return_date TEXT,
    notes TEXT,
    status TEXT NOT NULL,
    FOREIGN KEY (device_id) REFERENCES devices (id),
    FOREIGN KEY (supervisor_id) REFERENCES supervisors (id)
);

CREATE TABLE IF NOT EXISTS alerts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    device_id INTEGER,
    type TEXT NOT NULL,
    description TEXT NOT NULL,
    date TEXT NOT NULL,
    resolved INTEGER NOT NULL DEFAULT 0,
    FOREIGN KEY (device_id) REFERENCES devices (id)
);

-- Append-only, never pruned
CREATE TABLE IF NOT EXISTS audit (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    table_name TEXT NOT NULL,
    action TEXT NOT NULL,
    actor_id INTEGER,
    date TEXT NOT NULL,
    before_json TEXT,
    after_json TEXT
);

CREATE INDEX IF NOT EXISTS idx_devices_status ON devices(status);
CREATE INDEX IF NOT EXISTS idx_devices_supervisor ON devices(supervisor_id);
CREATE INDEX IF NOT EXISTS idx_loans_device_status ON loans(device_id, status);
CREATE INDEX IF NOT EXISTS idx_loans_supervisor ON loans(supervisor_id);
CREATE INDEX IF NOT EXISTS idx_alerts_resolved ON alerts(resolved);
CREATE INDEX IF NOT EXISTS idx_audit_table ON audit(table_name);
"""


async def apply_schema(conn: aiosqlite.Connection) -> List[str]:
    """Create any missing tables and indexes. Returns the tables present afterwards."""
    await conn.executescript(SCHEMA_SQL)
    await conn.commit()
    tables = await list_tables(conn)
    logger.debug("Schema applied, tables: %s", ", ".join(tables))
    return tables


async def list_tables(conn: aiosqlite.Connection) -> List[str]:
    """Return the names of the user tables in the database."""
    cursor = await conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%' ORDER BY name"
    )
    rows = await cursor.fetchall()
    return [r[0] for r in rows]


async def reset_database(conn: aiosqlite.Connection) -> None:
    """Drop all tables and recreate an empty schema. USE WITH CAUTION."""
    await conn.execute("PRAGMA foreign_keys=OFF")
    try:
        # Children first
        for name in reversed(TABLES):
            await conn.execute(f"DROP TABLE IF EXISTS [{name}]")
        await conn.commit()
    finally:
        await conn.execute("PRAGMA foreign_keys=ON")
    await apply_schema(conn)
    logger.warning("Database reset: all tables dropped and recreated")
