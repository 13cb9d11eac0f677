"""CLI interface for the Device Manager inventory.

Usage:
    devicemanager init
    devicemanager status
    devicemanager devices --search router
    devicemanager lend 1 2 --notes "For field work"
    devicemanager return 3
    devicemanager audit --table loans
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import sys
from datetime import date
from typing import Awaitable, Callable, List, Optional

import click
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from devicemanager.app.context import DEFAULT_CONFIG_PATH, InventoryContext, load_config
from devicemanager.storage.errors import StorageError
from devicemanager.storage.models import (
    Alert,
    AuditRecord,
    Device,
    DeviceStatus,
    Loan,
    LoanStatus,
    Permission,
    Supervisor,
    SupervisorStatus,
)

console = Console()
logger = logging.getLogger(__name__)


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
    )


def run_with_context(
    ctx: click.Context,
    fn: Callable[[InventoryContext], Awaitable[Optional[int]]],
    seed: Optional[bool] = False,
) -> None:
    """Open an inventory context, run ``fn`` against it and close it.

    A non-zero return from ``fn`` becomes the process exit code.
    """

    async def _run() -> Optional[int]:
        app = InventoryContext(ctx.obj["config"], db_path=ctx.obj["db_path"])
        try:
            await app.initialize(seed=seed)
            return await fn(app)
        finally:
            await app.close()

    try:
        code = asyncio.run(_run())
    except (StorageError, sqlite3.Error) as exc:
        logger.debug("Command failed", exc_info=True)
        console.print(f"[red]Error:[/red] {exc}")
        sys.exit(1)
    if code:
        sys.exit(code)


def _enum_choice(enum_cls) -> click.Choice:
    return click.Choice([m.value for m in enum_cls], case_sensitive=False)


def _fmt_date(val) -> str:
    return val.isoformat() if val else "-"


def _device_table(devices: List[Device], title: str = "Devices") -> Table:
    table = Table(title=title)
    table.add_column("ID", justify="right", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Category")
    table.add_column("Status")
    table.add_column("Location")
    table.add_column("Supervisor")
    table.add_column("Maintained")
    table.add_column("Scan code")
    status_style = {
        DeviceStatus.AVAILABLE: "green",
        DeviceStatus.IN_USE: "yellow",
        DeviceStatus.MAINTENANCE: "red",
    }
    for d in devices:
        style = status_style.get(d.status, "white")
        table.add_row(
            str(d.id),
            d.name,
            d.category,
            f"[{style}]{d.status.value}",
            d.location or "-",
            d.supervisor_name or "-",
            _fmt_date(d.last_maintenance),
            d.scan_code or "-",
        )
    return table


def _supervisor_table(supervisors: List[Supervisor]) -> Table:
    table = Table(title="Supervisors")
    table.add_column("ID", justify="right", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Email")
    table.add_column("Phone")
    table.add_column("Permission")
    table.add_column("Status")
    table.add_column("Registered")
    for s in supervisors:
        table.add_row(
            str(s.id),
            s.name,
            s.email,
            s.phone or "-",
            s.permission.value,
            "[green]Active" if s.status == SupervisorStatus.ACTIVE else "[red]Inactive",
            _fmt_date(s.registration_date),
        )
    return table


def _loan_table(loans: List[Loan]) -> Table:
    table = Table(title="Loans")
    table.add_column("ID", justify="right", style="dim")
    table.add_column("Device", style="cyan")
    table.add_column("Supervisor")
    table.add_column("Loaned")
    table.add_column("Returned")
    table.add_column("Status")
    table.add_column("Notes", max_width=40)
    for loan in loans:
        table.add_row(
            str(loan.id),
            loan.device_name or f"#{loan.device_id}",
            loan.supervisor_name or f"#{loan.supervisor_id}",
            _fmt_date(loan.loan_date),
            _fmt_date(loan.return_date),
            "[yellow]Active" if loan.is_active else "[green]Returned",
            loan.notes or "",
        )
    return table


def _alert_table(alerts: List[Alert]) -> Table:
    table = Table(title="Alerts")
    table.add_column("ID", justify="right", style="dim")
    table.add_column("Device", style="cyan")
    table.add_column("Type")
    table.add_column("Description", max_width=50)
    table.add_column("Date")
    table.add_column("Resolved")
    for a in alerts:
        table.add_row(
            str(a.id),
            a.device_name or "-",
            a.type,
            a.description,
            a.date.strftime("%Y-%m-%d %H:%M"),
            "[green]yes" if a.resolved else "[red]no",
        )
    return table


def _audit_table(records: List[AuditRecord]) -> Table:
    table = Table(title="Audit log")
    table.add_column("ID", justify="right", style="dim")
    table.add_column("Date")
    table.add_column("Table", style="cyan")
    table.add_column("Action")
    table.add_column("Record", justify="right")
    table.add_column("Actor", justify="right")
    for r in records:
        snapshot = r.after or r.before or {}
        table.add_row(
            str(r.id),
            r.date.strftime("%Y-%m-%d %H:%M:%S"),
            r.table_name,
            r.action.value,
            str(snapshot.get("id", "-")),
            str(r.actor_id) if r.actor_id is not None else "-",
        )
    return table


@click.group()
@click.option("--db", "db_path", default=None, help="Database path (overrides config)")
@click.option("--config", "config_path", default=DEFAULT_CONFIG_PATH, help="Config file path")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
@click.pass_context
def cli(ctx, db_path: Optional[str], config_path: str, verbose: bool):
    """Device Manager inventory CLI."""
    ctx.ensure_object(dict)
    try:
        config = load_config(config_path)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        console.print(f"[red]Invalid config:[/red] {exc}")
        sys.exit(1)
    setup_logging("DEBUG" if verbose else str((config.get("logging") or {}).get("level", "WARNING")))
    ctx.obj["config"] = config
    ctx.obj["db_path"] = db_path


@cli.command()
@click.pass_context
def init(ctx):
    """Create the schema and seed sample data on first run."""

    async def _run(app: InventoryContext):
        seeded = await app.db.is_data_initialized()
        console.print(f"[green]Database ready:[/green] {app.db_path}")
        console.print("Sample data: " + ("present" if seeded else "not seeded"))

    run_with_context(ctx, _run, seed=None)


@cli.command()
@click.pass_context
def status(ctx):
    """Show inventory statistics."""

    async def _run(app: InventoryContext):
        stats = await app.db.get_stats()
        ok = await app.db.integrity_check()

        console.print("\n[bold]Database Status[/bold]")
        console.print(f"  Path: {app.db_path}")
        console.print(f"  Size: {stats['db_size_bytes'] / 1024:.1f} KB")
        console.print(f"  Integrity: {'[green]ok' if ok else '[red]FAILED'}")
        console.print(f"  Devices: {stats['total_devices']}")
        console.print(f"  Supervisors: {stats['total_supervisors']}")
        console.print(f"  Loans: {stats['total_loans']} ({stats['active_loans']} active)")
        console.print(f"  Alerts: {stats['total_alerts']} ({stats['unresolved_alerts']} unresolved)")
        console.print(f"  Audit entries: {stats['total_audit']}")

        if stats["devices_by_status"]:
            console.print("\n[bold]Devices by Status[/bold]")
            for st, cnt in stats["devices_by_status"].items():
                console.print(f"  {st}: {cnt}")

    run_with_context(ctx, _run)


@cli.command()
@click.option("--search", "-s", "query", help="Match name, category or location")
@click.option("--status", type=_enum_choice(DeviceStatus), help="Filter by status")
@click.option("--category", "-c", help="Filter by category")
@click.option("--scan-code", help="Look up one device by scan code")
@click.pass_context
def devices(ctx, query: Optional[str], status: Optional[str], category: Optional[str], scan_code: Optional[str]):
    """List, search or filter devices."""

    async def _run(app: InventoryContext):
        if scan_code:
            found = await app.devices.get_by_scan_code(scan_code)
            result = [found] if found else []
        elif query:
            result = await app.devices.search(query)
        elif status:
            result = await app.devices.filter_by_status(DeviceStatus(status))
        elif category:
            result = await app.devices.filter_by_category(category)
        else:
            result = await app.devices.list_all()

        if not result:
            console.print("[yellow]No devices found[/yellow]")
            return
        console.print(_device_table(result))

    run_with_context(ctx, _run)


@cli.command()
@click.option("--search", "-s", "query", help="Match name or email")
@click.option("--permission", type=_enum_choice(Permission), help="Filter by permission")
@click.option("--status", type=_enum_choice(SupervisorStatus), help="Filter by status")
@click.pass_context
def supervisors(ctx, query: Optional[str], permission: Optional[str], status: Optional[str]):
    """List, search or filter supervisors."""

    async def _run(app: InventoryContext):
        if query:
            result = await app.supervisors.search(query)
        elif permission:
            result = await app.supervisors.filter_by_permission(permission)
        elif status:
            result = await app.supervisors.filter_by_status(status)
        else:
            result = await app.supervisors.list_all()

        if not result:
            console.print("[yellow]No supervisors found[/yellow]")
            return
        console.print(_supervisor_table(result))

    run_with_context(ctx, _run)


@cli.command()
@click.option("--search", "-s", "query", help="Match device or supervisor name")
@click.option("--status", type=_enum_choice(LoanStatus), help="Filter by status")
@click.pass_context
def loans(ctx, query: Optional[str], status: Optional[str]):
    """List, search or filter loans."""

    async def _run(app: InventoryContext):
        if query:
            result = await app.loans.search(query)
        elif status:
            result = await app.loans.filter_by_status(status)
        else:
            result = await app.loans.list_all()

        if not result:
            console.print("[yellow]No loans found[/yellow]")
            return
        console.print(_loan_table(result))

    run_with_context(ctx, _run)


@cli.command()
@click.argument("device_id", type=int)
@click.argument("supervisor_id", type=int)
@click.option("--notes", "-n", default=None, help="Free-text notes")
@click.option("--actor", type=int, default=None, help="Actor id recorded in the audit log")
@click.pass_context
def lend(ctx, device_id: int, supervisor_id: int, notes: Optional[str], actor: Optional[int]):
    """Lend a device to a supervisor."""

    async def _run(app: InventoryContext):
        loan = Loan(
            device_id=device_id,
            supervisor_id=supervisor_id,
            loan_date=date.today(),
            notes=notes,
        )
        loan_id = await app.loans.create(loan, actor_id=actor)
        console.print(f"[green]Created loan {loan_id}[/green] (device {device_id} now In Use)")

    run_with_context(ctx, _run)


@cli.command("return")
@click.argument("loan_id", type=int)
@click.option("--actor", type=int, default=None, help="Actor id recorded in the audit log")
@click.pass_context
def return_loan(ctx, loan_id: int, actor: Optional[int]):
    """Return the device of an active loan."""

    async def _run(app: InventoryContext):
        if not await app.loans.return_device(loan_id, actor_id=actor):
            console.print(f"[red]Loan {loan_id} not found or not active[/red]")
            return 1
        console.print(f"[green]Loan {loan_id} returned[/green]")

    run_with_context(ctx, _run)


@cli.command()
@click.option("--unresolved", is_flag=True, help="Only unresolved alerts")
@click.option("--search", "-s", "query", help="Match description or type")
@click.option("--device", "device_id", type=int, help="Alerts for one device")
@click.pass_context
def alerts(ctx, unresolved: bool, query: Optional[str], device_id: Optional[int]):
    """List, search or filter alerts."""

    async def _run(app: InventoryContext):
        if query:
            result = await app.alerts.search(query)
        elif device_id is not None:
            result = await app.alerts.get_for_device(device_id)
        elif unresolved:
            result = await app.alerts.get_unresolved()
        else:
            result = await app.alerts.list_all()

        if not result:
            console.print("[yellow]No alerts found[/yellow]")
            return
        console.print(_alert_table(result))

    run_with_context(ctx, _run)


@cli.command()
@click.argument("alert_id", type=int)
@click.option("--actor", type=int, default=None, help="Actor id recorded in the audit log")
@click.pass_context
def resolve(ctx, alert_id: int, actor: Optional[int]):
    """Mark an alert resolved."""

    async def _run(app: InventoryContext):
        if not await app.alerts.resolve(alert_id, actor_id=actor):
            console.print(f"[red]Alert {alert_id} not found[/red]")
            return 1
        console.print(f"[green]Alert {alert_id} resolved[/green]")

    run_with_context(ctx, _run)


@cli.command()
@click.option("--table", "table_name", help="Only entries for this table")
@click.option("--limit", "-n", default=20, help="Max entries")
@click.pass_context
def audit(ctx, table_name: Optional[str], limit: int):
    """Show the most recent audit entries."""

    async def _run(app: InventoryContext):
        records = await app.audit.list_entries(table_name=table_name, limit=limit)
        if not records:
            console.print("[yellow]No audit entries[/yellow]")
            return
        console.print(_audit_table(records))

    run_with_context(ctx, _run)


@cli.command()
@click.pass_context
def vacuum(ctx):
    """Vacuum the database."""

    async def _run(app: InventoryContext):
        with console.status("[bold green]Vacuuming database..."):
            await app.db.vacuum()
        stats = await app.db.get_stats()
        console.print(f"[green]Database vacuumed[/green] ({stats['db_size_bytes'] / 1024:.1f} KB)")

    run_with_context(ctx, _run)


@cli.command()
@click.option("--yes", is_flag=True, help="Confirm dropping all data")
@click.pass_context
def reset(ctx, yes: bool):
    """Drop every table and recreate an empty schema."""
    if not yes:
        console.print("[red]Refusing to reset without --yes[/red]")
        sys.exit(1)

    async def _run(app: InventoryContext):
        await app.db.reset()
        console.print("[green]Database reset[/green]")

    run_with_context(ctx, _run)


def main():
    cli()


if __name__ == "__main__":
    main()
