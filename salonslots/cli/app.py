"""
Main CLI application using Typer.
"""

import logging
from pathlib import Path
from typing import Annotated, Dict, List, Optional

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..adapters.record_store import InMemoryRecordStore, RecordStoreProtocol, RestRecordStore
from ..adapters.repositories import (
    AppointmentRepository,
    BlackoutRepository,
    BusinessHoursRepository,
    ClientRepository,
    ServiceRepository,
)
from ..config import AppConfig, get_default_config_path
from ..domain.exceptions import SalonSlotsError
from ..domain.models import TIME_FORMAT, DayHours, parse_date
from ..services.availability_service import AvailabilityService
from ..services.booking_service import BookingRequest, BookingService

app = typer.Typer(
    name="salonslots",
    help="Check appointment availability and manage bookings for the salon",
    add_completion=False
)

console = Console()

WEEKDAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml"),
]
MockOption = Annotated[
    bool,
    typer.Option("--mock", help="Use bundled sample data instead of the hosted store (changes are not saved)."),
]


class _Context:
    """Config plus repositories and services wired to one record store."""

    def __init__(self, config: AppConfig, store: RecordStoreProtocol):
        self.config = config
        self.hours = BusinessHoursRepository(store)
        self.appointments = AppointmentRepository(store)
        self.blackouts = BlackoutRepository(store)
        self.clients = ClientRepository(store)
        self.services = ServiceRepository(store)
        self.availability = AvailabilityService(
            hours_repository=self.hours,
            appointment_repository=self.appointments,
            blackout_repository=self.blackouts,
        )
        self.booking = BookingService(
            availability_service=self.availability,
            appointment_repository=self.appointments,
            client_repository=self.clients,
            service_repository=self.services,
            advance_days=config.booking.advance_days,
        )


def _load_config(config_file: Optional[Path], mock: bool) -> AppConfig:
    config_path = config_file or get_default_config_path()
    if mock and not config_path.exists():
        return AppConfig()
    return AppConfig.load_from_yaml(config_path)


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(name)s: %(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _build_context(config_file: Optional[Path], mock: bool) -> _Context:
    config = _load_config(config_file, mock)
    _setup_logging(config.log_level)

    if mock:
        console.print("[yellow]⚠  MOCK MODE: using sample data[/yellow]\n")
        store: RecordStoreProtocol = InMemoryRecordStore.from_json_file(config.store.mock_data_file)
    else:
        if not config.store.url:
            raise ValueError("store.url is not configured. Set it in config.yaml or use --mock.")
        store = RestRecordStore(
            base_url=config.store.url,
            api_key=config.store.api_key,
            timeout_seconds=config.store.timeout_seconds,
        )

    return _Context(config, store)


def _fail(error: Exception) -> None:
    console.print(f"[bold red]Error:[/bold red] {error}")
    raise typer.Exit(1)


@app.command()
def slots(
    date: Annotated[str, typer.Argument(help="Date to check (YYYY-MM-DD)")],
    duration: Annotated[Optional[int], typer.Option("--duration", "-d", help="Total service duration in minutes")] = None,
    service: Annotated[Optional[List[str]], typer.Option("--service", "-s", help="Service id; repeat for several services")] = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Show bookable start times for a date.

    Examples:

        salonslots slots 2025-03-03 --duration 90

        salonslots slots 2025-03-03 -s svc-gel -s svc-manicure --mock
    """
    try:
        ctx = _build_context(config_file, mock)
        day = parse_date(date)

        if service:
            cart = ctx.booking.build_cart(service)
            minutes = cart.total_duration_minutes()
        else:
            minutes = duration if duration is not None else ctx.config.booking.default_duration_minutes

        available = ctx.availability.find_slots(day, minutes)

        console.print(f"[bold cyan]{ctx.config.salon_name}[/bold cyan] · {WEEKDAY_NAMES[day.isoweekday() % 7]}, "
                      f"{day.format('YYYY-MM-DD')} · {minutes} min\n")

        if not available:
            console.print("[yellow]⚠ No available times for this date.[/yellow]")
            return

        console.print(f"[bold green]✓ {len(available)} available time(s):[/bold green]")
        console.print("  " + "  ".join(slot.format(TIME_FORMAT) for slot in available))
        console.print()

    except (FileNotFoundError, SalonSlotsError, ValueError) as e:
        _fail(e)


def _hours_table(entries: List[DayHours]) -> Table:
    day_hours: Dict[int, DayHours] = {}
    for entry in entries:
        day_hours.setdefault(entry.weekday, entry)

    table = Table(title="Opening hours", show_header=True, header_style="bold cyan")
    table.add_column("Day", style="bold yellow")
    table.add_column("Hours")

    for weekday, name in enumerate(WEEKDAY_NAMES):
        entry = day_hours.get(weekday)
        if entry is None or entry.is_closed:
            table.add_row(name, "[dim]closed[/dim]")
        else:
            table.add_row(
                name,
                f"{entry.open_time.format(TIME_FORMAT)} - {entry.close_time.format(TIME_FORMAT)}",
            )
    return table


def _parse_weekday(value: str) -> int:
    text = value.strip().lower()
    if text.isdigit() and int(text) in range(7):
        return int(text)
    for index, name in enumerate(WEEKDAY_NAMES):
        if name.lower().startswith(text) and len(text) >= 3:
            return index
    raise ValueError(f"Unknown weekday {value!r}; use a name like 'monday' or 0-6 with 0 = Sunday")


@app.command()
def hours(config_file: ConfigOption = None, mock: MockOption = False):
    """
    Show the weekly opening hours.
    """
    try:
        ctx = _build_context(config_file, mock)

        console.print()
        console.print(_hours_table(ctx.hours.list_day_hours()))
        console.print()

    except (FileNotFoundError, SalonSlotsError, ValueError) as e:
        _fail(e)


@app.command("set-hours")
def set_hours(
    day: Annotated[str, typer.Argument(help="Weekday name (monday) or number (0 = Sunday)")],
    opening: Annotated[str, typer.Argument(help="HH:MM-HH:MM, or 'closed'")],
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Change the opening hours of one weekday; other days are kept.

    Examples:

        salonslots set-hours saturday 10:00-15:00

        salonslots set-hours sunday closed
    """
    try:
        ctx = _build_context(config_file, mock)
        weekday = _parse_weekday(day)

        if opening.strip().lower() == "closed":
            entry = DayHours(weekday=weekday, is_closed=True)
        else:
            open_time, separator, close_time = opening.partition("-")
            if not separator:
                raise ValueError(f"Hours must look like 09:00-18:00 or 'closed', got {opening!r}")
            entry = DayHours(weekday=weekday, open_time=open_time, close_time=close_time)

        schedule: Dict[int, DayHours] = {}
        for current in ctx.hours.list_day_hours():
            schedule.setdefault(current.weekday, current)
        schedule[weekday] = entry

        saved = ctx.hours.replace_all(schedule[index] for index in sorted(schedule))

        console.print(f"[green]✓ Updated {WEEKDAY_NAMES[weekday]}[/green]")
        console.print()
        console.print(_hours_table(saved))
        console.print()

    except (FileNotFoundError, SalonSlotsError, ValueError) as e:
        _fail(e)


@app.command()
def services(config_file: ConfigOption = None, mock: MockOption = False):
    """
    List the services currently offered, with the ids used by --service.
    """
    try:
        ctx = _build_context(config_file, mock)
        catalog = ctx.services.list_active()

        if not catalog:
            console.print("[yellow]No active services.[/yellow]")
            return

        table = Table(title="Services", show_header=True, header_style="bold cyan")
        table.add_column("ID", style="dim")
        table.add_column("Service", style="bold yellow")
        table.add_column("Duration", justify="right")
        table.add_column("Price", justify="right")

        for item in catalog:
            table.add_row(item.id, item.name, f"{item.duration_minutes} min", f"${item.price:.2f}")

        console.print()
        console.print(table)
        console.print()

    except (FileNotFoundError, SalonSlotsError, ValueError) as e:
        _fail(e)


@app.command()
def blocked(
    from_date: Annotated[Optional[str], typer.Option("--from", help="First date to list (YYYY-MM-DD). Defaults to today")] = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    List upcoming blocked time windows.
    """
    try:
        ctx = _build_context(config_file, mock)
        start = parse_date(from_date) if from_date else pendulum.today().date()
        rows = ctx.blackouts.list_upcoming(start)

        if not rows:
            console.print("[yellow]No blocked time windows.[/yellow]")
            return

        table = Table(title="Blocked time windows", show_header=True, header_style="bold cyan")
        table.add_column("ID", style="dim")
        table.add_column("Date", style="bold yellow")
        table.add_column("From")
        table.add_column("To")
        table.add_column("Reason")

        for row in rows:
            table.add_row(
                str(row.get("id")),
                row.get("block_date", ""),
                row.get("start_time", ""),
                row.get("end_time", ""),
                row.get("reason") or "",
            )

        console.print()
        console.print(table)
        console.print()

    except (FileNotFoundError, SalonSlotsError, ValueError) as e:
        _fail(e)


@app.command()
def block(
    date: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    start: Annotated[str, typer.Argument(help="Start time (HH:MM)")],
    end: Annotated[str, typer.Argument(help="End time (HH:MM)")],
    reason: Annotated[Optional[str], typer.Option("--reason", "-r", help="Shown to staff only")] = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Block a time window so it cannot be booked.
    """
    try:
        ctx = _build_context(config_file, mock)
        row = ctx.blackouts.create(date, start, end, reason=reason)
        console.print(f"[green]✓ Blocked {row['block_date']} {row['start_time']}-{row['end_time']}[/green] "
                      f"[dim](id {row['id']})[/dim]")

    except (FileNotFoundError, SalonSlotsError, ValueError) as e:
        _fail(e)


@app.command()
def unblock(
    block_id: Annotated[str, typer.Argument(help="ID of the blocked window")],
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Remove a blocked time window.
    """
    try:
        ctx = _build_context(config_file, mock)
        if not ctx.blackouts.delete(block_id):
            console.print(f"[yellow]No blocked window with id {block_id}.[/yellow]")
            raise typer.Exit(1)
        console.print(f"[green]✓ Unblocked {block_id}[/green]")

    except (FileNotFoundError, SalonSlotsError, ValueError) as e:
        _fail(e)


@app.command()
def book(
    date: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    start: Annotated[str, typer.Argument(help="Start time (HH:MM)")],
    service: Annotated[List[str], typer.Option("--service", "-s", help="Service id; repeat for several services")],
    name: Annotated[str, typer.Option("--name", help="Client name")],
    whatsapp: Annotated[str, typer.Option("--whatsapp", help="Client WhatsApp number")],
    email: Annotated[Optional[str], typer.Option("--email", help="Client e-mail")] = None,
    notes: Annotated[Optional[str], typer.Option("--notes", help="Notes for the appointment")] = None,
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Book an appointment.
    """
    try:
        ctx = _build_context(config_file, mock)
        confirmation = ctx.booking.book(BookingRequest(
            client_name=name,
            whatsapp=whatsapp,
            email=email,
            notes=notes,
            date=date,
            start_time=start,
            service_ids=list(service),
        ))

        console.print(Panel.fit(
            f"[bold green]✓ Appointment booked[/bold green]\n\n"
            f"[bold]When:[/bold] {confirmation.format_display()}\n"
            f"[bold]Cancellation token:[/bold] {confirmation.cancellation_token}",
            title=ctx.config.salon_name,
        ))

    except (FileNotFoundError, SalonSlotsError, ValueError) as e:
        _fail(e)


@app.command()
def cancel(
    token: Annotated[str, typer.Argument(help="Cancellation token from the booking confirmation")],
    config_file: ConfigOption = None,
    mock: MockOption = False,
):
    """
    Cancel an appointment by its cancellation token.
    """
    try:
        ctx = _build_context(config_file, mock)
        row = ctx.booking.cancel(token)
        console.print(f"[green]✓ Cancelled appointment on {row.get('appointment_date')} "
                      f"at {row.get('start_time')}[/green]")

    except (FileNotFoundError, SalonSlotsError, ValueError) as e:
        _fail(e)


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]salonslots[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
