"""
Main CLI application using Typer.
"""

import asyncio
import logging
from pathlib import Path
from typing import Annotated, NoReturn, Optional, Tuple

import typer
from rich.columns import Columns
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..adapters.clock import SystemClock
from ..adapters.json_store import JsonShopStore
from ..config import AppConfig, get_default_config_path
from ..domain.availability import AvailabilityEngine
from ..domain.exceptions import AppointmentNotFound, BookingError
from ..domain.models import WEEKDAY_NAMES, Appointment, Unavailable
from ..services.booking_service import BookingService

app = typer.Typer(
    name="barberbook",
    help="Find and book barbershop appointment slots",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")]
DataOption = Annotated[Optional[Path], typer.Option("--data", help="Path to the shop data JSON file. Overrides the config.")]


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _build_service(
    config_file: Optional[Path],
    data_file: Optional[Path],
) -> Tuple[AppConfig, JsonShopStore, BookingService]:
    """Load config and data and wire the booking service."""
    config_path = config_file or get_default_config_path()
    config = AppConfig.load_from_yaml(config_path)
    _configure_logging(config.log_level)

    store = JsonShopStore.load(
        data_file or config.data_file,
        default_working_hours=config.defaults.get_day_windows(),
    )
    service = BookingService(
        directory=store,
        bookings=store,
        clock=SystemClock(config.timezone),
        engine=AvailabilityEngine(slot_interval_minutes=config.defaults.slot_interval_minutes),
    )
    return config, store, service


def _fail(error: Exception) -> NoReturn:
    console.print(f"[bold red]Error:[/bold red] {error}")
    raise typer.Exit(1)


def _print_appointment(appointment: Appointment, title: str) -> None:
    staff = appointment.staff_id or "any"
    console.print(Panel.fit(
        f"[bold]ID:[/bold] {appointment.id}\n"
        f"[bold]Date:[/bold] {appointment.date.format('DD.MM.YYYY')} {appointment.time}\n"
        f"[bold]Service:[/bold] {appointment.service_id}\n"
        f"[bold]Staff:[/bold] {staff}\n"
        f"[bold]Status:[/bold] {appointment.status.value}",
        title=title
    ))


@app.command()
def slots(
    shop_id: Annotated[str, typer.Argument(help="Shop id")],
    service_id: Annotated[str, typer.Argument(help="Service id")],
    date: Annotated[Optional[str], typer.Option("--date", "-d", help="Date (YYYY-MM-DD). Defaults to today.")] = None,
    staff: Annotated[Optional[str], typer.Option("--staff", "-s", help="Staff id. Omit for any staff member.")] = None,
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    List available start times for a service.

    Examples:

        barberbook slots shop_1 svc_cut --date 2024-11-25
        barberbook slots shop_1 svc_cut --date 2024-11-25 --staff barber_1
    """
    try:
        config, _, service = _build_service(config_file, data_file)
        target = date or SystemClock(config.timezone).current_time().date().isoformat()

        available = asyncio.run(
            service.get_available_slots(
                shop_id=shop_id,
                service_id=service_id,
                date=target,
                staff_id=staff,
            )
        )
    except (BookingError, FileNotFoundError, ValueError, OSError) as e:
        _fail(e)

    console.print()
    if not available:
        console.print(
            "[yellow]⚠ No available slots.[/yellow]\n"
            "Try another date or another staff member."
        )
    else:
        console.print(f"[bold green]✓ {len(available)} slot(s) on {target}:[/bold green]\n")
        console.print(Columns([f"[cyan]{slot}[/cyan]" for slot in available], padding=(0, 3)))
    console.print()


@app.command()
def shift_check(
    appointment_id: Annotated[str, typer.Argument(help="Appointment id to repeat")],
    weeks: Annotated[int, typer.Option("--weeks", "-w", help="Weeks ahead")] = 1,
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    Check whether an appointment's time is free N weeks later.
    """
    try:
        _, store, service = _build_service(config_file, data_file)
        source = asyncio.run(store.get_appointment(appointment_id))
        if source is None:
            raise AppointmentNotFound(f"Appointment not found: {appointment_id}")

        result = asyncio.run(service.shift_and_check(source, weeks))
    except (BookingError, FileNotFoundError, ValueError, OSError) as e:
        _fail(e)

    if isinstance(result, Unavailable):
        console.print(f"[yellow]✗ {result.format_display()} is not available.[/yellow]")
    else:
        console.print(f"[green]✓ {result.format_display()} is available.[/green]")


@app.command()
def book(
    shop_id: Annotated[str, typer.Argument(help="Shop id")],
    service_id: Annotated[str, typer.Argument(help="Service id")],
    client: Annotated[str, typer.Option("--client", help="Client id")],
    date: Annotated[str, typer.Option("--date", "-d", help="Date (YYYY-MM-DD)")],
    time: Annotated[str, typer.Option("--time", "-t", help="Start time (HH:MM)")],
    staff: Annotated[Optional[str], typer.Option("--staff", "-s", help="Staff id")] = None,
    notes: Annotated[Optional[str], typer.Option("--notes", help="Notes for the shop")] = None,
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    Book an appointment.
    """
    try:
        _, _, service = _build_service(config_file, data_file)
        appointment = asyncio.run(
            service.book_appointment(
                client_id=client,
                shop_id=shop_id,
                service_id=service_id,
                date=date,
                time=time,
                staff_id=staff,
                notes=notes,
            )
        )
    except (BookingError, FileNotFoundError, ValueError, OSError) as e:
        _fail(e)

    _print_appointment(appointment, "✓ Booked")


@app.command()
def repeat(
    appointment_id: Annotated[str, typer.Argument(help="Appointment id to repeat")],
    weeks: Annotated[int, typer.Option("--weeks", "-w", help="Weeks ahead")] = 1,
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    Book the same service and time N weeks later.
    """
    try:
        _, store, service = _build_service(config_file, data_file)
        source = asyncio.run(store.get_appointment(appointment_id))
        if source is None:
            raise AppointmentNotFound(f"Appointment not found: {appointment_id}")

        result = asyncio.run(service.book_recurring(source, weeks))
    except (BookingError, FileNotFoundError, ValueError, OSError) as e:
        _fail(e)

    if isinstance(result, Unavailable):
        console.print(f"[yellow]✗ {result.format_display()} is not available.[/yellow]")
        raise typer.Exit(1)

    _print_appointment(result, "✓ Booked")


@app.command()
def cancel(
    appointment_id: Annotated[str, typer.Argument(help="Appointment id")],
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    Cancel a scheduled appointment.
    """
    try:
        _, _, service = _build_service(config_file, data_file)
        appointment = asyncio.run(service.cancel_appointment(appointment_id))
    except (BookingError, FileNotFoundError, ValueError, OSError) as e:
        _fail(e)

    _print_appointment(appointment, "Cancelled")


@app.command()
def complete(
    appointment_id: Annotated[str, typer.Argument(help="Appointment id")],
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    Mark a scheduled appointment as completed.
    """
    try:
        _, _, service = _build_service(config_file, data_file)
        appointment = asyncio.run(service.complete_appointment(appointment_id))
    except (BookingError, FileNotFoundError, ValueError, OSError) as e:
        _fail(e)

    _print_appointment(appointment, "Completed")


@app.command()
def appointments(
    shop_id: Annotated[str, typer.Argument(help="Shop id")],
    date: Annotated[Optional[str], typer.Option("--date", "-d", help="Only this date (YYYY-MM-DD)")] = None,
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    List a shop's appointments.
    """
    try:
        _, store, _ = _build_service(config_file, data_file)
        asyncio.run(store.get_shop(shop_id))
        rows = asyncio.run(store.list_appointments(shop_id, date))
    except (BookingError, FileNotFoundError, ValueError, OSError) as e:
        _fail(e)

    if not rows:
        console.print("[yellow]No appointments found.[/yellow]")
        return

    table = Table(
        title=f"Appointments - {shop_id}",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Date")
    table.add_column("Time", style="bold yellow")
    table.add_column("Service")
    table.add_column("Staff")
    table.add_column("Status")

    for appointment in rows:
        table.add_row(
            appointment.id,
            appointment.date.format("DD.MM.YYYY"),
            appointment.time,
            appointment.service_id,
            appointment.staff_id or "-",
            appointment.status.value,
        )

    console.print()
    console.print(table)
    console.print()


@app.command()
def list_staff(
    shop_id: Annotated[str, typer.Argument(help="Shop id")],
    config_file: ConfigOption = None,
    data_file: DataOption = None,
):
    """
    List a shop's staff and their working days.
    """
    try:
        _, store, _ = _build_service(config_file, data_file)
        asyncio.run(store.get_shop(shop_id))
        staff = asyncio.run(store.list_staff(shop_id))
    except (BookingError, FileNotFoundError, ValueError, OSError) as e:
        _fail(e)

    if not staff:
        console.print("[yellow]No staff registered for this shop.[/yellow]")
        return

    table = Table(
        title="Staff",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Name", style="bold yellow")
    table.add_column("Hours")

    for member in staff:
        if member.availability is None:
            hours = "shop hours"
        else:
            hours = ", ".join(
                f"{WEEKDAY_NAMES[w.day_of_week][:3]} {w.start}-{w.end}"
                for w in sorted(member.availability.days, key=lambda w: w.day_of_week)
            ) or "-"
        table.add_row(member.id, member.name, hours)

    console.print()
    console.print(table)
    console.print()


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]barberbook[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
