"""
Main CLI application using Typer.
"""

import logging
from pathlib import Path
from typing import List, Optional, Annotated

import pendulum
import typer
from pendulum import DateTime
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..adapters.json_store import InMemoryStore, JsonFileStore
from ..adapters.sample_data import sample_snapshot
from ..adapters.text_suggester import ShareContext, TemplateTextSuggester
from ..config import AppConfig, load_config
from ..domain.availability import AvailabilityCalculator
from ..domain.cost_calculator import CostCalculator, PricingMode, format_money
from ..domain.exceptions import BillingConfigError, StudioBookError
from ..domain.models import (
    BillingType,
    PackageTier,
    PendingClient,
    PendingProject,
    PersistedRef,
    SlotStatus,
)
from ..services.studio_calendar import StudioCalendarService

app = typer.Typer(
    name="studiobook",
    help="Weekly studio availability, reservations and billing",
    add_completion=False
)

console = Console()
err_console = Console(stderr=True)

SLOT_STYLES = {
    SlotStatus.AVAILABLE: ("✅ free", "green"),
    SlotStatus.BUFFER: ("🔶 buffer", "yellow"),
    SlotStatus.BOOKED: ("❌ booked", "red"),
}


class AppState:
    """Objects shared by all commands of one invocation."""

    def __init__(self, config: AppConfig, service: StudioCalendarService, demo: bool):
        self.config = config
        self.service = service
        self.demo = demo


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def build_service(config: AppConfig, demo: bool = False) -> StudioCalendarService:
    """Wire store, engines and suggester from the configuration."""
    if demo:
        store = InMemoryStore(sample_snapshot(pendulum.now(config.timezone)))
    else:
        store = JsonFileStore(config.store_path, timezone=config.timezone)

    return StudioCalendarService(
        store=store,
        availability=AvailabilityCalculator(config.studio_hours()),
        costs=CostCalculator(config.pricing.to_rules()),
        suggester=TemplateTextSuggester(),
        internal_client_id=config.internal_client_id,
        currency=config.currency,
    )


def _parse_date(value: Optional[str], tz: str) -> DateTime:
    if not value:
        return pendulum.now(tz).start_of("day")
    try:
        return pendulum.from_format(value, "YYYY-MM-DD", tz=tz)
    except ValueError as e:
        console.print(f"[red]Could not parse date {value!r} (expected YYYY-MM-DD): {e}[/red]")
        raise typer.Exit(1)


def _fail(message: str) -> None:
    console.print(f"[bold red]Error:[/bold red] {message}")
    raise typer.Exit(1)


@app.callback()
def main(
    ctx: typer.Context,
    config_file: Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")] = None,
    demo: Annotated[bool, typer.Option("--demo", help="Use in-memory sample data instead of the data file.")] = False,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Log debug output to stderr.")] = False,
):
    """
    Studio booking calendar.
    """
    try:
        config = load_config(config_file)
    except (FileNotFoundError, ValueError) as e:
        _fail(str(e))

    _configure_logging("DEBUG" if verbose else config.log_level)
    ctx.obj = AppState(config=config, service=build_service(config, demo=demo), demo=demo)


@app.command()
def week(
    ctx: typer.Context,
    date: Annotated[Optional[str], typer.Option("--date", "-d", help="Any date in the week (YYYY-MM-DD). Defaults to today.")] = None,
    next_week: Annotated[bool, typer.Option("--next-week", help="Show the week after the given date.")] = False,
    free: Annotated[bool, typer.Option("--free", help="List the free slots instead of the grid.")] = False,
):
    """
    Show the weekly availability grid (Monday to Saturday).
    """
    state: AppState = ctx.obj
    reference = _parse_date(date, state.config.timezone)
    if next_week:
        reference = reference.add(weeks=1)

    try:
        grid = state.service.week_grid(reference)
        free_count = len(state.service.free_slots(reference))
    except StudioBookError as e:
        _fail(str(e))

    if free:
        for day in grid:
            for slot in day.slots:
                if slot.is_available:
                    console.print(slot.format_display(), highlight=False)
        console.print(f"\n{free_count} free slot(s)")
        return

    if not grid:
        console.print("[yellow]The studio is closed all week.[/yellow]")
        return

    table = Table(
        title=f"{grid[0].date.format('MMM D')} - {grid[-1].date.format('MMM D, YYYY')}",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("Time", style="bold")
    for day in grid:
        table.add_column(day.date.format("ddd DD/MM"))

    for row in range(len(grid[0].slots)):
        cells = [grid[0].slots[row].time.format("HH:mm")]
        for day in grid:
            label, style = SLOT_STYLES[day.slots[row].status]
            cells.append(f"[{style}]{label}[/{style}]")
        table.add_row(*cells)

    console.print()
    console.print(table)
    console.print(f"{free_count} free slot(s)")
    console.print()


@app.command()
def book(
    ctx: typer.Context,
    date: Annotated[str, typer.Argument(help="Session date (YYYY-MM-DD)")],
    times: Annotated[List[str], typer.Argument(help="Slot start times (HH:mm), e.g. 10:00 11:00")],
    client: Annotated[Optional[str], typer.Option("--client", help="Existing client id")] = None,
    new_client: Annotated[Optional[str], typer.Option("--new-client", help="Name of a client to create")] = None,
    phone: Annotated[str, typer.Option("--phone", help="Phone of the new client")] = "",
    project: Annotated[Optional[str], typer.Option("--project", help="Existing project id")] = None,
    new_project: Annotated[Optional[str], typer.Option("--new-project", help="Name of a project to create")] = None,
    billing: Annotated[BillingType, typer.Option("--billing", help="Billing type of the new project")] = BillingType.PACKAGE,
    tier: Annotated[Optional[PackageTier], typer.Option("--tier", help="Package tier of the new project")] = None,
    rate: Annotated[Optional[float], typer.Option("--rate", help="Custom hourly rate of the new project")] = None,
    target: Annotated[Optional[float], typer.Option("--target", help="Target hours of the new project")] = None,
):
    """
    Reserve 1-hour slots for a client and project.

    Examples:

        studiobook book 2024-11-25 10:00 11:00 --client client_001 --project project_alpha_001

        studiobook book 2024-11-25 14:00 --new-client "Ana" --new-project "Podcast" --billing custom --rate 300
    """
    state: AppState = ctx.obj
    tz = state.config.timezone

    if (client is None) == (new_client is None):
        _fail("Give exactly one of --client or --new-client.")
    if (project is None) == (new_project is None):
        _fail("Give exactly one of --project or --new-project.")

    client_ref = PersistedRef(client) if client else PendingClient(name=new_client, phone=phone)
    project_ref = (
        PersistedRef(project)
        if project
        else PendingProject(
            name=new_project,
            billing_type=billing,
            package_tier=tier,
            custom_rate=rate,
            target_hours=target,
        )
    )

    try:
        slot_starts = [
            pendulum.from_format(f"{date} {t}", "YYYY-MM-DD HH:mm", tz=tz) for t in times
        ]
    except ValueError as e:
        _fail(f"Could not parse slot times: {e}")

    try:
        bookings = state.service.reserve(slot_starts, client_ref, project_ref)
    except StudioBookError as e:
        _fail(str(e))

    console.print(f"[bold green]✓ {len(bookings)} slot(s) booked:[/bold green]")
    for booking in bookings:
        console.print(f"  {booking.time_range}  [dim]{booking.id}[/dim]")
    if state.demo:
        console.print("[yellow]⚠  Demo mode: the reservation is not saved.[/yellow]")


@app.command()
def cost(
    ctx: typer.Context,
    project_id: Annotated[str, typer.Argument(help="Project id")],
):
    """
    Show hours, hourly rate and total amount of a project.
    """
    state: AppState = ctx.obj
    currency = state.config.currency

    try:
        metrics = state.service.project_cost(project_id)
    except BillingConfigError as e:
        _fail(f"could not compute cost: {e}")
    except StudioBookError as e:
        _fail(str(e))

    console.print(Panel.fit(
        f"[bold]Total hours:[/bold] {metrics.total_hours:.2f}\n"
        f"[bold]Price per hour:[/bold] {format_money(metrics.price_per_hour, currency)}\n"
        f"[bold]Total amount:[/bold] {format_money(metrics.total_amount, currency)}",
        title=project_id
    ))


@app.command()
def progress(
    ctx: typer.Context,
    project_id: Annotated[str, typer.Argument(help="Project id")],
):
    """
    Show booked hours against the project's target hours.
    """
    state: AppState = ctx.obj

    try:
        result = state.service.project_progress(project_id)
    except StudioBookError as e:
        _fail(str(e))

    if result.target_hours is None:
        console.print(f"{result.total_hours:.2f}h booked (no target set)")
    else:
        console.print(
            f"{result.total_hours:.2f}h of {result.target_hours:.2f}h "
            f"({result.percent:.0f}%) - {result.status.value.replace('_', ' ')}"
        )


@app.command()
def receipt(
    ctx: typer.Context,
    project_id: Annotated[str, typer.Argument(help="Project id")],
):
    """
    Print a shareable receipt with merged sessions and the cost summary.
    """
    state: AppState = ctx.obj

    try:
        text = state.service.project_receipt(project_id)
    except BillingConfigError as e:
        _fail(f"could not compute cost: {e}")
    except StudioBookError as e:
        _fail(str(e))

    console.print(text, markup=False, highlight=False)


@app.command()
def recipe(
    ctx: typer.Context,
    month: Annotated[Optional[str], typer.Option("--month", "-m", help="Month (YYYY-MM). Defaults to the current month.")] = None,
    mode: Annotated[PricingMode, typer.Option("--mode", help="Price by monthly volume tier or by each project's rate.")] = PricingMode.AGGREGATE_TIER,
):
    """
    Show the monthly recipe: hours and amount per client.
    """
    state: AppState = ctx.obj
    tz = state.config.timezone
    currency = state.config.currency

    if month:
        try:
            reference = pendulum.from_format(month, "YYYY-MM", tz=tz)
        except ValueError as e:
            _fail(f"Could not parse month {month!r} (expected YYYY-MM): {e}")
    else:
        reference = pendulum.now(tz)

    try:
        metrics = state.service.monthly_recipe(reference, mode=mode)
    except BillingConfigError as e:
        _fail(f"could not compute cost: {e}")
    except StudioBookError as e:
        _fail(str(e))

    if not metrics:
        console.print(f"[yellow]No bookings found for {reference.format('MMMM YYYY')}.[/yellow]")
        return

    table = Table(
        title=f"Monthly recipe for {reference.format('MMMM YYYY')}",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("Client", style="bold yellow")
    table.add_column("Hours", justify="right")
    table.add_column("Price/hour", justify="right")
    table.add_column("Amount", justify="right", style="green")

    for client_name, data in sorted(metrics.items()):
        table.add_row(
            client_name,
            f"{data.total_hours:.1f}",
            format_money(data.price_per_hour, currency),
            format_money(data.total_amount, currency),
        )

    console.print()
    console.print(table)
    console.print()


@app.command()
def clients(ctx: typer.Context):
    """
    List clients and their projects.
    """
    state: AppState = ctx.obj

    try:
        client_list = state.service.list_clients()
        projects = state.service.list_projects()
    except StudioBookError as e:
        _fail(str(e))

    if not client_list:
        console.print("[yellow]No clients found.[/yellow]")
        return

    table = Table(title="Clients", show_header=True, header_style="bold cyan")
    table.add_column("Id", style="dim")
    table.add_column("Name", style="bold yellow")
    table.add_column("Phone")
    table.add_column("Projects")

    for item in client_list:
        names = [f"{p.name} ({p.id})" for p in projects if p.client_id == item.id]
        table.add_row(item.id, item.name, item.phone, "\n".join(names) or "-")

    console.print()
    console.print(table)
    console.print()


@app.command()
def share(
    ctx: typer.Context,
    client_name: Annotated[Optional[str], typer.Option("--client-name", help="Client to address")] = None,
    history: Annotated[Optional[str], typer.Option("--history", help="Notes about past bookings")] = None,
):
    """
    Suggest a message sharing the studio's availability.
    """
    state: AppState = ctx.obj
    context = ShareContext(
        studio_name=state.config.studio_name,
        calendar_link=state.config.calendar_link,
        client_name=client_name,
        past_booking_data=history,
    )
    console.print(Panel(state.service.share_message(context), title="Suggested message"))


@app.command()
def init_demo(
    ctx: typer.Context,
    force: Annotated[bool, typer.Option("--force", help="Overwrite an existing data file.")] = False,
):
    """
    Write the sample clients, projects and this week's bookings to the data file.
    """
    state: AppState = ctx.obj
    store_path = state.config.store_path

    if store_path.exists() and not force:
        _fail(f"{store_path} already exists. Use --force to overwrite it.")

    store = JsonFileStore(store_path, timezone=state.config.timezone)
    store.save(sample_snapshot(pendulum.now(state.config.timezone)))
    console.print(f"[green]✓ Sample data written to {store_path}[/green]")


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]studiobook[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
