"""CLI commands for reconciling the personal budgets into the shared budget."""

import logging
import signal
import sys
import threading
from datetime import date

import typer
from rich.console import Console
from rich.table import Table

from ..clients.ynab import YnabClient
from ..config import load_settings
from ..db import Database
from ..exceptions import ConfigurationError
from .gateway import RateLimitedGateway
from .runner import PassReport, SyncRunner, SyncScope
from .service import StatusReport

app = typer.Typer(
    name="sync",
    help="Reconcile personal YNAB budgets into the shared budget",
)

console = Console()


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    # Downgrade httpx logging to DEBUG (network requests are too noisy at INFO)
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


def install_stop_handler(stop_event: threading.Event):
    """Turn SIGINT/SIGTERM into a request to stop after the current pass."""

    def _handler(signum, frame):
        console.print(
            "\n[yellow]Caught interrupt signal, finishing the current pass...[/yellow]"
        )
        stop_event.set()

    signal.signal(signal.SIGINT, _handler)
    signal.signal(signal.SIGTERM, _handler)


def _build_scope(month: str | None, year: int | None, budgeted: bool) -> SyncScope:
    if month and year:
        raise typer.BadParameter("Use either --month or --year, not both")
    if month:
        try:
            return SyncScope(
                kind="month", month=date.fromisoformat(month), allocations=budgeted
            )
        except ValueError as e:
            raise typer.BadParameter("The month must be in the format yyyy-MM-dd") from e
    if year:
        return SyncScope(kind="year", year=year, allocations=budgeted)
    return SyncScope(allocations=budgeted)


def format_money(milliunits: int) -> str:
    """Format milliunits in accounting style: ($85.02) or $85.02."""
    amount = milliunits / 1000
    if amount < 0:
        return f"(${abs(amount):,.2f})"
    return f"${amount:,.2f}"


def display_reports(reports: list[PassReport]):
    """Display pass reports in a table."""
    table = Table(title="Sync Pass", show_header=True, header_style="bold magenta")
    table.add_column("Owner", style="cyan")
    table.add_column("Periods", justify="right")
    table.add_column("Created", justify="right", style="green")
    table.add_column("Updated", justify="right", style="yellow")
    table.add_column("Deleted", justify="right", style="red")
    table.add_column("Balancing", justify="right")
    table.add_column("Status")

    for report in reports:
        created = sum(len(p.expenses.created) for p in report.periods)
        updated = sum(len(p.expenses.updated) for p in report.periods)
        deleted = sum(len(p.expenses.deleted) for p in report.periods)
        balancing = sum(
            len(p.balancing.shared_created) + len(p.balancing.shared_updated)
            for p in report.periods
        )
        if report.aborted:
            status_text = f"[red]aborted: {report.aborted}[/red]"
        elif report.failures:
            status_text = f"[yellow]{len(report.failures)} period(s) failed[/yellow]"
        else:
            status_text = "[green]✓[/green]"

        table.add_row(
            report.owner,
            str(len(report.periods)),
            str(created),
            str(updated),
            str(deleted),
            str(balancing),
            status_text,
        )

    console.print(table)

    for report in reports:
        for failure in report.failures:
            console.print(f"[yellow]⚠️  {report.owner} - {failure}[/yellow]")


def display_status(report: StatusReport):
    """Display one owner's status report."""

    def mark(ok: bool, text: str) -> str:
        return f"[green]✅ {text}[/green]" if ok else f"[red]❌ {text}[/red]"

    console.print(f"\n[bold]{report.owner}[/bold] (knowledge {report.knowledge})")
    console.print(
        f"  Found {report.mirrored} out of {report.shared_expenses} shared expenses "
        f"in the shared budget ({report.stale} stale, {report.missing} missing)"
    )
    console.print(f"  {report.shared_account_transactions} transactions in shared account")
    console.print(f"  {report.balancing} balancing, {report.echoes} mirrored balancing")
    console.print(f"  {report.other} other transactions")

    if report.allocations:
        table = Table(show_header=True, header_style="bold magenta")
        table.add_column("Month")
        table.add_column("Budgeted", justify="right")
        table.add_column("In shared", justify="right")
        table.add_column("")
        for allocation in report.allocations:
            table.add_row(
                allocation.month.isoformat(),
                format_money(allocation.expected),
                format_money(allocation.actual) if allocation.actual is not None else "-",
                mark(allocation.matches, "equal" if allocation.matches else "differs"),
            )
        console.print(table)


def _open_runner(token: str | None) -> tuple[SyncRunner, Database, YnabClient]:
    settings = load_settings(ynab_access_token=token)
    if not settings.ynab_access_token:
        raise ConfigurationError("Could not find YNAB token")

    db = Database(settings.database_path)
    client = YnabClient(settings.ynab_access_token)
    gateway = RateLimitedGateway(client, db, hourly_limit=settings.hourly_call_limit)
    return SyncRunner(gateway, db, settings), db, client


@app.command()
def run(
    month: str | None = typer.Option(
        None, "--month", "-m", help="Specific month to sync (yyyy-MM-dd)"
    ),
    year: int | None = typer.Option(None, "--year", "-y", help="Specific year to sync"),
    budgeted: bool = typer.Option(
        False, "--budgeted", "-b", help="Also sync monthly budgeted amounts"
    ),
    force_refresh_categories: bool = typer.Option(
        False,
        "--force-refresh-categories",
        help="Resolve the shared categories again instead of using the saved ones",
    ),
    token: str | None = typer.Option(
        None, "--token", "-t", help="YNAB token (overrides YNAB_ACCESS_TOKEN)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """
    Run one reconciliation pass for both owners.

    Shared expenses are mirrored into the shared budget and balancing
    transactions are mirrored between the personal budgets.
    """
    setup_logging(verbose)
    scope = _build_scope(month, year, budgeted)
    stop_event = threading.Event()
    install_stop_handler(stop_event)

    try:
        runner, db, client = _open_runner(token)
        runner.prepare(force_refresh_categories)

        console.print("\n[bold blue]Reconciling budgets...[/bold blue]")
        reports = runner.run_pass(scope)
        display_reports(reports)

        calls, _ = runner.gateway.usage()
        console.print(f"\n[dim]{calls} calls made to the API this hour[/dim]")

        if not all(report.ok for report in reports):
            sys.exit(1)

    except Exception as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        if verbose:
            raise
        sys.exit(1)
    finally:
        if "runner" in locals():
            runner.drain()
        if "client" in locals():
            client.close()
        if "db" in locals():
            db.close()


@app.command()
def watch(
    interval: float | None = typer.Option(
        None, "--interval", "-i", help="Seconds to wait between passes"
    ),
    budgeted: bool = typer.Option(
        False, "--budgeted", "-b", help="Also sync monthly budgeted amounts"
    ),
    force_refresh_categories: bool = typer.Option(
        False,
        "--force-refresh-categories",
        help="Resolve the shared categories again instead of using the saved ones",
    ),
    token: str | None = typer.Option(
        None, "--token", "-t", help="YNAB token (overrides YNAB_ACCESS_TOKEN)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """
    Keep reconciling, waiting between passes for new transactions.

    Ctrl+C stops after the pass in flight and saves state.
    """
    setup_logging(verbose)
    stop_event = threading.Event()
    install_stop_handler(stop_event)

    try:
        runner, db, client = _open_runner(token)
        if interval is not None:
            runner.settings.poll_interval_seconds = interval
        runner.prepare(force_refresh_categories)

        console.print("\n[bold blue]Watching budgets (Ctrl+C to stop)...[/bold blue]")
        passes = runner.watch(SyncScope(allocations=budgeted), stop_event)
        console.print(f"\n[green]Stopped after {passes} pass(es)[/green]")

    except Exception as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        if verbose:
            raise
        sys.exit(1)
    finally:
        if "runner" in locals():
            runner.drain()
        if "client" in locals():
            client.close()
        if "db" in locals():
            db.close()


@app.command()
def status(
    token: str | None = typer.Option(
        None, "--token", "-t", help="YNAB token (overrides YNAB_ACCESS_TOKEN)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Show how far each personal budget is mirrored into the shared budget."""
    setup_logging(verbose)

    try:
        runner, db, client = _open_runner(token)
        runner.prepare()

        for report in runner.status():
            display_status(report)

    except Exception as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        if verbose:
            raise
        sys.exit(1)
    finally:
        if "runner" in locals():
            runner.drain()
        if "client" in locals():
            client.close()
        if "db" in locals():
            db.close()
