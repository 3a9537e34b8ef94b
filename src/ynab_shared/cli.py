"""CLI for ynab-shared."""

from datetime import datetime

import typer
from rich.console import Console

from .config import load_settings
from .db import Database
from .sync.cli import app as sync_app

app = typer.Typer(
    name="ynab-shared",
    help="Keep two personal YNAB budgets and a shared budget in sync",
)

app.add_typer(sync_app, name="sync", help="Shared budget reconciliation")

console = Console()


@app.command()
def usage():
    """Show the API calls recorded for the current hour."""
    settings = load_settings()
    db = Database(settings.database_path)
    try:
        record = db.get_rate_limit()
    finally:
        db.close()

    current_hour = str(datetime.now().hour)
    calls = record.calls if record and record.current_hour == current_hour else 0
    console.print(
        f"{calls} of {settings.hourly_call_limit} API calls used in hour {current_hour}"
    )


if __name__ == "__main__":
    app()
