#!/usr/bin/env python3
"""
Progress review script.

Shows the identity dashboard and recent vote history.
"""

import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import typer
from rich.console import Console

from identityforge.core.runtime import open_stores
from identityforge.core.utils import now_ms
from identityforge.review.overview import (
    export_dashboard,
    format_dashboard,
    format_habit_line,
    format_vote_history,
    list_habits_with_stats,
)

app = typer.Typer(help="Progress review")
console = Console()


@app.command()
def main(
    history: int = typer.Option(0, "--history", "-n", min=0, help="Also show the N most recent votes"),
    export: bool = typer.Option(False, "--export", "-e", help="Export to file"),
    output: str = typer.Option(None, "--output", "-o", help="Export file path"),
):
    """
    Generate the progress review.

    Shows votes today, over the last 7 days, and in total per identity.
    """
    with open_stores(console) as (config, stores):
        now = now_ms()

        if export:
            filepath = export_dashboard(stores, now, config.timezone, filepath=output)
            console.print(f"[green]Review exported to {filepath}[/green]")
            return

        items = stores.identities.get_identity_dashboard_items(now)
        habits = list_habits_with_stats(stores)
        recent = stores.identities.list_vote_history(limit=history) if history > 0 else []

    print(format_dashboard(items, now, config.timezone))

    if habits:
        print()
        print("Habits")
        for row in habits:
            print(f"  {format_habit_line(row, now)}")

    if history > 0:
        print()
        print(format_vote_history(recent, config.timezone))


if __name__ == "__main__":
    app()
