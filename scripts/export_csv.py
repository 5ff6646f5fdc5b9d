#!/usr/bin/env python3
"""
Export data to CSV.

Exports vote history or the identity dashboard for external analysis.
"""

import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import csv
from typing import Optional

import typer
from rich.console import Console

from identityforge.core.runtime import open_stores
from identityforge.core.utils import format_timestamp, now_ms

app = typer.Typer(help="Export data to CSV")
console = Console()


def _default_output(kind: str, now: int) -> str:
    stamp = format_timestamp(now, "UTC").replace("-", "").replace(":", "").replace(" ", "_")
    return f"data/{kind}_export_{stamp}.csv"


@app.command()
def votes(
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Output file path"),
    limit: Optional[int] = typer.Option(None, "--limit", "-l", min=0, help="Maximum rows (default from config)"),
):
    """
    Export recent votes to CSV, newest first.
    """
    with open_stores(console) as (config, stores):
        rows = stores.identities.list_vote_history(limit=limit if limit is not None else config.history_limit)

    output = output or _default_output("votes", now_ms())

    Path(output).parent.mkdir(parents=True, exist_ok=True)
    with open(output, "w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(["vote_id", "identity_name", "created_at_ms", "created_at"])

        for row in rows:
            writer.writerow([
                row.vote_id,
                row.identity_name,
                row.created_at,
                format_timestamp(row.created_at, config.timezone),
            ])

    console.print(f"[green]Exported {len(rows)} votes to {output}[/green]")


@app.command()
def dashboard(
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Output file path"),
):
    """
    Export the identity dashboard to CSV.
    """
    now = now_ms()
    with open_stores(console) as (_, stores):
        items = stores.identities.get_identity_dashboard_items(now)

    output = output or _default_output("dashboard", now)

    Path(output).parent.mkdir(parents=True, exist_ok=True)
    with open(output, "w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(["identity_id", "identity_name", "votes_today", "votes_last_7_days", "total_votes"])

        for item in items:
            writer.writerow([
                item.identity_id,
                item.identity_name,
                item.votes_today,
                item.votes_last_7_days,
                item.total_votes,
            ])

    console.print(f"[green]Exported {len(items)} identities to {output}[/green]")


if __name__ == "__main__":
    app()
