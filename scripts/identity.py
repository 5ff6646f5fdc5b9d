#!/usr/bin/env python3
"""
Identity management CLI.

Create identities, cast votes for them, and view progress.
"""

import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from typing import Optional
from uuid import UUID

import typer
from rich.console import Console
from rich.table import Table

from identityforge.core.runtime import open_stores
from identityforge.core.utils import format_timestamp, now_ms

app = typer.Typer(help="Manage identities")
console = Console()


def _parse_id(raw: str) -> UUID:
    try:
        return UUID(raw.strip())
    except ValueError:
        console.print(f"[red]Not a valid identity id: {raw}[/red]")
        raise typer.Exit(1)


@app.command("list")
def list_identities():
    """List active identities, newest first."""
    with open_stores(console) as (config, stores):
        identities = stores.identities.list_active()

        if not identities:
            console.print("No identities yet.")
            return

        table = Table(title="Identities")
        table.add_column("ID", no_wrap=True)
        table.add_column("Name")
        table.add_column("Created")
        for identity in identities:
            table.add_row(str(identity.id), identity.name, format_timestamp(identity.created_at, config.timezone))
        console.print(table)


@app.command()
def create(
    name: str = typer.Argument(..., help="Who you want to become, e.g. 'Present father'"),
):
    """Create a new identity."""
    name = name.strip()
    if not name:
        console.print("[red]Identity name cannot be blank.[/red]")
        raise typer.Exit(1)

    with open_stores(console) as (_, stores):
        identity = stores.identities.create(name=name, now=now_ms())

    console.print(f"[green]Identity created: {identity.name}[/green]")
    console.print(f"ID: {identity.id}")


@app.command()
def delete(
    identity_id: str = typer.Argument(..., help="Identity ID"),
):
    """Soft-delete an identity. Its habits and votes are kept."""
    parsed = _parse_id(identity_id)

    with open_stores(console) as (_, stores):
        deleted = stores.identities.soft_delete(parsed, now=now_ms())

    if deleted:
        console.print(f"[green]Identity {parsed} deleted.[/green]")
    else:
        console.print(f"[yellow]Identity {parsed} not found or already deleted.[/yellow]")
        raise typer.Exit(1)


@app.command()
def vote(
    identity_id: str = typer.Argument(..., help="Identity ID"),
):
    """Cast a vote for an identity through its default habit."""
    parsed = _parse_id(identity_id)

    with open_stores(console) as (_, stores):
        identity = stores.identities.get_active(parsed)
        if identity is None:
            console.print(f"[red]Identity {parsed} not found.[/red]")
            raise typer.Exit(1)

        cast = stores.identities.cast_vote(identity.id, now=now_ms())

    console.print(f"[green]Vote cast for {identity.name}.[/green]")
    console.print(f"Habit: {cast.habit_id}")


@app.command()
def dashboard():
    """Show vote counts per identity: today, last 7 days, total."""
    with open_stores(console) as (config, stores):
        now = now_ms()
        items = stores.identities.get_identity_dashboard_items(now)

    if not items:
        console.print("No identities yet.")
        return

    table = Table(title=f"Dashboard ({format_timestamp(now, config.timezone)})")
    table.add_column("Identity")
    table.add_column("Today", justify="right")
    table.add_column("7 days", justify="right")
    table.add_column("Total", justify="right")
    for item in items:
        table.add_row(
            item.identity_name,
            str(item.votes_today),
            str(item.votes_last_7_days),
            str(item.total_votes),
        )
    console.print(table)


@app.command()
def history(
    limit: Optional[int] = typer.Option(None, "--limit", "-l", min=0, help="Maximum rows (default from config)"),
):
    """Show recent votes across all identities."""
    with open_stores(console) as (config, stores):
        rows = stores.identities.list_vote_history(limit=limit if limit is not None else config.history_limit)

    if not rows:
        console.print("No votes cast yet.")
        return

    table = Table(title="Vote history")
    table.add_column("When")
    table.add_column("Identity")
    for row in rows:
        table.add_row(format_timestamp(row.created_at, config.timezone), row.identity_name)
    console.print(table)


if __name__ == "__main__":
    app()
