#!/usr/bin/env python3
"""
Habit management CLI.

Attach habits to identities and vote on them.
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
from identityforge.core.utils import format_since, format_timestamp, now_ms
from identityforge.review.overview import list_habits_with_stats

app = typer.Typer(help="Manage habits")
console = Console()


def _parse_id(raw: str, kind: str) -> UUID:
    try:
        return UUID(raw.strip())
    except ValueError:
        console.print(f"[red]Not a valid {kind} id: {raw}[/red]")
        raise typer.Exit(1)


@app.command("list")
def list_habits():
    """List active habits with vote counts."""
    with open_stores(console) as (_, stores):
        rows = list_habits_with_stats(stores)

    if not rows:
        console.print("No habits yet.")
        return

    now = now_ms()
    table = Table(title="Habits")
    table.add_column("ID", no_wrap=True)
    table.add_column("Habit")
    table.add_column("Identity")
    table.add_column("Votes", justify="right")
    table.add_column("Last vote")
    for row in rows:
        table.add_row(
            str(row.habit.id),
            row.habit.name,
            row.identity.name,
            str(row.vote_count),
            format_since(row.last_vote_at, now),
        )
    console.print(table)


@app.command()
def create(
    identity_id: str = typer.Argument(..., help="Owning identity ID"),
    name: str = typer.Argument(..., help="Habit name, e.g. 'Read to kids'"),
):
    """Create a habit for an active identity."""
    name = name.strip()
    if not name:
        console.print("[red]Habit name cannot be blank.[/red]")
        raise typer.Exit(1)

    parsed = _parse_id(identity_id, "identity")

    with open_stores(console) as (_, stores):
        identity = stores.identities.get_active(parsed)
        if identity is None:
            console.print(f"[red]Identity {parsed} not found.[/red]")
            console.print("Create one first: python scripts/identity.py create NAME")
            raise typer.Exit(1)

        habit = stores.habits.create(identity_id=identity.id, name=name, now=now_ms())

    console.print(f"[green]Habit created: {habit.name} ({identity.name})[/green]")
    console.print(f"ID: {habit.id}")


@app.command()
def show(
    habit_id: str = typer.Argument(..., help="Habit ID"),
    limit: Optional[int] = typer.Option(None, "--limit", "-l", min=0, help="Maximum votes shown (default from config)"),
):
    """Show a habit and its recent votes."""
    parsed = _parse_id(habit_id, "habit")

    with open_stores(console) as (config, stores):
        habit = stores.habits.get_active(parsed)
        identity = stores.identities.get_active(habit.identity_id) if habit else None
        if habit is None or identity is None:
            console.print(f"[red]Habit {parsed} not found.[/red]")
            raise typer.Exit(1)

        votes = stores.votes.list_for_habit(habit.id, limit=limit if limit is not None else config.history_limit)
        count = stores.votes.count_for_habit(habit.id)

    console.print(f"\n[bold]{habit.name}[/bold]")
    console.print(f"Identity: {identity.name}")
    console.print(f"Total votes: {count}\n")

    if not votes:
        console.print("No votes yet.")
        return

    table = Table(title="Recent votes")
    table.add_column("When")
    table.add_column("Value", justify="right")
    for v in votes:
        table.add_row(format_timestamp(v.created_at, config.timezone), "" if v.value is None else str(v.value))
    console.print(table)


@app.command()
def vote(
    habit_id: str = typer.Argument(..., help="Habit ID"),
    value: Optional[int] = typer.Option(None, "--value", "-v", help="Optional integer value"),
):
    """Cast a vote for a habit."""
    parsed = _parse_id(habit_id, "habit")

    with open_stores(console) as (_, stores):
        habit = stores.habits.get_active(parsed)
        if habit is None:
            console.print(f"[red]Habit {parsed} not found.[/red]")
            raise typer.Exit(1)

        stores.votes.cast(habit_id=habit.id, value=value, now=now_ms())
        count = stores.votes.count_for_habit(habit.id)

    console.print(f"[green]Vote cast for {habit.name}. Total: {count}[/green]")


@app.command()
def delete(
    habit_id: str = typer.Argument(..., help="Habit ID"),
):
    """Soft-delete a habit. Its votes are kept."""
    parsed = _parse_id(habit_id, "habit")

    with open_stores(console) as (_, stores):
        deleted = stores.habits.soft_delete(parsed, now=now_ms())

    if deleted:
        console.print(f"[green]Habit {parsed} deleted.[/green]")
    else:
        console.print(f"[yellow]Habit {parsed} not found or already deleted.[/yellow]")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
