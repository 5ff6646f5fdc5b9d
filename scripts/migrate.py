#!/usr/bin/env python3
"""
Schema migration CLI.

Applies pending migrations and shows the migration ledger.
"""

import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import typer
from rich.console import Console
from rich.table import Table

from identityforge.core.db import Database
from identityforge.core.exceptions import MigrationError
from identityforge.core.migrations import (
    LATEST_SCHEMA_VERSION,
    applied_migrations,
    get_schema_version,
)
from identityforge.core.runtime import load_config
from identityforge.core.utils import format_timestamp

app = typer.Typer(help="IdentityForge schema migrations")
console = Console()


@app.command()
def run():
    """Apply all pending migrations."""
    config = load_config()
    database = Database.from_config(config)

    try:
        applied = database.migrate()
    except MigrationError as e:
        console.print(f"[red]{e}[/red]")
        console.print("Fix the data out of band and run again.")
        raise typer.Exit(1)
    finally:
        database.dispose()

    if applied:
        console.print(f"[green]Applied migrations: {', '.join(str(v) for v in applied)}[/green]")
    else:
        console.print(f"Schema already at version {LATEST_SCHEMA_VERSION}.")


@app.command()
def status():
    """Show configuration and the migration ledger."""
    config = load_config()
    database = Database.from_config(config)

    try:
        typer.echo(config.get_summary())

        version = get_schema_version(database.engine)
        console.print(f"[bold]Schema version:[/bold] {version} (latest {LATEST_SCHEMA_VERSION})")

        if version == 0:
            console.print("[yellow]Database not migrated yet. Run: python scripts/migrate.py run[/yellow]")
            return

        table = Table(title="schema_migrations")
        table.add_column("Version", justify="right")
        table.add_column("Applied at")
        for applied_version, applied_at in applied_migrations(database.engine):
            table.add_row(str(applied_version), format_timestamp(applied_at, config.timezone))
        console.print(table)

        if version < LATEST_SCHEMA_VERSION:
            console.print("[yellow]Pending migrations. Run: python scripts/migrate.py run[/yellow]")
    finally:
        database.dispose()


if __name__ == "__main__":
    app()
