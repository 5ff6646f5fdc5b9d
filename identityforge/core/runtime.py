"""
Command-line bootstrap shared by the scripts.

Loads .env and configuration, sets up logging, and opens a migrated
database for the duration of one command.
"""

import logging
from contextlib import contextmanager
from typing import Generator, Tuple

import typer
from dotenv import load_dotenv
from rich.console import Console

from identityforge.core.config import Config
from identityforge.core.db import init_db
from identityforge.core.exceptions import MigrationError
from identityforge.stores import Stores, sql_stores

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def load_config() -> Config:
    """Load .env and configuration, then configure logging."""
    load_dotenv()
    config = Config.from_env()
    logging.basicConfig(level=config.log_level, format=LOG_FORMAT, datefmt=LOG_DATEFMT)
    return config


@contextmanager
def open_stores(console: Console) -> Generator[Tuple[Config, Stores], None, None]:
    """
    Yield (config, stores) over a migrated database.

    A failed migration is printed and exits with code 1. The database
    is disposed when the block exits, however it exits.

    Usage:
        with open_stores(console) as (config, stores):
            stores.identities.list_active()
    """
    config = load_config()

    try:
        database = init_db(config)
    except MigrationError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    try:
        yield config, sql_stores(database)
    finally:
        database.dispose()
