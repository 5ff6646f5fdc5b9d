"""
Shared fixtures.

The stores fixture runs every contract test against both the SQL
stores and the in-memory stores.
"""

import sys
from pathlib import Path

import pytest

# Add parent to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from identityforge.core.db import Database
from identityforge.stores import memory_stores, sql_stores


@pytest.fixture
def database(tmp_path: Path):
    db = Database(tmp_path / "identityforge.db")
    db.migrate()
    yield db
    db.dispose()


@pytest.fixture(params=["sql", "memory"])
def stores(request, tmp_path: Path):
    if request.param == "memory":
        yield memory_stores()
        return

    db = Database(tmp_path / "stores.db")
    db.migrate()
    yield sql_stores(db)
    db.dispose()
