from __future__ import annotations

import pytest

from models.db import set_db_path, init_db
from services.live_store import get_live_store, reset_live_store


@pytest.fixture
def db(tmp_path):
    """Fresh SQLite database per test, with the global live store torn down afterwards."""
    set_db_path(tmp_path / "test.db")
    init_db()
    yield tmp_path / "test.db"
    reset_live_store()


@pytest.fixture
def store(db):
    return get_live_store()
