"""SQLite connection factory.

Usage::

    from backend.db.connection import get_connection

    with get_connection() as conn:
        cursor = conn.execute("SELECT 1")
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Optional

from backend.config import settings


def get_connection(db_path: Optional[Path] = None) -> sqlite3.Connection:
    """Open and configure a SQLite connection.

    Foreign keys are enabled and file databases switch to WAL journal mode so
    the API and the CLI can read concurrently.

    Args:
        db_path: Override the DB path.  Defaults to ``settings.db_path``.

    Returns:
        A :class:`sqlite3.Connection` whose ``row_factory`` is
        :class:`sqlite3.Row`.
    """
    path = db_path or settings.db_path

    if str(path) != ":memory:":
        Path(path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(str(path), check_same_thread=False)
    conn.row_factory = sqlite3.Row

    conn.execute("PRAGMA foreign_keys = ON")
    if str(path) != ":memory:":
        conn.execute("PRAGMA journal_mode = WAL")

    return conn
