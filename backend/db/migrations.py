"""Database initialisation and migration helpers.

``init_db(conn)`` is idempotent and safe to call on an existing database.
``migrate(conn)`` runs incremental schema changes tracked in a version table.
"""

from __future__ import annotations

import sqlite3

from backend.config import settings

# Incremental changes applied on top of schema.sql, in version order.
MIGRATIONS: list[tuple[int, str]] = [
    # (1, "ALTER TABLE highlights ADD COLUMN note TEXT;"),
]


def init_db(conn: sqlite3.Connection) -> None:
    """Create all tables and indexes, then apply pending migrations."""
    conn.executescript(settings.schema_path.read_text(encoding="utf-8"))
    _ensure_version_table(conn)
    migrate(conn)


def _ensure_version_table(conn: sqlite3.Connection) -> None:
    with conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_version (
                version    INTEGER PRIMARY KEY,
                applied_at INTEGER DEFAULT (unixepoch())
            )
            """
        )


def current_version(conn: sqlite3.Connection) -> int:
    """Return the highest applied migration version (0 if none applied)."""
    row = conn.execute(
        "SELECT COALESCE(MAX(version), 0) FROM schema_version"
    ).fetchone()
    return row[0] if row else 0


def migrate(conn: sqlite3.Connection) -> None:
    """Apply every entry of :data:`MIGRATIONS` newer than the current version."""
    applied = current_version(conn)
    for version, sql in MIGRATIONS:
        if version > applied:
            with conn:
                conn.execute(sql)
                conn.execute(
                    "INSERT INTO schema_version(version) VALUES (?)", (version,)
                )
