"""CRUD operations for the ``highlights`` table."""

from __future__ import annotations

import sqlite3
import uuid
from time import time
from typing import Optional

from backend.reader.models import HIGHLIGHT_COLORS, Highlight


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _row_to_highlight(row: sqlite3.Row) -> Highlight:
    return Highlight(
        id=row["id"],
        reading_id=row["reading_id"],
        week_id=row["week_id"],
        text=row["text"],
        color=row["color"],
        occurrence=row["occurrence"],
        created_at=row["created_at"],
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def create_highlight(
    conn: sqlite3.Connection,
    reading_id: str,
    text: str,
    color: str = "yellow",
    week_id: str = "",
    occurrence: Optional[int] = None,
) -> Highlight:
    """Store a highlight for *reading_id* and return it.

    Raises:
        ValueError: If *text* is blank, *color* is unknown or *occurrence*
            is negative.
    """
    if not text or not text.strip():
        raise ValueError("Highlight text must not be empty")
    if color not in HIGHLIGHT_COLORS:
        raise ValueError(f"Unknown highlight color {color!r}")
    if occurrence is not None and occurrence < 0:
        raise ValueError("occurrence must be zero or positive")

    hid = str(uuid.uuid4())
    with conn:
        conn.execute(
            """
            INSERT INTO highlights (id, reading_id, week_id, text, color, occurrence, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (hid, reading_id, week_id, text, color, occurrence, int(time())),
        )
    return get_highlight(conn, hid)  # type: ignore[return-value]


def get_highlight(conn: sqlite3.Connection, highlight_id: str) -> Optional[Highlight]:
    """Fetch one highlight by id.  Returns ``None`` if not found."""
    row = conn.execute(
        "SELECT * FROM highlights WHERE id = ?", (highlight_id,)
    ).fetchone()
    return _row_to_highlight(row) if row else None


def list_highlights(
    conn: sqlite3.Connection,
    reading_id: Optional[str] = None,
    week_id: Optional[str] = None,
) -> list[Highlight]:
    """Return highlights, oldest first, optionally filtered by reading or week."""
    clauses: list[str] = []
    params: list[str] = []
    if reading_id is not None:
        clauses.append("reading_id = ?")
        params.append(reading_id)
    if week_id is not None:
        clauses.append("week_id = ?")
        params.append(week_id)
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    rows = conn.execute(
        f"SELECT * FROM highlights {where} ORDER BY created_at, rowid",  # noqa: S608
        params,
    ).fetchall()
    return [_row_to_highlight(r) for r in rows]


def delete_highlight(conn: sqlite3.Connection, highlight_id: str) -> bool:
    """Delete a highlight.  Returns ``True`` if a row was removed."""
    with conn:
        cursor = conn.execute("DELETE FROM highlights WHERE id = ?", (highlight_id,))
    return cursor.rowcount > 0
