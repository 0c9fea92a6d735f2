"""Database layer tests.

All tests use an in-memory SQLite database so they are fast, isolated and
write nothing to the workspace directory.
"""

from __future__ import annotations

import sqlite3
from typing import Generator

import pytest

from backend.db.connection import get_connection
from backend.db.highlights import (
    create_highlight,
    delete_highlight,
    get_highlight,
    list_highlights,
)
from backend.db.migrations import current_version, init_db


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def conn() -> Generator[sqlite3.Connection, None, None]:
    """In-memory connection with the schema initialised."""
    connection = get_connection(db_path=":memory:")  # type: ignore[arg-type]
    init_db(connection)
    yield connection
    connection.close()


# ---------------------------------------------------------------------------
# connection / init
# ---------------------------------------------------------------------------

class TestConnection:
    def test_foreign_keys_enabled(self, conn: sqlite3.Connection) -> None:
        assert conn.execute("PRAGMA foreign_keys").fetchone()[0] == 1

    def test_rows_by_name(self, conn: sqlite3.Connection) -> None:
        row = conn.execute("SELECT 1 AS one").fetchone()
        assert row["one"] == 1

    def test_file_database_created_in_missing_directory(self, tmp_path) -> None:
        path = tmp_path / "nested" / "studyflow.db"
        connection = get_connection(db_path=path)
        init_db(connection)
        connection.close()
        assert path.exists()


class TestInitDb:
    def test_highlights_table_exists(self, conn: sqlite3.Connection) -> None:
        row = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name='highlights'"
        ).fetchone()
        assert row is not None

    def test_idempotent(self, conn: sqlite3.Connection) -> None:
        create_highlight(conn, "r1", "kept")
        init_db(conn)
        assert len(list_highlights(conn)) == 1

    def test_version_starts_at_zero(self, conn: sqlite3.Connection) -> None:
        assert current_version(conn) == 0

    def test_colour_constraint(self, conn: sqlite3.Connection) -> None:
        with pytest.raises(sqlite3.IntegrityError):
            with conn:
                conn.execute(
                    "INSERT INTO highlights (id, reading_id, text, color) VALUES ('x', 'r', 't', 'purple')"
                )


# ---------------------------------------------------------------------------
# highlights CRUD
# ---------------------------------------------------------------------------

class TestHighlights:
    def test_create_and_get(self, conn: sqlite3.Connection) -> None:
        h = create_highlight(conn, "reading-1", "key idea", color="green", week_id="w1")

        assert h.id
        assert h.created_at > 0
        fetched = get_highlight(conn, h.id)
        assert fetched == h
        assert fetched.reading_id == "reading-1"
        assert fetched.week_id == "w1"
        assert fetched.color == "green"
        assert fetched.occurrence is None

    def test_occurrence_is_stored(self, conn: sqlite3.Connection) -> None:
        h = create_highlight(conn, "r1", "cat", occurrence=2)
        assert get_highlight(conn, h.id).occurrence == 2

    def test_get_missing_returns_none(self, conn: sqlite3.Connection) -> None:
        assert get_highlight(conn, "nope") is None

    def test_list_by_reading_in_creation_order(self, conn: sqlite3.Connection) -> None:
        a = create_highlight(conn, "r1", "first")
        create_highlight(conn, "r2", "other reading")
        b = create_highlight(conn, "r1", "second")

        assert [h.id for h in list_highlights(conn, reading_id="r1")] == [a.id, b.id]

    def test_list_by_week(self, conn: sqlite3.Connection) -> None:
        create_highlight(conn, "r1", "one", week_id="w1")
        create_highlight(conn, "r2", "two", week_id="w2")

        assert [h.text for h in list_highlights(conn, week_id="w2")] == ["two"]
        assert len(list_highlights(conn)) == 2

    def test_delete(self, conn: sqlite3.Connection) -> None:
        h = create_highlight(conn, "r1", "gone")

        assert delete_highlight(conn, h.id) is True
        assert get_highlight(conn, h.id) is None
        assert delete_highlight(conn, h.id) is False

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"text": "   "},
            {"text": "ok", "color": "purple"},
            {"text": "ok", "occurrence": -1},
        ],
    )
    def test_invalid_input_rejected(self, conn: sqlite3.Connection, kwargs) -> None:
        with pytest.raises(ValueError):
            create_highlight(conn, "r1", **kwargs)
        assert list_highlights(conn) == []
