"""Highlight commands for managing a reading's highlights."""

from typing import Optional

import typer

from backend.db import get_connection, init_db
from backend.db.highlights import create_highlight, delete_highlight, list_highlights
from backend.reader.models import HIGHLIGHT_COLORS

highlight_app = typer.Typer(help="Manage highlights stored for readings.")


@highlight_app.command("add")
def highlight_add(
    reading_id: str = typer.Argument(..., help="Reading the highlight belongs to."),
    text: str = typer.Argument(..., help="Exact passage to highlight."),
    color: str = typer.Option("yellow", "--color", "-c", help=f"One of: {', '.join(HIGHLIGHT_COLORS)}."),
    week_id: str = typer.Option("", "--week", help="Course week the reading belongs to."),
    occurrence: Optional[int] = typer.Option(
        None, "--occurrence", help="Only mark this zero-based occurrence of the text."
    ),
) -> None:
    """Store a highlight for a reading."""
    conn = get_connection()
    init_db(conn)

    try:
        highlight = create_highlight(
            conn,
            reading_id=reading_id,
            text=text,
            color=color,
            week_id=week_id,
            occurrence=occurrence,
        )
        typer.echo(f"✅ Highlight added [{highlight.color}] {highlight.id}")
    except ValueError as e:
        typer.echo(f"❌ {e}")
        raise typer.Exit(code=1)
    finally:
        conn.close()


@highlight_app.command("list")
def highlight_list(
    reading_id: Optional[str] = typer.Argument(None, help="Only show this reading's highlights."),
    week_id: Optional[str] = typer.Option(None, "--week", help="Filter by course week."),
) -> None:
    """List stored highlights."""
    conn = get_connection()
    init_db(conn)

    try:
        highlights = list_highlights(conn, reading_id=reading_id, week_id=week_id)
        if not highlights:
            typer.echo("No highlights found.")
            return
        for h in highlights:
            where = "" if h.occurrence is None else f" (#{h.occurrence})"
            typer.echo(f" - {h.id[:8]}  [{h.color}] {h.reading_id}: {h.text!r}{where}")
    finally:
        conn.close()


@highlight_app.command("delete")
def highlight_delete(
    highlight_id: str = typer.Argument(..., help="ID of the highlight to delete."),
) -> None:
    """Delete a highlight."""
    conn = get_connection()
    init_db(conn)

    try:
        if not delete_highlight(conn, highlight_id):
            typer.echo(f"❌ Highlight not found: {highlight_id}")
            raise typer.Exit(code=1)
        typer.echo(f"🗑️  Deleted highlight {highlight_id}")
    finally:
        conn.close()
