"""StudyFlow CLI: read, highlight and discuss course readings from the terminal.

Usage:
    python cli/main.py --help

Commands:
    read       Open a reading URL (optionally follow topic links interactively)
    process    Run the reader pipeline over a local markdown / HTML file
    chat       Ask the AI tutor about a reading
    highlight  Manage stored highlights
    db         Database operations
    serve      Run the HTTP API
"""

from __future__ import annotations

import sys
from pathlib import Path

# Ensure the project root is on sys.path so that `from backend.xxx import ...`
# works when the CLI is invoked as `python cli/main.py` from any directory.
_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

import asyncio
import logging
from typing import List, Optional

import typer

from backend.chat import ChatError, ChatSession
from backend.config import settings
from backend.db import get_connection, init_db
from backend.db.highlights import list_highlights
from backend.reader.models import HIGHLIGHT_COLORS, Highlight, LoadState, ScrapedDocument
from backend.reader.navigator import Navigator
from backend.reader.pipeline import extract_text, process_document
from backend.scraper.client import ScrapeClient

from cli.commands.highlight import highlight_app
from cli.rendering import render_document, render_unavailable

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="studyflow",
    help="StudyFlow reader CLI.",
    no_args_is_help=True,
)
app.add_typer(highlight_app, name="highlight")

db_app = typer.Typer(help="Database operations.", no_args_is_help=True)
app.add_typer(db_app, name="db")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output to stderr."),
) -> None:
    """StudyFlow reader CLI."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _stored_highlights(reading_id: Optional[str]) -> List[Highlight]:
    if not reading_id:
        return []
    conn = get_connection()
    init_db(conn)
    try:
        return list_highlights(conn, reading_id=reading_id)
    finally:
        conn.close()


def _show(navigator: Navigator, as_html: bool) -> None:
    if navigator.state == LoadState.LOADED and navigator.document is not None:
        typer.echo(render_document(navigator.document, as_html=as_html))
    else:
        typer.echo(f"❌ {navigator.error or 'Failed to load content'}")
        typer.echo(render_unavailable(navigator.current_url))


async def _browse(
    url: str,
    highlights: List[Highlight],
    as_html: bool,
    interactive: bool,
) -> Navigator:
    client = ScrapeClient()
    navigator = Navigator(url, client.fetch, highlights=highlights)
    await navigator.open()
    _show(navigator, as_html)

    while interactive:
        choice = typer.prompt(
            "[number] follow topic  [b]ack  [r]etry  [q]uit", default="q"
        ).strip().lower()
        if choice == "q":
            break
        if choice == "b":
            if await navigator.go_back() is None:
                break
        elif choice == "r":
            await navigator.retry()
        elif choice.isdigit():
            links = navigator.document.topic_links if navigator.document else []
            index = int(choice) - 1
            if not 0 <= index < len(links):
                typer.echo(f"No topic #{choice}.")
                continue
            await navigator.follow(links[index].href)
        else:
            typer.echo(f"Unknown choice {choice!r}.")
            continue
        _show(navigator, as_html)

    return navigator


async def _reply(session: ChatSession, text: str) -> None:
    try:
        async for delta in session.stream_reply(text):
            typer.echo(delta, nl=False)
        typer.echo("")
    except ChatError as exc:
        typer.echo(f"❌ {exc}")


async def _chat(url: str, message: Optional[str]) -> None:
    navigator = Navigator(url, ScrapeClient().fetch)
    await navigator.open()

    title = url
    content: Optional[str] = None
    if navigator.state == LoadState.LOADED and navigator.document is not None:
        doc = navigator.document
        title = doc.metadata.get("title") or url
        content = extract_text(doc.html) or doc.markdown or None
    else:
        typer.echo(f"⚠️  Could not load the reading ({navigator.error}); chatting without it.")

    session = ChatSession(title, content)
    for m in session.messages:
        typer.echo(f"tutor: {m.content}")

    if message is not None:
        await _reply(session, message)
        return

    while True:
        text = typer.prompt("you", default="", show_default=False)
        command = text.strip().lower()
        if command in {"exit", "quit"}:
            break
        if command == "/reset":
            session.reset()
            typer.echo("Conversation cleared.")
            continue
        if command:
            await _reply(session, text)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

@app.command("read")
def read(
    url: str = typer.Argument(..., help="Reading URL."),
    reading_id: Optional[str] = typer.Option(
        None, "--reading", "-r", help="Apply this reading's stored highlights."
    ),
    html: bool = typer.Option(False, "--html", help="Print HTML instead of markdown."),
    interactive: bool = typer.Option(
        False, "--interactive", "-i", help="Follow topic links and go back in the terminal."
    ),
) -> None:
    """Fetch a reading and print it, highlighted and cleaned."""
    highlights = _stored_highlights(reading_id)
    asyncio.run(_browse(url, highlights, html, interactive))


@app.command("process")
def process(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Markdown or HTML file."),
    highlight: List[str] = typer.Option([], "--highlight", help="Passage to highlight (repeatable)."),
    color: str = typer.Option(
        "yellow", "--color", "-c", help=f"Colour for --highlight passages, one of: {', '.join(HIGHLIGHT_COLORS)}."
    ),
    url: Optional[str] = typer.Option(None, "--url", help="Base URL for resolving relative links."),
    html: bool = typer.Option(False, "--html", help="Print HTML instead of markdown."),
) -> None:
    """Run the reader pipeline over a local file and print the result."""
    if color not in HIGHLIGHT_COLORS:
        typer.echo(f"❌ Unknown highlight color {color!r}")
        raise typer.Exit(code=1)

    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in {".html", ".htm"}:
        doc = ScrapedDocument(html=text, metadata={"title": path.stem})
        html = True
    else:
        doc = ScrapedDocument(markdown=text, metadata={"title": path.stem})

    highlights = [Highlight(text=h, color=color) for h in highlight]  # type: ignore[arg-type]
    result = process_document(doc, highlights, current_url=url)
    typer.echo(render_document(result, as_html=html))


@app.command("chat")
def chat(
    url: str = typer.Argument(..., help="Reading URL to discuss."),
    message: Optional[str] = typer.Option(
        None, "--message", "-m", help="Ask a single question and exit."
    ),
) -> None:
    """Chat with the AI tutor about a reading."""
    asyncio.run(_chat(url, message))


@db_app.command("init")
def db_init() -> None:
    """Initialise the SQLite database (create tables if they do not exist)."""
    conn = get_connection()
    init_db(conn)
    conn.close()
    typer.echo(f"[db init] Database ready at {settings.db_path}")


@app.command("serve")
def serve(
    host: str = typer.Option("127.0.0.1", help="Interface to bind."),
    port: int = typer.Option(8000, help="Port to listen on."),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes."),
) -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn  # noqa: PLC0415

    uvicorn.run("backend.api.app:app", host=host, port=port, reload=reload)


# ---------------------------------------------------------------------------
# Entry-point
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    app()
