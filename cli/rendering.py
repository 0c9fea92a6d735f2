"""Utilities for rendering processed readings in the CLI."""

from __future__ import annotations

from typing import List

from backend.reader.models import ProcessedDocument, TopicLink


def render_topic_links(links: List[TopicLink], columns: int = 2) -> str:
    """Render topic links as a numbered grid, *columns* entries per row.

    Returns an empty string when there are no links.
    """
    if not links:
        return ""
    cells = [f"{i}. {link.text}" for i, link in enumerate(links, start=1)]
    width = max(len(c) for c in cells) + 2
    lines = ["Related topics:"]
    for start in range(0, len(cells), columns):
        row = cells[start:start + columns]
        lines.append("  " + "".join(c.ljust(width) for c in row).rstrip())
    for i, link in enumerate(links, start=1):
        lines.append(f"  [{i}] {link.href}")
    return "\n".join(lines)


def render_unavailable(url: str) -> str:
    return (
        "Content unavailable: the reading could not be loaded.\n"
        f"Open the original: {url}"
    )


def render_document(doc: ProcessedDocument, as_html: bool = False) -> str:
    """Render *doc* for the terminal.

    Markdown is preferred; HTML is shown when asked for or when the document
    has no markdown.
    """
    if not doc.available:
        return render_unavailable(doc.source_url)

    parts: List[str] = []
    title = doc.metadata.get("title") if doc.metadata else None
    if title:
        parts.append(title)
        parts.append("=" * min(len(title), 72))

    body = doc.html if (as_html or not doc.markdown) else doc.markdown
    parts.append(body)

    grid = render_topic_links(doc.topic_links)
    if grid:
        parts.append("")
        parts.append(grid)
    if doc.source_url:
        parts.append("")
        parts.append(f"Source: {doc.source_url}")
    return "\n".join(parts)
