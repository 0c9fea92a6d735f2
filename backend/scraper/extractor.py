"""Readability extraction for the fallback path.

Turns a :class:`RawPage` into a :class:`CleanPage`, and renders that into the
small article template the reader displays when the scrape service could not
be used.
"""

from __future__ import annotations

import html as html_lib
import re

import trafilatura

from backend.scraper.models import CleanPage, RawPage

# Marker emitted when nothing readable was found; callers treat it as "no content".
NO_CONTENT_MARKER = "Could not extract content"

_BLOCK_TAGS = ["h1", "h2", "h3", "h4", "h5", "h6", "p", "li", "blockquote", "pre"]


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _extract_title(html: str) -> str:
    """Return the text content of the first ``<title>`` tag, or empty string."""
    match = re.search(r"<title[^>]*>([^<]+)</title>", html, re.IGNORECASE)
    if match:
        return html_lib.unescape(match.group(1).strip())
    return ""


def _bs4_fallback(html: str) -> str:
    """Extract readable blocks using BeautifulSoup ``<main>``/``<article>`` heuristics.

    Blocks are separated by blank lines.
    """
    from bs4 import BeautifulSoup  # noqa: PLC0415

    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "nav", "footer", "header", "aside", "form"]):
        tag.decompose()
    container = soup.find("main") or soup.find("article") or soup.body or soup
    blocks = [
        block.get_text(" ", strip=True)
        for block in container.find_all(_BLOCK_TAGS)
    ]
    blocks = [b for b in blocks if b]
    if not blocks:
        text = container.get_text(" ", strip=True)
        return text
    return "\n\n".join(blocks)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def extract_content(raw: RawPage) -> CleanPage:
    """Extract clean, readable text from *raw*.

    Tries ``trafilatura`` first.  Falls back to a BeautifulSoup heuristic when
    trafilatura returns ``None`` or an empty string.
    """
    text: str | None = trafilatura.extract(
        raw.html,
        include_links=False,
        include_images=False,
        include_tables=True,
        no_fallback=False,
        url=raw.url,
    )

    if not text:
        text = _bs4_fallback(raw.html)

    return CleanPage(
        url=raw.url,
        title=_extract_title(raw.html),
        text=text or "",
    )


def render_article(page: CleanPage) -> str:
    """Wrap *page* in the reader's article template.

    Each non-empty line of ``page.text`` becomes a paragraph.  A page without
    text renders the :data:`NO_CONTENT_MARKER` notice instead.
    """
    title = html_lib.escape(page.title or page.url)
    paragraphs = [line.strip() for line in page.text.splitlines() if line.strip()]
    if paragraphs:
        body = "\n".join(f"<p>{html_lib.escape(p)}</p>" for p in paragraphs)
    else:
        body = f"<p>{NO_CONTENT_MARKER} from this page.</p>"
    source = html_lib.escape(page.url, quote=True)
    return (
        '<article class="reader-article">\n'
        f"<h1>{title}</h1>\n"
        f"{body}\n"
        f'<p class="reader-source">Source: <a href="{source}">{source}</a></p>\n'
        "</article>"
    )


def has_real_content(article_html: str | None, min_length: int) -> bool:
    """Return ``True`` if *article_html* holds real extracted content."""
    return bool(
        article_html
        and NO_CONTENT_MARKER not in article_html
        and len(article_html) > min_length
    )
