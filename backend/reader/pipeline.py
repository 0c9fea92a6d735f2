"""Reader pipeline: scraped page → display-ready document.

``process_document`` is a pure function of its inputs:

    unavailable check → boilerplate removal → markdown normalisation
    → highlights → topic links → allow-list sanitisation → link rewriting

Sanitisation runs after highlight injection and topic-link removal so that
nothing produced by earlier stages can bypass the allow-list.
"""

from __future__ import annotations

import re
from typing import Iterable, Optional

from bs4 import BeautifulSoup

from backend.reader.highlights import inject_highlights
from backend.reader.models import Highlight, ProcessedDocument, ScrapedDocument
from backend.reader.navigator import rewrite_links
from backend.reader.sanitizer import (
    clean_html,
    clean_markdown,
    normalize_markdown,
    sanitize_html,
    sanitize_markdown,
)
from backend.reader.topic_links import extract_topic_links


def process_document(
    doc: ScrapedDocument,
    highlights: Iterable[Highlight] = (),
    *,
    current_url: Optional[str] = None,
    topic_pattern: Optional[re.Pattern[str]] = None,
) -> ProcessedDocument:
    """Run the full reader pipeline over *doc*.

    Args:
        doc: Raw scrape result.
        highlights: Highlights of the reading being displayed.
        current_url: URL the document was fetched from; relative links are
            resolved against its origin.  Defaults to the document's
            ``sourceURL`` metadata.
        topic_pattern: Override for the topic vocabulary pattern.

    Returns:
        A :class:`ProcessedDocument`.  When the scrape produced neither
        markdown nor HTML, ``available`` is ``False`` and only ``source_url``
        is set.
    """
    source_url = current_url or doc.source_url
    if doc.is_empty:
        return ProcessedDocument(
            metadata=dict(doc.metadata),
            source_url=source_url,
            available=False,
        )

    highlights = list(highlights)

    markdown = normalize_markdown(clean_markdown(doc.markdown or ""))
    html = clean_html(doc.html or "")

    markdown = inject_highlights(markdown, highlights)
    html = inject_highlights(html, highlights, is_html=True)

    topics = extract_topic_links(markdown, html, topic_pattern=topic_pattern)

    markdown = sanitize_markdown(topics.markdown)
    html = sanitize_html(topics.html)

    markdown, html = rewrite_links(markdown, html, source_url)

    if not markdown.strip() and not html.strip():
        return ProcessedDocument(
            topic_links=topics.topic_links,
            metadata=dict(doc.metadata),
            source_url=source_url,
            available=False,
        )

    return ProcessedDocument(
        markdown=markdown,
        html=html,
        topic_links=topics.topic_links,
        metadata=dict(doc.metadata),
        source_url=source_url,
        available=True,
    )


def extract_text(html: str) -> str:
    """Return the visible text of *html*, used as chat context."""
    if not html:
        return ""
    return BeautifulSoup(html, "html.parser").get_text(" ", strip=True)
