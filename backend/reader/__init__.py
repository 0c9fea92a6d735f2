"""Reader package: highlight, topic-link, sanitise and navigate scraped readings."""

from backend.reader.highlights import inject_highlights
from backend.reader.models import (
    Highlight,
    LoadState,
    NavigationState,
    ProcessedDocument,
    ScrapedDocument,
    TopicLink,
)
from backend.reader.navigator import Navigator, resolve_url, rewrite_links
from backend.reader.pipeline import extract_text, process_document
from backend.reader.sanitizer import sanitize_html, sanitize_markdown
from backend.reader.topic_links import extract_topic_links

__all__ = [
    "Highlight",
    "LoadState",
    "NavigationState",
    "Navigator",
    "ProcessedDocument",
    "ScrapedDocument",
    "TopicLink",
    "extract_text",
    "extract_topic_links",
    "inject_highlights",
    "process_document",
    "resolve_url",
    "rewrite_links",
    "sanitize_html",
    "sanitize_markdown",
]
