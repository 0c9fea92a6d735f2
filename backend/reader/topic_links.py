"""Topic-link extraction.

Links whose anchor text matches the topic vocabulary are lifted out of the
reading and returned separately so they can be shown as a link grid.

Every anchor whose text matches the vocabulary is removed from the body, but
only those passing the collection filters (no fragment, no blocked host,
sensible length, first occurrence) are returned.  A topic link pointing at a
blocked host therefore disappears without a card.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, Optional
from urllib.parse import urlparse

from bs4 import BeautifulSoup, NavigableString

from backend.config import settings
from backend.reader.models import TopicLink

BLOCKED_HOSTS = ("twitter.com", "github.com", "linkedin.com", "youtube.com", "youtu.be")

# Anchor text length bounds (exclusive).
MIN_TEXT_LENGTH = 3
MAX_TEXT_LENGTH = 80

_MD_LINK = re.compile(
    r"(?P<lead>[ \t]*)(?<!!)\[(?P<text>[^\[\]\n]+)\]"
    r"\((?P<href>[^()\s]+)(?:\s+\"[^\"]*\")?\)(?P<trail>[ \t]*)"
)
# Highlight markup injected into anchor text.
_MARK_TAG = re.compile(r"</?mark\b[^>]*>", re.IGNORECASE)


@dataclass
class TopicLinkResult:
    markdown: str = ""
    html: str = ""
    topic_links: list[TopicLink] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def build_topic_pattern(keywords: Iterable[str]) -> re.Pattern[str]:
    """Compile a case-insensitive alternation of *keywords*."""
    words = [re.escape(k) for k in keywords if k]
    if not words:
        # Matches nothing.
        return re.compile(r"(?!x)x")
    return re.compile("|".join(words), re.IGNORECASE)


def _normalise_text(text: str) -> str:
    return " ".join(_MARK_TAG.sub("", text).split())


def _is_blocked(href: str) -> bool:
    try:
        host = (urlparse(href).hostname or "").lower()
    except ValueError:
        return False
    if host.startswith("www."):
        host = host[4:]
    return any(host == d or host.endswith("." + d) for d in BLOCKED_HOSTS)


def _should_collect(text: str, href: str, pattern: re.Pattern[str], seen: set[str]) -> bool:
    if not href or href.startswith("#"):
        return False
    if _is_blocked(href):
        return False
    if not MIN_TEXT_LENGTH < len(text) < MAX_TEXT_LENGTH:
        return False
    if not pattern.search(text):
        return False
    return text.lower() not in seen


def _collapse_markdown(markdown: str) -> str:
    markdown = re.sub(r"[ \t]+$", "", markdown, flags=re.MULTILINE)
    markdown = re.sub(r"\n{3,}", "\n\n", markdown)
    return markdown.strip()


def _extract_markdown(
    markdown: str,
    pattern: re.Pattern[str],
    seen: set[str],
    links: list[TopicLink],
) -> str:
    removed = False

    def _replace(match: re.Match[str]) -> str:
        nonlocal removed
        text = _normalise_text(match.group("text"))
        href = match.group("href")
        if not pattern.search(text):
            return match.group(0)

        if _should_collect(text, href, pattern, seen):
            seen.add(text.lower())
            links.append(TopicLink(text=text, href=href))
        removed = True

        start = match.start()
        if start == 0 or markdown[start - 1] == "\n":
            # Keep the line's indentation, drop the gap after the link.
            return match.group("lead")
        end = match.end()
        if end >= len(markdown) or markdown[end] == "\n":
            return ""
        return match.group("trail")

    out = _MD_LINK.sub(_replace, markdown)
    return _collapse_markdown(out) if removed else markdown


def _remove_anchor(anchor) -> None:  # type: ignore[no-untyped-def]
    prev, nxt = anchor.previous_sibling, anchor.next_sibling
    anchor.decompose()
    if (
        isinstance(prev, NavigableString)
        and isinstance(nxt, NavigableString)
        and prev[-1:].isspace()
        and nxt[:1].isspace()
    ):
        nxt.replace_with(NavigableString(nxt.lstrip(" \t")))


def _extract_html(
    html: str,
    pattern: re.Pattern[str],
    seen: set[str],
    links: list[TopicLink],
) -> str:
    soup = BeautifulSoup(html, "html.parser")
    removed = False

    for anchor in soup.find_all("a"):
        if anchor.decomposed:
            continue
        text = _normalise_text(anchor.get_text(" "))
        if not pattern.search(text):
            continue
        href = (anchor.get("href") or "").strip()
        if _should_collect(text, href, pattern, seen):
            seen.add(text.lower())
            links.append(TopicLink(text=text, href=href))
        _remove_anchor(anchor)
        removed = True

    if not removed:
        return html
    return re.sub(r"\n\s*\n(\s*\n)+", "\n\n", str(soup)).strip()


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def extract_topic_links(
    markdown: str = "",
    html: str = "",
    *,
    topic_pattern: Optional[re.Pattern[str]] = None,
) -> TopicLinkResult:
    """Collect topic links from *markdown* and *html* and strip them from both.

    Args:
        markdown: Markdown body (may be empty).
        html: HTML body (may be empty).
        topic_pattern: Compiled vocabulary pattern.  Defaults to the pattern
            built from ``settings.topic_keywords``.

    Returns:
        A :class:`TopicLinkResult` with the processed bodies and the collected
        links, deduplicated by lowercased anchor text.
    """
    pattern = topic_pattern or build_topic_pattern(settings.topic_keywords)
    seen: set[str] = set()
    links: list[TopicLink] = []

    out_md = _extract_markdown(markdown, pattern, seen, links) if markdown else markdown
    out_html = _extract_html(html, pattern, seen, links) if html else html

    return TopicLinkResult(markdown=out_md, html=out_html, topic_links=links)
