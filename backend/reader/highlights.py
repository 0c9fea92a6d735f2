"""Highlight injection: wraps learner highlights in ``<mark>`` spans.

Highlights are re-applied to freshly fetched content by literal substring
search.  Matching only ever touches text (HTML text nodes, or markdown text
outside code, raw tags and link targets), so markup is never split.  Text
already inside a ``<mark>`` is left alone, which makes re-application a no-op
and lets the longest of several overlapping highlights win.
"""

from __future__ import annotations

import re
from typing import Iterable, Sequence

from bs4 import BeautifulSoup, NavigableString

from backend.reader.models import Highlight

HIGHLIGHT_HEX = {
    "yellow": "#fef08a",
    "green": "#bbf7d0",
    "blue": "#bfdbfe",
    "pink": "#fbcfe8",
}

# Elements whose text must never be rewritten.
_SKIP_PARENTS = {"mark", "script", "style", "code", "pre", "textarea"}

_MD_PROTECTED = re.compile(
    r"(```.*?```"
    r"|~~~.*?~~~"
    r"|`[^`\n]+`"
    r"|<mark\b[^>]*>.*?</mark>"
    r"|<[A-Za-z/!][^>\n]*>"
    r"|\]\((?:[^()\n]|\([^()\n]*\))*\))",
    re.DOTALL | re.IGNORECASE,
)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _mark_attrs(color: str) -> dict[str, str]:
    if color not in HIGHLIGHT_HEX:
        color = "yellow"
    return {
        "class": f"highlight highlight-{color}",
        "style": f"background-color: {HIGHLIGHT_HEX[color]}",
    }


def mark_tag(color: str) -> str:
    """Return the opening ``<mark>`` tag used for *color*."""
    attrs = _mark_attrs(color)
    return f'<mark class="{attrs["class"]}" style="{attrs["style"]}">'


def _ordered(highlights: Iterable[Highlight]) -> list[Highlight]:
    """Drop empty highlights and sort longest first (stable for equal lengths)."""
    usable = [h for h in highlights if h.text and h.text.strip()]
    return sorted(usable, key=lambda h: len(h.text), reverse=True)


def _inject_markdown(markdown: str, highlights: Sequence[Highlight]) -> str:
    for h in highlights:
        pattern = re.compile(re.escape(h.text))
        opening = mark_tag(h.color)
        seen = 0

        def _wrap(match: re.Match[str]) -> str:
            nonlocal seen
            index = seen
            seen += 1
            if h.occurrence is not None and index != h.occurrence:
                return match.group(0)
            return f"{opening}{match.group(0)}</mark>"

        parts = _MD_PROTECTED.split(markdown)
        # re.split with one capturing group alternates text / protected span.
        for i in range(0, len(parts), 2):
            if h.text in parts[i]:
                parts[i] = pattern.sub(_wrap, parts[i])
        markdown = "".join(parts)
    return markdown


def _is_protected(node: NavigableString) -> bool:
    return any(parent.name in _SKIP_PARENTS for parent in node.parents)


def _inject_html(html: str, highlights: Sequence[Highlight]) -> str:
    soup = BeautifulSoup(html, "html.parser")
    changed = False

    for h in highlights:
        pattern = re.compile(re.escape(h.text))
        seen = 0
        for node in list(soup.find_all(string=True)):
            # Comments, CDATA and doctypes are NavigableString subclasses.
            if type(node) is not NavigableString or _is_protected(node):
                continue
            text = str(node)
            if h.text not in text:
                continue

            pieces: list = []
            last = 0
            for match in pattern.finditer(text):
                index = seen
                seen += 1
                if h.occurrence is not None and index != h.occurrence:
                    continue
                if match.start() > last:
                    pieces.append(NavigableString(text[last:match.start()]))
                mark = soup.new_tag("mark", attrs=_mark_attrs(h.color))
                mark.string = match.group(0)
                pieces.append(mark)
                last = match.end()

            if pieces:
                if last < len(text):
                    pieces.append(NavigableString(text[last:]))
                node.replace_with(*pieces)
                changed = True

    return str(soup) if changed else html


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def inject_highlights(
    content: str,
    highlights: Iterable[Highlight],
    *,
    is_html: bool = False,
) -> str:
    """Wrap every occurrence of each highlight's text in a coloured ``<mark>``.

    Highlights whose text no longer appears verbatim are skipped silently;
    this function never raises for missing matches.

    Args:
        content: Markdown or HTML document body.
        highlights: Highlights belonging to the current reading.
        is_html: Parse *content* as HTML and rewrite text nodes only.

    Returns:
        The annotated content (unchanged when nothing matched).
    """
    if not content:
        return content
    ordered = _ordered(highlights)
    if not ordered:
        return content
    if is_html:
        return _inject_html(content, ordered)
    return _inject_markdown(content, ordered)
