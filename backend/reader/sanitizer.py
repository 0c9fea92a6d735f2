"""Content sanitisation for scraped readings.

Three stages:

A. Boilerplate removal: ordered, named regex rules strip promotional,
   navigational and metadata noise from markdown and HTML.
B. Structural normalisation (markdown only): restore paragraph, list and
   header spacing that scrapers tend to squash.
C. Allow-list sanitisation: only prose-safe tags and a minimal attribute set
   survive, with ``href``/``src`` restricted to safe URI schemes.

Nothing here raises on malformed input: bad markup degrades to partial output,
and anything ambiguous is stripped rather than passed through.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Optional

from bs4 import BeautifulSoup, Comment, NavigableString, Tag


@dataclass(frozen=True)
class CleanupRule:
    """A single named boilerplate rule."""

    name: str
    pattern: re.Pattern[str]
    replacement: str = ""

    def apply(self, text: str) -> str:
        return self.pattern.sub(self.replacement, text)


def _rule(name: str, pattern: str, replacement: str = "", flags: int = re.IGNORECASE) -> CleanupRule:
    return CleanupRule(name=name, pattern=re.compile(pattern, flags), replacement=replacement)


# ---------------------------------------------------------------------------
# Stage A: rule tables (applied in listed order)
# ---------------------------------------------------------------------------
MARKDOWN_RULES: tuple[CleanupRule, ...] = (
    _rule("rocket-enroll-banner", r"🚀[^\n]*enroll[^\n]*→?\n*", "\n\n"),
    _rule("target-course-banner", r"🎯[^\n]*(?:enroll|course|discount)[^\n]*\n*", "\n\n"),
    _rule("bold-discount-code", r"Use \*{0,2}[A-Z0-9]+\*{0,2} for \d+% off[^\n]*\n*", "\n\n"),
    _rule("master-building-cta", r"Master building[^\n]*Enroll now[^\n]*→?\n*", "\n\n"),
    _rule("enroll-now", r"Enroll now →?\n*", "\n\n"),
    _rule("copy-page", r"Copy page\n*", "\n\n"),
    _rule("sponsored-by", r"Sponsored by[^\n]*\n*", "\n\n"),
    _rule("related-learning", r"Related Learning[\s\S]*?(?=\n\n[A-Z]|\n\n#|$)", "\n\n"),
    _rule("course-carousel", r"Course\\[\s\S]*?Browse Academy\n*", "\n\n"),
    _rule("explore-courses", r"Explore All Courses[\s\S]*?Browse Academy\n*", "\n\n"),
    _rule("guide-breadcrumb", r"^\[Prompt Engineering Guide\][^\n]*\n*", "\n\n"),
    _rule("last-updated", r"Last updated(?: on)?[^\n]*\n*", "\n\n"),
    _rule("updated-on", r"Updated on[^\n]*\n*", "\n\n"),
    _rule("ctrl-k", r"`CTRL K`\n*", "\n\n", flags=0),
    _rule("video-link", r"\[[^\]\n]*\]\(https?://(?:www\.)?(?:youtube|youtu\.be|vimeo|dailymotion)[^)]*\)", "\n\n"),
    _rule("iframe", r"<iframe[^>]*>[\s\S]*?</iframe>", "\n\n"),
    _rule("video-element", r"<video[^>]*>[\s\S]*?</video>", "\n\n"),
)

HTML_RULES: tuple[CleanupRule, ...] = (
    _rule(
        "promo-class-container",
        r"<([a-z][a-z0-9]*)\b[^>]*class=\"[^\"]*(?:promo|banner|ad-|ads-|advertisement|sponsor"
        r"|newsletter|subscribe|cta|enrollment)[^\"]*\"[^>]*>[\s\S]*?</\1\s*>",
    ),
    _rule("rocket-enroll-banner", r"🚀[^<]*enroll[^<]*→?"),
    _rule("master-building-cta", r"Master building[^<]*Enroll now[^<]*→?"),
    _rule("discount-code", r"Use [A-Z0-9]+ for \d+% off[^<]*"),
    _rule("last-updated", r"Last updated(?: on)?[^<]*"),
    _rule("video-iframe", r"<iframe[^>]*(?:youtube|vimeo|dailymotion)[^>]*>[\s\S]*?</iframe>"),
    _rule("video-element", r"<video[^>]*>[\s\S]*?</video>"),
    _rule("sponsored-by", r"Sponsored by[^<]*"),
)


def apply_rules(text: str, rules: Iterable[CleanupRule]) -> str:
    """Apply *rules* to *text* in order; each rule sees the previous output."""
    for rule in rules:
        text = rule.apply(text)
    return text


def _collapse_blank_lines(text: str) -> str:
    return re.sub(r"\n{3,}", "\n\n", text)


def clean_markdown(markdown: str, rules: Iterable[CleanupRule] = MARKDOWN_RULES) -> str:
    """Stage A for markdown: strip boilerplate and collapse blank-line runs."""
    if not markdown:
        return ""
    return _collapse_blank_lines(apply_rules(markdown, rules)).strip()


def clean_html(html: str, rules: Iterable[CleanupRule] = HTML_RULES) -> str:
    """Stage A for HTML: strip boilerplate and collapse blank-line runs."""
    if not html:
        return ""
    return _collapse_blank_lines(apply_rules(html, rules)).strip()


# ---------------------------------------------------------------------------
# Stage B: markdown structure
# ---------------------------------------------------------------------------

_LIST_ITEM = r"(?:[-*+•]|\d+[.)])[ \t]"


def normalize_markdown(markdown: str) -> str:
    """Re-insert paragraph breaks and spacing around lists and headers."""
    if not markdown:
        return ""
    text = markdown.strip()
    text = _collapse_blank_lines(text)
    # Sentence end followed directly by a new capitalised line.
    text = re.sub(r"([.!?])\n([A-Z])", r"\1\n\n\2", text)
    # Blank line before the first item of a list (not between items).
    text = re.sub(
        rf"(?m)^(?![ \t]*{_LIST_ITEM})([^\n]*\S[^\n]*)\n(?=[ \t]*{_LIST_ITEM})",
        r"\1\n\n",
        text,
    )
    # Blank line before headers.
    text = re.sub(r"([^\n])\n(#{1,6}\s)", r"\1\n\n\2", text)
    return text


# ---------------------------------------------------------------------------
# Stage C: allow-list sanitisation
# ---------------------------------------------------------------------------
ALLOWED_TAGS = frozenset({
    "p", "h1", "h2", "h3", "h4", "h5", "h6",
    "ul", "ol", "li", "dl", "dt", "dd",
    "a", "strong", "em", "b", "i", "u", "s", "sub", "sup", "small",
    "code", "pre", "kbd", "blockquote", "q", "cite", "abbr",
    "br", "hr", "div", "span", "mark",
    "table", "thead", "tbody", "tfoot", "tr", "th", "td", "caption", "colgroup", "col",
    "img", "figure", "figcaption", "picture",
    "article", "section", "header", "footer", "main", "aside",
    "details", "summary",
})

ALLOWED_ATTRIBUTES = frozenset({"href", "class", "style", "src", "alt", "title", "target", "rel"})

ALLOWED_SCHEMES = frozenset({"http", "https", "mailto", "tel", "ftp"})

# Removed together with everything inside them.
DROP_WITH_CONTENT = frozenset({
    "script", "style", "iframe", "frame", "frameset", "object", "embed", "applet",
    "noscript", "template", "svg", "math", "form", "input", "button", "select",
    "textarea", "option", "link", "meta", "base", "head", "title", "audio", "video",
    "source", "track", "canvas", "param",
})

_URI_ATTRIBUTES = frozenset({"href", "src"})
_SCHEME = re.compile(r"^([a-zA-Z][a-zA-Z0-9+.\-]*):")
_CONTROL_AND_SPACE = re.compile(r"[\x00-\x20\x7f]+")
_UNSAFE_VALUE = re.compile(
    r"javascript:|vbscript:|livescript:|data:|expression\s*\(|url\s*\(|@import|<\s*script|\bon[a-z]+\s*=",
    re.IGNORECASE,
)
_TARGETS = frozenset({"_blank", "_self", "_parent", "_top"})


def is_safe_uri(value: str) -> bool:
    """Return ``True`` if *value* is relative or uses an allowed scheme.

    Browsers ignore whitespace and control characters inside a scheme, so
    those are stripped before the check.
    """
    compact = _CONTROL_AND_SPACE.sub("", value or "")
    match = _SCHEME.match(compact)
    if match is None:
        # No scheme: relative URL, fragment or path; still reject colon tricks.
        return ":" not in compact.split("/", 1)[0] or compact.startswith("//")
    return match.group(1).lower() in ALLOWED_SCHEMES


def safe_attribute(name: str, value: str) -> Optional[str]:
    """Return the sanitised attribute value, or ``None`` to drop it."""
    name = name.lower()
    if name not in ALLOWED_ATTRIBUTES:
        return None
    value = value.strip()
    if name in _URI_ATTRIBUTES:
        return value if is_safe_uri(value) else None
    if _UNSAFE_VALUE.search(value):
        return None
    if name == "target" and value.lower() not in _TARGETS:
        return None
    return value


def _clean_attributes(tag: Tag) -> None:
    cleaned: dict[str, str] = {}
    for name, value in list(tag.attrs.items()):
        if isinstance(value, (list, tuple)):
            value = " ".join(value)
        safe = safe_attribute(str(name), str(value))
        if safe is not None:
            cleaned[str(name).lower()] = safe
    if cleaned.get("target", "").lower() == "_blank":
        cleaned["rel"] = "noopener noreferrer"
    tag.attrs = cleaned


def sanitize_html(html: str) -> str:
    """Sanitise *html* against the tag/attribute/scheme allow-lists.

    Script-like elements are removed with their content; other unknown tags
    are unwrapped so their text survives.  Comments, doctypes and processing
    instructions are dropped.
    """
    if not html or not html.strip():
        return ""

    soup = BeautifulSoup(html, "html.parser")

    for node in list(soup.descendants):
        if isinstance(node, NavigableString) and type(node) is not NavigableString:
            # Comment, Doctype, CData, ProcessingInstruction, Declaration
            node.extract()

    for tag in list(soup.find_all(True)):
        if tag.decomposed:
            continue
        name = (tag.name or "").lower()
        if name in DROP_WITH_CONTENT or ":" in name:
            tag.decompose()
        elif name not in ALLOWED_TAGS:
            tag.unwrap()
        else:
            _clean_attributes(tag)

    return str(soup).strip()


# Raw HTML embedded in markdown
_MD_DROP_BLOCK = re.compile(
    r"<(?P<name>" + "|".join(sorted(DROP_WITH_CONTENT)) + r")\b[^>]*>[\s\S]*?</(?P=name)\s*>",
    re.IGNORECASE,
)
_MD_COMMENT = re.compile(r"<!--[\s\S]*?(?:-->|$)")
_MD_TAG = re.compile(r"<(?P<close>/?)(?P<name>[a-zA-Z][a-zA-Z0-9:-]*)(?P<attrs>(?:[^>\"']|\"[^\"]*\"|'[^']*')*)>")
_MD_ATTR = re.compile(r"([a-zA-Z_:][-a-zA-Z0-9_:.]*)(?:\s*=\s*(\"[^\"]*\"|'[^']*'|[^\s\"'=<>`]+))?")
# Destination is either <...> or a bare target with one level of balanced
# parentheses, e.g. javascript:void(0) or https://en.wikipedia.org/wiki/A_(b).
_MD_LINK_TARGET = re.compile(
    r"(!?)\[([^\]\n]*)\]\(\s*"
    r"(?:<([^>\n]*)>|((?:[^()\s<>]|\([^()\s]*\))*))"
    r"(?:\s+(?:\"[^\"]*\"|'[^']*'|\([^()\n]*\)))?\s*\)"
)
_MD_REFERENCE = re.compile(r"(?m)^[ \t]{0,3}\[[^\]\n]+\]:[ \t]*<?(\S*?)>?(?:[ \t]+.*)?$")
_MD_AUTOLINK = re.compile(r"<(?:[a-zA-Z][a-zA-Z0-9+.\-]*:[^\s<>]*|[^\s<>@]+@[^\s<>]+)>")


def _rebuild_tag(match: re.Match[str]) -> str:
    if _MD_AUTOLINK.fullmatch(match.group(0)):
        inner = match.group(0)[1:-1]
        return match.group(0) if is_safe_uri(inner) else ""
    name = match.group("name").lower()
    if name not in ALLOWED_TAGS:
        return ""
    if match.group("close"):
        return f"</{name}>"
    attrs: list[str] = []
    for attr_match in _MD_ATTR.finditer(match.group("attrs")):
        raw = attr_match.group(2) or ""
        if raw[:1] in {'"', "'"}:
            raw = raw[1:-1]
        safe = safe_attribute(attr_match.group(1), raw)
        if safe is not None:
            attrs.append(f'{attr_match.group(1).lower()}="{safe.replace(chr(34), "&quot;")}"')
    return f"<{name}{''.join(' ' + a for a in attrs)}>"


def _neutralise_link(match: re.Match[str]) -> str:
    bang, text, angled, bare = match.groups()
    target = angled if angled is not None else bare
    if is_safe_uri(target):
        return match.group(0)
    return "" if bang else text


def sanitize_markdown(markdown: str) -> str:
    """Give markdown the same guarantees as :func:`sanitize_html`.

    Raw HTML inside markdown is filtered tag-by-tag through the same
    allow-lists, and link/image targets with unsafe schemes are replaced by
    their text.
    """
    if not markdown:
        return ""
    text = _MD_DROP_BLOCK.sub("", markdown)
    text = _MD_COMMENT.sub("", text)
    text = _MD_TAG.sub(_rebuild_tag, text)
    text = _MD_LINK_TARGET.sub(_neutralise_link, text)
    text = _MD_REFERENCE.sub(lambda m: m.group(0) if is_safe_uri(m.group(1)) else "", text)
    # Unterminated opening tags of dropped elements, e.g. "<script src=x"
    text = re.sub(r"<\s*(?:script|iframe|object|embed)\b[^\n]*", "", text, flags=re.IGNORECASE)
    return text
