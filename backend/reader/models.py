"""Data models for the reader pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal, Optional

HighlightColor = Literal["yellow", "green", "blue", "pink"]

HIGHLIGHT_COLORS: tuple[str, ...] = ("yellow", "green", "blue", "pink")


@dataclass(frozen=True)
class Highlight:
    """A learner-selected passage of a reading.

    ``occurrence`` pins the highlight to one zero-based occurrence of *text*;
    ``None`` marks every occurrence.
    """

    text: str
    color: HighlightColor = "yellow"
    week_id: str = ""
    reading_id: str = ""
    occurrence: Optional[int] = None
    id: str = ""
    created_at: int = 0


@dataclass(frozen=True)
class TopicLink:
    text: str
    href: str


@dataclass
class ScrapedDocument:
    """Content returned by the scraping collaborator for a single URL."""

    markdown: str = ""
    html: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not (self.markdown or "").strip() and not (self.html or "").strip()

    @property
    def title(self) -> str:
        return self.metadata.get("title") or ""

    @property
    def source_url(self) -> str:
        return self.metadata.get("sourceURL") or self.metadata.get("source_url") or ""


@dataclass
class ProcessedDocument:
    """Pipeline output ready for display.

    ``available`` is ``False`` when upstream produced no content; in that case
    only ``source_url`` is meaningful and the caller shows the original link.
    """

    markdown: str = ""
    html: str = ""
    topic_links: list[TopicLink] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)
    source_url: str = ""
    available: bool = True


class LoadState(str, Enum):
    """Lifecycle of a single navigated URL."""

    IDLE = "idle"
    LOADING = "loading"
    LOADED = "loaded"
    ERROR = "error"


@dataclass
class NavigationState:
    current_url: str
    history: list[str] = field(default_factory=list)
