"""Data models for the fallback extraction path."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class RawPage:
    """The raw HTTP response for a single URL fetch."""

    url: str
    html: str
    status_code: int


@dataclass
class CleanPage:
    """Readable content extracted from a :class:`RawPage`.

    ``text`` keeps paragraph breaks as blank lines so it can be re-wrapped
    into an article template.
    """

    url: str
    title: str
    text: str
