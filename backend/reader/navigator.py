"""In-reader navigation: link resolution and the navigation stack.

Clicking a link inside scraped content should keep the learner in the reader
instead of leaving the app.  :class:`Navigator` owns a history stack whose
first entry is the reading's source URL; each navigation re-fetches and
re-processes the target page.

Every load is bounded by a timeout, and a load that is overtaken by a newer
navigation has its result discarded.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Awaitable, Callable, Iterable, Optional
from urllib.parse import urljoin, urlsplit

from bs4 import BeautifulSoup

from backend.config import settings
from backend.reader.models import (
    Highlight,
    LoadState,
    NavigationState,
    ProcessedDocument,
    ScrapedDocument,
)

logger = logging.getLogger(__name__)

FetchFn = Callable[[str], Awaitable[ScrapedDocument]]

_HAS_SCHEME = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.\-]*:")
_MD_TARGET = re.compile(r"(\]\(\s*<?)([^)\s>]+)")


# ---------------------------------------------------------------------------
# Link resolution
# ---------------------------------------------------------------------------

def resolve_url(href: str, current_url: str) -> str:
    """Resolve *href* against the origin of *current_url*.

    Hrefs that already carry a scheme (or are protocol-relative) are returned
    unchanged, as is *href* itself whenever resolution fails.
    """
    if not href or href.startswith("//") or _HAS_SCHEME.match(href):
        return href
    try:
        parts = urlsplit(current_url)
        if not parts.scheme or not parts.netloc:
            return href
        origin = f"{parts.scheme}://{parts.netloc}"
        return urljoin(origin + "/", href)
    except ValueError:
        return href


def should_intercept(href: str) -> bool:
    """Return ``True`` if a click on *href* should be routed through the reader.

    Fragment links stay native same-page anchors; ``mailto:``/``tel:`` and
    other non-web schemes are left to the platform.
    """
    if not href or href.startswith("#"):
        return False
    match = _HAS_SCHEME.match(href)
    if match is None:
        return True
    return match.group(0).lower() in {"http:", "https:"}


def _rewrite_html(html: str, current_url: str) -> str:
    soup = BeautifulSoup(html, "html.parser")
    changed = False
    for tag in soup.find_all(["a", "img"]):
        attr = "href" if tag.name == "a" else "src"
        value = tag.get(attr)
        if not value or value.startswith("#"):
            continue
        resolved = resolve_url(value, current_url)
        if resolved != value:
            tag[attr] = resolved
            changed = True
    return str(soup) if changed else html


def rewrite_links(markdown: str, html: str, current_url: str) -> tuple[str, str]:
    """Make every non-fragment link and image target absolute."""
    if not current_url:
        return markdown, html

    def _resolve(match: re.Match[str]) -> str:
        target = match.group(2)
        if target.startswith("#"):
            return match.group(0)
        return match.group(1) + resolve_url(target, current_url)

    out_md = _MD_TARGET.sub(_resolve, markdown) if markdown else markdown
    out_html = _rewrite_html(html, current_url) if html else html
    return out_md, out_html


# ---------------------------------------------------------------------------
# Navigator
# ---------------------------------------------------------------------------

class Navigator:
    """Navigation stack and load-state machine for one open reading.

    States: IDLE → LOADING on :meth:`navigate`; LOADING → LOADED when the page
    was fetched and processed; LOADING → ERROR on fetch failure, timeout or
    empty content.  LOADED/ERROR → LOADING on the next navigation.  Nothing
    is retried automatically; call :meth:`retry`.
    """

    def __init__(
        self,
        initial_url: str,
        fetch: FetchFn,
        *,
        highlights: Iterable[Highlight] = (),
        on_exit: Optional[Callable[[], None]] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self._fetch = fetch
        self._highlights = list(highlights)
        self._on_exit = on_exit
        self._timeout = settings.navigation_timeout if timeout is None else timeout
        self._generation = 0

        self.nav = NavigationState(current_url=initial_url, history=[initial_url])
        self.state = LoadState.IDLE
        self.document: Optional[ProcessedDocument] = None
        self.error: Optional[str] = None

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------
    @property
    def current_url(self) -> str:
        return self.nav.current_url

    @property
    def history(self) -> list[str]:
        return list(self.nav.history)

    @property
    def can_go_back(self) -> bool:
        return len(self.nav.history) > 1

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------
    async def open(self) -> LoadState:
        """Load the initial URL without touching the history."""
        return await self._load(self.nav.current_url)

    async def navigate(self, url: str) -> LoadState:
        """Push *url* onto the stack, make it current and load it."""
        self.nav.history.append(url)
        self.nav.current_url = url
        logger.info("navigate → %s (depth %d)", url, len(self.nav.history))
        return await self._load(url)

    async def follow(self, href: str) -> Optional[LoadState]:
        """Handle a click on *href* found in the current document.

        Returns ``None`` when the link is not intercepted (fragment or
        non-web scheme) and should behave natively.
        """
        if not should_intercept(href):
            return None
        target = resolve_url(href, self.nav.current_url)
        if target.startswith("//"):
            target = f"{urlsplit(self.nav.current_url).scheme or 'https'}:{target}"
        return await self.navigate(target)

    async def go_back(self) -> Optional[LoadState]:
        """Pop the stack, or leave the reading when only the initial entry is left."""
        if not self.can_go_back:
            logger.info("back pressed on the initial entry, leaving the reading")
            if self._on_exit is not None:
                self._on_exit()
            return None
        self.nav.history.pop()
        self.nav.current_url = self.nav.history[-1]
        return await self._load(self.nav.current_url)

    async def retry(self) -> LoadState:
        """Reload the current URL (manual retry after an error)."""
        return await self._load(self.nav.current_url)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------
    async def _load(self, url: str) -> LoadState:
        from backend.reader.pipeline import process_document  # noqa: PLC0415

        self._generation += 1
        generation = self._generation
        self.state = LoadState.LOADING
        self.error = None

        try:
            raw = await asyncio.wait_for(self._fetch(url), timeout=self._timeout)
        except asyncio.TimeoutError:
            return self._finish(generation, url, None, f"Timed out loading {url}")
        except Exception as exc:  # noqa: BLE001
            return self._finish(generation, url, None, str(exc) or exc.__class__.__name__)

        processed = process_document(raw, self._highlights, current_url=url)
        if not processed.available:
            return self._finish(generation, url, processed, "No content could be extracted.")
        return self._finish(generation, url, processed, None)

    def _finish(
        self,
        generation: int,
        url: str,
        document: Optional[ProcessedDocument],
        error: Optional[str],
    ) -> LoadState:
        if generation != self._generation:
            logger.debug("discarding stale result for %s", url)
            return self.state
        self.document = document
        self.error = error
        self.state = LoadState.ERROR if error else LoadState.LOADED
        if error:
            logger.warning("failed to load %s: %s", url, error)
        return self.state
