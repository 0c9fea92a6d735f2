"""Async client for the scrape service, with a local readability fallback.

Service contract::

    POST {url}  →  {"success": true, "markdown": "...", "html": "...",
                    "metadata": {"title": ..., "description": ..., "sourceURL": ...}}
                 |  {"success": false, "error": "..."}

Resource-limit failures (HTTP 429 or a rate/quota message) are retried with
linear backoff; every other failure is raised straight away.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Awaitable, Callable, Optional

import httpx

from backend.config import settings
from backend.reader.models import ScrapedDocument
from backend.scraper.extractor import extract_content, has_real_content, render_article
from backend.scraper.fetcher import fetch_url

logger = logging.getLogger(__name__)

_RESOURCE_LIMIT = re.compile(
    r"rate.?limit|resource.?limit|resources? exhausted|limit exceeded|too many requests|quota",
    re.IGNORECASE,
)


class ScrapeError(Exception):
    """The page could not be scraped."""


class ResourceLimitError(ScrapeError):
    """The scrape service is temporarily out of capacity; safe to retry."""


def _format_url(url: str) -> str:
    formatted = url.strip()
    if not formatted.startswith(("http://", "https://")):
        formatted = f"https://{formatted}"
    return formatted


async def fetch_article(url: str, min_length: Optional[int] = None) -> ScrapedDocument:
    """Fetch *url* directly and wrap its readable text in the article template.

    Returns an empty :class:`ScrapedDocument` when nothing readable was found,
    so the reader falls through to its "content unavailable" state.

    Raises:
        httpx.HTTPError: When the page itself cannot be fetched.
    """
    threshold = settings.fallback_min_length if min_length is None else min_length
    raw = await fetch_url(url)
    page = extract_content(raw)
    article = render_article(page)
    metadata = {"title": page.title, "description": "", "sourceURL": url}
    if not has_real_content(article, threshold):
        logger.info("fallback extraction found no real content for %s", url)
        return ScrapedDocument(metadata=metadata)
    return ScrapedDocument(html=article, metadata=metadata)


class ScrapeClient:
    """Client for the scrape service.

    Args:
        service_url: Scrape endpoint.  Defaults to ``settings.scrape_service_url``.
        api_key: Bearer key.  Defaults to ``settings.service_api_key``.
        max_retries: Total attempts on resource-limit errors.
        retry_delay: Base delay; attempt *n* waits ``retry_delay * n`` seconds.
        fallback_enabled: Use :func:`fetch_article` when scraping fails.
        sleep: Injected for tests.
    """

    def __init__(
        self,
        service_url: Optional[str] = None,
        api_key: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
        fallback_enabled: Optional[bool] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.service_url = service_url or settings.scrape_service_url
        self.api_key = settings.service_api_key if api_key is None else api_key
        self.timeout = settings.request_timeout if timeout is None else timeout
        self.max_retries = max(1, settings.scrape_max_retries if max_retries is None else max_retries)
        self.retry_delay = settings.scrape_retry_delay if retry_delay is None else retry_delay
        self.fallback_enabled = (
            settings.fallback_enabled if fallback_enabled is None else fallback_enabled
        )
        self._sleep = sleep

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def _scrape_once(self, url: str) -> ScrapedDocument:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    self.service_url, json={"url": url}, headers=self._headers()
                )
        except httpx.HTTPError as exc:
            raise ScrapeError(f"Scrape request failed: {exc}") from exc

        content_type = response.headers.get("content-type", "")
        if "application/json" not in content_type:
            if response.status_code == 429:
                raise ResourceLimitError("Too many requests")
            raise ScrapeError("Invalid response format")

        try:
            data = response.json()
        except ValueError as exc:
            raise ScrapeError("Invalid response format") from exc

        if not response.is_success or not data.get("success"):
            message = str(data.get("error") or f"Failed to scrape: {response.status_code}")
            if response.status_code == 429 or _RESOURCE_LIMIT.search(message):
                raise ResourceLimitError(message)
            raise ScrapeError(message)

        return ScrapedDocument(
            markdown=data.get("markdown") or "",
            html=data.get("html") or "",
            metadata=data.get("metadata") or {},
        )

    async def scrape(self, url: str) -> ScrapedDocument:
        """Scrape *url* through the service, retrying resource-limit errors.

        Raises:
            ResourceLimitError: When every attempt hit a resource limit.
            ScrapeError: On any other failure.
        """
        target = _format_url(url)
        for attempt in range(1, self.max_retries + 1):
            try:
                return await self._scrape_once(target)
            except ResourceLimitError as exc:
                if attempt >= self.max_retries:
                    logger.error("scrape of %s still resource-limited after %d attempts", target, attempt)
                    raise
                delay = self.retry_delay * attempt
                logger.warning(
                    "scrape of %s resource-limited (attempt %d/%d): %s; retrying in %.1fs",
                    target, attempt, self.max_retries, exc, delay,
                )
                await self._sleep(delay)
        raise ScrapeError(f"Failed to scrape {target}")  # pragma: no cover

    async def fetch(self, url: str) -> ScrapedDocument:
        """Return the best available document for *url*.

        Uses the scrape service first and the local fallback extractor when the
        service fails or returns nothing.
        """
        try:
            doc = await self.scrape(url)
            if not doc.is_empty:
                return doc
            error: ScrapeError = ScrapeError("Scrape returned no content")
        except ScrapeError as exc:
            error = exc

        if not self.fallback_enabled:
            raise error

        logger.info("scrape service failed for %s (%s); using fallback extractor", url, error)
        try:
            return await fetch_article(_format_url(url))
        except httpx.HTTPError as exc:
            raise ScrapeError(f"{error}; fallback failed: {exc}") from exc
