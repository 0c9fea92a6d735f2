"""Direct HTTP fetcher used when the scrape service is unavailable."""

from __future__ import annotations

import httpx

from backend.config import settings
from backend.scraper.models import RawPage

_DEFAULT_HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; StudyFlow/1.0)",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
}


async def fetch_url(url: str) -> RawPage:
    """Fetch *url* and return a :class:`RawPage`.

    Raises:
        httpx.HTTPStatusError: If the server returns a 4xx/5xx status code.
        httpx.TransportError: On connection failures and timeouts.
    """
    async with httpx.AsyncClient(
        headers=_DEFAULT_HEADERS,
        timeout=settings.request_timeout,
        follow_redirects=True,
    ) as client:
        response = await client.get(url)
        response.raise_for_status()
        return RawPage(url=str(response.url), html=response.text, status_code=response.status_code)
