"""Reader endpoints: run the content pipeline.

Routes
------
POST /reader/process    Process supplied markdown / HTML with highlights
POST /reader/open       Fetch a URL and process it with the reading's stored highlights
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from backend.db.highlights import list_highlights
from backend.reader.models import Highlight, HighlightColor, ProcessedDocument, ScrapedDocument
from backend.reader.pipeline import process_document
from backend.scraper.client import ScrapeClient, ScrapeError

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------

class HighlightIn(BaseModel):
    text: str
    color: HighlightColor = "yellow"
    occurrence: Optional[int] = Field(default=None, ge=0)


class ProcessRequest(BaseModel):
    markdown: str = ""
    html: str = ""
    metadata: dict[str, Any] = {}
    highlights: list[HighlightIn] = []
    current_url: Optional[str] = None


class OpenRequest(BaseModel):
    url: str = Field(min_length=1)
    reading_id: Optional[str] = None


class TopicLinkOut(BaseModel):
    text: str
    href: str


class ProcessedOut(BaseModel):
    markdown: str
    html: str
    topic_links: list[TopicLinkOut]
    metadata: dict[str, Any]
    source_url: str
    available: bool


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _processed_response(doc: ProcessedDocument) -> dict[str, Any]:
    return {
        "markdown": doc.markdown,
        "html": doc.html,
        "topic_links": [{"text": link.text, "href": link.href} for link in doc.topic_links],
        "metadata": doc.metadata,
        "source_url": doc.source_url,
        "available": doc.available,
    }


def _scrape_client() -> ScrapeClient:
    return ScrapeClient()


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post("/process", response_model=ProcessedOut)
def process(body: ProcessRequest) -> dict[str, Any]:
    """Run the pipeline on content the caller already has."""
    doc = ScrapedDocument(markdown=body.markdown, html=body.html, metadata=body.metadata)
    highlights = [
        Highlight(text=h.text, color=h.color, occurrence=h.occurrence)
        for h in body.highlights
    ]
    result = process_document(doc, highlights, current_url=body.current_url)
    return _processed_response(result)


@router.post("/open", response_model=ProcessedOut)
async def open_reading(body: OpenRequest, request: Request) -> dict[str, Any]:
    """Fetch *url* and process it.

    A page that cannot be loaded is reported with ``available: false`` and
    the source URL so the client can offer the original link.
    """
    highlights: list[Highlight] = []
    if body.reading_id:
        highlights = list_highlights(request.app.state.db, reading_id=body.reading_id)

    try:
        doc = await _scrape_client().fetch(body.url)
    except ScrapeError as exc:
        logger.warning("could not load %s: %s", body.url, exc)
        return _processed_response(ProcessedDocument(source_url=body.url, available=False))

    if not doc.source_url:
        doc.metadata = {**doc.metadata, "sourceURL": body.url}
    return _processed_response(process_document(doc, highlights))
