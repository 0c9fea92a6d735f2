"""Scraper package: scrape-service client and fallback extraction."""

from backend.scraper.client import ResourceLimitError, ScrapeClient, ScrapeError, fetch_article
from backend.scraper.extractor import extract_content, render_article
from backend.scraper.fetcher import fetch_url
from backend.scraper.models import CleanPage, RawPage

__all__ = [
    "ScrapeClient",
    "ScrapeError",
    "ResourceLimitError",
    "fetch_article",
    "fetch_url",
    "extract_content",
    "render_article",
    "RawPage",
    "CleanPage",
]
