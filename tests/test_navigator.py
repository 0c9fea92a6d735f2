"""Tests for link resolution and the reader navigation stack."""

from __future__ import annotations

import asyncio

import pytest

from backend.reader.models import LoadState, ScrapedDocument
from backend.reader.navigator import Navigator, resolve_url, rewrite_links, should_intercept
from backend.scraper.client import ScrapeError

START = "https://example.com/guide"


def _doc(url: str, body: str = "Some reading text about things.") -> ScrapedDocument:
    return ScrapedDocument(markdown=body, metadata={"sourceURL": url, "title": "Guide"})


async def _fetch(url: str) -> ScrapedDocument:
    return _doc(url, f"Body of {url}.")


# ---------------------------------------------------------------------------
# Link resolution
# ---------------------------------------------------------------------------

class TestResolveUrl:
    def test_root_relative(self):
        assert resolve_url("/docs/page", "https://example.com/a/b") == "https://example.com/docs/page"

    def test_relative_resolves_against_origin(self):
        assert resolve_url("page2", "https://example.com/a/b") == "https://example.com/page2"

    def test_absolute_unchanged(self):
        assert resolve_url("https://other.org/x", "https://example.com/a") == "https://other.org/x"

    def test_non_web_scheme_unchanged(self):
        assert resolve_url("mailto:me@example.com", "https://example.com") == "mailto:me@example.com"

    def test_invalid_base_returns_href(self):
        assert resolve_url("/docs", "not a url") == "/docs"

    def test_protocol_relative_unchanged(self):
        assert resolve_url("//cdn.example.org/x", "https://example.com/a") == "//cdn.example.org/x"


class TestShouldIntercept:
    @pytest.mark.parametrize("href", ["/next", "page.html", "https://a.com", "http://a.com"])
    def test_intercepted(self, href: str):
        assert should_intercept(href)

    @pytest.mark.parametrize("href", ["#section", "mailto:a@b.com", "tel:123", ""])
    def test_native(self, href: str):
        assert not should_intercept(href)


class TestRewriteLinks:
    def test_markdown_targets(self):
        md, _ = rewrite_links("[a](/x) [b](#frag) ![i](img.png)", "", "https://e.com/p")
        assert md == "[a](https://e.com/x) [b](#frag) ![i](https://e.com/img.png)"

    def test_html_targets(self):
        _, html = rewrite_links("", '<a href="/x">a</a><a href="#f">f</a><img src="i.png"/>', "https://e.com/p")
        assert html == '<a href="https://e.com/x">a</a><a href="#f">f</a><img src="https://e.com/i.png"/>'

    def test_without_base_is_identity(self):
        assert rewrite_links("[a](/x)", "<a href='/x'>a</a>", "") == ("[a](/x)", "<a href='/x'>a</a>")


# ---------------------------------------------------------------------------
# Navigator
# ---------------------------------------------------------------------------

class TestNavigator:
    async def test_open_loads_initial_url(self):
        nav = Navigator(START, _fetch)
        assert nav.state == LoadState.IDLE

        assert await nav.open() == LoadState.LOADED
        assert nav.document is not None and nav.document.available
        assert "Body of https://example.com/guide" in nav.document.markdown
        assert nav.history == [START]
        assert not nav.can_go_back

    async def test_navigate_and_back(self):
        nav = Navigator(START, _fetch)
        await nav.open()
        await nav.navigate("https://example.com/next")

        assert nav.current_url == "https://example.com/next"
        assert nav.history == [START, "https://example.com/next"]
        assert nav.can_go_back

        assert await nav.go_back() == LoadState.LOADED
        assert nav.current_url == START
        assert nav.history == [START]
        assert "Body of https://example.com/guide" in nav.document.markdown

    async def test_back_on_initial_entry_exits(self):
        exits: list[bool] = []
        nav = Navigator(START, _fetch, on_exit=lambda: exits.append(True))
        await nav.open()

        assert await nav.go_back() is None
        assert exits == [True]
        assert nav.history == [START]

    async def test_follow_resolves_relative_links(self):
        nav = Navigator(START, _fetch)
        await nav.open()

        assert await nav.follow("/docs/cot") == LoadState.LOADED
        assert nav.current_url == "https://example.com/docs/cot"

    async def test_follow_fragment_is_not_intercepted(self):
        nav = Navigator(START, _fetch)
        await nav.open()

        assert await nav.follow("#section") is None
        assert nav.history == [START]

    async def test_follow_protocol_relative_uses_current_scheme(self):
        nav = Navigator(START, _fetch)
        await nav.open()

        await nav.follow("//cdn.example.org/page")
        assert nav.current_url == "https://cdn.example.org/page"

    async def test_fetch_error_then_manual_retry(self):
        calls = {"n": 0}

        async def flaky(url: str) -> ScrapedDocument:
            calls["n"] += 1
            if calls["n"] == 1:
                raise ScrapeError("Failed to scrape: 500")
            return _doc(url)

        nav = Navigator(START, flaky)
        assert await nav.open() == LoadState.ERROR
        assert nav.error == "Failed to scrape: 500"
        assert calls["n"] == 1

        assert await nav.retry() == LoadState.LOADED
        assert nav.error is None
        assert calls["n"] == 2

    async def test_empty_content_is_an_error(self):
        async def empty(url: str) -> ScrapedDocument:
            return ScrapedDocument(metadata={"sourceURL": url})

        nav = Navigator(START, empty)
        assert await nav.open() == LoadState.ERROR
        assert nav.error == "No content could be extracted."
        assert nav.document is not None and not nav.document.available
        assert nav.document.source_url == START

    async def test_timeout(self):
        async def slow(url: str) -> ScrapedDocument:
            await asyncio.sleep(5)
            return _doc(url)

        nav = Navigator(START, slow, timeout=0.01)
        assert await nav.open() == LoadState.ERROR
        assert nav.error == f"Timed out loading {START}"

    async def test_stale_result_is_discarded(self):
        gate = asyncio.Event()

        async def fetch(url: str) -> ScrapedDocument:
            if url.endswith("/slow"):
                await gate.wait()
                return _doc(url, "Slow body text.")
            return _doc(url, "Fast body text.")

        nav = Navigator(START, fetch)
        slow = asyncio.create_task(nav.navigate("https://example.com/slow"))
        await asyncio.sleep(0)
        await nav.navigate("https://example.com/fast")
        gate.set()
        await slow

        assert nav.state == LoadState.LOADED
        assert nav.current_url == "https://example.com/fast"
        assert "Fast body text." in nav.document.markdown
