"""Tests for the studyflow CLI."""

from __future__ import annotations

import re

import pytest
from typer.testing import CliRunner

from backend.reader.models import ScrapedDocument
from backend.scraper.client import ScrapeError
from cli.main import app

runner = CliRunner()


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    """Point the CLI at a fresh workspace directory for each test."""
    monkeypatch.setattr("backend.config.settings.workspace_dir", tmp_path)
    return tmp_path


def _fake_scraper(monkeypatch, doc: ScrapedDocument | None = None, error: Exception | None = None):
    class FakeScrapeClient:
        async def fetch(self, url: str) -> ScrapedDocument:
            if error is not None:
                raise error
            return doc  # type: ignore[return-value]

    monkeypatch.setattr("cli.main.ScrapeClient", FakeScrapeClient)


def _added_id(output: str) -> str:
    match = re.search(r"Highlight added \[\w+\] (\S+)", output)
    assert match, output
    return match.group(1)


class TestDb:
    def test_init(self, workspace):
        result = runner.invoke(app, ["db", "init"])
        assert result.exit_code == 0
        assert "Database ready" in result.stdout
        assert (workspace / "studyflow.db").exists()

    def test_verbose_flag(self, workspace):
        result = runner.invoke(app, ["--verbose", "db", "init"])
        assert result.exit_code == 0


class TestHighlightCommands:
    def test_add_list_delete(self, workspace):
        added = runner.invoke(app, ["highlight", "add", "r1", "key idea", "--color", "green"])
        assert added.exit_code == 0
        hid = _added_id(added.stdout)

        listed = runner.invoke(app, ["highlight", "list", "r1"])
        assert listed.exit_code == 0
        assert "[green] r1: 'key idea'" in listed.stdout

        deleted = runner.invoke(app, ["highlight", "delete", hid])
        assert deleted.exit_code == 0
        assert "Deleted highlight" in deleted.stdout

        assert "No highlights found." in runner.invoke(app, ["highlight", "list"]).stdout

    def test_invalid_colour(self, workspace):
        result = runner.invoke(app, ["highlight", "add", "r1", "x", "--color", "purple"])
        assert result.exit_code == 1
        assert "Unknown highlight color" in result.stdout

    def test_delete_missing(self, workspace):
        result = runner.invoke(app, ["highlight", "delete", "nope"])
        assert result.exit_code == 1
        assert "not found" in result.stdout


class TestProcessCommand:
    def test_markdown_file(self, workspace):
        path = workspace / "reading.md"
        path.write_text(
            "Attention is all you need.\nSee [Tree of Thoughts](https://e.com/tot) now.\n",
            encoding="utf-8",
        )

        result = runner.invoke(app, ["process", str(path), "--highlight", "all you need"])

        assert result.exit_code == 0
        assert "all you need</mark>" in result.stdout
        assert "Related topics:" in result.stdout
        assert "1. Tree of Thoughts" in result.stdout
        assert "[1] https://e.com/tot" in result.stdout

    def test_highlight_colour(self, workspace):
        path = workspace / "reading.md"
        path.write_text("Attention is all you need.\n", encoding="utf-8")

        result = runner.invoke(app, ["process", str(path), "--highlight", "Attention", "-c", "pink"])

        assert result.exit_code == 0
        assert "highlight-pink" in result.stdout

    def test_unknown_colour_is_rejected(self, workspace):
        path = workspace / "reading.md"
        path.write_text("Attention is all you need.\n", encoding="utf-8")

        result = runner.invoke(app, ["process", str(path), "--highlight", "Attention", "--color", "purple"])

        assert result.exit_code == 1
        assert "Unknown highlight color 'purple'" in result.stdout
        assert "<mark" not in result.stdout

    def test_html_file(self, workspace):
        path = workspace / "reading.html"
        path.write_text("<p onclick='x()'>Hello <script>bad()</script>world</p>", encoding="utf-8")

        result = runner.invoke(app, ["process", str(path)])

        assert result.exit_code == 0
        assert "<p>Hello world</p>" in result.stdout
        assert "bad()" not in result.stdout


class TestReadCommand:
    def test_read_prints_document(self, workspace, monkeypatch):
        _fake_scraper(
            monkeypatch,
            ScrapedDocument(
                markdown="A short reading about retrieval.",
                metadata={"title": "RAG", "sourceURL": "https://e.com/rag"},
            ),
        )

        result = runner.invoke(app, ["read", "https://e.com/rag"])

        assert result.exit_code == 0
        assert "RAG\n===" in result.stdout
        assert "A short reading about retrieval." in result.stdout
        assert "Source: https://e.com/rag" in result.stdout

    def test_read_applies_stored_highlights(self, workspace, monkeypatch):
        runner.invoke(app, ["highlight", "add", "r1", "retrieval"])
        _fake_scraper(monkeypatch, ScrapedDocument(markdown="About retrieval."))

        result = runner.invoke(app, ["read", "https://e.com/rag", "--reading", "r1"])

        assert "retrieval</mark>" in result.stdout

    def test_read_failure_prints_original_link(self, workspace, monkeypatch):
        _fake_scraper(monkeypatch, error=ScrapeError("Failed to scrape: 500"))

        result = runner.invoke(app, ["read", "https://e.com/down"])

        assert result.exit_code == 0
        assert "Failed to scrape: 500" in result.stdout
        assert "Open the original: https://e.com/down" in result.stdout


class TestChatCommand:
    def test_single_message(self, workspace, monkeypatch):
        _fake_scraper(
            monkeypatch,
            ScrapedDocument(html="<p>Body.</p>", metadata={"title": "Guide"}),
        )
        seen: dict = {}

        class FakeSession:
            def __init__(self, title, content):
                seen["title"], seen["content"] = title, content
                self.messages = []

            async def stream_reply(self, text):
                seen["question"] = text
                for delta in ("It ", "depends."):
                    yield delta

        monkeypatch.setattr("cli.main.ChatSession", FakeSession)

        result = runner.invoke(app, ["chat", "https://e.com/g", "-m", "Why?"])

        assert result.exit_code == 0
        assert "It depends." in result.stdout
        assert seen == {"title": "Guide", "content": "Body.", "question": "Why?"}
