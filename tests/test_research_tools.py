from __future__ import annotations

import pytest

from app.tools import content_fetcher, research_tools, search_provider
from app.tools.content_fetcher import FetchedDocument, InvalidSchemeError
from app.tools.duckduckgo_search import SearchResult
from app.tools.search_provider import SearchResponse


def test_truncate_display():
    assert research_tools.truncate_display("short") == "short"
    long_url = "https://example.com/" + "a" * 60
    truncated = research_tools.truncate_display(long_url)
    assert len(truncated) == 50
    assert truncated.endswith("...")
    assert truncated[:47] == long_url[:47]


def test_status_formatters():
    assert research_tools.search_status({"query": "ruby"}) == "Searching the web for 'ruby'..."
    assert (
        research_tools.fetch_status({"url": "https://example.com"})
        == "Fetching content from https://example.com..."
    )


def test_build_registry_exposes_both_tools():
    registry = research_tools.build_registry("research_abc")
    assert registry.names == ["web_search", "web_fetch"]
    assert registry.session_id == "research_abc"


@pytest.mark.asyncio
async def test_web_search_formats_results(monkeypatch):
    async def fake_search(query, count=None):
        assert count == 2
        return SearchResponse(
            results=[
                SearchResult("First", "https://one.example", "one"),
                SearchResult("Second", "https://two.example", "two"),
            ]
        )

    monkeypatch.setattr(search_provider, "search", fake_search)

    text = await research_tools.web_search("ruby", num_results=2)

    assert text == (
        "Search Results:\n\n"
        "1. **First**\n   URL: https://one.example\n   one\n\n"
        "2. **Second**\n   URL: https://two.example\n   two\n"
    )


@pytest.mark.asyncio
async def test_web_search_reports_no_results_with_advisory(monkeypatch):
    async def fake_search(query, count=None):
        return SearchResponse(blocked=True, advisory="Set BRAVE_API_KEY.")

    monkeypatch.setattr(search_provider, "search", fake_search)

    text = await research_tools.web_search("obscure thing")

    assert text == "No search results found for: obscure thing\n\nSet BRAVE_API_KEY."


@pytest.mark.asyncio
async def test_web_search_reports_provider_errors(monkeypatch):
    async def fake_search(query, count=None):
        return SearchResponse(error="connection reset")

    monkeypatch.setattr(search_provider, "search", fake_search)

    assert await research_tools.web_search("q") == "Search failed: connection reset"


@pytest.mark.asyncio
async def test_web_fetch_extracts_main_content(monkeypatch):
    async def fake_fetch(url, **kwargs):
        return FetchedDocument(
            raw_html="<body><nav>menu</nav><main>Useful text</main></body>",
            final_url=url,
        )

    monkeypatch.setattr(content_fetcher, "fetch", fake_fetch)

    assert await research_tools.web_fetch("https://example.com") == "Useful text"


@pytest.mark.asyncio
async def test_web_fetch_can_return_raw_html(monkeypatch):
    raw = "<body><main>Useful text</main></body>"

    async def fake_fetch(url, **kwargs):
        return FetchedDocument(raw_html=raw, final_url=url)

    monkeypatch.setattr(content_fetcher, "fetch", fake_fetch)

    assert await research_tools.web_fetch("https://example.com", extract_main_content=False) == raw


@pytest.mark.asyncio
async def test_web_fetch_reports_failures_as_text(monkeypatch):
    async def fake_fetch(url, **kwargs):
        raise InvalidSchemeError(url)

    monkeypatch.setattr(content_fetcher, "fetch", fake_fetch)

    text = await research_tools.web_fetch("ftp://example.com")

    assert text == "Failed to fetch URL: Invalid URL scheme: ftp://example.com"
