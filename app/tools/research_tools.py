from __future__ import annotations

from typing import Any

from app.services.logger import logger
from app.tools import content_extractor, content_fetcher, search_provider
from app.tools.duckduckgo_search import SearchResult
from app.tools.registry import ToolRegistry, ToolSchema

WEB_SEARCH = ToolSchema(
    name="web_search",
    description=(
        "Search the web for current information about a topic. Returns titles, "
        "URLs and snippets. Call it again with different queries to cover "
        "other angles."
    ),
    properties={
        "query": {
            "type": "string",
            "description": "The search query. Be specific and targeted.",
        },
        "num_results": {
            "type": "integer",
            "description": "Number of results to return (1-10, default 5).",
        },
    },
    required=("query",),
)

WEB_FETCH = ToolSchema(
    name="web_fetch",
    description=(
        "Fetch a web page and return its readable text. Use it to read the "
        "pages found with web_search."
    ),
    properties={
        "url": {
            "type": "string",
            "description": "The http(s) URL to fetch.",
        },
        "extract_main_content": {
            "type": "boolean",
            "description": "Strip navigation and boilerplate (default true).",
        },
    },
    required=("url",),
)


def truncate_display(text: str, length: int = 50, omission: str = "...") -> str:
    if len(text) <= length:
        return text
    return text[: length - len(omission)] + omission


def format_search_results(results: list[SearchResult]) -> str:
    formatted = [
        f"{i}. **{r.title}**\n   URL: {r.url}\n   {r.snippet}\n"
        for i, r in enumerate(results, 1)
    ]
    return "Search Results:\n\n" + "\n".join(formatted)


async def web_search(query: str, num_results: Any = 5) -> str:
    try:
        response = await search_provider.search(query, num_results)
    except Exception as e:
        logger.error(f"[ResearchTools] Web search error: {e}")
        return f"Search failed: {e}"

    if response.error and not response.results:
        logger.error(f"[ResearchTools] Web search error: {response.error}")
        return f"Search failed: {response.error}"

    if response.results:
        return format_search_results(response.results)

    message = f"No search results found for: {query}"
    if response.advisory:
        message += f"\n\n{response.advisory}"
    return message


async def web_fetch(url: str, extract_main_content: bool = True) -> str:
    try:
        document = await content_fetcher.fetch(url)
        if extract_main_content:
            return content_extractor.extract_main_text(document.raw_html)
        return document.raw_html
    except Exception as e:
        logger.error(f"[ResearchTools] Web fetch error: {e}")
        return f"Failed to fetch URL: {e}"


def search_status(args: dict[str, Any]) -> str:
    return f"Searching the web for '{args['query']}'..."


def fetch_status(args: dict[str, Any]) -> str:
    return f"Fetching content from {truncate_display(args['url'])}..."


def build_registry(session_id: str | None = None) -> ToolRegistry:
    registry = ToolRegistry(session_id=session_id)
    registry.register(WEB_SEARCH, web_search, status=search_status)
    registry.register(WEB_FETCH, web_fetch, status=fetch_status)
    return registry
