from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from app.config import settings
from app.services.logger import logger
from app.tools import brave_search, duckduckgo_search
from app.tools.duckduckgo_search import SearchResult

BLOCKED_ADVISORY = (
    "Note: DuckDuckGo is rate-limiting automated requests right now. "
    "Set BRAVE_API_KEY to use the Brave Search API for more reliable results."
)


@dataclass
class SearchResponse:
    results: list[SearchResult] = field(default_factory=list)
    provider: str = "duckduckgo"
    fallback_from: str | None = None
    fallback_reason: str | None = None
    blocked: bool = False
    advisory: str | None = None
    error: str | None = None


def clamp_result_count(value: Any) -> int:
    """Coerce a requested result count into [1, search_max_results]."""
    default = settings.search_default_results
    try:
        count = int(value)
    except (TypeError, ValueError):
        return default
    if count < 1:
        return default
    return min(count, settings.search_max_results)


async def _search_duckduckgo(
    query: str,
    count: int,
    *,
    fallback_from: str | None = None,
    fallback_reason: str | None = None,
) -> SearchResponse:
    response = SearchResponse(
        provider="duckduckgo",
        fallback_from=fallback_from,
        fallback_reason=fallback_reason,
    )
    try:
        page = await duckduckgo_search.search(query, max_results=count)
    except Exception as e:
        logger.error(f"DuckDuckGo search failed for {query!r}: {e}")
        response.error = str(e)
        return response

    response.results = page.results
    if page.blocked:
        response.blocked = True
        logger.warning(f"DuckDuckGo served an anomaly page for {query!r}")
        if not settings.brave_api_key:
            response.advisory = BLOCKED_ADVISORY
    return response


async def search(query: str, count: Any = None) -> SearchResponse:
    """Search with Brave when configured, else (or on failure) DuckDuckGo.

    Never raises; failures surface as ``error`` on the response.
    """
    count = clamp_result_count(count)

    if not settings.brave_api_key:
        return await _search_duckduckgo(query, count)

    try:
        results = await brave_search.search(query, max_results=count)
    except Exception as e:
        logger.warning(f"Brave search failed, falling back to DuckDuckGo: {e}")
        return await _search_duckduckgo(
            query, count, fallback_from="brave", fallback_reason=str(e)
        )

    if results:
        return SearchResponse(results=results, provider="brave")

    return await _search_duckduckgo(
        query,
        count,
        fallback_from="brave",
        fallback_reason="brave returned zero results",
    )
