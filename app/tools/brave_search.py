from __future__ import annotations

from typing import Any

import httpx

from app.config import settings
from app.tools.content_fetcher import build_timeout
from app.tools.duckduckgo_search import SearchResult

BRAVE_SEARCH_URL = "https://api.search.brave.com/res/v1/web/search"


async def search(query: str, *, max_results: int = 5) -> list[SearchResult]:
    """Execute a Brave web search and normalize results."""
    if not settings.brave_api_key:
        raise RuntimeError("BRAVE_API_KEY is not configured")

    params: dict[str, Any] = {
        "q": query,
        "count": max_results,
    }

    async with httpx.AsyncClient(timeout=build_timeout()) as client:
        response = await client.get(
            BRAVE_SEARCH_URL,
            params=params,
            headers={
                "Accept": "application/json",
                "X-Subscription-Token": settings.brave_api_key,
            },
        )
        response.raise_for_status()
        payload = response.json()

    raw_results = payload.get("web", {}).get("results", [])
    mapped: list[SearchResult] = []
    for item in raw_results[:max_results]:
        snippets = item.get("extra_snippets", []) or []
        description = item.get("description", "") or ""
        mapped.append(
            SearchResult(
                title=item.get("title", ""),
                url=item.get("url") or None,
                snippet=description.strip() or " ".join(snippets).strip(),
            )
        )
    return mapped
