from __future__ import annotations

from dataclasses import dataclass, field
from urllib.parse import parse_qs, quote_plus, urlparse

from bs4 import BeautifulSoup

from app.tools import content_fetcher

DUCKDUCKGO_HTML_URL = "https://html.duckduckgo.com/html/"

# The interstitial served to suspected bots instead of results.
ANOMALY_MARKERS = (
    "anomaly-modal",
    "anomaly_modal",
    "bots use DuckDuckGo too",
)

BROWSER_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Referer": "https://duckduckgo.com/",
    "DNT": "1",
    "Upgrade-Insecure-Requests": "1",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "same-origin",
}


@dataclass
class SearchResult:
    """Normalized search result shared by all providers."""
    title: str
    url: str | None
    snippet: str = ""


@dataclass
class ScrapedPage:
    results: list[SearchResult] = field(default_factory=list)
    blocked: bool = False


def unwrap_redirect(href: str) -> str | None:
    """Recover the destination from a //duckduckgo.com/l/?uddg=... link."""
    if "uddg=" not in href:
        return None
    query = urlparse(href).query
    values = parse_qs(query).get("uddg")
    return values[0] if values else None


def is_blocked(html: str) -> bool:
    return any(marker in html for marker in ANOMALY_MARKERS)


def parse_results(html: str, max_results: int) -> list[SearchResult]:
    soup = BeautifulSoup(html, "lxml")
    results: list[SearchResult] = []

    for block in soup.select(".result")[:max_results]:
        title_elem = block.select_one(".result__title a, .result__a")
        if title_elem is None:
            continue
        snippet_elem = block.select_one(".result__snippet")
        url_elem = block.select_one(".result__url")

        href = title_elem.get("href") or ""
        url = unwrap_redirect(href)
        if url is None and url_elem is not None:
            url = url_elem.get_text(strip=True) or None

        results.append(
            SearchResult(
                title=title_elem.get_text(strip=True),
                url=url,
                snippet=snippet_elem.get_text(strip=True) if snippet_elem else "",
            )
        )

    return results


async def search(query: str, *, max_results: int = 5) -> ScrapedPage:
    """Scrape the DuckDuckGo HTML endpoint. Fetch errors propagate."""
    search_url = f"{DUCKDUCKGO_HTML_URL}?q={quote_plus(query)}"
    document = await content_fetcher.fetch(search_url, headers=BROWSER_HEADERS)
    results = parse_results(document.raw_html, max_results)
    return ScrapedPage(
        results=results,
        blocked=not results and is_blocked(document.raw_html),
    )
