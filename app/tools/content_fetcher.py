from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urljoin, urlparse

import httpx

from app.config import settings
from app.services.logger import logger

ALLOWED_SCHEMES = ("http", "https")
DEFAULT_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"


class FetchError(Exception):
    """Base class for fetch failures that tools report back as text."""


class InvalidSchemeError(FetchError):
    def __init__(self, url: str):
        super().__init__(f"Invalid URL scheme: {url}")
        self.url = url


class NetworkFailureError(FetchError):
    pass


class TooManyRedirectsError(NetworkFailureError):
    pass


class HTTPStatusError(FetchError):
    def __init__(self, status_code: int, reason: str):
        super().__init__(f"HTTP {status_code}: {reason}")
        self.status_code = status_code
        self.reason = reason


@dataclass
class FetchedDocument:
    raw_html: str
    final_url: str
    status_code: int = 200


def ensure_http_url(url: str) -> str:
    """Return the url unchanged, or raise InvalidSchemeError."""
    try:
        parsed = urlparse(url)
    except ValueError as e:
        raise InvalidSchemeError(url) from e
    if parsed.scheme not in ALLOWED_SCHEMES or not parsed.netloc:
        raise InvalidSchemeError(url)
    return url


def _decode_body(response: httpx.Response) -> str:
    encoding = response.charset_encoding or "utf-8"
    try:
        return response.content.decode(encoding, errors="replace")
    except LookupError:
        return response.content.decode("utf-8", errors="replace")


def build_timeout() -> httpx.Timeout:
    return httpx.Timeout(
        settings.fetch_read_timeout,
        connect=settings.fetch_connect_timeout,
        read=settings.fetch_read_timeout,
    )


async def fetch(
    url: str,
    *,
    headers: dict[str, str] | None = None,
    max_redirects: int | None = None,
) -> FetchedDocument:
    """GET a page, following redirects by hand up to a fixed hop count."""
    current = ensure_http_url(url)
    limit = settings.fetch_max_redirects if max_redirects is None else max_redirects
    request_headers = {
        "User-Agent": settings.fetch_user_agent,
        "Accept": DEFAULT_ACCEPT,
    }
    if headers:
        request_headers.update(headers)

    async with httpx.AsyncClient(timeout=build_timeout(), follow_redirects=False) as client:
        for _ in range(limit + 1):
            try:
                response = await client.get(current, headers=request_headers)
            except httpx.TimeoutException as e:
                raise NetworkFailureError(f"Timed out fetching {current}") from e
            except httpx.HTTPError as e:
                raise NetworkFailureError(f"{type(e).__name__}: {e}") from e

            if response.is_redirect:
                location = response.headers.get("location", "")
                target = urljoin(current, location)
                logger.debug(f"Redirect {response.status_code} {current} -> {target}")
                current = ensure_http_url(target)
                continue

            if not response.is_success:
                raise HTTPStatusError(response.status_code, response.reason_phrase)

            return FetchedDocument(
                raw_html=_decode_body(response),
                final_url=current,
                status_code=response.status_code,
            )

    raise TooManyRedirectsError(f"Exceeded {limit} redirects fetching {url}")
