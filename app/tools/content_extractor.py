from __future__ import annotations

import re

from bs4 import BeautifulSoup

from app.config import settings

NO_CONTENT = "No content found"
TRUNCATION_MARKER = "\n\n[Content truncated...]"

BOILERPLATE_SELECTOR = (
    "script, style, nav, footer, header, aside, "
    ".nav, .footer, .header, .sidebar, .menu, .advertisement, .ad"
)
# Checked in order; the first selector with a match wins.
MAIN_CONTENT_SELECTORS = (
    "main",
    "article",
    ".content",
    ".post",
    ".entry",
    "#content",
    "#main",
)


def _normalize_text(text: str) -> str:
    return re.sub(r"\s+", " ", text.replace("\xa0", " ")).strip()


def truncate(text: str, max_chars: int) -> str:
    if max_chars <= 0 or len(text) <= max_chars:
        return text
    return text[:max_chars] + TRUNCATION_MARKER


def extract_main_text(html: str, *, max_chars: int | None = None) -> str:
    """Strip page chrome and return the readable text of the main region."""
    limit = settings.extractor_max_chars if max_chars is None else max_chars
    soup = BeautifulSoup(html or "", "lxml")

    for node in soup.select(BOILERPLATE_SELECTOR):
        node.extract()

    main_content = None
    for selector in MAIN_CONTENT_SELECTORS:
        main_content = soup.select_one(selector)
        if main_content is not None:
            break
    if main_content is None:
        main_content = soup.body

    if main_content is None:
        return NO_CONTENT

    text = _normalize_text(main_content.get_text(" "))
    return truncate(text, limit)
