"""Fetch a page and reduce it to program-relevant text."""
from __future__ import annotations

import re

import httpx
from bs4 import BeautifulSoup
from loguru import logger

from unihelper.config import settings
from unihelper.errors import RemoteFetchFailure
from unihelper.models.analysis import PageContext
from unihelper.tools import web_utils

NOISY_SELECTORS = (
    "nav, header, footer, aside, .sidebar, .menu, form, button, script, style, "
    "noscript, svg, img, video, audio, iframe"
)
MIN_PAGE_CHARS = 100
MIN_TITLE_CHARS = 3
MIN_DESCRIPTION_CHARS = 26

USER_AGENT = "Mozilla/5.0 (compatible; unihelper/0.1; +https://localhost)"


def extract_page_text(html: str, *, max_chars: int | None = None) -> str:
    """Pull course-like text out of an HTML document.

    Prefers h3/h4 headings followed by a paragraph or div as
    ``Course``/``Description`` pairs, falling back to the cleaned text of the
    main content area.
    """
    soup = BeautifulSoup(html or "", "html.parser")
    main_area = soup.find("main") or soup.find(attrs={"role": "main"}) or soup.body or soup

    for element in main_area.select(NOISY_SELECTORS):
        element.decompose()

    pairs: list[str] = []
    for heading in main_area.find_all(["h3", "h4"]):
        title_text = heading.get_text(" ", strip=True)
        next_el = heading.find_next_sibling()
        if next_el is None or next_el.name not in ("p", "div"):
            continue
        desc_text = next_el.get_text(" ", strip=True)
        if len(title_text) >= MIN_TITLE_CHARS and len(desc_text) >= MIN_DESCRIPTION_CHARS:
            pairs.append(f"Course: {title_text}\nDescription: {desc_text}\n\n")

    text = "".join(pairs)
    if len(text) < MIN_PAGE_CHARS:
        text = main_area.get_text("\n")
        text = re.sub(r"\s\s+", "\n", text).strip()

    limit = max_chars if max_chars is not None else settings.page_text_char_limit
    return text[:limit]


async def fetch_document(url: str, *, timeout: float | None = None) -> tuple[str, str]:
    """Return ``(body, content_type)`` for a URL."""
    try:
        async with httpx.AsyncClient(
            timeout=timeout or settings.remote_call_timeout_seconds,
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT},
        ) as client:
            response = await client.get(url)
            response.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise RemoteFetchFailure(
            f"Fetching {url} failed with status {e.response.status_code}"
        ) from e
    except httpx.HTTPError as e:
        raise RemoteFetchFailure(f"Fetching {url} failed: {e}") from e

    content_type = response.headers.get("content-type", "").lower()
    return response.text, content_type


async def fetch_page_text(url: str, *, max_chars: int, timeout: float | None = None) -> str:
    """Readable text for a search result; non-HTML bodies are returned raw."""
    body, content_type = await fetch_document(url, timeout=timeout)
    if "html" not in content_type:
        return body[:max_chars]
    return extract_page_text(body, max_chars=max_chars)


class PageTextExtractor:
    """Turns a program page URL into a ``PageContext``."""

    def __init__(self, *, max_chars: int | None = None, timeout: float | None = None):
        self.max_chars = max_chars or settings.page_text_char_limit
        self.timeout = timeout

    async def extract(self, url: str) -> PageContext:
        if not web_utils.is_valid_url(url):
            raise RemoteFetchFailure("Could not get a valid web page URL to scrape.")

        body, content_type = await fetch_document(url, timeout=self.timeout)
        if "html" not in content_type:
            raise RemoteFetchFailure(f"Unsupported page content type: {content_type or 'unknown'}")

        text = extract_page_text(body, max_chars=self.max_chars)
        logger.info(f"Extracted {len(text)} chars from {url}")
        if len(text) <= MIN_PAGE_CHARS:
            raise RemoteFetchFailure("Could not find any relevant course content on this page.")
        return PageContext(text=text, source_url=url)
