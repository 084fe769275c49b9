"""Server-side producer of delimited snippet blobs.

Searches each requested category, fetches the text behind every result and
renders the ``--- LABEL ---`` grammar consumed by the snippet parser.
"""
from __future__ import annotations

import asyncio
from typing import Iterable

from loguru import logger

from unihelper.config import settings
from unihelper.models.analysis import Category
from unihelper.services import search_executor
from unihelper.services.snippet_protocol import RETRIEVAL_FAILURE_MARKER, render_snippet_blob
from unihelper.tools import page_scraper


async def collect_category_snippets(
    category: Category,
    entity_name: str,
    *,
    max_links: int | None = None,
    max_chars: int | None = None,
    max_parallel: int | None = None,
) -> list[str]:
    result = await search_executor.search_category(category, entity_name, max_results=max_links)
    limit = max_chars or settings.snippet_fetch_chars
    semaphore = asyncio.Semaphore(max(max_parallel or settings.snippet_fetch_max_parallel, 1))

    async def fetch_one(url: str) -> str:
        async with semaphore:
            try:
                return await page_scraper.fetch_page_text(url, max_chars=limit)
            except Exception as e:
                logger.warning(f"Snippet fetch failed for {url}: {e}")
                return f"{RETRIEVAL_FAILURE_MARKER} from {url}"

    return list(await asyncio.gather(*(fetch_one(c.url) for c in result.candidates)))


async def build_snippet_blob(entity_name: str, categories: Iterable[Category]) -> str:
    """Render snippets for every requested category into one blob.

    A failed category search propagates so the caller can report it.
    """
    wanted = set(categories)
    ordered = [c for c in Category if c in wanted]
    outcomes = await asyncio.gather(
        *(collect_category_snippets(c, entity_name) for c in ordered)
    )
    return render_snippet_blob(
        {category.label: snippets for category, snippets in zip(ordered, outcomes)}
    )
