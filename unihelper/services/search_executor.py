from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Iterable

from loguru import logger

from unihelper.config import settings
from unihelper.errors import RemoteFetchFailure
from unihelper.models.analysis import Category, SearchCandidate
from unihelper.tools import search_provider
from unihelper.tools.search_provider import SearchResponse

CATEGORY_QUERY_TEMPLATES = {
    Category.SCHOLARSHIPS: '"{name}" scholarships OR financial aid',
    Category.REVIEWS: '"{name}" student reviews reddit OR student life forum OR quora',
    Category.LOCATION: '"{name}" city OR area information OR campus location',
    Category.APP_TIPS: (
        '"{name}" application tips OR admission requirements OR how to apply undergraduate'
    ),
}

DISCOVERY_QUERY_TEMPLATE = (
    '"{course}" bachelor OR undergraduate program OR degree site:.edu OR site:.ac '
    '"{location}" -filetype:pdf'
)


@dataclass(slots=True)
class CategorySearchResult:
    category: Category
    query: str | None = None
    candidates: list[SearchCandidate] = field(default_factory=list)
    provider: str | None = None
    fallback_reason: str | None = None
    error: str | None = None


def build_category_query(category: Category, entity_name: str) -> str:
    return CATEGORY_QUERY_TEMPLATES[category].format(name=entity_name)


def build_discovery_query(course: str, location: str) -> str:
    return DISCOVERY_QUERY_TEMPLATE.format(course=course.strip(), location=location.strip())


async def search_with_deadline(
    query: str,
    *,
    max_results: int,
    timeout: float | None = None,
) -> SearchResponse:
    """Run one provider search, turning an expired deadline into a fetch failure."""
    deadline = timeout if timeout is not None else settings.remote_call_timeout_seconds
    try:
        response = await asyncio.wait_for(
            search_provider.search(query, max_results=max_results),
            timeout=deadline,
        )
    except asyncio.TimeoutError as e:
        raise RemoteFetchFailure(f"Search timed out after {deadline}s: {query}") from e
    if response.fallback_from:
        logger.warning(
            f"Search fell back from {response.fallback_from} to {response.provider}: "
            f"{response.fallback_reason}"
        )
    return response


async def search_category(
    category: Category,
    entity_name: str,
    *,
    max_results: int | None = None,
    timeout: float | None = None,
) -> CategorySearchResult:
    query = build_category_query(category, entity_name)
    response = await search_with_deadline(
        query,
        max_results=max_results or settings.search_results_per_category,
        timeout=timeout,
    )
    return CategorySearchResult(
        category=category,
        query=query,
        candidates=response.candidates,
        provider=response.provider,
        fallback_reason=response.fallback_reason,
    )


async def run_category_searches(
    entity_name: str,
    categories: Iterable[Category],
    *,
    max_results: int | None = None,
    max_parallel: int | None = None,
) -> dict[Category, CategorySearchResult]:
    """Search every enabled category with bounded parallelism.

    Disabled categories resolve to an empty result. A failing category keeps
    its error message and leaves its siblings untouched.
    """
    enabled = set(categories)
    semaphore = asyncio.Semaphore(max(max_parallel or settings.search_max_parallel_requests, 1))

    async def run_one(category: Category) -> CategorySearchResult:
        if category not in enabled:
            return CategorySearchResult(category=category)
        async with semaphore:
            return await search_category(category, entity_name, max_results=max_results)

    ordered = list(Category)
    raw_results = await asyncio.gather(
        *(run_one(category) for category in ordered),
        return_exceptions=True,
    )

    results: dict[Category, CategorySearchResult] = {}
    for category, item in zip(ordered, raw_results):
        if isinstance(item, Exception):
            logger.warning(f"Search for {category.value} ({entity_name}) failed: {item}")
            results[category] = CategorySearchResult(
                category=category,
                query=build_category_query(category, entity_name),
                error=str(item) or item.__class__.__name__,
            )
            continue
        results[category] = item
    return results
