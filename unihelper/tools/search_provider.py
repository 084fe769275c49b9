from __future__ import annotations

import time
from dataclasses import dataclass

from unihelper.config import settings
from unihelper.models.analysis import SearchCandidate
from unihelper.services import logger as log_service
from unihelper.tools import google_search, tavily_search


@dataclass
class SearchResponse:
    candidates: list[SearchCandidate]
    provider: str
    fallback_from: str | None = None
    fallback_reason: str | None = None


async def _search_with(provider: str, query: str, max_results: int) -> list[SearchCandidate]:
    t0 = time.monotonic()
    try:
        if provider == "google":
            results = await google_search.search(query, max_results=max_results)
        else:
            results = await tavily_search.search(query, max_results=max_results)
    except Exception as e:
        log_service.log_search_call(
            provider,
            query,
            duration_ms=int((time.monotonic() - t0) * 1000),
            error=str(e),
        )
        raise
    log_service.log_search_call(
        provider,
        query,
        results_count=len(results),
        duration_ms=int((time.monotonic() - t0) * 1000),
    )
    return results


async def search(query: str, *, max_results: int = 5) -> SearchResponse:
    provider = settings.search_provider.lower().strip()
    use_fallback = settings.search_fallback_to_tavily

    if provider == "tavily":
        results = await _search_with("tavily", query, max_results)
        return SearchResponse(candidates=results, provider="tavily")

    if provider == "google":
        try:
            results = await _search_with("google", query, max_results)
        except Exception as e:
            if not use_fallback:
                raise
            fallback_results = await _search_with("tavily", query, max_results)
            return SearchResponse(
                candidates=fallback_results,
                provider="tavily",
                fallback_from="google",
                fallback_reason=str(e),
            )

        if results or not use_fallback:
            return SearchResponse(candidates=results, provider="google")

        fallback_results = await _search_with("tavily", query, max_results)
        return SearchResponse(
            candidates=fallback_results,
            provider="tavily",
            fallback_from="google",
            fallback_reason="google returned zero results",
        )

    raise ValueError(f"Unsupported SEARCH_PROVIDER: {settings.search_provider}")
