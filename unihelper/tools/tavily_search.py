from __future__ import annotations

from typing import Any

from tavily import AsyncTavilyClient

from unihelper.config import settings
from unihelper.errors import MalformedResponse, RemoteFetchFailure
from unihelper.models.analysis import SearchCandidate


async def search(
    query: str,
    *,
    max_results: int = 5,
    search_depth: str = "basic",
    exclude_domains: list[str] | None = None,
) -> list[SearchCandidate]:
    """Execute a Tavily web search and return structured results."""
    if not settings.tavily_api_key:
        raise RemoteFetchFailure("TAVILY_API_KEY is not configured")

    client = AsyncTavilyClient(api_key=settings.tavily_api_key)

    kwargs: dict[str, Any] = {
        "query": query,
        "search_depth": search_depth,
        "max_results": max_results,
    }
    if exclude_domains:
        kwargs["exclude_domains"] = exclude_domains

    response = await client.search(**kwargs)
    if not isinstance(response, dict) or not isinstance(response.get("results", []), list):
        raise MalformedResponse("Tavily returned an unexpected payload")

    return [
        SearchCandidate.from_item(r)
        for r in response.get("results", [])
        if isinstance(r, dict) and r.get("url")
    ]
