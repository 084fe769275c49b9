from __future__ import annotations

from typing import Any

import httpx

from unihelper.config import settings
from unihelper.errors import MalformedResponse, RemoteFetchFailure
from unihelper.models.analysis import SearchCandidate

GOOGLE_SEARCH_URL = "https://www.googleapis.com/customsearch/v1"
MAX_RESULTS_PER_PAGE = 10  # API limit per request


def _map_items(payload: Any) -> list[SearchCandidate]:
    if not isinstance(payload, dict):
        raise MalformedResponse("Google Search returned a non-object payload")
    items = payload.get("items", [])
    if not isinstance(items, list):
        raise MalformedResponse("Google Search payload 'items' is not a list")
    return [
        SearchCandidate.from_item(item)
        for item in items
        if isinstance(item, dict) and item.get("link")
    ]


async def search(
    query: str,
    *,
    max_results: int = 5,
    timeout: float | None = None,
) -> list[SearchCandidate]:
    """Execute a Google Custom Search and normalize results.

    Pages through ``start`` when more than ten results are requested.
    """
    if not settings.google_api_key or not settings.google_search_engine_id:
        raise RemoteFetchFailure("Server configuration error: Google Search credentials not set.")

    wanted = max(int(max_results), 1)
    results: list[SearchCandidate] = []
    async with httpx.AsyncClient(timeout=timeout or settings.remote_call_timeout_seconds) as client:
        start = 1
        while len(results) < wanted:
            params: dict[str, Any] = {
                "key": settings.google_api_key,
                "cx": settings.google_search_engine_id,
                "q": query,
                "num": min(wanted - len(results), MAX_RESULTS_PER_PAGE),
                "start": start,
            }
            try:
                response = await client.get(GOOGLE_SEARCH_URL, params=params)
                response.raise_for_status()
                payload = response.json()
            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                if status in (400, 403):
                    raise RemoteFetchFailure(
                        "Permission or configuration error with Google Search API "
                        f"(status {status})."
                    ) from e
                raise RemoteFetchFailure(f"Google Search failed with status {status}") from e
            except httpx.HTTPError as e:
                raise RemoteFetchFailure(f"Google Search request failed: {e}") from e
            except ValueError as e:
                raise MalformedResponse("Google Search returned invalid JSON") from e

            page = _map_items(payload)
            results.extend(page)
            if len(page) < params["num"]:
                break
            start += len(page)

    return results[:wanted]
