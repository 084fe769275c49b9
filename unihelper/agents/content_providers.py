"""Sources of per-category external content.

``LinkListProvider`` returns search result links; ``DelimitedTextProvider``
asks the external-data endpoint for a delimited snippet blob. Both answer one
category at a time so a failing category never takes its siblings down.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

import httpx

from unihelper.config import settings
from unihelper.errors import MalformedResponse, RemoteFetchFailure
from unihelper.models.analysis import Category, SearchCandidate
from unihelper.services import search_executor
from unihelper.services.snippet_protocol import parse_snippet_blob


@dataclass(slots=True)
class CategoryContent:
    category: Category
    links: list[SearchCandidate] = field(default_factory=list)
    snippets: list[str] = field(default_factory=list)


class ExternalContentProvider(Protocol):
    protocol: str

    async def fetch(self, entity_name: str, category: Category) -> CategoryContent: ...


class LinkListProvider:
    protocol = "links"

    def __init__(self, *, max_results: int | None = None, timeout: float | None = None):
        self.max_results = max_results or settings.search_results_per_category
        self.timeout = timeout

    async def fetch(self, entity_name: str, category: Category) -> CategoryContent:
        result = await search_executor.search_category(
            category,
            entity_name,
            max_results=self.max_results,
            timeout=self.timeout,
        )
        return CategoryContent(category=category, links=result.candidates)


class DelimitedTextProvider:
    protocol = "snippets"

    def __init__(self, endpoint: str | None = None, *, timeout: float | None = None):
        self.endpoint = (endpoint or settings.external_content_url).strip()
        self.timeout = timeout or settings.remote_call_timeout_seconds

    def build_params(self, entity_name: str, category: Category) -> dict[str, str]:
        params = {"uniName": entity_name, "format": "text"}
        for other in Category:
            params[other.request_flag] = "true" if other is category else "false"
        return params

    async def fetch(self, entity_name: str, category: Category) -> CategoryContent:
        if not self.endpoint:
            raise RemoteFetchFailure("External content URL not configured.")

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(
                    self.endpoint,
                    params=self.build_params(entity_name, category),
                )
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            detail = e.response.text[:200] or f"status {e.response.status_code}"
            raise RemoteFetchFailure(f"Failed to fetch external content: {detail}") from e
        except httpx.HTTPError as e:
            raise RemoteFetchFailure(f"Failed to fetch external content: {e}") from e

        content_type = response.headers.get("content-type", "").lower()
        if "json" in content_type:
            raise MalformedResponse("Received JSON where delimited snippet text was expected.")

        groups = parse_snippet_blob(response.text)
        return CategoryContent(category=category, snippets=groups.get(category.label, []))


def get_content_provider(protocol: str | None = None) -> ExternalContentProvider:
    selected = (protocol or settings.content_protocol).lower().strip()
    if selected == "links":
        return LinkListProvider()
    if selected == "snippets":
        return DelimitedTextProvider()
    raise ValueError(f"Unsupported CONTENT_PROTOCOL: {selected}")
