"""Heuristic screening of broad search results down to program pages.

Precision over recall: dropping a real program page is acceptable, surfacing a
ranking list or a homepage is not.
"""
from __future__ import annotations

from typing import Iterable
from urllib.parse import urlparse

from loguru import logger

from unihelper.models.analysis import SearchCandidate
from unihelper.tools import web_utils

LISTICLE_MARKERS = ("top universities", "best schools", "ranking", "list of")
HOMEPAGE_PATHS = {"", "/", "/index.html", "/home"}
PROGRAM_PATH_KEYWORDS = (
    "program",
    "course",
    "degree",
    "major",
    "academic",
    "study",
    "faculty",
    "school",
    "department",
    "admission",
)


def is_listicle_title(title: str) -> bool:
    lowered = title.lower()
    return any(marker in lowered for marker in LISTICLE_MARKERS)


def is_homepage_path(path: str) -> bool:
    return path in HOMEPAGE_PATHS or len(path) < 2


def has_program_path_keyword(path: str) -> bool:
    lowered = path.lower()
    return any(f"/{keyword}" in lowered for keyword in PROGRAM_PATH_KEYWORDS)


def filter_candidates(
    candidates: Iterable[SearchCandidate],
    topic: str,
    max_results: int,
) -> list[SearchCandidate]:
    """Keep at most ``max_results`` plausible program pages, one per domain."""
    accepted: list[SearchCandidate] = []
    seen_domains: set[str] = set()
    topic_lower = (topic or "").strip().lower()

    for candidate in candidates:
        if len(accepted) >= max_results:
            break

        domain = web_utils.domain_of(candidate.url)
        if not domain or domain in seen_domains:
            continue

        if is_listicle_title(candidate.title):
            logger.debug(f"Filtering out (list): {candidate.title}")
            continue

        try:
            path = urlparse(candidate.url).path
        except ValueError:
            continue
        if is_homepage_path(path):
            logger.debug(f"Filtering out (homepage): {candidate.title}")
            continue

        title_mentions_topic = bool(topic_lower) and topic_lower in candidate.title.lower()
        if has_program_path_keyword(path) or title_mentions_topic:
            accepted.append(candidate)
            seen_domains.add(domain)
        else:
            logger.debug(f"Filtering out (heuristic): {candidate.title} ({candidate.url})")

    return accepted
