from __future__ import annotations

from typing import Any

from loguru import logger

from unihelper.agents.orchestrator import EventCallback
from unihelper.config import settings
from unihelper.models.analysis import DiscoveryResult, TopLevelFailure, UserPreferences
from unihelper.services import streaming
from unihelper.services.candidate_filter import filter_candidates
from unihelper.services.result_store import DISCOVERY_NAMESPACE, ResultStore, get_result_store
from unihelper.services.search_executor import build_discovery_query, search_with_deadline

MISSING_INPUT_MESSAGE = "Course or location missing in request."


class UniversityDiscovery:
    """Finds program pages for a course in a location."""

    def __init__(
        self,
        *,
        store: ResultStore | None = None,
        on_event: EventCallback | None = None,
        initial_results: int | None = None,
        max_results: int | None = None,
    ):
        self.store = store or get_result_store()
        self.on_event = on_event
        self.initial_results = initial_results or settings.discovery_initial_results
        self.max_results = max_results or settings.discovery_max_results

    async def search(self, course: str, location: str) -> DiscoveryResult:
        """Search and filter without persisting. Fetch failures propagate."""
        course = (course or "").strip()
        location = (location or "").strip()
        if not course or not location:
            raise ValueError(MISSING_INPUT_MESSAGE)

        query = build_discovery_query(course, location)
        response = await search_with_deadline(query, max_results=self.initial_results)
        universities = filter_candidates(response.candidates, course, self.max_results)
        logger.info(
            f"Discovery for '{course}' in '{location}' kept {len(universities)} "
            f"of {len(response.candidates)} candidates"
        )
        return DiscoveryResult(universities=universities)

    async def run(self, course: str, location: str) -> DiscoveryResult | TopLevelFailure:
        try:
            result = await self.search(course, location)
        except Exception as e:
            logger.warning(f"University discovery failed: {e}")
            return await self._fail(str(e) or e.__class__.__name__)

        await self._persist(result.to_payload())
        await self._emit(streaming.discovery_complete(len(result.universities)))
        return result

    async def run_for_preferences(
        self, preferences: UserPreferences
    ) -> DiscoveryResult | TopLevelFailure:
        """Discover from the stored ``course`` and ``locationPref`` preferences."""
        return await self.run(preferences.course or "", preferences.location_query or "")

    async def _fail(self, message: str) -> TopLevelFailure:
        failure = TopLevelFailure(message=message, stage="discovery", key="discoveryError")
        await self._persist(failure.to_payload())
        await self._emit(streaming.error(message, stage="discovery"))
        return failure

    async def _persist(self, payload: dict[str, Any]) -> None:
        try:
            await self.store.replace(DISCOVERY_NAMESPACE, payload)
        except Exception as e:
            logger.exception(f"Failed to persist discovery record: {e}")

    async def _emit(self, event) -> None:
        if self.on_event is None:
            return
        try:
            await self.on_event(event)
        except Exception as e:
            logger.warning(f"Event listener failed for {event.event.value}: {e}")
