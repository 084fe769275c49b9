from __future__ import annotations

from dataclasses import replace

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from unihelper.agents.discovery import MISSING_INPUT_MESSAGE, UniversityDiscovery
from unihelper.api.deps import begin_run, finish_run, get_discovery
from unihelper.models.analysis import UserPreferences
from unihelper.models.schemas import DiscoveryRequest, UniversitiesResponse
from unihelper.services import logger as log_service
from unihelper.services.result_store import DISCOVERY_NAMESPACE

router = APIRouter(prefix="/api", tags=["discovery"])


@router.get("/find-universities", response_model=UniversitiesResponse)
async def find_universities(
    course: str | None = Query(None),
    location: str | None = Query(None),
    discovery: UniversityDiscovery = Depends(get_discovery),
):
    """Search for program pages without touching the result store."""
    if not (course or "").strip() or not (location or "").strip():
        raise HTTPException(status_code=400, detail=MISSING_INPUT_MESSAGE)

    try:
        result = await discovery.search(course, location)
    except Exception as e:
        log_service.log_event(
            event_type="discovery_error",
            message="University search failed",
            error=str(e),
            course=course,
            location=location,
        )
        raise HTTPException(status_code=502, detail=f"Failed to search for universities: {e}")

    return UniversitiesResponse(universities=[u.to_dict() for u in result.universities])


@router.post("/discovery")
async def run_discovery(
    body: DiscoveryRequest,
    request: Request,
    discovery: UniversityDiscovery = Depends(get_discovery),
):
    """Run discovery and return the record it persisted."""
    begin_run(request, DISCOVERY_NAMESPACE)
    try:
        if body.preferences is None:
            outcome = await discovery.run(body.course, body.location)
        else:
            prefs = UserPreferences.from_mapping(body.preferences)
            prefs = replace(
                prefs,
                course=body.course.strip() or prefs.course,
                location_query=body.location.strip() or prefs.location_query,
            )
            outcome = await discovery.run_for_preferences(prefs)
    finally:
        finish_run(request, DISCOVERY_NAMESPACE)
    return outcome.to_payload()
