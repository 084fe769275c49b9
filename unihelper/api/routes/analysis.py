from __future__ import annotations

import asyncio
import json as _json

from fastapi import APIRouter, Depends, Request
from sse_starlette.sse import EventSourceResponse

from unihelper.agents.orchestrator import AnalysisOrchestrator
from unihelper.api.deps import begin_run, finish_run, get_orchestrator
from unihelper.models.analysis import UserPreferences
from unihelper.models.events import SSEEvent
from unihelper.models.schemas import AnalysisRequest
from unihelper.services import logger as log_service
from unihelper.services import streaming
from unihelper.services.result_store import ANALYSIS_NAMESPACE

router = APIRouter(prefix="/api/analysis", tags=["analysis"])


@router.post("")
async def run_analysis(
    body: AnalysisRequest,
    request: Request,
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
):
    """Analyze a program page and return the record it persisted."""
    preferences = UserPreferences.from_mapping(body.preferences)
    begin_run(request, ANALYSIS_NAMESPACE)
    try:
        outcome = await orchestrator.run_for_url(preferences, body.url)
    finally:
        finish_run(request, ANALYSIS_NAMESPACE)
    return outcome.to_payload()


@router.post("/stream")
async def stream_analysis(
    body: AnalysisRequest,
    request: Request,
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
):
    """SSE endpoint streaming progress events, then the persisted record as ``result``."""
    preferences = UserPreferences.from_mapping(body.preferences)
    begin_run(request, ANALYSIS_NAMESPACE)

    queue: asyncio.Queue[SSEEvent | None] = asyncio.Queue()
    orchestrator.on_event = queue.put

    async def drive():
        try:
            return await orchestrator.run_for_url(preferences, body.url)
        finally:
            await queue.put(None)

    async def event_generator():
        task = asyncio.create_task(drive())
        try:
            while True:
                event = await queue.get()
                if event is None:
                    break
                yield {"event": event.event.value, "data": _json.dumps(event.data)}

            outcome = await task
            yield {"event": "result", "data": _json.dumps(outcome.to_payload())}
        except Exception as e:
            log_service.log_event(
                event_type="stream_error",
                message="Unhandled error in analysis stream",
                error=str(e),
                url=body.url,
            )
            error_event = streaming.error("Analysis stream failed unexpectedly.")
            yield {"event": error_event.event.value, "data": _json.dumps(error_event.data)}
        finally:
            if not task.done():
                task.cancel()
            finish_run(request, ANALYSIS_NAMESPACE)

    return EventSourceResponse(event_generator())
