from __future__ import annotations

from typing import Any

from unihelper.models.events import EventType, SSEEvent


def analysis_started(run_id: str, *, entity_name: str, categories: list[str]) -> SSEEvent:
    return SSEEvent(
        event=EventType.ANALYSIS_STARTED,
        data={"run_id": run_id, "entity_name": entity_name, "categories": categories},
    )


def stage_completed(stage: str, **kwargs: Any) -> SSEEvent:
    return SSEEvent(event=EventType.STAGE_COMPLETED, data={"stage": stage, **kwargs})


def category_completed(
    category: str,
    *,
    success: bool,
    links_count: int = 0,
    snippets_count: int = 0,
) -> SSEEvent:
    return SSEEvent(
        event=EventType.CATEGORY_COMPLETED,
        data={
            "category": category,
            "success": success,
            "links_count": links_count,
            "snippets_count": snippets_count,
        },
    )


def analysis_complete(run_id: str, *, errors_count: int, runtime_ms: int) -> SSEEvent:
    return SSEEvent(
        event=EventType.ANALYSIS_COMPLETE,
        data={"run_id": run_id, "errors_count": errors_count, "runtime_ms": runtime_ms},
    )


def discovery_complete(universities_count: int) -> SSEEvent:
    return SSEEvent(
        event=EventType.DISCOVERY_COMPLETE,
        data={"universities_count": universities_count},
    )


def error(message: str, stage: str | None = None) -> SSEEvent:
    data: dict[str, Any] = {"message": message}
    if stage:
        data["stage"] = stage
    return SSEEvent(event=EventType.ERROR, data=data)
