from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import PlainTextResponse

from unihelper.models.analysis import Category
from unihelper.models.schemas import ExternalDataResponse
from unihelper.services import logger as log_service
from unihelper.services.search_executor import run_category_searches
from unihelper.services.snippet_collector import build_snippet_blob

router = APIRouter(prefix="/api", tags=["external-data"])


@router.get("/external-data", response_model=None)
async def external_data(
    uni_name: str | None = Query(None, alias="uniName"),
    scholarships: bool = False,
    reviews: bool = False,
    location: bool = False,
    app_tips: bool = Query(False, alias="appTips"),
    response_format: str = Query("json", alias="format"),
):
    """Search links (``format=json``) or delimited page snippets (``format=text``)."""
    name = (uni_name or "").strip()
    if not name:
        raise HTTPException(status_code=400, detail="Missing uniName parameter")

    flags = {
        Category.SCHOLARSHIPS: scholarships,
        Category.REVIEWS: reviews,
        Category.LOCATION: location,
        Category.APP_TIPS: app_tips,
    }
    categories = [category for category, wanted in flags.items() if wanted]

    if response_format.lower() == "text":
        try:
            blob = await build_snippet_blob(name, categories)
        except Exception as e:
            log_service.log_event(
                event_type="external_data_error",
                message="Snippet collection failed",
                error=str(e),
                uni_name=name,
            )
            raise HTTPException(status_code=502, detail=f"Failed to fetch external content: {e}")
        return PlainTextResponse(blob)

    results = await run_category_searches(name, categories)
    failures = {c.value: r.error for c, r in results.items() if r.error}
    if failures:
        log_service.log_event(
            event_type="external_data_error",
            message="Category search failed",
            uni_name=name,
            failures=failures,
        )

    # A failed category has no candidates and comes back as an empty list
    return ExternalDataResponse(
        failures=failures,
        **{
            category.links_key: [c.to_dict() for c in result.candidates]
            for category, result in results.items()
        },
    )
