from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from unihelper.api.deps import get_store
from unihelper.services.result_store import ResultStore

router = APIRouter(prefix="/api/results", tags=["results"])


@router.get("/{namespace}")
async def get_result(namespace: str, store: ResultStore = Depends(get_store)):
    """Return the last record written under ``namespace``."""
    try:
        record = await store.get(namespace)
    except ValueError:
        raise HTTPException(status_code=404, detail="Result not found")
    if record is None:
        raise HTTPException(status_code=404, detail="Result not found")
    return record
