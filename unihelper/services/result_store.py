"""Key/value sink read by the display layer.

Records live under a namespace (``analysis``, ``discovery``). Writing a
namespace replaces its whole record; nothing is merged.
"""
from __future__ import annotations

import asyncio
import json
import os
import re
from copy import deepcopy
from pathlib import Path
from typing import Any, Protocol

from unihelper.config import settings
from unihelper.services import logger as log_service

ANALYSIS_NAMESPACE = "analysis"
DISCOVERY_NAMESPACE = "discovery"

_NAMESPACE_RE = re.compile(r"^[a-z][a-z0-9_-]{0,63}$")


def _check_namespace(namespace: str) -> str:
    if not _NAMESPACE_RE.match(namespace or ""):
        raise ValueError(f"Invalid result namespace: {namespace!r}")
    return namespace


class ResultStore(Protocol):
    async def replace(self, namespace: str, record: dict[str, Any]) -> None: ...
    async def get(self, namespace: str) -> dict[str, Any] | None: ...
    async def clear(self, namespace: str) -> None: ...


class InMemoryResultStore:
    def __init__(self) -> None:
        self._records: dict[str, dict[str, Any]] = {}

    async def replace(self, namespace: str, record: dict[str, Any]) -> None:
        path = self.path_for(namespace)
        await asyncio.to_thread(self._write, path, json.dumps(record, ensure_ascii=True))
        log_service.log_event(
            event_type="result_stored",
            message=f"Stored {namespace} record",
            keys=sorted(record.keys()),
        )

    async def get(self, namespace: str) -> dict[str, Any] | None:
        return await asyncio.to_thread(self._read, self.path_for(namespace))

    async def clear(self, namespace: str) -> None:
        await asyncio.to_thread(self.path_for(namespace).unlink, missing_ok=True)

    @staticmethod
    def _write(path: Path, text: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(".json.tmp")
        tmp_path.write_text(text, encoding="utf-8")
        os.replace(tmp_path, path)

    @staticmethod
    def _read(path: Path) -> dict[str, Any] | None:
        if not path.exists():
            return None
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            return None
        return payload if isinstance(payload, dict) else None


_store: ResultStore | None = None


def get_result_store() -> ResultStore:
    global _store
    if _store is None:
        backend = settings.result_store_backend.lower().strip()
        if backend == "json":
            _store = JsonFileResultStore(settings.result_store_dir)
        elif backend == "memory":
            _store = InMemoryResultStore()
        else:
            raise ValueError(f"Unsupported RESULT_STORE_BACKEND: {settings.result_store_backend}")
    return _store
