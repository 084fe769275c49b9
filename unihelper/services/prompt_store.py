"""Prompt templates for the analysis pipeline.

Templates live in ``unihelper/prompts/prompts.json`` as nested objects and use
``${name}`` placeholders. The catalog is reloaded when the file changes.
"""
from __future__ import annotations

import json
from pathlib import Path
from string import Template
from typing import Any

PROMPTS_PATH = Path(__file__).resolve().parents[1] / "prompts" / "prompts.json"

_cache: dict[str, Any] = {"mtime_ns": None, "catalog": None}


def _catalog() -> dict[str, Any]:
    mtime_ns = PROMPTS_PATH.stat().st_mtime_ns
    if _cache["catalog"] is None or _cache["mtime_ns"] != mtime_ns:
        payload = json.loads(PROMPTS_PATH.read_text(encoding="utf-8"))
        if not isinstance(payload, dict):
            raise ValueError(f"Prompt catalog {PROMPTS_PATH} must be a JSON object.")
        _cache.update(mtime_ns=mtime_ns, catalog=payload)
    return _cache["catalog"]


def get_template(key: str) -> Template:
    """Look up a dotted key such as ``analysis.page_summary``."""
    node: Any = _catalog()
    for part in key.split("."):
        node = node.get(part) if isinstance(node, dict) else None
        if node is None:
            raise KeyError(f"Prompt key not found: {key}")
    if not isinstance(node, str):
        raise TypeError(f"Prompt key must map to a string: {key}")
    return Template(node)


def render_prompt(key: str, **values: Any) -> str:
    try:
        return get_template(key).substitute(**values)
    except KeyError as exc:
        if str(exc.args[0]).startswith("Prompt key not found"):
            raise
        raise KeyError(f"Missing template value '{exc.args[0]}' for prompt '{key}'") from exc
