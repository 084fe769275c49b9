"""Labeled, delimited snippet blobs.

A blob looks like::

    --- SCHOLARSHIPS ---
    first snippet text
    ---
    second snippet text
    --- STUDENT REVIEWS ---
    ...

Parsing never raises; malformed input yields fewer or empty groups.
"""
from __future__ import annotations

import re
from typing import Iterable, Mapping

from unihelper.models.analysis import SNIPPET_LABELS

LabeledSnippetGroup = dict[str, list[str]]

MARKER_RE = re.compile(r"---[ \t]+([A-Z][A-Z ]*?)[ \t]+---")
DELIMITER_RE = re.compile(r"^[ \t]*---[ \t\r]*$", re.MULTILINE)

MIN_SNIPPET_CHARS = 100
RETRIEVAL_FAILURE_MARKER = "Could not retrieve content"
BINARY_DOCUMENT_PREFIXES = ("%PDF-",)


def parse_snippet_blob(raw: str | None, labels: Iterable[str] = SNIPPET_LABELS) -> LabeledSnippetGroup:
    """Decode a delimited blob into label -> ordered snippets."""
    if not raw:
        return {}
    known = set(labels)
    pieces = MARKER_RE.split(raw)
    groups: LabeledSnippetGroup = {}

    # pieces[0] is the preamble before the first marker.
    for index in range(1, len(pieces), 2):
        label = pieces[index].strip()
        block = pieces[index + 1] if index + 1 < len(pieces) else ""
        if label not in known:
            continue
        snippets = [part.strip() for part in DELIMITER_RE.split(block)]
        snippets = [s for s in snippets if s]
        if snippets:
            groups.setdefault(label, []).extend(snippets)
    return groups


def render_snippet_blob(groups: Mapping[str, Iterable[str]]) -> str:
    sections: list[str] = []
    for label, snippets in groups.items():
        cleaned = [s.strip() for s in snippets if s and s.strip()]
        if not cleaned:
            continue
        sections.append(f"--- {label} ---\n" + "\n---\n".join(cleaned))
    return "\n".join(sections)


def is_valid_snippet(text: str) -> bool:
    """Whether a snippet is worth sending to the model."""
    if len(text) < MIN_SNIPPET_CHARS:
        return False
    if RETRIEVAL_FAILURE_MARKER in text:
        return False
    return not text.lstrip().startswith(BINARY_DOCUMENT_PREFIXES)


def valid_snippets(snippets: Iterable[str]) -> list[str]:
    return [s for s in snippets if is_valid_snippet(s)]
