from __future__ import annotations

import re
from urllib.parse import urlparse

HOST_PREFIXES = ("www.", "ww2.")
GENERIC_SUFFIX_LABELS = {"com", "org", "net", "info", "biz", "edu", "ac", "co", "gov"}
ACADEMIC_SECOND_LEVEL = {"ac", "edu"}


def is_valid_url(url: str) -> bool:
    """Basic URL validation."""
    try:
        result = urlparse(url)
        return all([result.scheme in ("http", "https"), result.netloc])
    except Exception:
        return False


def _hostname(value: str) -> str:
    value = (value or "").strip()
    if "://" in value:
        try:
            return (urlparse(value).hostname or "").lower()
        except ValueError:
            return ""
    # Bare hostnames may still carry a port or a path.
    return value.split("/", 1)[0].split(":", 1)[0].lower()


def domain_of(url: str) -> str | None:
    """Registrable-looking domain used for grouping results.

    ``https://www.example.ac.uk/page`` -> ``example.ac.uk``,
    ``https://sub.example.com/x`` -> ``example.com``.
    """
    try:
        hostname = (urlparse(url).hostname or "").lower()
    except ValueError:
        return None
    if not hostname:
        return None

    parts = hostname.split(".")
    if len(parts) >= 3 and parts[-2] in ACADEMIC_SECOND_LEVEL:
        return ".".join(parts[-3:])
    if len(parts) >= 2:
        return ".".join(parts[-2:])
    return hostname


def derive_entity_name(host_or_url: str) -> str:
    """Normalize an institution name from a page URL or hostname.

    ``www.university-of-example.edu`` -> ``University Of Example``.
    Applying it to its own output returns the same string.
    """
    host = _hostname(host_or_url)
    for prefix in HOST_PREFIXES:
        if host.startswith(prefix):
            host = host[len(prefix):]
            break

    labels = [label for label in host.split(".") if label]
    if len(labels) > 1:
        labels = labels[:-1]
    while len(labels) > 1 and labels[-1] in GENERIC_SUFFIX_LABELS:
        labels.pop()

    tokens = [t for t in re.split(r"[\s\-]+", " ".join(labels)) if t]
    return " ".join(token[:1].upper() + token[1:] for token in tokens)
