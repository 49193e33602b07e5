"""Redis key naming conventions for the supmap cache layer."""
from __future__ import annotations

import hashlib

_PREFIX = "sm"


def normalize_query(query: str) -> str:
    """Search cache key: trimmed and lower-cased query text."""
    return query.strip().lower()


def geocode_query(query: str) -> str:
    """Key for geocoder results of a (normalized) free-text query."""
    h = hashlib.sha256(normalize_query(query).encode()).hexdigest()[:16]
    return f"{_PREFIX}:geocode:{h}"
