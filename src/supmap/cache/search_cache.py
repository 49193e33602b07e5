"""In-process place-search cache with optional Redis write-through."""
from __future__ import annotations

import logging
import threading
from typing import Dict, List, Optional

from supmap.cache.keys import geocode_query, normalize_query
from supmap.core.models import PlaceResult

log = logging.getLogger(__name__)


class SearchCache:
    """Maps normalized query text to place results for the process lifetime.

    Nothing is evicted. The start and end search fields share one instance,
    so reads and inserts go through a lock. When ``shared_ttl`` is set,
    results are also written to Redis and misses consult Redis before the
    caller goes to the network.
    """

    def __init__(self, shared_ttl: Optional[int] = None):
        self._entries: Dict[str, List[PlaceResult]] = {}
        self._lock = threading.Lock()
        self.shared_ttl = shared_ttl

    def get(self, query: str) -> Optional[List[PlaceResult]]:
        key = normalize_query(query)
        with self._lock:
            hit = self._entries.get(key)
        if hit is not None:
            log.debug("Search cache hit: %r", key)
            return list(hit)

        if self.shared_ttl is None:
            return None

        from supmap.cache.redis_client import cache_get_json

        raw = cache_get_json(geocode_query(key))
        if raw is None:
            return None
        try:
            results = [PlaceResult.model_validate(r) for r in raw]
        except Exception as exc:
            log.debug("Discarding unreadable shared cache entry for %r: %s", key, exc)
            return None
        with self._lock:
            self._entries.setdefault(key, results)
        return list(results)

    def store(self, query: str, results: List[PlaceResult]) -> None:
        key = normalize_query(query)
        with self._lock:
            self._entries[key] = list(results)

        if self.shared_ttl is not None:
            from supmap.cache.redis_client import cache_set_json

            cache_set_json(
                geocode_query(key),
                [r.model_dump(mode="json") for r in results],
                self.shared_ttl,
            )

    def __contains__(self, query: str) -> bool:
        with self._lock:
            return normalize_query(query) in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
