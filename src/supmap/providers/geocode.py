"""Geocoding provider (Nominatim-style ``/search``) and debounced place search."""
from __future__ import annotations

import logging
from typing import Any, List, Optional

import httpx

from supmap.cache.search_cache import SearchCache
from supmap.config import service_area, settings
from supmap.core.models import Coordinate, PlaceResult, ServiceArea
from supmap.geo.kernel import contains_point
from supmap.providers.debounce import Debouncer
from supmap.providers.http import HTTPClient

log = logging.getLogger(__name__)


def parse_places(rows: Any, area: ServiceArea) -> List[PlaceResult]:
    """Parse provider rows, dropping unreadable ones and those outside ``area``.

    Provider order is preserved.
    """
    out: List[PlaceResult] = []
    if not isinstance(rows, list):
        return out
    for row in rows:
        if not isinstance(row, dict):
            continue
        try:
            location = Coordinate(latitude=float(row["lat"]), longitude=float(row["lon"]))
        except (KeyError, TypeError, ValueError):
            continue
        if not contains_point(area, location):
            continue
        out.append(
            PlaceResult(
                place_id=str(row.get("place_id", "")),
                display_name=row.get("display_name") or "",
                location=location,
            )
        )
    return out


class GeocodeProvider:
    def __init__(
        self,
        base_url: Optional[str] = None,
        area: Optional[ServiceArea] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.area = area or service_area()
        self.http = HTTPClient(
            user_agent=settings.user_agent,
            base_url=base_url or settings.geocode_url,
            timeout_s=settings.search_timeout_s,
            max_retries=settings.fetch_max_retries,
            initial_delay_s=settings.fetch_initial_delay_s,
            transport=transport,
        )

    async def geocode(self, query: str) -> List[PlaceResult]:
        rows = await self.http.get_json(
            "/search",
            params={
                "q": f"{query}{settings.geocode_region_suffix}",
                "format": "json",
                "limit": settings.geocode_limit,
                "addressdetails": 1,
            },
        )
        return parse_places(rows, self.area)

    async def aclose(self) -> None:
        await self.http.aclose()


class PlaceSearch:
    """One search field: debounced lookups backed by a (possibly shared) cache.

    ``lookup`` is the undebounced cache-then-network path; ``search`` is the
    keystroke entry point and returns None when a newer query superseded it.
    """

    def __init__(
        self,
        geocoder: GeocodeProvider,
        cache: SearchCache,
        debounce_s: Optional[float] = None,
    ):
        self.geocoder = geocoder
        self.cache = cache
        self._debounced = Debouncer(
            self.lookup,
            settings.search_debounce_s if debounce_s is None else debounce_s,
        )

    async def lookup(self, query: str) -> List[PlaceResult]:
        if not query.strip():
            return []

        cached = self.cache.get(query)
        if cached is not None:
            return cached

        results = await self.geocoder.geocode(query.strip())
        self.cache.store(query, results)
        log.debug("Geocoded %r: %d place(s) in service area", query, len(results))
        return results

    async def search(self, query: str) -> Optional[List[PlaceResult]]:
        return await self._debounced(query)

    def cancel(self) -> None:
        self._debounced.cancel()
