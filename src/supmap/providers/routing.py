"""Routing provider adapter (Valhalla-style ``/route`` endpoint).

Sole responsibility: build the provider request body for a start/end pair and
return the raw JSON payload. Validation and decoding live in the orchestrator.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from supmap.config import settings
from supmap.core.models import Coordinate, TransportMode
from supmap.providers.http import HTTPClient

log = logging.getLogger(__name__)

# Fixed per-mode costing knobs. ``use_tolls`` is filled in from avoid_tolls.
COSTING_OPTIONS: Dict[TransportMode, Dict[str, float]] = {
    TransportMode.AUTO: {},
    TransportMode.MOTORCYCLE: {"use_highways": 1.0},
    TransportMode.BICYCLE: {"use_roads": 0.1, "use_hills": 0.1},
    TransportMode.PEDESTRIAN: {"walking_speed": 5.1, "use_sidewalks": 1.0},
    TransportMode.BUS: {},
}

_TOLL_MODES = (TransportMode.AUTO, TransportMode.MOTORCYCLE)


def costing_options(mode: TransportMode, avoid_tolls: bool) -> Dict[str, float]:
    opts = dict(COSTING_OPTIONS[mode])
    if mode in _TOLL_MODES:
        opts["use_tolls"] = 0.0 if avoid_tolls else 0.5
    return opts


def build_route_request(
    start: Coordinate,
    end: Coordinate,
    mode: TransportMode,
    avoid_tolls: bool,
    alternates: Optional[int] = None,
    language: Optional[str] = None,
) -> Dict[str, Any]:
    return {
        "locations": [
            {"lat": start.latitude, "lon": start.longitude},
            {"lat": end.latitude, "lon": end.longitude},
        ],
        "costing": mode.value,
        "alternates": settings.route_alternates if alternates is None else alternates,
        "costing_options": {mode.value: costing_options(mode, avoid_tolls)},
        "directions_options": {"language": language or settings.route_language},
    }


class RoutingProvider:
    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout_s: Optional[float] = None,
        max_retries: Optional[int] = None,
        initial_delay_s: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.http = HTTPClient(
            user_agent=settings.user_agent,
            base_url=base_url or settings.routing_url,
            timeout_s=settings.route_timeout_s if timeout_s is None else timeout_s,
            max_retries=settings.fetch_max_retries if max_retries is None else max_retries,
            initial_delay_s=(
                settings.fetch_initial_delay_s if initial_delay_s is None else initial_delay_s
            ),
            transport=transport,
        )

    async def route(self, body: Dict[str, Any]) -> Dict[str, Any]:
        log.debug("Requesting %s route with %d alternate(s)", body["costing"], body["alternates"])
        data = await self.http.post_json("/route", body)
        return data if isinstance(data, dict) else {}

    async def aclose(self) -> None:
        await self.http.aclose()
