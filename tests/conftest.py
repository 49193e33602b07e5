"""
Shared fixtures for the supmap tests.

No test reaches a real routing, geocoding or backend server: providers are
built on ``httpx.MockTransport`` with canned Valhalla/Nominatim payloads.
"""
import json
from typing import Any, Dict, List, Optional, Sequence

import httpx
import pytest

from supmap.core.models import Coordinate
from supmap.geo.polyline import encode
from supmap.providers.routing import RoutingProvider

BELLECOUR = Coordinate(latitude=45.7578, longitude=4.8320)
PART_DIEU = Coordinate(latitude=45.7606, longitude=4.8590)
PARIS = Coordinate(latitude=48.8566, longitude=2.3522)


def line(start: Coordinate, end: Coordinate, n: int = 5) -> List[Coordinate]:
    """``n`` evenly spaced points from ``start`` to ``end`` (inclusive)."""
    return [
        Coordinate(
            latitude=start.latitude + (end.latitude - start.latitude) * i / (n - 1),
            longitude=start.longitude + (end.longitude - start.longitude) * i / (n - 1),
        )
        for i in range(n)
    ]


def trip(
    points: Sequence[Coordinate],
    time_s: float = 600.0,
    length_km: float = 3.2,
    maneuvers: Optional[List[Dict[str, Any]]] = None,
    has_toll: bool = False,
) -> Dict[str, Any]:
    """One Valhalla-style trip object."""
    return {
        "legs": [
            {
                "shape": encode(points),
                "maneuvers": maneuvers
                if maneuvers is not None
                else [
                    {"type": 1, "instruction": "Head east.", "length": length_km * 0.6},
                    {"type": 10, "instruction": "Turn right.", "length": length_km * 0.4},
                    {"type": 4, "instruction": "You have arrived.", "length": 0.0},
                ],
            }
        ],
        "summary": {"time": time_s, "length": length_km, "has_toll": has_toll},
    }


def route_payload(primary: Dict[str, Any], *alternates: Dict[str, Any]) -> Dict[str, Any]:
    return {"trip": primary, "alternates": [{"trip": t} for t in alternates]}


class FakeRouting:
    """MockTransport handler that answers /route with queued payloads and records bodies."""

    def __init__(self, *payloads: Any):
        self.payloads = list(payloads)
        self.bodies: List[Dict[str, Any]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.bodies.append(json.loads(request.content))
        payload = self.payloads.pop(0) if len(self.payloads) > 1 else self.payloads[0]
        return httpx.Response(200, json=payload)

    @property
    def calls(self) -> int:
        return len(self.bodies)

    def provider(self) -> RoutingProvider:
        return RoutingProvider(
            base_url="http://routing.test",
            max_retries=0,
            transport=httpx.MockTransport(self),
        )


@pytest.fixture()
def lyon_trip():
    return trip(line(BELLECOUR, PART_DIEU))
