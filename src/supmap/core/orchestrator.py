"""Route orchestration: request, validate, decode and rank candidate routes."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from supmap.config import service_area, settings
from supmap.core.errors import (
    EmptyGeometryError,
    IdenticalEndpointsError,
    IndexOutOfRangeError,
    InvalidRouteError,
    MalformedEncodingError,
    OutOfServiceAreaError,
)
from supmap.core.models import (
    Coordinate,
    Maneuver,
    ManeuverKind,
    RouteCandidate,
    RouteSet,
    ServiceArea,
    TransportMode,
)
from supmap.geo.kernel import contains_point
from supmap.geo.polyline import PROVIDER_PRECISION, decode
from supmap.providers.routing import RoutingProvider, build_route_request

log = logging.getLogger(__name__)


def _first_leg(trip: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    legs = trip.get("legs")
    if isinstance(legs, list) and legs and isinstance(legs[0], dict):
        return legs[0]
    return None


def trip_problem(trip: Any, max_length_km: float) -> Optional[str]:
    """Why a provider trip is unusable, or None when it is valid.

    Error payloads sometimes arrive with a success status; a missing shape,
    a missing summary or an absurd summary length rejects them.
    """
    if not isinstance(trip, dict):
        return "missing trip"
    leg = _first_leg(trip)
    if leg is None or not leg.get("shape"):
        return "no geometry"
    if not isinstance(leg["shape"], str):
        return "geometry is not an encoded string"
    summary = trip.get("summary")
    if not isinstance(summary, dict):
        return "no summary"
    try:
        time_s = float(summary["time"])
        length_km = float(summary["length"])
    except (KeyError, TypeError, ValueError):
        return "summary without numeric time/length"
    if length_km > max_length_km:
        return f"summary length {length_km:.1f} km exceeds {max_length_km:.1f} km"
    if time_s < 0 or length_km < 0:
        return "negative summary values"
    return None


def _length_km(value: Any) -> float:
    try:
        return float(value or 0.0)
    except (TypeError, ValueError):
        return 0.0


def _maneuvers(leg: Dict[str, Any]) -> List[Maneuver]:
    out: List[Maneuver] = []
    for m in leg.get("maneuvers") or []:
        if not isinstance(m, dict):
            continue
        out.append(
            Maneuver(
                instruction_text=m.get("instruction") or "",
                length_km=_length_km(m.get("length")),
                toll_flag=bool(m.get("toll", False)),
                kind=ManeuverKind.from_provider(m.get("type")),
            )
        )
    return out


class RouteOrchestrator:
    def __init__(
        self,
        provider: RoutingProvider,
        area: Optional[ServiceArea] = None,
        max_length_km: Optional[float] = None,
    ):
        self.provider = provider
        self.area = area or service_area()
        self.max_length_km = (
            settings.route_max_length_km if max_length_km is None else max_length_km
        )

    def _decode_in_area(self, shape: str) -> List[Coordinate]:
        return [p for p in decode(shape, PROVIDER_PRECISION) if contains_point(self.area, p)]

    def _candidate(self, trip: Dict[str, Any], geometry: List[Coordinate]) -> RouteCandidate:
        leg = _first_leg(trip) or {}
        summary = trip["summary"]
        maneuvers = _maneuvers(leg)
        leg_summary = leg.get("summary") if isinstance(leg.get("summary"), dict) else {}
        has_toll = (
            bool(summary.get("has_toll"))
            or bool(leg_summary.get("has_toll"))
            or any(m.toll_flag for m in maneuvers)
        )
        return RouteCandidate(
            geometry=geometry,
            maneuvers=maneuvers,
            total_time_seconds=float(summary["time"]),
            total_length_km=float(summary["length"]),
            has_toll=has_toll,
            shape=leg["shape"],
        )

    async def calculate_route(
        self,
        start: Coordinate,
        end: Coordinate,
        mode: TransportMode = TransportMode.AUTO,
        avoid_tolls: bool = False,
    ) -> RouteSet:
        if start == end:
            raise IdenticalEndpointsError()

        body = build_route_request(start, end, mode, avoid_tolls)
        data = await self.provider.route(body)

        primary = data.get("trip")
        problem = trip_problem(primary, self.max_length_km)
        if problem:
            raise InvalidRouteError(f"{InvalidRouteError.reason}: {problem}")

        try:
            geometry = self._decode_in_area(_first_leg(primary)["shape"])
        except MalformedEncodingError as exc:
            raise InvalidRouteError(f"{InvalidRouteError.reason}: {exc}") from exc
        if not geometry:
            raise OutOfServiceAreaError(
                f"{OutOfServiceAreaError.reason}: no route point inside the service area"
            )
        candidates = [self._candidate(primary, geometry)]

        alternates = data.get("alternates") or []
        for i, alt in enumerate(alternates if isinstance(alternates, list) else []):
            trip = alt.get("trip") if isinstance(alt, dict) else None
            problem = trip_problem(trip, self.max_length_km)
            if problem:
                log.info("Dropping alternate %d: %s", i + 1, problem)
                continue
            try:
                alt_geometry = self._decode_in_area(_first_leg(trip)["shape"])
            except MalformedEncodingError as exc:
                log.info("Dropping alternate %d: %s", i + 1, exc)
                continue
            candidates.append(self._candidate(trip, alt_geometry))

        route_set = RouteSet.from_candidates(candidates)
        log.info(
            "Route %s: %d candidate(s), recommended #%d (%.0fs)",
            mode.value, len(candidates), route_set.recommended_index,
            route_set.recommended.total_time_seconds,
        )
        return route_set

    def select_and_confirm(self, route_set: RouteSet, index: int) -> RouteSet:
        """Select candidate ``index`` after re-decoding its geometry.

        The caller marks its navigation session as confirmed on success.
        """
        if not 0 <= index < len(route_set.candidates):
            raise IndexOutOfRangeError(
                f"{IndexOutOfRangeError.reason}: {index} "
                f"(have {len(route_set.candidates)} candidate(s))"
            )
        chosen = route_set.candidates[index]
        geometry = self._decode_in_area(chosen.shape) if chosen.shape else []
        if not geometry:
            raise EmptyGeometryError()

        candidates = list(route_set.candidates)
        candidates[index] = chosen.model_copy(update={"geometry": geometry})
        return route_set.model_copy(update={"candidates": candidates, "selected_index": index})
