"""Geospatial kernel: pure distance and containment helpers on WGS-84 points."""
from __future__ import annotations

from dataclasses import dataclass
from math import atan2, cos, radians, sin, sqrt
from typing import Optional, Sequence

from supmap.core.models import Coordinate, ServiceArea

EARTH_RADIUS_M = 6_371_000.0
DEFAULT_ON_ROUTE_THRESHOLD_M = 50.0


def haversine_distance_m(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance in metres between two points."""
    lat1r, lon1r, lat2r, lon2r = map(
        radians, [a.latitude, a.longitude, b.latitude, b.longitude]
    )
    dlat = lat2r - lat1r
    dlon = lon2r - lon1r
    h = sin(dlat / 2) ** 2 + cos(lat1r) * cos(lat2r) * sin(dlon / 2) ** 2
    return EARTH_RADIUS_M * 2 * atan2(sqrt(h), sqrt(1 - h))


def _project_onto_segment(
    point: Coordinate, seg_start: Coordinate, seg_end: Coordinate
) -> tuple[Coordinate, float]:
    """Clamped projection of ``point`` onto the segment, plus its parameter in [0, 1].

    Latitude/longitude are treated as planar coordinates here. That is only
    accurate over short (city-scale) segments; the final distance is still
    measured with haversine, so the on-route threshold keeps its meaning in metres.
    """
    dlat = seg_end.latitude - seg_start.latitude
    dlon = seg_end.longitude - seg_start.longitude
    len_sq = dlat * dlat + dlon * dlon
    if len_sq == 0:
        return seg_start, 0.0

    t = (
        (point.latitude - seg_start.latitude) * dlat
        + (point.longitude - seg_start.longitude) * dlon
    ) / len_sq
    t = max(0.0, min(1.0, t))
    if t == 0.0:
        return seg_start, t
    if t == 1.0:
        return seg_end, t
    return (
        Coordinate(
            latitude=seg_start.latitude + t * dlat,
            longitude=seg_start.longitude + t * dlon,
        ),
        t,
    )


def distance_to_segment_m(
    point: Coordinate, seg_start: Coordinate, seg_end: Coordinate
) -> float:
    """Distance in metres from ``point`` to the closest point of a short segment.

    A degenerate segment (start == end) falls back to point-to-point distance.
    """
    nearest, _ = _project_onto_segment(point, seg_start, seg_end)
    return haversine_distance_m(point, nearest)


def is_point_on_polyline(
    point: Coordinate,
    polyline: Sequence[Coordinate],
    max_distance_m: float = DEFAULT_ON_ROUTE_THRESHOLD_M,
) -> bool:
    if len(polyline) < 2:
        return False

    min_dist = float("inf")
    for i in range(len(polyline) - 1):
        d = distance_to_segment_m(point, polyline[i], polyline[i + 1])
        if d < min_dist:
            min_dist = d
            if min_dist <= max_distance_m:
                return True
    return min_dist <= max_distance_m


def contains_point(area: ServiceArea, point: Coordinate) -> bool:
    """Inclusive bounding-box test on both axes."""
    return (
        area.south_west.latitude <= point.latitude <= area.north_east.latitude
        and area.south_west.longitude <= point.longitude <= area.north_east.longitude
    )


@dataclass(frozen=True)
class PolylineSnap:
    point: Coordinate
    segment_index: int
    distance_m: float
    distance_along_m: float  # from the polyline start to ``point``


def nearest_point_on_polyline(
    point: Coordinate, polyline: Sequence[Coordinate]
) -> Optional[PolylineSnap]:
    """Snap ``point`` to the closest position on ``polyline``.

    Returns None for an empty polyline. A single-point polyline snaps to that point.
    """
    if not polyline:
        return None
    if len(polyline) == 1:
        only = polyline[0]
        return PolylineSnap(only, 0, haversine_distance_m(point, only), 0.0)

    best: Optional[PolylineSnap] = None
    travelled = 0.0
    for i in range(len(polyline) - 1):
        a, b = polyline[i], polyline[i + 1]
        nearest, _ = _project_onto_segment(point, a, b)
        d = haversine_distance_m(point, nearest)
        if best is None or d < best.distance_m:
            best = PolylineSnap(
                point=nearest,
                segment_index=i,
                distance_m=d,
                distance_along_m=travelled + haversine_distance_m(a, nearest),
            )
        travelled += haversine_distance_m(a, b)
    return best


def polyline_length_m(polyline: Sequence[Coordinate]) -> float:
    return sum(
        haversine_distance_m(polyline[i], polyline[i + 1])
        for i in range(len(polyline) - 1)
    )
