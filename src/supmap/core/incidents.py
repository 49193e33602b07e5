"""Incident matching: on-route and service-area checks, tap lookup, display styles."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence

from supmap.config import service_area, settings
from supmap.core.models import (
    Coordinate,
    DecoratedIncident,
    Incident,
    IncidentStyle,
    ServiceArea,
)
from supmap.geo.kernel import contains_point, is_point_on_polyline

DEFAULT_EPSILON_DEG = 1e-5

INCIDENT_STYLES: Dict[str, IncidentStyle] = {
    "accident": IncidentStyle(label="Accident", color="#FF0000", icon_ref="/assets/accident.png"),
    "police": IncidentStyle(label="Police", color="#0000FF", icon_ref="/assets/police.png"),
    "hazard": IncidentStyle(label="Hazard", color="#FFA500", icon_ref="/assets/hazard.png"),
    "construction": IncidentStyle(label="Roadworks", color="#800080", icon_ref="/assets/roadwork.png"),
}

DEFAULT_STYLE = IncidentStyle(label="Incident", color="#FF6200", icon_ref="/assets/default.png")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def is_on_route(point: Coordinate, route_geometry: Sequence[Coordinate]) -> bool:
    return is_point_on_polyline(point, route_geometry, settings.on_route_threshold_m)


def is_serviceable(point: Coordinate, area: Optional[ServiceArea] = None) -> bool:
    return contains_point(area or service_area(), point)


def find_incident_near(
    point: Coordinate,
    incidents: Iterable[Incident],
    epsilon_deg: float = DEFAULT_EPSILON_DEG,
) -> Optional[Incident]:
    """First incident within ``epsilon_deg`` of ``point`` on both axes."""
    for inc in incidents:
        loc = inc.location
        if loc is None:
            continue
        if (
            abs(loc.latitude - point.latitude) < epsilon_deg
            and abs(loc.longitude - point.longitude) < epsilon_deg
        ):
            return inc
    return None


def is_votable(incident: Incident, now: Optional[datetime] = None) -> bool:
    return incident.is_active and incident.expires_at > (now or _now())


def active_incidents(incidents: Iterable[Incident], now: Optional[datetime] = None) -> List[Incident]:
    now = now or _now()
    return [inc for inc in incidents if is_votable(inc, now)]


def decorate(
    incident: Incident, type_table: Optional[Dict[str, IncidentStyle]] = None
) -> DecoratedIncident:
    table = INCIDENT_STYLES if type_table is None else type_table
    return DecoratedIncident(incident=incident, style=table.get(incident.kind, DEFAULT_STYLE))
