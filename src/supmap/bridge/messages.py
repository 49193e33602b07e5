"""Map bridge wire messages.

Outbound commands replace any earlier state of the same kind on the map
surface. Inbound events are parsed defensively: unknown ``type`` values
become ``UnrecognizedEvent`` and unreadable payloads raise
``MalformedInboundMessageError``.
"""
from __future__ import annotations

import json
from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

from supmap.config import default_location, service_area
from supmap.core.errors import MalformedInboundMessageError
from supmap.core.formatting import maneuver_icon
from supmap.core.incidents import active_incidents, decorate
from supmap.core.models import (
    Coordinate,
    Incident,
    ManeuverKind,
    MapType,
    RouteSet,
    ServiceArea,
)
from supmap.geo.kernel import contains_point

DEFAULT_ZOOM = 13
ROUTE_ZOOM = 15

PRIMARY_ROUTE_SLOT = 0
ALTERNATE_ROUTE_SLOT = 1


class _Wire(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


# ── Outbound (core → map surface) ────────────────────────────────────────

class RouteStep(_Wire):
    instruction: str
    length_km: float
    kind: ManeuverKind
    icon: str


class SetRoute(_Wire):
    type: Literal["setRoute"] = "setRoute"
    coords: List[Coordinate]
    start: Coordinate
    start_label: str = ""
    end: Optional[Coordinate] = None
    end_label: str = ""
    maneuvers: List[RouteStep] = Field(default_factory=list)
    route_color_slot: int = PRIMARY_ROUTE_SLOT
    center_on_start: bool = False


class ClearRoute(_Wire):
    type: Literal["clearRoute"] = "clearRoute"


class IncidentMarker(_Wire):
    coordinate: Coordinate
    kind: str
    icon_ref: str
    color: str


class SetIncidents(_Wire):
    type: Literal["setIncidents"] = "setIncidents"
    items: List[IncidentMarker] = Field(default_factory=list)


class CenterMap(_Wire):
    type: Literal["centerMap"] = "centerMap"
    coordinate: Coordinate
    zoom: int = DEFAULT_ZOOM


class UpdateUserLocation(_Wire):
    type: Literal["updateUserLocation"] = "updateUserLocation"
    coordinate: Coordinate
    heading_degrees: Optional[float] = None
    rotate_map_to_heading: bool = False


class SetMapType(_Wire):
    type: Literal["setMapType"] = "setMapType"
    kind: MapType = MapType.STANDARD


MapCommand = Union[SetRoute, ClearRoute, SetIncidents, CenterMap, UpdateUserLocation, SetMapType]


def encode_command(command: MapCommand) -> str:
    return command.model_dump_json(by_alias=True)


# ── Inbound (map surface → core) ─────────────────────────────────────────

class _Click(_Wire):
    latitude: float = Field(ge=-90.0, le=90.0)
    longitude: float = Field(ge=-180.0, le=180.0)

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(latitude=self.latitude, longitude=self.longitude)


class RouteClick(_Click):
    type: Literal["routeClick"] = "routeClick"


class IncidentClick(_Click):
    type: Literal["incidentClick"] = "incidentClick"


class UnrecognizedEvent(BaseModel):
    type: str
    payload: Dict[str, Any] = Field(default_factory=dict)


InboundEvent = Annotated[Union[RouteClick, IncidentClick], Field(discriminator="type")]

_INBOUND = TypeAdapter(InboundEvent)
_KNOWN_EVENTS = {"routeClick", "incidentClick"}


def parse_event(raw: Union[str, bytes, Dict[str, Any]]) -> Union[RouteClick, IncidentClick, UnrecognizedEvent]:
    if isinstance(raw, (str, bytes, bytearray)):
        try:
            data = json.loads(raw)
        except ValueError as e:
            raise MalformedInboundMessageError(f"not JSON: {e}") from e
    else:
        data = raw

    if not isinstance(data, dict) or not isinstance(data.get("type"), str):
        raise MalformedInboundMessageError("message has no string 'type' field")
    if data["type"] not in _KNOWN_EVENTS:
        return UnrecognizedEvent(type=data["type"], payload=data)
    try:
        return _INBOUND.validate_python(data)
    except ValidationError as e:
        raise MalformedInboundMessageError(
            f"invalid {data['type']} payload: {e.error_count()} error(s)"
        ) from e


# ── Command builders ─────────────────────────────────────────────────────

def route_commands(
    route_set: RouteSet,
    start: Coordinate,
    end: Optional[Coordinate] = None,
    start_label: str = "",
    end_label: str = "",
    confirmed: bool = False,
) -> List[MapCommand]:
    """Commands that draw the selected candidate, centring on the start once confirmed."""
    selected = route_set.selected
    commands: List[MapCommand] = [
        SetRoute(
            coords=selected.geometry,
            start=start,
            start_label=start_label,
            end=end,
            end_label=end_label,
            maneuvers=[
                RouteStep(
                    instruction=m.instruction_text,
                    length_km=m.length_km,
                    kind=m.kind,
                    icon=maneuver_icon(m.kind),
                )
                for m in selected.maneuvers
            ],
            route_color_slot=(
                PRIMARY_ROUTE_SLOT if route_set.selected_index == 0 else ALTERNATE_ROUTE_SLOT
            ),
            center_on_start=confirmed,
        )
    ]
    if confirmed:
        commands.append(CenterMap(coordinate=start, zoom=ROUTE_ZOOM))
    return commands


def incidents_command(
    incidents: Sequence[Incident], now: Optional[datetime] = None
) -> SetIncidents:
    items = []
    for inc in active_incidents(incidents, now):
        if inc.location is None:
            continue
        style = decorate(inc).style
        items.append(
            IncidentMarker(
                coordinate=inc.location,
                kind=inc.kind,
                icon_ref=style.icon_ref,
                color=style.color,
            )
        )
    return SetIncidents(items=items)


def user_location_command(
    position: Coordinate,
    heading: Optional[float] = None,
    tracking: bool = False,
    area: Optional[ServiceArea] = None,
) -> UpdateUserLocation:
    """Positions outside the service area are shown at the default map centre."""
    shown = position if contains_point(area or service_area(), position) else default_location()
    return UpdateUserLocation(
        coordinate=shown,
        heading_degrees=heading,
        rotate_map_to_heading=tracking and heading is not None,
    )
