"""Inbound map-event handling: turn taps into user-facing outcomes."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Sequence, Union

from supmap.config import settings
from supmap.core.errors import MalformedInboundMessageError
from supmap.core.incidents import find_incident_near, is_on_route, is_serviceable
from supmap.core.models import Coordinate, Incident, ServiceArea
from supmap.bridge.messages import (
    IncidentClick,
    RouteClick,
    UnrecognizedEvent,
    parse_event,
)

log = logging.getLogger(__name__)


class RejectCode(str, Enum):
    NOT_ON_ROUTE = "not_on_route"
    OUT_OF_AREA = "out_of_area"
    NOT_FOUND = "not_found"
    MALFORMED = "malformed"
    UNRECOGNIZED = "unrecognized"


REJECT_REASONS = {
    RejectCode.NOT_ON_ROUTE: "Incidents must be reported on the route",
    RejectCode.OUT_OF_AREA: "Incidents must be inside the service area",
    RejectCode.NOT_FOUND: "Incident not found",
    RejectCode.MALFORMED: "Could not read the map tap",
    RejectCode.UNRECOGNIZED: "Unsupported map event",
}


@dataclass(frozen=True)
class OpenIncidentForm:
    coordinate: Coordinate


@dataclass(frozen=True)
class ShowIncident:
    incident: Incident


@dataclass(frozen=True)
class Rejected:
    code: RejectCode

    @property
    def reason(self) -> str:
        return REJECT_REASONS[self.code]


BridgeOutcome = Union[OpenIncidentForm, ShowIncident, Rejected]


def handle_event(
    event: Union[RouteClick, IncidentClick, UnrecognizedEvent],
    route_geometry: Sequence[Coordinate],
    incidents: Sequence[Incident],
    area: Optional[ServiceArea] = None,
) -> BridgeOutcome:
    if isinstance(event, RouteClick):
        point = event.coordinate
        if not is_on_route(point, route_geometry):
            return Rejected(RejectCode.NOT_ON_ROUTE)
        if not is_serviceable(point, area):
            return Rejected(RejectCode.OUT_OF_AREA)
        return OpenIncidentForm(point)

    if isinstance(event, IncidentClick):
        found = find_incident_near(event.coordinate, incidents, settings.incident_epsilon_deg)
        if found is None:
            return Rejected(RejectCode.NOT_FOUND)
        return ShowIncident(found)

    log.info("Ignoring unrecognized map event %r", event.type)
    return Rejected(RejectCode.UNRECOGNIZED)


def receive(
    raw: Union[str, bytes, Dict[str, Any]],
    route_geometry: Sequence[Coordinate],
    incidents: Sequence[Incident],
    area: Optional[ServiceArea] = None,
) -> BridgeOutcome:
    """Parse and handle one raw inbound message; malformed input is reported and dropped."""
    try:
        event = parse_event(raw)
    except MalformedInboundMessageError as exc:
        log.warning("Dropping malformed map message: %s", exc)
        return Rejected(RejectCode.MALFORMED)
    return handle_event(event, route_geometry, incidents, area)


def outcome_message(outcome: BridgeOutcome) -> Dict[str, Any]:
    """JSON-ready description of an outcome for the UI side of the bridge."""
    if isinstance(outcome, OpenIncidentForm):
        return {
            "type": "outcome",
            "action": "openIncidentForm",
            "coordinate": outcome.coordinate.model_dump(),
        }
    if isinstance(outcome, ShowIncident):
        return {
            "type": "outcome",
            "action": "showIncident",
            "incident": outcome.incident.model_dump(mode="json"),
        }
    return {
        "type": "outcome",
        "action": "rejected",
        "code": outcome.code.value,
        "reason": outcome.reason,
    }
