"""Tests for the map bridge: wire format, inbound parsing and tap handling."""
import json
from datetime import datetime, timedelta, timezone

import pytest

from supmap.bridge.handler import (
    OpenIncidentForm,
    Rejected,
    RejectCode,
    ShowIncident,
    outcome_message,
    receive,
)
from supmap.bridge.messages import (
    ClearRoute,
    IncidentClick,
    RouteClick,
    SetMapType,
    UnrecognizedEvent,
    encode_command,
    incidents_command,
    parse_event,
    route_commands,
    user_location_command,
)
from supmap.config import default_location
from supmap.core.errors import MalformedInboundMessageError
from supmap.core.models import (
    Coordinate,
    Incident,
    Maneuver,
    ManeuverKind,
    MapType,
    RouteCandidate,
    RouteSet,
    ServiceArea,
)

from conftest import BELLECOUR, PARIS, PART_DIEU, line

NOW = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)
ROUTE = line(BELLECOUR, PART_DIEU)


def _incident(id, lat, lon, kind="accident", active=True):
    return Incident(
        id=id,
        location=Coordinate.of(lat, lon),
        kind=kind,
        created_at=NOW - timedelta(hours=1),
        expires_at=NOW + timedelta(hours=1),
        is_active=active,
    )


def _route_set(selected_index=0):
    cand = RouteCandidate(
        geometry=ROUTE,
        maneuvers=[Maneuver(instruction_text="Turn left.", length_km=0.4, kind=ManeuverKind.TURN_LEFT)],
        total_time_seconds=600,
        total_length_km=3.0,
    )
    return RouteSet(candidates=[cand, cand], recommended_index=0, selected_index=selected_index)


# ── Inbound parsing ──────────────────────────────────────────────────────

def test_parse_route_click():
    event = parse_event('{"type": "routeClick", "latitude": 45.76, "longitude": 4.85}')
    assert isinstance(event, RouteClick)
    assert event.coordinate == Coordinate.of(45.76, 4.85)


def test_parse_incident_click_from_dict():
    event = parse_event({"type": "incidentClick", "latitude": 45.76, "longitude": 4.85})
    assert isinstance(event, IncidentClick)


def test_unknown_type_is_unrecognized():
    event = parse_event('{"type": "mapLongPress", "latitude": 1, "longitude": 2}')
    assert isinstance(event, UnrecognizedEvent)
    assert event.type == "mapLongPress"


@pytest.mark.parametrize(
    "raw",
    [
        "not json at all",
        "[1, 2, 3]",
        '{"latitude": 45.7, "longitude": 4.8}',
        '{"type": "routeClick", "latitude": "north", "longitude": 4.8}',
        '{"type": "routeClick", "latitude": 123.0, "longitude": 4.8}',
        '{"type": "incidentClick", "longitude": 4.8}',
    ],
)
def test_malformed_messages_raise(raw):
    with pytest.raises(MalformedInboundMessageError):
        parse_event(raw)


# ── Tap handling ─────────────────────────────────────────────────────────

def test_route_click_on_route_opens_incident_form():
    tap = json.dumps({"type": "routeClick", "latitude": ROUTE[2].latitude, "longitude": ROUTE[2].longitude})
    outcome = receive(tap, ROUTE, [])
    assert isinstance(outcome, OpenIncidentForm)
    assert outcome.coordinate == ROUTE[2]


def test_route_click_off_route_is_rejected():
    outcome = receive({"type": "routeClick", "latitude": 45.70, "longitude": 4.80}, ROUTE, [])
    assert outcome == Rejected(RejectCode.NOT_ON_ROUTE)
    assert outcome.reason == "Incidents must be reported on the route"


def test_route_click_on_route_outside_area_is_rejected():
    tiny = ServiceArea(south_west=Coordinate.of(45.0, 4.0), north_east=Coordinate.of(45.1, 4.1))
    tap = {"type": "routeClick", "latitude": ROUTE[1].latitude, "longitude": ROUTE[1].longitude}
    assert receive(tap, ROUTE, [], tiny) == Rejected(RejectCode.OUT_OF_AREA)


def test_route_click_without_route_is_rejected():
    tap = {"type": "routeClick", "latitude": 45.76, "longitude": 4.85}
    assert receive(tap, [], []) == Rejected(RejectCode.NOT_ON_ROUTE)


def test_incident_click_shows_incident():
    incidents = [_incident(1, 45.7600, 4.8500), _incident(2, 45.7700, 4.8600)]
    outcome = receive({"type": "incidentClick", "latitude": 45.77, "longitude": 4.86}, ROUTE, incidents)
    assert isinstance(outcome, ShowIncident)
    assert outcome.incident.id == 2


def test_incident_click_without_match():
    outcome = receive({"type": "incidentClick", "latitude": 45.75, "longitude": 4.84}, ROUTE, [])
    assert outcome == Rejected(RejectCode.NOT_FOUND)


def test_malformed_and_unknown_messages_are_dropped():
    assert receive("{oops", ROUTE, []) == Rejected(RejectCode.MALFORMED)
    assert receive({"type": "pinch"}, ROUTE, []) == Rejected(RejectCode.UNRECOGNIZED)


def test_outcome_messages():
    form = outcome_message(OpenIncidentForm(BELLECOUR))
    assert form["action"] == "openIncidentForm"
    assert form["coordinate"] == {"latitude": BELLECOUR.latitude, "longitude": BELLECOUR.longitude}

    shown = outcome_message(ShowIncident(_incident(5, 45.76, 4.85)))
    assert shown["incident"]["id"] == 5

    rejected = outcome_message(Rejected(RejectCode.NOT_FOUND))
    assert rejected == {
        "type": "outcome",
        "action": "rejected",
        "code": "not_found",
        "reason": "Incident not found",
    }


# ── Outbound commands ────────────────────────────────────────────────────

def test_set_route_wire_format():
    commands = route_commands(_route_set(), BELLECOUR, PART_DIEU, "Bellecour", "Part-Dieu")
    assert len(commands) == 1
    wire = json.loads(encode_command(commands[0]))
    assert wire["type"] == "setRoute"
    assert wire["startLabel"] == "Bellecour"
    assert wire["endLabel"] == "Part-Dieu"
    assert wire["routeColorSlot"] == 0
    assert wire["centerOnStart"] is False
    assert len(wire["coords"]) == len(ROUTE)
    assert wire["maneuvers"][0] == {
        "instruction": "Turn left.",
        "lengthKm": 0.4,
        "kind": "turn_left",
        "icon": "arrow-left",
    }


def test_confirmed_alternate_uses_alternate_slot_and_centers():
    commands = route_commands(_route_set(selected_index=1), BELLECOUR, PART_DIEU, confirmed=True)
    set_route, center = commands
    assert set_route.route_color_slot == 1
    assert set_route.center_on_start
    assert center.type == "centerMap"
    assert center.zoom == 15
    assert center.coordinate == BELLECOUR


def test_incidents_command_only_shows_active_incidents():
    cmd = incidents_command(
        [_incident(1, 45.76, 4.85, "police"), _incident(2, 45.77, 4.86, active=False)], NOW
    )
    wire = json.loads(encode_command(cmd))
    assert wire["type"] == "setIncidents"
    assert len(wire["items"]) == 1
    assert wire["items"][0]["color"] == "#0000FF"
    assert wire["items"][0]["iconRef"] == "/assets/police.png"


def test_user_location_outside_area_falls_back_to_default():
    cmd = user_location_command(PARIS, heading=90.0, tracking=True)
    assert cmd.coordinate == default_location()
    assert cmd.rotate_map_to_heading


def test_user_location_inside_area_without_tracking():
    cmd = user_location_command(BELLECOUR, heading=90.0, tracking=False)
    assert cmd.coordinate == BELLECOUR
    assert not cmd.rotate_map_to_heading
    wire = json.loads(encode_command(cmd))
    assert wire["headingDegrees"] == 90.0


def test_simple_commands():
    assert json.loads(encode_command(ClearRoute())) == {"type": "clearRoute"}
    assert json.loads(encode_command(SetMapType(kind=MapType.SATELLITE))) == {
        "type": "setMapType",
        "kind": "satellite",
    }
    assert MapType.TERRAIN.next() is MapType.STANDARD
