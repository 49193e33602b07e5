from __future__ import annotations

from supmap.core.models import ManeuverKind

MANEUVER_ICONS = {
    ManeuverKind.DEPART: "arrow-up",
    ManeuverKind.ARRIVE: "map-marker",
    ManeuverKind.CONTINUE: "arrow-up",
    ManeuverKind.TURN_RIGHT: "arrow-right",
    ManeuverKind.TURN_LEFT: "arrow-left",
    ManeuverKind.UTURN_RIGHT: "rotate-right",
    ManeuverKind.UTURN_LEFT: "rotate-left",
    ManeuverKind.RAMP: "arrow-up-right",
    ManeuverKind.EXIT: "arrow-up-right",
    ManeuverKind.MERGE: "arrow-up-left",
    ManeuverKind.ROUNDABOUT_ENTER: "rotate-right",
    ManeuverKind.ROUNDABOUT_EXIT: "arrow-up-right",
    ManeuverKind.FERRY: "ferry",
}


def maneuver_icon(kind: ManeuverKind) -> str:
    return MANEUVER_ICONS.get(kind, "arrow-up")


def format_duration(seconds: float) -> str:
    minutes = int(seconds // 60)
    rest = round(seconds % 60)
    if rest == 60:
        minutes, rest = minutes + 1, 0
    if minutes == 0:
        return f"{rest} sec"
    if rest == 0:
        return f"{minutes} min"
    return f"{minutes} min {rest} sec"


def format_distance(km: float) -> str:
    if km < 0.1:
        return f"{round(km * 1000)} m"
    if km < 10:
        return f"{km:.1f} km"
    return f"{round(km)} km"
