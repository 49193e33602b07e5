from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Coordinate(BaseModel):
    model_config = ConfigDict(frozen=True)

    latitude: float = Field(ge=-90.0, le=90.0)
    longitude: float = Field(ge=-180.0, le=180.0)

    @classmethod
    def of(cls, latitude: float, longitude: float) -> Coordinate:
        return cls(latitude=latitude, longitude=longitude)

    def as_pair(self) -> List[float]:
        return [self.latitude, self.longitude]


class ServiceArea(BaseModel):
    """Axis-aligned bounding box the engine accepts points within."""

    model_config = ConfigDict(frozen=True)

    south_west: Coordinate
    north_east: Coordinate


class TransportMode(str, Enum):
    AUTO = "auto"
    MOTORCYCLE = "motorcycle"
    BICYCLE = "bicycle"
    PEDESTRIAN = "pedestrian"
    BUS = "bus"

    @classmethod
    def from_app_mode(cls, mode: str) -> TransportMode:
        """Accept either a provider costing name or an app-level alias."""
        m = (mode or "").strip().lower()
        aliases = {
            "driving": cls.AUTO,
            "walking": cls.PEDESTRIAN,
            "bicycling": cls.BICYCLE,
            "transit": cls.BUS,
        }
        if m in aliases:
            return aliases[m]
        try:
            return cls(m)
        except ValueError:
            return cls.AUTO


class MapType(str, Enum):
    STANDARD = "standard"
    SATELLITE = "satellite"
    HYBRID = "hybrid"
    TERRAIN = "terrain"

    def next(self) -> MapType:
        order = list(MapType)
        return order[(order.index(self) + 1) % len(order)]


class ManeuverKind(str, Enum):
    DEPART = "depart"
    ARRIVE = "arrive"
    CONTINUE = "continue"
    TURN_RIGHT = "turn_right"
    TURN_LEFT = "turn_left"
    UTURN_RIGHT = "uturn_right"
    UTURN_LEFT = "uturn_left"
    RAMP = "ramp"
    EXIT = "exit"
    MERGE = "merge"
    ROUNDABOUT_ENTER = "roundabout_enter"
    ROUNDABOUT_EXIT = "roundabout_exit"
    FERRY = "ferry"
    OTHER = "other"

    @classmethod
    def from_provider(cls, code: Any) -> ManeuverKind:
        """Map the routing provider's numeric maneuver type onto a kind."""
        try:
            n = int(code)
        except (TypeError, ValueError):
            return cls.OTHER
        return _PROVIDER_MANEUVERS.get(n, cls.OTHER)


_PROVIDER_MANEUVERS: Dict[int, ManeuverKind] = {
    1: ManeuverKind.DEPART, 2: ManeuverKind.DEPART, 3: ManeuverKind.DEPART,
    4: ManeuverKind.ARRIVE, 5: ManeuverKind.ARRIVE, 6: ManeuverKind.ARRIVE,
    7: ManeuverKind.CONTINUE, 8: ManeuverKind.CONTINUE, 22: ManeuverKind.CONTINUE,
    9: ManeuverKind.TURN_RIGHT, 10: ManeuverKind.TURN_RIGHT, 11: ManeuverKind.TURN_RIGHT,
    23: ManeuverKind.TURN_RIGHT,
    14: ManeuverKind.TURN_LEFT, 15: ManeuverKind.TURN_LEFT, 16: ManeuverKind.TURN_LEFT,
    24: ManeuverKind.TURN_LEFT,
    12: ManeuverKind.UTURN_RIGHT, 13: ManeuverKind.UTURN_LEFT,
    17: ManeuverKind.RAMP, 18: ManeuverKind.RAMP, 19: ManeuverKind.RAMP,
    20: ManeuverKind.EXIT, 21: ManeuverKind.EXIT,
    25: ManeuverKind.MERGE, 37: ManeuverKind.MERGE, 38: ManeuverKind.MERGE,
    26: ManeuverKind.ROUNDABOUT_ENTER, 27: ManeuverKind.ROUNDABOUT_EXIT,
    28: ManeuverKind.FERRY, 29: ManeuverKind.FERRY,
}


class Maneuver(BaseModel):
    model_config = ConfigDict(frozen=True)

    instruction_text: str = ""
    length_km: float = 0.0
    toll_flag: bool = False
    kind: ManeuverKind = ManeuverKind.OTHER


class RouteCandidate(BaseModel):
    """One decoded provider trip. ``shape`` keeps the encoded geometry for re-validation."""

    model_config = ConfigDict(frozen=True)

    geometry: List[Coordinate]
    maneuvers: List[Maneuver] = Field(default_factory=list)
    total_time_seconds: float
    total_length_km: float
    has_toll: bool = False
    shape: str = ""


def recommended_index(candidates: List[RouteCandidate]) -> int:
    """Index of the fastest candidate; ties go to the earliest one."""
    return min(range(len(candidates)), key=lambda i: candidates[i].total_time_seconds)


class RouteSet(BaseModel):
    model_config = ConfigDict(frozen=True)

    candidates: List[RouteCandidate] = Field(min_length=1)
    recommended_index: int = 0
    selected_index: int = 0

    @model_validator(mode="after")
    def _indexes_in_range(self) -> RouteSet:
        n = len(self.candidates)
        if not 0 <= self.recommended_index < n or not 0 <= self.selected_index < n:
            raise ValueError(f"route set indexes out of range for {n} candidate(s)")
        return self

    @classmethod
    def from_candidates(cls, candidates: List[RouteCandidate]) -> RouteSet:
        return cls(
            candidates=candidates,
            recommended_index=recommended_index(candidates),
            selected_index=0,
        )

    @property
    def selected(self) -> RouteCandidate:
        return self.candidates[self.selected_index]

    @property
    def recommended(self) -> RouteCandidate:
        return self.candidates[self.recommended_index]


class PlaceResult(BaseModel):
    place_id: str
    display_name: str
    location: Coordinate


def _parse_dt(value: Any) -> datetime:
    if isinstance(value, datetime):
        dt = value
    elif value:
        dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    else:
        dt = datetime.fromtimestamp(0, tz=timezone.utc)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


class Incident(BaseModel):
    id: int
    user_id: int = 0
    user_name: str = ""
    location: Optional[Coordinate] = None
    kind: str
    description: str = ""
    created_at: datetime
    expires_at: datetime
    upvotes: int = Field(default=0, ge=0)
    downvotes: int = Field(default=0, ge=0)
    is_active: bool = True
    distance_km: float = 0.0

    @classmethod
    def from_api(cls, row: Dict[str, Any]) -> Incident:
        """Build from a backend incident payload (camelCase keys, nullable lat/lon)."""
        lat = row.get("latitude")
        lon = row.get("longitude")
        location = None
        if lat is not None and lon is not None:
            location = Coordinate(latitude=float(lat), longitude=float(lon))
        return cls(
            id=int(row["id"]),
            user_id=int(row.get("userId") or 0),
            user_name=row.get("userName") or "",
            location=location,
            kind=row.get("type") or "",
            description=row.get("description") or "",
            created_at=_parse_dt(row.get("createdAt")),
            expires_at=_parse_dt(row.get("expiresAt")),
            upvotes=int(row.get("upvotes") or 0),
            downvotes=int(row.get("downvotes") or 0),
            is_active=bool(row.get("isActive", False)),
            distance_km=float(row.get("distance") or 0.0),
        )


class IncidentStyle(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    color: str
    icon_ref: str


class DecoratedIncident(BaseModel):
    incident: Incident
    style: IncidentStyle
