"""Trip planner: owns one navigation session and drives the map surface.

This is the single logical actor per session. A new route calculation
supersedes any in-flight one; the superseded call returns None and its
result is never applied.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, Union

from supmap.bridge.handler import BridgeOutcome, receive
from supmap.bridge.messages import (
    ClearRoute,
    MapCommand,
    SetMapType,
    incidents_command,
    route_commands,
    user_location_command,
)
from supmap.config import default_location, service_area
from supmap.core import session as nav
from supmap.core.errors import OutOfServiceAreaError, SessionStateError, SupmapError
from supmap.core.incidents import is_serviceable, is_votable
from supmap.core.models import (
    Coordinate,
    Incident,
    MapType,
    RouteSet,
    ServiceArea,
    TransportMode,
)
from supmap.core.orchestrator import RouteOrchestrator
from supmap.geo.kernel import nearest_point_on_polyline, polyline_length_m
from supmap.providers.backend import BackendClient

log = logging.getLogger(__name__)

CommandSink = Callable[[MapCommand], Union[None, Awaitable[None]]]

CURRENT_POSITION_LABEL = "Current position"


@dataclass(frozen=True)
class RouteProgress:
    snapped: Coordinate
    off_route_m: float
    travelled_m: float
    remaining_m: float


class TripPlanner:
    def __init__(
        self,
        orchestrator: RouteOrchestrator,
        sink: Optional[CommandSink] = None,
        backend: Optional[BackendClient] = None,
        area: Optional[ServiceArea] = None,
        mode: TransportMode = TransportMode.AUTO,
        avoid_tolls: bool = False,
    ):
        self.orchestrator = orchestrator
        self.sink = sink
        self.backend = backend
        self.area = area or service_area()
        self.mode = mode
        self.avoid_tolls = avoid_tolls

        self.session = nav.NavigationSession()
        self.start: Optional[Coordinate] = None
        self.start_label = ""
        self.end: Optional[Coordinate] = None
        self.end_label = ""
        self.incidents: List[Incident] = []
        self.map_type = MapType.STANDARD

        self._calc_task: Optional[asyncio.Task] = None
        self._calc_generation = 0

    # ------------------------------------------------------------------

    async def _emit(self, *commands: MapCommand) -> None:
        if self.sink is None:
            return
        for cmd in commands:
            res = self.sink(cmd)
            if inspect.isawaitable(res):
                await res

    async def _draw_route(self) -> None:
        rs = self.session.route_set
        if rs is None or self.start is None:
            return
        await self._emit(
            *route_commands(
                rs,
                self.start,
                self.end,
                self.start_label,
                self.end_label,
                confirmed=self.session.confirmed,
            )
        )

    @property
    def route_geometry(self) -> List[Coordinate]:
        rs = self.session.route_set
        return list(rs.selected.geometry) if rs is not None else []

    @property
    def route_center(self) -> Coordinate:
        if self.start is not None and self.end is not None:
            return Coordinate(
                latitude=(self.start.latitude + self.end.latitude) / 2,
                longitude=(self.start.longitude + self.end.longitude) / 2,
            )
        return default_location()

    # ── Endpoints and calculation ─────────────────────────────────────────

    def _check_endpoint(self, location: Coordinate) -> None:
        if self.session.confirmed:
            raise SessionStateError("cancel the confirmed route before changing endpoints")
        if not is_serviceable(location, self.area):
            raise OutOfServiceAreaError(
                f"{OutOfServiceAreaError.reason}: "
                f"lat={location.latitude}, lon={location.longitude}"
            )

    async def set_start(self, location: Coordinate, label: str = "") -> Optional[RouteSet]:
        self._check_endpoint(location)
        self.start, self.start_label = location, label
        return await self._calculate_if_ready()

    async def set_end(self, location: Coordinate, label: str = "") -> Optional[RouteSet]:
        self._check_endpoint(location)
        self.end, self.end_label = location, label
        return await self._calculate_if_ready()

    async def use_current_location(self, position: Coordinate) -> Optional[RouteSet]:
        return await self.set_start(position, CURRENT_POSITION_LABEL)

    async def _calculate_if_ready(self) -> Optional[RouteSet]:
        if self.start is None or self.end is None:
            return None
        return await self.calculate()

    async def calculate(self) -> Optional[RouteSet]:
        """(Re)calculate the route between the current endpoints.

        Returns None when a newer calculation superseded this one.
        """
        if self.start is None or self.end is None:
            raise SessionStateError("both endpoints must be set before calculating")
        if self.session.confirmed:
            raise SessionStateError("cancel the confirmed route before recalculating")

        self._calc_generation += 1
        generation = self._calc_generation
        if self._calc_task is not None and not self._calc_task.done():
            log.debug("Superseding in-flight route calculation")
            self._calc_task.cancel()

        start, end = self.start, self.end
        task = asyncio.ensure_future(
            self.orchestrator.calculate_route(start, end, self.mode, self.avoid_tolls)
        )
        self._calc_task = task
        try:
            route_set = await task
        except asyncio.CancelledError:
            if generation != self._calc_generation and task.cancelled():
                return None
            raise
        except SupmapError:
            if generation == self._calc_generation:
                self.session = nav.with_route_set(self.session, None)
                await self._emit(ClearRoute())
            raise

        if generation != self._calc_generation:
            return None

        self.session = nav.with_route_set(self.session, route_set)
        await self._draw_route()
        await self._record_calculation(start, end)
        await self.refresh_incidents()
        return route_set

    async def _record_calculation(self, start: Coordinate, end: Coordinate) -> None:
        if self.backend is None:
            return
        try:
            await self.backend.record_route_calculation(start, end, self.mode, self.avoid_tolls)
        except SupmapError as exc:
            log.warning("Could not record route calculation: %s", exc)

    # ── Session transitions ───────────────────────────────────────────────

    async def confirm(self, index: int) -> RouteSet:
        if self.session.route_set is None:
            raise SessionStateError("no route to confirm")
        selected = self.orchestrator.select_and_confirm(self.session.route_set, index)
        self.session = nav.confirm(self.session, selected)
        await self._draw_route()
        return selected

    async def start_tracking(self) -> None:
        self.session = nav.start_tracking(self.session)

    async def cancel(self) -> Optional[RouteSet]:
        """Leave the confirmed route and recalculate if both endpoints remain."""
        self.session = nav.cancel(self.session)
        await self._emit(ClearRoute())
        return await self._calculate_if_ready()

    async def clear(self) -> None:
        self._calc_generation += 1
        if self._calc_task is not None and not self._calc_task.done():
            self._calc_task.cancel()
        self.session = nav.clear(self.session)
        self.start = self.end = None
        self.start_label = self.end_label = ""
        await self._emit(ClearRoute())
        await self.refresh_incidents()

    async def back(self) -> Optional[RouteSet]:
        """Back button: a confirmed route is cancelled, otherwise planning is cleared."""
        if self.session.confirmed:
            return await self.cancel()
        if self.start is not None or self.end is not None:
            await self.clear()
        return None

    # ── Live tracking ─────────────────────────────────────────────────────

    async def update_position(self, position: Coordinate, heading: Optional[float] = None) -> None:
        await self._emit(
            user_location_command(position, heading, self.session.tracking, self.area)
        )

    def progress(self, position: Coordinate) -> Optional[RouteProgress]:
        geometry = self.route_geometry
        snap = nearest_point_on_polyline(position, geometry)
        if snap is None:
            return None
        total = polyline_length_m(geometry)
        return RouteProgress(
            snapped=snap.point,
            off_route_m=snap.distance_m,
            travelled_m=snap.distance_along_m,
            remaining_m=max(0.0, total - snap.distance_along_m),
        )

    async def cycle_map_type(self) -> MapType:
        self.map_type = self.map_type.next()
        await self._emit(SetMapType(kind=self.map_type))
        return self.map_type

    # ── Incidents ─────────────────────────────────────────────────────────

    async def refresh_incidents(self, center: Optional[Coordinate] = None) -> List[Incident]:
        if self.backend is None:
            return self.incidents
        try:
            self.incidents = await self.backend.nearby_incidents(center or self.route_center)
        except SupmapError as exc:
            log.warning("Could not refresh incidents: %s", exc)
            return self.incidents
        await self._emit(incidents_command(self.incidents))
        return self.incidents

    async def handle_map_message(self, raw: Any) -> BridgeOutcome:
        return receive(raw, self.route_geometry, self.incidents, self.area)

    async def report_incident(self, location: Coordinate, kind: str) -> Incident:
        if self.backend is None:
            raise SessionStateError("incident reporting needs the backend API")
        if not is_serviceable(location, self.area):
            raise OutOfServiceAreaError()
        created = await self.backend.create_incident(location, kind)
        self.incidents.append(created)
        await self._emit(incidents_command(self.incidents))
        return created

    async def vote(self, incident: Incident, vote: int) -> Any:
        if self.backend is None:
            raise SessionStateError("voting needs the backend API")
        if not is_votable(incident):
            raise SessionStateError("incident is no longer active")
        return await self.backend.vote_incident(incident.id, vote)

    async def aclose(self) -> None:
        if self._calc_task is not None and not self._calc_task.done():
            self._calc_task.cancel()
