"""Navigation session state machine.

    Planning ──confirm──▶ Confirmed(tracking=False) ──start_tracking──▶ Confirmed(tracking=True)
        ▲                         │                                         │
        └──────────── cancel / clear ◀───────────────────────────────────────┘

Every transition is a pure function returning a new session. ``clear`` is
allowed from any state and discards the route set; ``cancel`` leaves a
confirmed route and expects the caller to recalculate if endpoints remain.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict

from supmap.core.errors import SessionStateError
from supmap.core.models import RouteSet


class SessionState(str, Enum):
    PLANNING = "planning"
    CONFIRMED = "confirmed"
    TRACKING = "tracking"


class NavigationSession(BaseModel):
    model_config = ConfigDict(frozen=True)

    route_set: Optional[RouteSet] = None
    confirmed: bool = False
    tracking: bool = False

    @property
    def state(self) -> SessionState:
        if not self.confirmed:
            return SessionState.PLANNING
        return SessionState.TRACKING if self.tracking else SessionState.CONFIRMED


def with_route_set(session: NavigationSession, route_set: Optional[RouteSet]) -> NavigationSession:
    """Replace the planning route set wholesale (fresh calculation or failure)."""
    if session.confirmed:
        raise SessionStateError("cannot replace the route of a confirmed session; cancel first")
    return NavigationSession(route_set=route_set)


def confirm(session: NavigationSession, selected: RouteSet) -> NavigationSession:
    """Planning → Confirmed(tracking=False) with the selected route set."""
    if session.confirmed:
        raise SessionStateError("route already confirmed")
    if session.route_set is None:
        raise SessionStateError("no route to confirm")
    return NavigationSession(route_set=selected, confirmed=True, tracking=False)


def start_tracking(session: NavigationSession) -> NavigationSession:
    if session.state is not SessionState.CONFIRMED:
        raise SessionStateError(f"cannot start tracking while {session.state.value}")
    return session.model_copy(update={"tracking": True})


def cancel(session: NavigationSession) -> NavigationSession:
    """Confirmed(*) → Planning. The confirmed route is discarded."""
    if not session.confirmed:
        raise SessionStateError("no confirmed route to cancel")
    return NavigationSession()


def clear(session: NavigationSession) -> NavigationSession:
    return NavigationSession()
