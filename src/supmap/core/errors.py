"""Error taxonomy for the routing engine.

Every error carries a human-readable ``reason`` so callers can always show a
specific message instead of a generic failure.
"""
from __future__ import annotations

from typing import Optional


class SupmapError(Exception):
    """Base class for all engine errors."""

    reason = "unexpected error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.reason)


# ── Route orchestration ──────────────────────────────────────────────────

class RouteError(SupmapError):
    reason = "route calculation failed"


class IdenticalEndpointsError(RouteError):
    reason = "start and destination are identical"


class OutOfServiceAreaError(RouteError):
    reason = "outside the service area"


class InvalidRouteError(RouteError):
    reason = "no valid route data"


class IndexOutOfRangeError(RouteError):
    reason = "no route at that index"


class EmptyGeometryError(RouteError):
    reason = "route has no coordinates inside the service area"


# ── Polyline decoding ────────────────────────────────────────────────────

class MalformedEncodingError(SupmapError):
    reason = "malformed polyline encoding"


# ── Network ──────────────────────────────────────────────────────────────

class FetchTimeoutError(SupmapError, TimeoutError):
    reason = "request timed out"


class NetworkError(SupmapError):
    reason = "network request failed"


# ── Map bridge / session ─────────────────────────────────────────────────

class MalformedInboundMessageError(SupmapError):
    reason = "unreadable message from the map"


class SessionStateError(SupmapError):
    reason = "action not allowed in the current navigation state"
