"""Client for the backend REST API (incidents and route history).

Every call goes through the resilient fetch layer with bearer-token auth.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from supmap.config import settings
from supmap.core.errors import NetworkError
from supmap.core.models import Coordinate, Incident, TransportMode
from supmap.providers.http import HTTPClient

log = logging.getLogger(__name__)

DEFAULT_EXPECTED_DURATION_MIN = 1440


def _incident(row: Any, what: str) -> Incident:
    if not isinstance(row, dict):
        raise NetworkError(f"{what}: expected an incident object, got {type(row).__name__}")
    try:
        return Incident.from_api(row)
    except (KeyError, TypeError, ValueError) as e:
        raise NetworkError(f"{what}: unreadable incident: {e}") from e


class BackendClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        base = base_url if base_url is not None else settings.backend_url
        if not base:
            raise ValueError("Backend URL not set. Set SUPMAP_BACKEND_URL.")
        tok = token if token is not None else settings.backend_token
        headers = {"Content-Type": "application/json"}
        if tok:
            headers["Authorization"] = f"Bearer {tok}"
        self.http = HTTPClient(
            user_agent=settings.user_agent,
            base_url=base,
            timeout_s=settings.search_timeout_s,
            max_retries=settings.fetch_max_retries,
            initial_delay_s=settings.fetch_initial_delay_s,
            headers=headers,
            transport=transport,
        )

    # ── Incidents ────────────────────────────────────────────────────────

    async def create_incident(
        self,
        location: Coordinate,
        kind: str,
        description: Optional[str] = None,
        expected_duration_min: int = DEFAULT_EXPECTED_DURATION_MIN,
    ) -> Incident:
        row = await self.http.post_json(
            "/api/incident",
            {
                "latitude": location.latitude,
                "longitude": location.longitude,
                "type": kind,
                "description": description or kind,
                "expectedDuration": expected_duration_min,
            },
        )
        return _incident(row, "create incident")

    async def vote_incident(self, incident_id: int, vote: int) -> Dict[str, int]:
        if vote not in (1, -1):
            raise ValueError("vote must be +1 or -1")
        return await self.http.post_json(f"/api/incident/{incident_id}/vote", {"vote": vote})

    async def set_incident_status(self, incident_id: int, is_active: bool) -> Dict[str, Any]:
        return await self.http.put_json(
            f"/api/incident/{incident_id}/status", {"isActive": is_active}
        )

    async def nearby_incidents(
        self,
        center: Coordinate,
        radius_km: Optional[float] = None,
        types: Optional[List[str]] = None,
    ) -> List[Incident]:
        rows = await self.http.get_json(
            "/api/incident/nearby",
            params={
                "latitude": center.latitude,
                "longitude": center.longitude,
                "radius": settings.nearby_incident_radius_km if radius_km is None else radius_km,
                "types": ",".join(types) if types else None,
            },
        )
        if rows is None:
            return []
        if not isinstance(rows, list):
            raise NetworkError(f"nearby incidents: expected a list, got {type(rows).__name__}")
        out: List[Incident] = []
        for row in rows:
            try:
                out.append(_incident(row, "nearby incidents"))
            except NetworkError as exc:
                log.warning("Skipping incident row: %s", exc)
        return out

    async def get_incident(self, incident_id: int) -> Incident:
        row = await self.http.get_json(f"/api/incident/{incident_id}")
        return _incident(row, f"incident {incident_id}")

    # ── Route history ────────────────────────────────────────────────────

    async def record_route_calculation(
        self,
        start: Coordinate,
        end: Coordinate,
        mode: TransportMode,
        avoid_tolls: bool,
    ) -> Any:
        return await self.http.post_json(
            "/api/route/calculate",
            {
                "startLatitude": start.latitude,
                "startLongitude": start.longitude,
                "endLatitude": end.latitude,
                "endLongitude": end.longitude,
                "transportMode": mode.value,
                "avoidTolls": avoid_tolls,
            },
        )

    async def aclose(self) -> None:
        await self.http.aclose()
