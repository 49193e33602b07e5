"""FastAPI surface for the supmap routing engine.

Run with:  uvicorn supmap.api:app
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from supmap.bridge.handler import outcome_message
from supmap.bridge.messages import CenterMap, encode_command
from supmap.cache.redis_client import redis_available
from supmap.cache.search_cache import SearchCache
from supmap.config import default_location, settings
from supmap.core.errors import (
    EmptyGeometryError,
    FetchTimeoutError,
    IdenticalEndpointsError,
    IndexOutOfRangeError,
    InvalidRouteError,
    NetworkError,
    OutOfServiceAreaError,
    SupmapError,
)
from supmap.core.models import Coordinate, PlaceResult, RouteSet, TransportMode
from supmap.core.orchestrator import RouteOrchestrator
from supmap.core.planner import TripPlanner
from supmap.providers.backend import BackendClient
from supmap.providers.geocode import GeocodeProvider, PlaceSearch
from supmap.providers.routing import RoutingProvider

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [supmap] %(levelname)s %(message)s",
)
log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await close_singletons()


app = FastAPI(title="supmap", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Module-level singletons (the search cache persists across requests)
# ---------------------------------------------------------------------------
_singletons: Dict[str, Any] = {}


def get_orchestrator() -> RouteOrchestrator:
    if "orchestrator" not in _singletons:
        _singletons["orchestrator"] = RouteOrchestrator(RoutingProvider())
    return _singletons["orchestrator"]


def get_place_search() -> PlaceSearch:
    if "search" not in _singletons:
        cache = SearchCache(shared_ttl=settings.ttl_geocode if settings.redis_url else None)
        _singletons["search"] = PlaceSearch(GeocodeProvider(), cache)
    return _singletons["search"]


def get_backend() -> Optional[BackendClient]:
    if not settings.backend_url:
        return None
    if "backend" not in _singletons:
        _singletons["backend"] = BackendClient()
    return _singletons["backend"]


async def close_singletons() -> None:
    """Close the HTTP clients held by the module-level singletons."""
    orchestrator = _singletons.pop("orchestrator", None)
    if orchestrator is not None:
        await orchestrator.provider.aclose()
    search = _singletons.pop("search", None)
    if search is not None:
        await search.geocoder.aclose()
    backend = _singletons.pop("backend", None)
    if backend is not None:
        await backend.aclose()


_STATUS_BY_ERROR = [
    (IdenticalEndpointsError, 400),
    (OutOfServiceAreaError, 422),
    (EmptyGeometryError, 422),
    (IndexOutOfRangeError, 422),
    (FetchTimeoutError, 504),
    (InvalidRouteError, 502),
    (NetworkError, 502),
]


def _http_error(exc: SupmapError) -> HTTPException:
    for cls, status in _STATUS_BY_ERROR:
        if isinstance(exc, cls):
            return HTTPException(status_code=status, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))


def _parse_latlon(text: str) -> Coordinate:
    lat, lon = (float(part) for part in text.split(","))
    return Coordinate(latitude=lat, longitude=lon)


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

class CalculateRouteRequest(BaseModel):
    start: Coordinate
    end: Coordinate
    mode: str = "auto"
    avoid_tolls: bool = False


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@app.get("/health")
def health():
    return {"status": "ok", "redis": redis_available(), "backend": bool(settings.backend_url)}


@app.get("/places/search", response_model=List[PlaceResult])
async def search_places(
    q: str = Query("", description="Free-text place query"),
    search: PlaceSearch = Depends(get_place_search),
):
    try:
        return await search.lookup(q)
    except SupmapError as e:
        raise _http_error(e)


@app.post("/routes/calculate", response_model=RouteSet)
async def calculate_route(
    req: CalculateRouteRequest,
    orchestrator: RouteOrchestrator = Depends(get_orchestrator),
):
    try:
        return await orchestrator.calculate_route(
            req.start, req.end, TransportMode.from_app_mode(req.mode), req.avoid_tolls
        )
    except SupmapError as e:
        raise _http_error(e)


@app.websocket("/map")
async def map_bridge(
    ws: WebSocket,
    start: Optional[str] = None,
    end: Optional[str] = None,
    mode: str = "auto",
    orchestrator: RouteOrchestrator = Depends(get_orchestrator),
    backend: Optional[BackendClient] = Depends(get_backend),
):
    """Map bridge endpoint: commands go out as JSON text, taps come in as events."""
    await ws.accept()

    async def send(cmd) -> None:
        await ws.send_text(encode_command(cmd))

    planner = TripPlanner(
        orchestrator, sink=send, backend=backend, mode=TransportMode.from_app_mode(mode)
    )
    try:
        await send(CenterMap(coordinate=default_location()))
        if start and end:
            try:
                await planner.set_start(_parse_latlon(start))
                await planner.set_end(_parse_latlon(end))
            except (SupmapError, ValueError) as exc:
                await ws.send_json({"type": "error", "reason": str(exc)})

        while True:
            raw = await ws.receive_text()
            outcome = await planner.handle_map_message(raw)
            await ws.send_json(outcome_message(outcome))
    except WebSocketDisconnect:
        log.info("Map surface disconnected")
    finally:
        await planner.aclose()
