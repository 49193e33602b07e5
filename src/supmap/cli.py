from __future__ import annotations

import argparse
import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.table import Table

from supmap.cache.search_cache import SearchCache
from supmap.config import settings
from supmap.core.errors import SupmapError
from supmap.core.formatting import format_distance, format_duration, maneuver_icon
from supmap.core.models import PlaceResult, RouteSet, TransportMode
from supmap.core.orchestrator import RouteOrchestrator
from supmap.providers.geocode import GeocodeProvider, PlaceSearch
from supmap.providers.routing import RoutingProvider

log = logging.getLogger(__name__)


def _save_json(path: Path, obj) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(obj, indent=2), encoding="utf-8")


async def _first_place(search: PlaceSearch, query: str) -> Optional[PlaceResult]:
    results = await search.lookup(query)
    return results[0] if results else None


async def plan(
    origin: str, destination: str, mode: TransportMode, avoid_tolls: bool
) -> tuple[PlaceResult, PlaceResult, RouteSet]:
    geocoder = GeocodeProvider()
    routing = RoutingProvider()
    search = PlaceSearch(geocoder, SearchCache())
    try:
        start = await _first_place(search, origin)
        if start is None:
            raise SystemExit(f"No place found in the service area for {origin!r}")
        end = await _first_place(search, destination)
        if end is None:
            raise SystemExit(f"No place found in the service area for {destination!r}")

        orchestrator = RouteOrchestrator(routing)
        route_set = await orchestrator.calculate_route(
            start.location, end.location, mode, avoid_tolls
        )
        return start, end, route_set
    finally:
        await geocoder.aclose()
        await routing.aclose()


def main() -> None:
    ap = argparse.ArgumentParser(description="Plan a route between two places")
    ap.add_argument("origin", help="Start place, e.g. 'Place Bellecour'")
    ap.add_argument("destination", help="Destination place")
    ap.add_argument("--mode", default="auto", help="auto, motorcycle, bicycle, pedestrian, bus (or driving/walking/...)")
    ap.add_argument("--avoid-tolls", action="store_true")
    ap.add_argument("--steps", action="store_true", help="Print turn-by-turn steps of the recommended route")
    ap.add_argument("--debug", action="store_true")
    args = ap.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.debug else settings.log_level,
        format="%(asctime)s [supmap] %(levelname)s %(message)s",
    )

    console = Console()
    mode = TransportMode.from_app_mode(args.mode)
    try:
        start, end, route_set = asyncio.run(
            plan(args.origin, args.destination, mode, args.avoid_tolls)
        )
    except SupmapError as e:
        console.print(f"[red]Route failed:[/red] {e}")
        raise SystemExit(1)

    table = Table(title=f"{start.display_name} → {end.display_name} ({mode.value})")
    table.add_column("#")
    table.add_column("Time")
    table.add_column("Distance")
    table.add_column("Toll")
    table.add_column("Points")
    table.add_column("")

    for i, c in enumerate(route_set.candidates):
        table.add_row(
            str(i),
            format_duration(c.total_time_seconds),
            format_distance(c.total_length_km),
            "yes" if c.has_toll else "",
            str(len(c.geometry)),
            "recommended" if i == route_set.recommended_index else "",
        )
    console.print(table)

    if args.steps:
        steps = Table(title="Steps")
        steps.add_column("Icon")
        steps.add_column("Instruction")
        steps.add_column("Distance")
        for m in route_set.recommended.maneuvers:
            steps.add_row(maneuver_icon(m.kind), m.instruction_text, format_distance(m.length_km))
        console.print(steps)

    if args.debug:
        out = Path("trips") / "last_route_set.json"
        _save_json(out, route_set.model_dump(mode="json"))
        console.print(f"Saved: {out.resolve()}")


if __name__ == "__main__":
    main()
