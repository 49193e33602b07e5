"""Centralized settings for the supmap routing engine."""
from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_prefix": "SUPMAP_"}

    # Routing provider (Valhalla-compatible /route endpoint)
    routing_url: str = "http://localhost:8002"
    route_language: str = "fr-FR"
    route_alternates: int = 2
    route_max_length_km: float = 100.0  # longer summaries are treated as error payloads

    # Geocoding provider (Nominatim-compatible /search endpoint)
    geocode_url: str = "https://nominatim.openstreetmap.org"
    geocode_region_suffix: str = ", Lyon, France"
    geocode_limit: int = 5

    # Backend incident/route API; empty string means disabled
    backend_url: str = ""
    backend_token: str = ""

    user_agent: str = "supmap/0.1.0"

    # Resilient fetch
    route_timeout_s: float = 10.0
    search_timeout_s: float = 10.0
    fetch_max_retries: int = 2
    fetch_initial_delay_s: float = 0.5
    search_debounce_s: float = 0.3

    # Matching
    on_route_threshold_m: float = 50.0
    incident_epsilon_deg: float = 1e-5
    nearby_incident_radius_km: float = 20.0

    # Service area (Lyon) and default map centre
    area_south: float = 45.65
    area_west: float = 4.70
    area_north: float = 45.85
    area_east: float = 5.00
    default_lat: float = 45.759
    default_lon: float = 4.845

    # Redis; empty string means disabled
    redis_url: str = ""
    ttl_geocode: int = 86400  # 24 h

    log_level: str = "INFO"


settings = Settings()


@lru_cache(maxsize=1)
def service_area():
    """Process-wide ServiceArea built once from the configured bounds."""
    from supmap.core.models import Coordinate, ServiceArea

    return ServiceArea(
        south_west=Coordinate(latitude=settings.area_south, longitude=settings.area_west),
        north_east=Coordinate(latitude=settings.area_north, longitude=settings.area_east),
    )


def default_location():
    from supmap.core.models import Coordinate

    return Coordinate(latitude=settings.default_lat, longitude=settings.default_lon)
