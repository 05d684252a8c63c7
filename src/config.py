from __future__ import annotations

import os
from typing import Any, List, Optional

from pydantic import BaseModel, Field, field_validator

from models import RegionBounds
from utils import mask_secret

RELAXABLE_FILTERS = ("budget", "mood", "socialContext", "timeOfDay")

# Philippines, rough bounding box: south, west, north, east
DEFAULT_REGION_BOUNDS = (4.5, 116.9, 21.5, 126.6)


class Configuration(BaseModel):
    # Google Places (Text Search v1)
    places_api_key: Optional[str] = Field(default=None)
    places_base_url: str = Field(default="https://places.googleapis.com")
    places_timeout: int = Field(default=15)
    places_max_results: int = Field(default=20)
    places_language: str = Field(default="en")
    places_region_code: Optional[str] = Field(default="PH")
    # None disables the bounding check
    region_bounds: Optional[tuple[float, float, float, float]] = Field(default=DEFAULT_REGION_BOUNDS)

    # Expansion
    min_results: int = Field(default=5)
    start_radius_m: int = Field(default=5000)
    max_radius_m: int = Field(default=50000)
    max_expansions: int = Field(default=3)
    growth_factor: float = Field(default=1.5)

    # Pool
    batch_size: int = Field(default=20)
    refill_threshold: int = Field(default=5)

    # Request cache
    cache_ttl_sec: int = Field(default=300)
    cache_max_entries: int = Field(default=32)

    # Matching / relaxation
    mood_tolerance: int = Field(default=40)
    relaxation_order: List[str] = Field(default_factory=lambda: list(RELAXABLE_FILTERS))

    # Photos
    max_photos: int = Field(default=5)
    min_photos: int = Field(default=3)

    # Host
    session_ttl_sec: int = Field(default=3600)

    @field_validator("relaxation_order", mode="before")
    @classmethod
    def _parse_relaxation_order(cls, value: Any) -> List[str]:
        if isinstance(value, str):
            value = [part.strip() for part in value.split(",") if part.strip()]
        order = list(value or [])
        unknown = [name for name in order if name not in RELAXABLE_FILTERS]
        if unknown:
            raise ValueError(f"unrelaxable filters in RELAXATION_ORDER: {', '.join(unknown)}")
        return list(dict.fromkeys(order))

    @field_validator("region_bounds", mode="before")
    @classmethod
    def _parse_region_bounds(cls, value: Any) -> Any:
        if isinstance(value, str):
            if value.strip().lower() in {"", "none", "off"}:
                return None
            parts = [float(p) for p in value.split(",")]
            if len(parts) != 4:
                raise ValueError("REGION_BOUNDS must be 'south,west,north,east'")
            return tuple(parts)
        return value

    @field_validator("growth_factor")
    @classmethod
    def _check_growth(cls, value: float) -> float:
        if value <= 1.0:
            raise ValueError("growth_factor must be greater than 1")
        return value

    @classmethod
    def from_env(cls, overrides: Optional[dict[str, Any]] = None) -> "Configuration":
        raw: dict[str, Any] = {}

        env_map = {
            "places_api_key": os.getenv("GOOGLE_PLACES_API_KEY"),
            "places_base_url": os.getenv("PLACES_BASE_URL"),
            "places_timeout": os.getenv("PLACES_TIMEOUT"),
            "places_max_results": os.getenv("PLACES_MAX_RESULTS"),
            "places_language": os.getenv("PLACES_LANGUAGE"),
            "places_region_code": os.getenv("PLACES_REGION_CODE"),
            "region_bounds": os.getenv("REGION_BOUNDS"),
            "min_results": os.getenv("MIN_RESULTS"),
            "start_radius_m": os.getenv("START_RADIUS_M"),
            "max_radius_m": os.getenv("MAX_RADIUS_M"),
            "max_expansions": os.getenv("MAX_EXPANSIONS"),
            "growth_factor": os.getenv("GROWTH_FACTOR"),
            "batch_size": os.getenv("BATCH_SIZE"),
            "refill_threshold": os.getenv("REFILL_THRESHOLD"),
            "cache_ttl_sec": os.getenv("CACHE_TTL_SEC"),
            "cache_max_entries": os.getenv("CACHE_MAX_ENTRIES"),
            "mood_tolerance": os.getenv("MOOD_TOLERANCE"),
            "relaxation_order": os.getenv("RELAXATION_ORDER"),
            "max_photos": os.getenv("MAX_PHOTOS"),
            "min_photos": os.getenv("MIN_PHOTOS"),
            "session_ttl_sec": os.getenv("SESSION_TTL_SEC"),
        }

        for k, v in env_map.items():
            if v is None:
                continue
            raw[k] = v

        if overrides:
            raw.update({k: v for k, v in overrides.items() if v is not None})

        return cls(**raw)

    def require_places_key(self) -> None:
        if not self.places_api_key:
            raise ValueError("GOOGLE_PLACES_API_KEY is required")

    def bounds(self) -> Optional[RegionBounds]:
        if self.region_bounds is None:
            return None
        south, west, north, east = self.region_bounds
        return RegionBounds(south=south, west=west, north=north, east=east)

    def log_summary(self) -> str:
        return (
            "places=%s base=%s timeout=%s max_results=%s region=%s radius=%s..%s expansions=%s api_key=%s"
            % (
                bool(self.places_api_key),
                self.places_base_url,
                self.places_timeout,
                self.places_max_results,
                self.places_region_code,
                self.start_radius_m,
                self.max_radius_m,
                self.max_expansions,
                mask_secret(self.places_api_key),
            )
        )
