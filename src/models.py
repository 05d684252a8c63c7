"""Data models for the place discovery engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, List, Optional, Tuple


class Category(str, Enum):
    FOOD = "food"
    ACTIVITY = "activity"
    SOMETHING_NEW = "something-new"


class SocialContext(str, Enum):
    SOLO = "solo"
    PAIRED = "paired"
    GROUP = "group"


class Budget(str, Enum):
    LOW = "low"
    MID = "mid"
    HIGH = "high"


class TimeOfDay(str, Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"
    NIGHT = "night"


class MoodCategory(str, Enum):
    CHILL = "chill"
    NEUTRAL = "neutral"
    HYPE = "hype"


class LoadingState(str, Enum):
    INITIAL = "initial"
    SEARCHING = "searching"
    EXPANDING_DISTANCE = "expanding-distance"
    LIMIT_REACHED = "limit-reached"  # complete, but stopped at the configured ceiling
    COMPLETE = "complete"
    ERROR = "error"


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    SUCCESS = "success"


@dataclass(frozen=True)
class Coordinates:
    lat: float
    lng: float


@dataclass(frozen=True)
class RegionBounds:
    south: float
    west: float
    north: float
    east: float

    def contains(self, point: Coordinates) -> bool:
        return self.south <= point.lat <= self.north and self.west <= point.lng <= self.east


@dataclass(frozen=True)
class DiscoveryFilters:
    category: Optional[Category] = None
    mood: int = 50
    social_context: Optional[SocialContext] = None
    budget: Optional[Budget] = None
    time_of_day: Optional[TimeOfDay] = None
    distance_range_km: float = 5.0
    user_location: Optional[Coordinates] = None

    def active_dimensions(self) -> List[str]:
        """Wire names of the filter dimensions that carry a value."""
        names: list[str] = []
        if self.category is not None:
            names.append("category")
        names.append("mood")
        if self.budget is not None:
            names.append("budget")
        if self.social_context is not None:
            names.append("socialContext")
        if self.time_of_day is not None:
            names.append("timeOfDay")
        return names


@dataclass(frozen=True)
class OpeningPeriod:
    """One weekly opening window. Days are 0=Sunday..6=Saturday, times in minutes."""

    open_day: int
    open_minute: int
    close_day: Optional[int] = None
    close_minute: Optional[int] = None


@dataclass(frozen=True)
class PlacePhoto:
    url: str
    reference: Optional[str] = None
    width_px: int = 0
    height_px: int = 0
    attributions: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ContactInfo:
    phone: Optional[str] = None
    international_phone: Optional[str] = None
    website: Optional[str] = None
    maps_url: Optional[str] = None


@dataclass(frozen=True)
class PlaceRecord:
    id: str
    name: str
    address: Optional[str]
    coordinates: Coordinates
    rating: Optional[float] = None
    review_count: int = 0
    price_level: Optional[int] = None
    types: FrozenSet[str] = frozenset()
    primary_type: Optional[str] = None
    summary: Optional[str] = None
    mood_score: int = 50
    mood_category: MoodCategory = MoodCategory.NEUTRAL
    open_now: Optional[bool] = None
    opening_periods: Tuple[OpeningPeriod, ...] = ()
    photos: Tuple[PlacePhoto, ...] = ()
    contact: ContactInfo = field(default_factory=ContactInfo)


@dataclass(frozen=True)
class SearchQueryDescriptor:
    text_query: str
    included_types: Tuple[str, ...]
    price_levels: Tuple[int, ...]
    radius_m: int
    center: Optional[Coordinates] = None
    region_code: Optional[str] = None
    language: str = "en"


@dataclass
class ExpansionInfo:
    final_radius_m: int
    expansion_count: int
    total_places_found: int


@dataclass
class PoolInfo:
    remaining_places: int
    total_pool_size: int
    needs_refresh: bool


@dataclass
class RelaxationInfo:
    relaxed_filters: List[str]
    original_filters: List[str]
    message: str
    severity: Severity

    @property
    def is_relaxed(self) -> bool:
        return bool(self.relaxed_filters)


@dataclass
class DiscoveryResult:
    places: List[PlaceRecord]
    expansion_info: ExpansionInfo
    pool_info: PoolInfo
    loading_state: LoadingState
    relaxation: Optional[RelaxationInfo] = None
    state_trail: List[LoadingState] = field(default_factory=list)
    superseded: bool = False


@dataclass
class BatchResult:
    places: List[PlaceRecord]
    pool_info: PoolInfo
    loading_state: LoadingState
    expansion_info: Optional[ExpansionInfo] = None
    refilled: bool = False
    superseded: bool = False
