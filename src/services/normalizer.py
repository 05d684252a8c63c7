from __future__ import annotations

import math
from dataclasses import asdict
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Type, TypeVar, Union

from config import Configuration
from models import (
    Budget,
    Category,
    Coordinates,
    DiscoveryFilters,
    MoodCategory,
    SearchQueryDescriptor,
    SocialContext,
    TimeOfDay,
)
from services.mood import mood_category
from utils import clamp

E = TypeVar("E", bound=Enum)

MOOD_MIN, MOOD_MAX, MOOD_DEFAULT = 0, 100, 50
DISTANCE_MIN_KM, DISTANCE_MAX_KM = 1.0, 50.0


class InvalidFilterError(ValueError):
    pass


CATEGORY_KEYWORDS: Dict[Category, Tuple[str, ...]] = {
    Category.FOOD: ("restaurant", "cafe", "food"),
    Category.ACTIVITY: ("activity", "entertainment", "things to do"),
    Category.SOMETHING_NEW: ("new", "unique", "hidden gem"),
}

CATEGORY_PLACE_TYPES: Dict[Category, Tuple[str, ...]] = {
    Category.FOOD: (
        "restaurant", "cafe", "bar", "bakery", "food", "meal_delivery", "meal_takeaway",
        "night_club", "liquor_store", "convenience_store", "supermarket", "coffee_shop",
    ),
    Category.ACTIVITY: (
        "park", "museum", "art_gallery", "movie_theater", "stadium", "casino", "gym", "spa",
        "bowling_alley", "amusement_park", "zoo", "aquarium", "golf_course", "skate_park",
        "swimming_pool", "playground", "tourist_attraction", "book_store", "shopping_mall",
        "library", "hindu_temple", "church", "mosque", "synagogue", "rv_park", "campground",
    ),
    Category.SOMETHING_NEW: (
        "restaurant", "cafe", "bar", "bakery", "food", "night_club", "park", "museum",
        "art_gallery", "movie_theater", "stadium", "casino", "gym", "spa", "bowling_alley",
        "amusement_park", "zoo", "aquarium", "golf_course", "skate_park", "swimming_pool",
        "tourist_attraction", "shopping_mall", "book_store", "library", "campground",
    ),
}

MOOD_LABELS: Dict[MoodCategory, Tuple[str, ...]] = {
    MoodCategory.CHILL: ("chill", "relaxing"),
    MoodCategory.NEUTRAL: ("casual",),
    MoodCategory.HYPE: ("lively", "energetic"),
}

SOCIAL_KEYWORDS: Dict[SocialContext, Tuple[str, ...]] = {
    SocialContext.SOLO: ("quiet",),
    SocialContext.PAIRED: ("romantic", "cozy"),
    SocialContext.GROUP: ("group friendly",),
}

BUDGET_PRICE_LEVELS: Dict[Budget, Tuple[int, ...]] = {
    Budget.LOW: (0, 1),
    Budget.MID: (2,),
    Budget.HIGH: (3, 4),
}

# (start_hour, end_hour); night wraps past midnight
TIME_OF_DAY_WINDOWS: Dict[TimeOfDay, Tuple[int, int]] = {
    TimeOfDay.MORNING: (5, 11),
    TimeOfDay.AFTERNOON: (11, 17),
    TimeOfDay.NIGHT: (17, 3),
}

_ALIASES: Dict[Type[Enum], Dict[str, str]] = {
    Category: {"something_new": "something-new", "somethingnew": "something-new", "new": "something-new"},
    SocialContext: {"with-bae": "paired", "with_bae": "paired", "couple": "paired", "barkada": "group"},
    Budget: {"p": "low", "pp": "mid", "ppp": "high"},
    TimeOfDay: {"evening": "night"},
}

_FIELD_KEYS = {
    "category": ("category", "lookingFor", "looking_for"),
    "mood": ("mood",),
    "social_context": ("social_context", "socialContext"),
    "budget": ("budget",),
    "time_of_day": ("time_of_day", "timeOfDay"),
    "distance_range_km": ("distance_range_km", "distanceRangeKm", "distanceRange"),
    "user_location": ("user_location", "userLocation"),
}


def _coerce_enum(enum_cls: Type[E], value: Any) -> Optional[E]:
    if value is None:
        return None
    if isinstance(value, enum_cls):
        return value
    if not isinstance(value, str):
        return None
    key = value.strip().lower()
    key = _ALIASES.get(enum_cls, {}).get(key, key)
    for member in enum_cls:
        if member.value == key:
            return member
    return None


def _coerce_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _coerce_location(value: Any) -> Optional[Coordinates]:
    lat: Any = None
    lng: Any = None
    if isinstance(value, Coordinates):
        lat, lng = value.lat, value.lng
    elif isinstance(value, Mapping):
        lat = value.get("lat", value.get("latitude"))
        lng = value.get("lng", value.get("lon", value.get("longitude")))
    elif isinstance(value, (tuple, list)) and len(value) == 2:
        lat, lng = value
    lat_f = _coerce_number(lat)
    lng_f = _coerce_number(lng)
    if lat_f is None or lng_f is None:
        return None
    if not (-90.0 <= lat_f <= 90.0 and -180.0 <= lng_f <= 180.0):
        return None
    return Coordinates(lat=lat_f, lng=lng_f)


def _raw_fields(raw: Union[DiscoveryFilters, Mapping[str, Any]]) -> Dict[str, Any]:
    if isinstance(raw, DiscoveryFilters):
        # asdict would turn Coordinates into a dict; keep the object
        data = asdict(raw)
        data["user_location"] = raw.user_location
        return data
    out: dict[str, Any] = {}
    for name, keys in _FIELD_KEYS.items():
        for key in keys:
            if key in raw:
                out[name] = raw[key]
                break
    return out


def normalize_filters(raw: Union[DiscoveryFilters, Mapping[str, Any]], cfg: Configuration) -> DiscoveryFilters:
    """Validate raw filter values into a canonical ``DiscoveryFilters``.

    Numeric fields are clamped into their legal ranges, enum fields are matched
    against their allow-lists and anything unrecognized becomes unset. Only a
    missing or unknown category is an error.
    """
    data = _raw_fields(raw)

    category = _coerce_enum(Category, data.get("category"))
    if category is None:
        raise InvalidFilterError("category is required to start discovery")

    mood = _coerce_number(data.get("mood"))
    mood_value = MOOD_DEFAULT if mood is None else int(round(clamp(mood, MOOD_MIN, MOOD_MAX)))

    default_km = cfg.start_radius_m / 1000.0
    distance = _coerce_number(data.get("distance_range_km"))
    distance_km = default_km if distance is None else distance
    distance_km = clamp(distance_km, DISTANCE_MIN_KM, DISTANCE_MAX_KM)

    return DiscoveryFilters(
        category=category,
        mood=mood_value,
        social_context=_coerce_enum(SocialContext, data.get("social_context")),
        budget=_coerce_enum(Budget, data.get("budget")),
        time_of_day=_coerce_enum(TimeOfDay, data.get("time_of_day")),
        distance_range_km=float(distance_km),
        user_location=_coerce_location(data.get("user_location")),
    )


def _unique(items: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(item for item in items if item))


def build_search_phrase(filters: DiscoveryFilters, relaxed: Iterable[str] = ()) -> str:
    relaxed_set = set(relaxed)
    terms: list[str] = []
    if filters.category is not None:
        terms.extend(CATEGORY_KEYWORDS[filters.category])
    if "mood" not in relaxed_set:
        terms.extend(MOOD_LABELS[mood_category(filters.mood)])
    if filters.social_context is not None and "socialContext" not in relaxed_set:
        terms.extend(SOCIAL_KEYWORDS[filters.social_context])
    return " ".join(_unique(terms))


def price_levels_for(filters: DiscoveryFilters, relaxed: Iterable[str] = ()) -> Tuple[int, ...]:
    if filters.budget is None or "budget" in set(relaxed):
        return ()
    return BUDGET_PRICE_LEVELS[filters.budget]


def build_query_descriptor(
    filters: DiscoveryFilters,
    radius_m: float,
    cfg: Configuration,
    relaxed: Iterable[str] = (),
) -> SearchQueryDescriptor:
    relaxed = tuple(relaxed)
    included: Tuple[str, ...] = ()
    if filters.category is not None:
        included = tuple(sorted(CATEGORY_PLACE_TYPES[filters.category]))
    return SearchQueryDescriptor(
        text_query=build_search_phrase(filters, relaxed),
        included_types=included,
        price_levels=price_levels_for(filters, relaxed),
        radius_m=int(round(radius_m)),
        center=filters.user_location,
        region_code=cfg.places_region_code,
        language=cfg.places_language,
    )
