from __future__ import annotations

import math
from typing import Dict, Iterable, List

from models import DiscoveryFilters, PlaceRecord, SocialContext
from utils import haversine_km

RELEVANCE_WEIGHT = 0.7
QUALITY_WEIGHT = 0.3
MAX_DISTANCE_PENALTY = 15.0

SOCIAL_TAGS: Dict[SocialContext, Iterable[str]] = {
    SocialContext.SOLO: ["quiet", "peaceful", "relaxing", "focused", "cozy", "library", "cafe", "book_store"],
    SocialContext.PAIRED: ["romantic", "intimate", "cozy", "elegant", "special", "fine dining", "wine"],
    SocialContext.GROUP: ["lively", "energetic", "fun", "social", "group", "bar", "bowling_alley", "karaoke"],
}


def _text(record: PlaceRecord) -> str:
    parts = [record.name, record.summary or "", " ".join(sorted(record.types))]
    return " ".join(parts).lower()


def _social_match(record: PlaceRecord, filters: DiscoveryFilters) -> bool:
    if filters.social_context is None:
        return False
    text = _text(record)
    return any(tag in text for tag in SOCIAL_TAGS[filters.social_context])


def relevance_score(record: PlaceRecord, filters: DiscoveryFilters) -> float:
    score = 0.0
    if record.rating is not None:
        score += record.rating / 5.0 * 30
    score += max(0.0, 1.0 - abs(record.mood_score - filters.mood) / 100.0) * 20
    if record.review_count > 0:
        score += min(10.0, math.log10(record.review_count) * 5)
    if _social_match(record, filters):
        score += 15
    if filters.user_location is not None:
        dist_km = haversine_km(
            filters.user_location.lat,
            filters.user_location.lng,
            record.coordinates.lat,
            record.coordinates.lng,
        )
        score -= min(dist_km, MAX_DISTANCE_PENALTY)
    return score


def quality_score(record: PlaceRecord) -> float:
    score = 0.0
    if record.rating is not None:
        score += record.rating / 5.0 * 40
    if record.review_count >= 1000:
        score += 20
    elif record.review_count >= 100:
        score += 15
    elif record.review_count >= 10:
        score += 10
    elif record.review_count > 0:
        score += 5
    if record.address:
        score += 5
    if record.opening_periods or record.open_now is not None:
        score += 5
    return score


def combined_score(record: PlaceRecord, filters: DiscoveryFilters) -> float:
    return RELEVANCE_WEIGHT * relevance_score(record, filters) + QUALITY_WEIGHT * quality_score(record)


def rank_places(records: Iterable[PlaceRecord], filters: DiscoveryFilters) -> List[PlaceRecord]:
    scored = [(round(combined_score(r, filters), 6), r) for r in records]
    scored.sort(key=lambda item: (-item[0], item[1].id))
    return [r for _, r in scored]
