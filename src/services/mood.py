from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Tuple

from models import MoodCategory, PlaceRecord

CHILL_MAX = 33
HYPE_MIN = 67
UNKNOWN_TYPE_SCORE = 50
MAX_TEXT_ADJUSTMENT = 20
KEYWORD_WEIGHT = 5

TYPE_BASELINES: Dict[str, int] = {
    "night_club": 90,
    "amusement_park": 88,
    "casino": 87,
    "bar": 85,
    "stadium": 85,
    "bowling_alley": 82,
    "tourist_attraction": 75,
    "zoo": 73,
    "gym": 72,
    "aquarium": 71,
    "shopping_mall": 70,
    "movie_theater": 68,
    "restaurant": 55,
    "supermarket": 52,
    "store": 50,
    "establishment": 50,
    "pharmacy": 48,
    "school": 45,
    "gas_station": 45,
    "post_office": 43,
    "bank": 42,
    "hospital": 40,
    "park": 38,
    "cafe": 35,
    "art_gallery": 32,
    "museum": 30,
    "church": 28,
    "book_store": 25,
    "spa": 25,
    "library": 20,
}

HYPE_OVERRIDE_TYPES = frozenset({"night_club", "bar", "casino", "amusement_park", "stadium", "bowling_alley"})
CHILL_OVERRIDE_TYPES = frozenset({"park", "library", "spa", "museum", "book_store", "church", "art_gallery"})

HYPE_KEYWORDS: Tuple[str, ...] = (
    "energetic", "exciting", "lively", "thrilling", "dynamic", "vibrant", "buzzing",
    "electric", "amazing", "incredible", "party", "loud", "crowded", "dance", "live music",
)
CHILL_KEYWORDS: Tuple[str, ...] = (
    "peaceful", "relaxing", "calm", "tranquil", "serene", "quiet", "cozy", "mellow",
    "laid-back", "low-key", "intimate", "soothing", "zen", "gentle",
)


@dataclass(frozen=True)
class MoodScore:
    score: int
    category: MoodCategory


def mood_category(score: float) -> MoodCategory:
    if score <= CHILL_MAX:
        return MoodCategory.CHILL
    if score >= HYPE_MIN:
        return MoodCategory.HYPE
    return MoodCategory.NEUTRAL


def _baseline(types: Iterable[str], primary_type: Optional[str]) -> float:
    weighted: list[Tuple[int, int]] = []
    for t in types:
        weight = 2 if t == primary_type else 1
        weighted.append((TYPE_BASELINES.get(t, UNKNOWN_TYPE_SCORE), weight))
    if primary_type and primary_type not in set(types):
        weighted.append((TYPE_BASELINES.get(primary_type, UNKNOWN_TYPE_SCORE), 2))
    if not weighted:
        return float(UNKNOWN_TYPE_SCORE)
    total = sum(score * weight for score, weight in weighted)
    return total / sum(weight for _, weight in weighted)


def _text_adjustment(text: str) -> float:
    if not text:
        return 0.0
    lower = text.lower()
    hype_hits = sum(1 for kw in HYPE_KEYWORDS if kw in lower)
    chill_hits = sum(1 for kw in CHILL_KEYWORDS if kw in lower)
    raw = (hype_hits - chill_hits) * KEYWORD_WEIGHT
    return float(max(-MAX_TEXT_ADJUSTMENT, min(MAX_TEXT_ADJUSTMENT, raw)))


def score_mood(types: Iterable[str], text: str = "", primary_type: Optional[str] = None) -> MoodScore:
    """Energy score in [0, 100] from place types and descriptive text.

    The type baseline is nudged by at most +/-20 from atmosphere keywords. A
    hype override type pins the result into the hype band and a chill override
    type into the chill band, whatever the text says. Hype wins if a place
    carries both.
    """
    type_list = [t for t in (types or ()) if t]
    score = _baseline(type_list, primary_type) + _text_adjustment(text or "")

    type_set = set(type_list)
    if primary_type:
        type_set.add(primary_type)
    if type_set & HYPE_OVERRIDE_TYPES:
        score = max(HYPE_MIN, score)
    elif type_set & CHILL_OVERRIDE_TYPES:
        score = min(CHILL_MAX, score)

    value = int(round(max(0.0, min(100.0, score))))
    return MoodScore(score=value, category=mood_category(value))


class MoodScorer:
    def score(self, record: PlaceRecord) -> MoodScore:
        text = " ".join(filter(None, [record.name, record.summary]))
        return score_mood(sorted(record.types), text, record.primary_type)

    def enrich(self, record: PlaceRecord) -> PlaceRecord:
        result = self.score(record)
        return dataclasses.replace(record, mood_score=result.score, mood_category=result.category)
