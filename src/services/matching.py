from __future__ import annotations

from typing import Collection, Iterable, List, Optional

from config import Configuration
from models import DiscoveryFilters, OpeningPeriod, PlaceRecord, TimeOfDay
from services.normalizer import BUDGET_PRICE_LEVELS, CATEGORY_PLACE_TYPES, TIME_OF_DAY_WINDOWS

MINUTES_PER_DAY = 24 * 60
MINUTES_PER_WEEK = 7 * MINUTES_PER_DAY


def matches_category(record: PlaceRecord, filters: DiscoveryFilters) -> bool:
    if filters.category is None:
        return True
    types = set(record.types)
    if record.primary_type:
        types.add(record.primary_type)
    if not types:
        return True
    return bool(types & set(CATEGORY_PLACE_TYPES[filters.category]))


def matches_budget(record: PlaceRecord, filters: DiscoveryFilters) -> bool:
    if filters.budget is None or record.price_level is None:
        return True
    return record.price_level in BUDGET_PRICE_LEVELS[filters.budget]


def matches_mood(record: PlaceRecord, filters: DiscoveryFilters, tolerance: int) -> bool:
    return abs(record.mood_score - filters.mood) <= tolerance


def _window_minutes(time_of_day: TimeOfDay) -> tuple[int, int]:
    start_h, end_h = TIME_OF_DAY_WINDOWS[time_of_day]
    start = start_h * 60
    end = end_h * 60
    if end <= start:
        end += MINUTES_PER_DAY
    return start, end


def _period_overlaps(period: OpeningPeriod, start: int, end: int) -> bool:
    # Google reports "open 24 hours" as a single period with no close
    if period.close_day is None or period.close_minute is None:
        return True
    opened = period.open_day * MINUTES_PER_DAY + period.open_minute
    closed = period.close_day * MINUTES_PER_DAY + period.close_minute
    if closed <= opened:
        closed += MINUTES_PER_WEEK
    # two weeks of windows cover periods that wrap past Saturday
    for day in range(14):
        w_start = day * MINUTES_PER_DAY + start
        w_end = day * MINUTES_PER_DAY + end
        if w_start < closed and opened < w_end:
            return True
    return False


def matches_time_of_day(record: PlaceRecord, filters: DiscoveryFilters) -> bool:
    if filters.time_of_day is None or not record.opening_periods:
        return True
    start, end = _window_minutes(filters.time_of_day)
    return any(_period_overlaps(p, start, end) for p in record.opening_periods)


def rejection_reason(
    record: PlaceRecord,
    filters: DiscoveryFilters,
    relaxed: Collection[str],
    cfg: Configuration,
) -> Optional[str]:
    if not matches_category(record, filters):
        return "category"
    if "budget" not in relaxed and not matches_budget(record, filters):
        return "budget"
    if "mood" not in relaxed and not matches_mood(record, filters, cfg.mood_tolerance):
        return "mood"
    if "timeOfDay" not in relaxed and not matches_time_of_day(record, filters):
        return "timeOfDay"
    return None


def match_filters(
    records: Iterable[PlaceRecord],
    filters: DiscoveryFilters,
    relaxed: Collection[str],
    cfg: Configuration,
) -> List[PlaceRecord]:
    """Keep the records that satisfy every active, unrelaxed filter dimension."""
    relaxed = set(relaxed)
    return [r for r in records if rejection_reason(r, filters, relaxed, cfg) is None]
