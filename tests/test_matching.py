from __future__ import annotations

from models import OpeningPeriod
from services.matching import match_filters, matches_time_of_day, rejection_reason
from services.normalizer import normalize_filters
from fakes import place_at


def _ids(records) -> list:
    return [r.id for r in records]


def test_budget_allows_unknown_price(cfg) -> None:
    filters = normalize_filters({"category": "food", "budget": "low"}, cfg)
    records = [
        place_at("cheap", price_level=1),
        place_at("pricey", price_level=4),
        place_at("unknown", price_level=None),
    ]
    assert _ids(match_filters(records, filters, (), cfg)) == ["cheap", "unknown"]
    assert _ids(match_filters(records, filters, ("budget",), cfg)) == ["cheap", "pricey", "unknown"]


def test_mood_tolerance(cfg) -> None:
    filters = normalize_filters({"category": "food", "mood": 90}, cfg)
    records = [place_at("club", mood=88), place_at("edge", mood=50), place_at("library", mood=20)]
    assert _ids(match_filters(records, filters, (), cfg)) == ["club", "edge"]
    assert rejection_reason(records[2], filters, (), cfg) == "mood"
    assert _ids(match_filters(records, filters, ("mood",), cfg)) == ["club", "edge", "library"]


def test_category_is_never_relaxed(cfg) -> None:
    filters = normalize_filters({"category": "food"}, cfg)
    park = place_at("park", types=("park",))
    untyped = place_at("untyped", types=())
    relaxed_everything = ("budget", "mood", "socialContext", "timeOfDay")
    assert _ids(match_filters([park, untyped], filters, relaxed_everything, cfg)) == ["untyped"]
    assert rejection_reason(park, filters, relaxed_everything, cfg) == "category"


def test_time_of_day_overlap(cfg) -> None:
    breakfast = place_at("breakfast", opening_periods=(OpeningPeriod(1, 6 * 60, 1, 10 * 60),))
    late = place_at("late", opening_periods=(OpeningPeriod(5, 22 * 60, 6, 2 * 60),))
    always = place_at("always", opening_periods=(OpeningPeriod(0, 0),))
    no_hours = place_at("no-hours")

    morning = normalize_filters({"category": "food", "timeOfDay": "morning"}, cfg)
    night = normalize_filters({"category": "food", "timeOfDay": "night"}, cfg)

    assert matches_time_of_day(breakfast, morning)
    assert not matches_time_of_day(breakfast, night)
    assert matches_time_of_day(late, night)
    assert not matches_time_of_day(late, morning)
    assert matches_time_of_day(always, night)
    assert matches_time_of_day(no_hours, night)


def test_saturday_night_wraps_into_sunday(cfg) -> None:
    # opens Saturday 23:00, closes Sunday 01:00
    wrap = place_at("wrap", opening_periods=(OpeningPeriod(6, 23 * 60, 0, 60),))
    night = normalize_filters({"category": "food", "timeOfDay": "night"}, cfg)
    afternoon = normalize_filters({"category": "food", "timeOfDay": "afternoon"}, cfg)
    assert matches_time_of_day(wrap, night)
    assert not matches_time_of_day(wrap, afternoon)