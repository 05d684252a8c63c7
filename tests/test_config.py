from __future__ import annotations

import pytest
from pydantic import ValidationError

from config import Configuration
from models import Coordinates


def test_defaults() -> None:
    cfg = Configuration()
    assert cfg.places_timeout == 15
    assert cfg.places_max_results == 20
    assert cfg.min_results == 5
    assert cfg.max_radius_m == 50000
    assert cfg.relaxation_order == ["budget", "mood", "socialContext", "timeOfDay"]
    assert cfg.bounds().contains(Coordinates(lat=14.6, lng=121.0))


def test_from_env(monkeypatch) -> None:
    monkeypatch.setenv("GOOGLE_PLACES_API_KEY", "abcd1234efgh5678")
    monkeypatch.setenv("MAX_EXPANSIONS", "5")
    monkeypatch.setenv("GROWTH_FACTOR", "2.0")
    monkeypatch.setenv("RELAXATION_ORDER", "mood, budget")
    monkeypatch.setenv("REGION_BOUNDS", "none")

    cfg = Configuration.from_env({"batch_size": 7})
    assert cfg.places_api_key == "abcd1234efgh5678"
    assert cfg.max_expansions == 5
    assert cfg.growth_factor == 2.0
    assert cfg.relaxation_order == ["mood", "budget"]
    assert cfg.bounds() is None
    assert cfg.batch_size == 7
    assert "abcd...5678" in cfg.log_summary()
    assert "abcd1234efgh5678" not in cfg.log_summary()


def test_category_is_not_relaxable() -> None:
    with pytest.raises(ValidationError):
        Configuration(relaxation_order="budget,category")


def test_growth_factor_must_grow() -> None:
    with pytest.raises(ValidationError):
        Configuration(growth_factor=1.0)


def test_require_places_key() -> None:
    with pytest.raises(ValueError):
        Configuration().require_places_key()
    Configuration(places_api_key="k").require_places_key()


def test_region_bounds_string() -> None:
    cfg = Configuration(region_bounds="1,2,3,4")
    bounds = cfg.bounds()
    assert (bounds.south, bounds.west, bounds.north, bounds.east) == (1.0, 2.0, 3.0, 4.0)
