from __future__ import annotations

import pytest

from config import Configuration
from fakes import MANILA


@pytest.fixture
def cfg() -> Configuration:
    return Configuration(places_api_key="test-key")


@pytest.fixture
def food_filters() -> dict:
    return {"category": "food", "mood": 50, "userLocation": {"lat": MANILA.lat, "lng": MANILA.lng}}
