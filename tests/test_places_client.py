from __future__ import annotations

from unittest.mock import MagicMock

import pytest
import requests

from models import Coordinates, MoodCategory, PlacePhoto, SearchQueryDescriptor
from services.places_client import (
    FALLBACK_PHOTOS,
    FIELD_MASK,
    PlacesClient,
    UpstreamUnavailableError,
    select_photos,
)

DESCRIPTOR = SearchQueryDescriptor(
    text_query="restaurant cafe food casual",
    included_types=("cafe", "restaurant"),
    price_levels=(0, 1),
    radius_m=5000,
    center=Coordinates(lat=14.5995, lng=120.9842),
    region_code="PH",
    language="en",
)


def _response(payload=None, *, status: int = 200, json_error: bool = False) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.ok = 200 <= status < 300
    resp.text = "upstream said no"
    if json_error:
        resp.json.side_effect = ValueError("bad json")
    else:
        resp.json.return_value = payload
    return resp


def _client(cfg, resp) -> PlacesClient:
    client = PlacesClient(cfg)
    client.session = MagicMock()
    client.session.post.return_value = resp
    return client


def _place(**overrides) -> dict:
    item = {
        "id": "ChIJ-1",
        "displayName": {"text": "Kape Kalye"},
        "formattedAddress": "Poblacion, Makati",
        "location": {"latitude": 14.56, "longitude": 121.03},
        "types": ["cafe", "food"],
        "primaryType": "cafe",
        "rating": 4.6,
        "userRatingCount": 321,
        "priceLevel": "PRICE_LEVEL_INEXPENSIVE",
        "currentOpeningHours": {"openNow": True},
        "regularOpeningHours": {
            "periods": [{"open": {"day": 1, "hour": 7, "minute": 30}, "close": {"day": 1, "hour": 20, "minute": 0}}]
        },
        "photos": [
            {"name": "places/ChIJ-1/photos/a", "widthPx": 1600, "heightPx": 1000, "authorAttributions": [{"displayName": "Ana"}]},
            {"name": "places/ChIJ-1/photos/b", "widthPx": 400, "heightPx": 400},
        ],
        "nationalPhoneNumber": "0917 000 0000",
        "websiteUri": "https://kapekalye.example",
        "googleMapsUri": "https://maps.google.com/?cid=1",
        "editorialSummary": {"text": "Cozy, quiet corner cafe"},
    }
    item.update(overrides)
    return item


def test_search_builds_text_search_request(cfg) -> None:
    client = _client(cfg, _response({"places": []}))
    assert client.search(DESCRIPTOR) == []

    args, kwargs = client.session.post.call_args
    assert args[0] == "https://places.googleapis.com/v1/places:searchText"
    assert kwargs["timeout"] == cfg.places_timeout
    assert kwargs["headers"]["X-Goog-Api-Key"] == "test-key"
    assert kwargs["headers"]["X-Goog-FieldMask"] == FIELD_MASK
    body = kwargs["json"]
    assert body["textQuery"] == DESCRIPTOR.text_query
    assert body["maxResultCount"] == 20
    assert body["regionCode"] == "PH"
    assert body["locationBias"]["circle"]["radius"] == 5000.0
    assert body["locationBias"]["circle"]["center"] == {"latitude": 14.5995, "longitude": 120.9842}
    assert body["priceLevels"] == ["PRICE_LEVEL_FREE", "PRICE_LEVEL_INEXPENSIVE"]


def test_parses_place_fields(cfg) -> None:
    client = _client(cfg, _response({"places": [_place()]}))
    (record,) = client.search(DESCRIPTOR)

    assert record.id == "ChIJ-1"
    assert record.name == "Kape Kalye"
    assert record.coordinates == Coordinates(lat=14.56, lng=121.03)
    assert record.price_level == 1
    assert record.review_count == 321
    assert record.open_now is True
    assert record.opening_periods[0].open_minute == 7 * 60 + 30
    assert record.opening_periods[0].close_minute == 20 * 60
    assert record.contact.website == "https://kapekalye.example"
    assert record.summary == "Cozy, quiet corner cafe"
    # cafe baseline nudged down by "cozy" and "quiet"
    assert record.mood_category == MoodCategory.CHILL


def test_skips_entries_without_id_or_location(cfg) -> None:
    payload = {"places": [_place(id=None), _place(id="no-loc", location={}), _place(id="ok")]}
    client = _client(cfg, _response(payload))
    assert [r.id for r in client.search(DESCRIPTOR)] == ["ok"]


def test_malformed_entries_are_skipped_or_tolerated(cfg) -> None:
    payload = {
        "places": [
            _place(id="bad-loc", location="14.56,121.03"),
            _place(id="str-lat", location={"latitude": "14.56", "longitude": 121.03}),
            _place(
                id="messy",
                displayName="Kape Kalye",
                editorialSummary=["nope"],
                priceLevel=["PRICE_LEVEL_MODERATE"],
                userRatingCount="many",
                types="cafe",
                regularOpeningHours={
                    "periods": [
                        {"open": {"day": None, "hour": 8}},
                        {"open": {"day": 2, "hour": "8"}, "close": {"day": None}},
                        "closed",
                    ]
                },
                photos={"name": "places/x/photos/y"},
            ),
        ]
    }
    client = _client(cfg, _response(payload))
    (record,) = client.search(DESCRIPTOR)

    assert record.id == "messy"
    assert record.name == "Unnamed place"
    assert record.summary is None
    assert record.price_level is None
    assert record.review_count == 0
    assert record.types == frozenset()
    assert len(record.opening_periods) == 1
    period = record.opening_periods[0]
    assert (period.open_day, period.open_minute, period.close_day, period.close_minute) == (2, 0, None, None)
    assert record.photos == FALLBACK_PHOTOS


def test_photos_ranked_and_padded(cfg) -> None:
    client = _client(cfg, _response({"places": [_place()]}))
    (record,) = client.search(DESCRIPTOR)
    refs = [p.reference for p in record.photos]
    assert len(refs) == cfg.min_photos
    assert refs[0] == "places/ChIJ-1/photos/a"
    assert set(refs) == {"places/ChIJ-1/photos/a", "places/ChIJ-1/photos/b"}
    assert record.photos[0].url.endswith("/v1/places/ChIJ-1/photos/a/media?maxWidthPx=800&maxHeightPx=600")


def test_no_usable_photos_uses_fallback() -> None:
    photos = [PlacePhoto(url="", reference=None, width_px=100, height_px=100)]
    assert select_photos(photos, max_photos=5, min_photos=3) == FALLBACK_PHOTOS


def test_photo_selection_dedupes_and_caps() -> None:
    photos = [
        PlacePhoto(url=f"u{i}", reference=f"r{i % 7}", width_px=800 + i, height_px=600) for i in range(12)
    ]
    selected = select_photos(photos, max_photos=5, min_photos=3)
    assert len(selected) == 5
    assert len({p.reference for p in selected}) == 5


def test_http_error_raises_with_status(cfg) -> None:
    client = _client(cfg, _response(status=503))
    with pytest.raises(UpstreamUnavailableError) as excinfo:
        client.search(DESCRIPTOR)
    assert excinfo.value.status_code == 503
    assert client.session.post.call_count == 1


def test_transport_error_is_not_retried(cfg) -> None:
    client = PlacesClient(cfg)
    client.session = MagicMock()
    client.session.post.side_effect = requests.Timeout("timed out")
    with pytest.raises(UpstreamUnavailableError) as excinfo:
        client.search(DESCRIPTOR)
    assert excinfo.value.status_code is None
    assert client.session.post.call_count == 1


def test_invalid_json_raises(cfg) -> None:
    client = _client(cfg, _response(json_error=True))
    with pytest.raises(UpstreamUnavailableError):
        client.search(DESCRIPTOR)
