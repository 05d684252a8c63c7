from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

import requests
from loguru import logger

from config import Configuration
from models import ContactInfo, Coordinates, OpeningPeriod, PlacePhoto, PlaceRecord, SearchQueryDescriptor
from services.mood import MoodScorer

FIELD_MASK = ",".join(
    [
        "places.id",
        "places.displayName",
        "places.formattedAddress",
        "places.location",
        "places.types",
        "places.primaryType",
        "places.rating",
        "places.userRatingCount",
        "places.priceLevel",
        "places.currentOpeningHours.openNow",
        "places.regularOpeningHours.periods",
        "places.photos",
        "places.nationalPhoneNumber",
        "places.internationalPhoneNumber",
        "places.websiteUri",
        "places.googleMapsUri",
        "places.editorialSummary",
    ]
)

PRICE_LEVELS: Dict[str, int] = {
    "PRICE_LEVEL_FREE": 0,
    "PRICE_LEVEL_INEXPENSIVE": 1,
    "PRICE_LEVEL_MODERATE": 2,
    "PRICE_LEVEL_EXPENSIVE": 3,
    "PRICE_LEVEL_VERY_EXPENSIVE": 4,
}
PRICE_LEVEL_NAMES: Dict[int, str] = {v: k for k, v in PRICE_LEVELS.items()}

PHOTO_MAX_WIDTH = 800
PHOTO_MAX_HEIGHT = 600

FALLBACK_PHOTOS: Tuple[PlacePhoto, ...] = (
    PlacePhoto(url="https://images.unsplash.com/photo-1414235077428-338989a2e8c0?w=800&h=600&fit=crop"),
    PlacePhoto(url="https://images.unsplash.com/photo-1554118811-1e0d58224f24?w=800&h=600&fit=crop"),
    PlacePhoto(url="https://images.unsplash.com/photo-1517248135467-4c7edcad34c4?w=800&h=600&fit=crop"),
)


class UpstreamUnavailableError(RuntimeError):
    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def photo_quality(photo: PlacePhoto) -> int:
    score = 0
    resolution = photo.width_px * photo.height_px
    if resolution >= 1920 * 1080:
        score += 40
    elif resolution >= 1280 * 720:
        score += 30
    elif resolution >= 800 * 600:
        score += 20
    elif resolution >= 400 * 300:
        score += 10
    score += 30 if photo.attributions else 10
    if photo.height_px:
        aspect = photo.width_px / photo.height_px
        if 1.2 <= aspect <= 1.8:
            score += 20
        elif 0.8 <= aspect < 1.2:
            score += 15
        else:
            score += 5
    return score


def select_photos(photos: List[PlacePhoto], *, max_photos: int, min_photos: int) -> Tuple[PlacePhoto, ...]:
    """Dedupe by reference, best first, capped at ``max_photos`` and padded to ``min_photos``."""
    unique: dict[str, PlacePhoto] = {}
    for photo in photos:
        if not photo.reference or not photo.width_px or not photo.height_px:
            continue
        unique.setdefault(photo.reference, photo)
    if not unique:
        return FALLBACK_PHOTOS
    # sorted() is stable, so equal scores keep upstream order
    ranked = sorted(unique.values(), key=photo_quality, reverse=True)[:max_photos]
    out = list(ranked)
    i = 0
    while len(out) < min_photos:
        out.append(ranked[i % len(ranked)])
        i += 1
    return tuple(out)


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_int(value: Any, default: int = 0) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    return int(value)


class PlacesClient:
    def __init__(self, cfg: Configuration, scorer: Optional[MoodScorer] = None) -> None:
        self.cfg = cfg
        self.base = cfg.places_base_url.rstrip("/")
        self.session = requests.Session()
        self.scorer = scorer or MoodScorer()

    def _post(self, path: str, body: dict) -> dict:
        url = f"{self.base}{path}"
        headers = {
            "Content-Type": "application/json",
            "X-Goog-Api-Key": self.cfg.places_api_key or "",
            "X-Goog-FieldMask": FIELD_MASK,
        }
        try:
            resp = self.session.post(url, headers=headers, json=body, timeout=self.cfg.places_timeout)
        except requests.RequestException as exc:
            raise UpstreamUnavailableError(f"request error: {exc}") from exc

        if not resp.ok:
            snippet = resp.text[:300]
            raise UpstreamUnavailableError(f"upstream {resp.status_code}: {snippet}", status_code=resp.status_code)

        try:
            payload = resp.json()
        except ValueError as exc:
            raise UpstreamUnavailableError("invalid json response", status_code=resp.status_code) from exc
        if not isinstance(payload, dict):
            raise UpstreamUnavailableError("unexpected response shape", status_code=resp.status_code)
        return payload

    def build_request(self, descriptor: SearchQueryDescriptor) -> dict:
        body: dict[str, Any] = {
            "textQuery": descriptor.text_query,
            "maxResultCount": self.cfg.places_max_results,
            "languageCode": descriptor.language,
        }
        if descriptor.region_code:
            body["regionCode"] = descriptor.region_code
        if descriptor.center is not None:
            body["locationBias"] = {
                "circle": {
                    "center": {"latitude": descriptor.center.lat, "longitude": descriptor.center.lng},
                    "radius": float(descriptor.radius_m),
                }
            }
        if descriptor.price_levels:
            body["priceLevels"] = [PRICE_LEVEL_NAMES[p] for p in descriptor.price_levels if p in PRICE_LEVEL_NAMES]
        return body

    def photo_url(self, reference: str) -> str:
        return f"{self.base}/v1/{reference}/media?maxWidthPx={PHOTO_MAX_WIDTH}&maxHeightPx={PHOTO_MAX_HEIGHT}"

    def _parse_photos(self, raw: Any) -> Tuple[PlacePhoto, ...]:
        photos: list[PlacePhoto] = []
        for item in raw or []:
            if not isinstance(item, dict):
                continue
            reference = item.get("name") if isinstance(item.get("name"), str) else None
            attributions = tuple(
                str(a.get("displayName"))
                for a in (item.get("authorAttributions") or [])
                if isinstance(a, dict) and a.get("displayName")
            )
            photos.append(
                PlacePhoto(
                    url=self.photo_url(reference) if reference else "",
                    reference=reference,
                    width_px=_as_int(item.get("widthPx")),
                    height_px=_as_int(item.get("heightPx")),
                    attributions=attributions,
                )
            )
        return select_photos(photos, max_photos=self.cfg.max_photos, min_photos=self.cfg.min_photos)

    @staticmethod
    def _parse_periods(raw: Any) -> Tuple[OpeningPeriod, ...]:
        periods: list[OpeningPeriod] = []
        for item in raw or []:
            if not isinstance(item, dict):
                continue
            opened = _as_dict(item.get("open"))
            closed = _as_dict(item.get("close"))
            open_day = _as_int(opened.get("day"), -1)
            if not 0 <= open_day <= 6:
                continue
            close_day = _as_int(closed.get("day"), -1)
            has_close = 0 <= close_day <= 6
            periods.append(
                OpeningPeriod(
                    open_day=open_day,
                    open_minute=_as_int(opened.get("hour")) * 60 + _as_int(opened.get("minute")),
                    close_day=close_day if has_close else None,
                    close_minute=(
                        _as_int(closed.get("hour")) * 60 + _as_int(closed.get("minute")) if has_close else None
                    ),
                )
            )
        return tuple(periods)

    def _parse_place(self, item: dict) -> Optional[PlaceRecord]:
        place_id = item.get("id")
        location = _as_dict(item.get("location"))
        lat = location.get("latitude")
        lng = location.get("longitude")
        if not place_id or not isinstance(place_id, (str, int)):
            return None
        if isinstance(lat, bool) or isinstance(lng, bool):
            return None
        if not isinstance(lat, (int, float)) or not isinstance(lng, (int, float)):
            return None

        name = _as_dict(item.get("displayName")).get("text") or "Unnamed place"
        rating = item.get("rating")
        summary = _as_dict(item.get("editorialSummary")).get("text")
        open_now = _as_dict(item.get("currentOpeningHours")).get("openNow")
        price = item.get("priceLevel")
        types = item.get("types") if isinstance(item.get("types"), list) else []
        primary_type = item.get("primaryType")
        address = item.get("formattedAddress")
        periods = _as_dict(item.get("regularOpeningHours")).get("periods")
        photos = item.get("photos")

        return PlaceRecord(
            id=str(place_id),
            name=str(name),
            address=address if isinstance(address, str) and address else None,
            coordinates=Coordinates(lat=float(lat), lng=float(lng)),
            rating=float(rating) if isinstance(rating, (int, float)) and not isinstance(rating, bool) else None,
            review_count=_as_int(item.get("userRatingCount")),
            price_level=PRICE_LEVELS.get(price) if isinstance(price, str) else None,
            types=frozenset(str(t) for t in types if isinstance(t, str)),
            primary_type=primary_type if isinstance(primary_type, str) and primary_type else None,
            summary=str(summary) if summary else None,
            open_now=open_now if isinstance(open_now, bool) else None,
            opening_periods=self._parse_periods(periods if isinstance(periods, list) else None),
            photos=self._parse_photos(photos if isinstance(photos, list) else None),
            contact=ContactInfo(
                phone=item.get("nationalPhoneNumber") or None,
                international_phone=item.get("internationalPhoneNumber") or None,
                website=item.get("websiteUri") or None,
                maps_url=item.get("googleMapsUri") or None,
            ),
        )

    def search(self, descriptor: SearchQueryDescriptor) -> List[PlaceRecord]:
        payload = self._post("/v1/places:searchText", self.build_request(descriptor))
        results: list[PlaceRecord] = []
        skipped = 0
        for item in payload.get("places") or []:
            record = self._parse_place(item) if isinstance(item, dict) else None
            if record is None:
                skipped += 1
                continue
            results.append(self.scorer.enrich(record))
        logger.debug(
            "Places search '{}' radius={}m returned {} places (skipped {})",
            descriptor.text_query,
            descriptor.radius_m,
            len(results),
            skipped,
        )
        return results
