from __future__ import annotations

from typing import List, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from config import Configuration
from models import BatchResult, DiscoveryResult, ExpansionInfo, PlaceRecord, PoolInfo, RelaxationInfo
from services.discovery import DiscoveryPoolManager
from services.normalizer import InvalidFilterError
from services.places_client import PlacesClient, UpstreamUnavailableError
from services.request_cache import RequestCache, SearchFn
from services.session import SessionManager

load_dotenv()


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class DiscoverRequest(_Payload):
    category: Optional[str] = Field(None, description="food | activity | something-new")
    mood: Optional[float] = Field(None, description="0 (chill) to 100 (hype)")
    social_context: Optional[str] = Field(None, alias="socialContext")
    budget: Optional[str] = None
    time_of_day: Optional[str] = Field(None, alias="timeOfDay")
    distance_range_km: Optional[float] = Field(None, alias="distanceRangeKm")
    lat: Optional[float] = Field(None, description="User latitude")
    lng: Optional[float] = Field(None, description="User longitude")
    force: bool = Field(False, description="Bypass the request cache")


class PhotoPayload(_Payload):
    url: str
    width_px: int = Field(0, alias="widthPx")
    height_px: int = Field(0, alias="heightPx")
    attributions: List[str] = []


class PlacePayload(_Payload):
    id: str
    name: str
    address: Optional[str] = None
    lat: float
    lng: float
    rating: Optional[float] = None
    review_count: int = Field(0, alias="reviewCount")
    price_level: Optional[int] = Field(None, alias="priceLevel")
    types: List[str] = []
    primary_type: Optional[str] = Field(None, alias="primaryType")
    summary: Optional[str] = None
    mood_score: int = Field(50, alias="moodScore")
    mood_category: str = Field("neutral", alias="moodCategory")
    open_now: Optional[bool] = Field(None, alias="openNow")
    photos: List[PhotoPayload] = []
    phone: Optional[str] = None
    website: Optional[str] = None
    maps_url: Optional[str] = Field(None, alias="mapsUrl")


class ExpansionPayload(_Payload):
    final_radius_m: int = Field(alias="finalRadiusM")
    expansion_count: int = Field(alias="expansionCount")
    total_places_found: int = Field(alias="totalPlacesFound")


class PoolPayload(_Payload):
    remaining_places: int = Field(alias="remainingPlaces")
    total_pool_size: int = Field(alias="totalPoolSize")
    needs_refresh: bool = Field(alias="needsRefresh")


class RelaxationPayload(_Payload):
    relaxed_filters: List[str] = Field(alias="relaxedFilters")
    original_filters: List[str] = Field(alias="originalFilters")
    message: str
    severity: str


class DiscoverResponse(_Payload):
    places: List[PlacePayload]
    expansion_info: ExpansionPayload = Field(alias="expansionInfo")
    pool_info: PoolPayload = Field(alias="poolInfo")
    relaxation: Optional[RelaxationPayload] = None
    loading_state: str = Field(alias="loadingState")
    superseded: bool = False


class BatchResponse(_Payload):
    places: List[PlacePayload]
    pool_info: PoolPayload = Field(alias="poolInfo")
    expansion_info: Optional[ExpansionPayload] = Field(None, alias="expansionInfo")
    loading_state: str = Field(alias="loadingState")
    refilled: bool = False


class SessionResponse(_Payload):
    session_id: str


def _place_payload(p: PlaceRecord) -> PlacePayload:
    return PlacePayload(
        id=p.id,
        name=p.name,
        address=p.address,
        lat=p.coordinates.lat,
        lng=p.coordinates.lng,
        rating=p.rating,
        review_count=p.review_count,
        price_level=p.price_level,
        types=sorted(p.types),
        primary_type=p.primary_type,
        summary=p.summary,
        mood_score=p.mood_score,
        mood_category=p.mood_category.value,
        open_now=p.open_now,
        photos=[
            PhotoPayload(url=ph.url, width_px=ph.width_px, height_px=ph.height_px, attributions=list(ph.attributions))
            for ph in p.photos
        ],
        phone=p.contact.phone,
        website=p.contact.website,
        maps_url=p.contact.maps_url,
    )


def _expansion_payload(info: ExpansionInfo) -> ExpansionPayload:
    return ExpansionPayload(
        final_radius_m=info.final_radius_m,
        expansion_count=info.expansion_count,
        total_places_found=info.total_places_found,
    )


def _pool_payload(info: PoolInfo) -> PoolPayload:
    return PoolPayload(
        remaining_places=info.remaining_places,
        total_pool_size=info.total_pool_size,
        needs_refresh=info.needs_refresh,
    )


def _relaxation_payload(info: Optional[RelaxationInfo]) -> Optional[RelaxationPayload]:
    if info is None:
        return None
    return RelaxationPayload(
        relaxed_filters=list(info.relaxed_filters),
        original_filters=list(info.original_filters),
        message=info.message,
        severity=info.severity.value,
    )


def _discover_response(result: DiscoveryResult) -> DiscoverResponse:
    return DiscoverResponse(
        places=[_place_payload(p) for p in result.places],
        expansion_info=_expansion_payload(result.expansion_info),
        pool_info=_pool_payload(result.pool_info),
        relaxation=_relaxation_payload(result.relaxation),
        loading_state=result.loading_state.value,
        superseded=result.superseded,
    )


def _batch_response(result: BatchResult) -> BatchResponse:
    return BatchResponse(
        places=[_place_payload(p) for p in result.places],
        pool_info=_pool_payload(result.pool_info),
        expansion_info=_expansion_payload(result.expansion_info) if result.expansion_info else None,
        loading_state=result.loading_state.value,
        refilled=result.refilled,
    )


def create_app(cfg: Optional[Configuration] = None, search: Optional[SearchFn] = None) -> FastAPI:
    """Build the HTTP surface.

    ``search`` replaces the Google Places client (tests pass a fake); without it
    every discovery call needs ``GOOGLE_PLACES_API_KEY``.
    """
    cfg = cfg or Configuration.from_env()
    needs_key = search is None
    if search is None:
        search = PlacesClient(cfg).search
    # one cache for all sessions: equal descriptors are equal searches
    cache = RequestCache(search, ttl_sec=cfg.cache_ttl_sec, max_entries=cfg.cache_max_entries)
    sessions = SessionManager(lambda: DiscoveryPoolManager(cfg, cache=cache), ttl_sec=cfg.session_ttl_sec)

    app = FastAPI(title="Place Discovery Engine")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.cfg = cfg
    app.state.sessions = sessions
    app.state.cache = cache

    def _manager(session_id: str) -> DiscoveryPoolManager:
        manager = sessions.get(session_id)
        if manager is None:
            raise HTTPException(status_code=404, detail=f"unknown session: {session_id}")
        return manager

    def _require_key() -> None:
        if not needs_key:
            return
        try:
            cfg.require_places_key()
        except ValueError as exc:
            raise HTTPException(status_code=503, detail=str(exc))

    @app.get("/healthz")
    def healthz() -> dict:
        logger.info("cfg: {}", cfg.log_summary())
        return {"status": "ok", "sessions": len(sessions)}

    @app.post("/sessions", response_model=SessionResponse)
    def create_session() -> SessionResponse:
        return SessionResponse(session_id=sessions.create())

    @app.post("/sessions/{session_id}/discover", response_model=DiscoverResponse)
    def discover(session_id: str, req: DiscoverRequest) -> DiscoverResponse:
        manager = _manager(session_id)
        _require_key()
        raw = req.model_dump(exclude={"lat", "lng", "force"})
        if req.lat is not None and req.lng is not None:
            raw["user_location"] = {"lat": req.lat, "lng": req.lng}
        try:
            result = manager.discover(raw, force=req.force)
        except InvalidFilterError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        except UpstreamUnavailableError as exc:
            raise HTTPException(status_code=502, detail=f"places search unavailable: {exc}")
        except Exception as exc:
            logger.exception("discovery failed: {}", exc)
            raise HTTPException(status_code=500, detail="internal error")
        return _discover_response(result)

    @app.post("/sessions/{session_id}/next", response_model=BatchResponse)
    def next_batch(session_id: str) -> BatchResponse:
        manager = _manager(session_id)
        _require_key()
        try:
            result = manager.next_batch()
        except UpstreamUnavailableError as exc:
            raise HTTPException(status_code=502, detail=f"places search unavailable: {exc}")
        except Exception as exc:
            logger.exception("next batch failed: {}", exc)
            raise HTTPException(status_code=500, detail="internal error")
        return _batch_response(result)

    @app.post("/sessions/{session_id}/reset", status_code=204)
    def reset(session_id: str) -> Response:
        _manager(session_id).reset()
        return Response(status_code=204)

    @app.delete("/sessions/{session_id}", status_code=204)
    def delete_session(session_id: str) -> Response:
        if not sessions.drop(session_id):
            raise HTTPException(status_code=404, detail=f"unknown session: {session_id}")
        return Response(status_code=204)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8010, reload=True)
