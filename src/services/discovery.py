from __future__ import annotations

import threading
from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import Any, Callable, List, Mapping, Optional, Set, Tuple, Union

from loguru import logger

from config import Configuration
from models import (
    BatchResult,
    DiscoveryFilters,
    DiscoveryResult,
    ExpansionInfo,
    LoadingState,
    PlaceRecord,
    PoolInfo,
    RelaxationInfo,
)
from services.expansion import ExpansionPhase, ExpansionState, RadiusExpansionController
from services.geo_filter import GeoDedupFilter
from services.matching import match_filters
from services.mood import MoodScorer
from services.normalizer import build_query_descriptor, normalize_filters
from services.places_client import PlacesClient, UpstreamUnavailableError
from services.ranking import rank_places
from services.relaxation import FilterRelaxationEngine, build_relaxation_info
from services.request_cache import RequestCache, SearchFn
from utils import SeededRandom

StateCallback = Callable[[LoadingState], None]


@dataclass
class DiscoverySession:
    filters: Optional[DiscoveryFilters] = None
    seen_ids: Set[str] = field(default_factory=set)
    served_ids: Set[str] = field(default_factory=set)
    pool: List[PlaceRecord] = field(default_factory=list)
    expansion: ExpansionState = field(default_factory=ExpansionState)
    relaxed: Tuple[str, ...] = ()
    loading_state: LoadingState = LoadingState.INITIAL
    relaxation: Optional[RelaxationInfo] = None
    batch_index: int = 0

    @property
    def total_found(self) -> int:
        return len(self.seen_ids)


@dataclass
class _RunOutcome:
    found: List[PlaceRecord]
    seen_ids: Set[str]
    expansion: ExpansionState
    relaxed: Tuple[str, ...]
    loading_state: LoadingState
    trail: List[LoadingState]


class DiscoveryPoolManager:
    """One user's discovery session: search, expand, relax, then serve batches.

    Session mutation happens under ``_lock``; upstream calls run outside it. Each
    ``discover()`` or ``reset()`` bumps ``_generation`` and a run only commits
    when its generation is still the current one.
    A ``discover()`` with the same filters as the run in flight joins that run
    instead of superseding it.
    """

    def __init__(
        self,
        cfg: Configuration,
        search: Optional[SearchFn] = None,
        *,
        cache: Optional[RequestCache] = None,
        scorer: Optional[MoodScorer] = None,
        seed: Optional[int] = None,
        on_state: Optional[StateCallback] = None,
    ) -> None:
        self.cfg = cfg
        if cache is None:
            if search is None:
                search = PlacesClient(cfg, scorer=scorer).search
            cache = RequestCache(search, ttl_sec=cfg.cache_ttl_sec, max_entries=cfg.cache_max_entries)
        self.cache = cache
        self.seed = seed
        self.on_state = on_state
        self.geo = GeoDedupFilter(cfg.bounds())
        self.relaxation = FilterRelaxationEngine(cfg.relaxation_order)
        self._lock = threading.RLock()
        self._generation = 0
        self._inflight: Optional[Tuple[int, DiscoveryFilters, Future]] = None
        self._session = DiscoverySession()

    @property
    def session(self) -> DiscoverySession:
        return self._session

    @property
    def loading_state(self) -> LoadingState:
        return self._session.loading_state

    def _emit(self, generation: int, state: LoadingState) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self._session.loading_state = state
        if self.on_state is not None:
            self.on_state(state)

    def _search_pass(
        self,
        filters: DiscoveryFilters,
        controller: RadiusExpansionController,
        relaxed: Tuple[str, ...],
        seen_ids: Set[str],
        force: bool,
    ) -> List[PlaceRecord]:
        descriptor = build_query_descriptor(filters, controller.radius_m, self.cfg, relaxed)
        try:
            candidates = self.cache.get(descriptor, force=force)
        except UpstreamUnavailableError as exc:
            logger.error(
                "Upstream search failed: query='{}' radius={}m expansions={} status={} error={}",
                descriptor.text_query,
                controller.radius_m,
                controller.state.expansion_count,
                exc.status_code,
                exc,
            )
            raise
        matched = match_filters(candidates, filters, relaxed, self.cfg)
        kept = self.geo.apply(
            matched,
            seen_ids,
            origin=filters.user_location,
            max_distance_km=controller.radius_m / 1000.0,
        )
        logger.debug(
            "Pass radius={}m relaxed={}: {} candidates, {} matched, {} new",
            controller.radius_m,
            list(relaxed),
            len(candidates),
            len(matched),
            len(kept),
        )
        return kept

    def _run(
        self,
        generation: int,
        filters: DiscoveryFilters,
        seen_ids: Set[str],
        expansion: Optional[ExpansionState],
        relaxed: Tuple[str, ...],
        force: bool = False,
    ) -> _RunOutcome:
        controller = RadiusExpansionController.from_config(self.cfg)
        if expansion is None:
            controller.begin(filters.distance_range_km * 1000.0)
        else:
            controller.resume(expansion)

        trail = [LoadingState.SEARCHING]
        self._emit(generation, LoadingState.SEARCHING)

        found: list[PlaceRecord] = []
        while True:
            found.extend(self._search_pass(filters, controller, relaxed, seen_ids, force))
            decision = controller.observe(len(found))
            if not decision.expand:
                break
            logger.info(
                "Only {} places, expanding radius to {}m ({}/{})",
                len(found),
                decision.radius_m,
                controller.state.expansion_count,
                self.cfg.max_expansions,
            )
            trail.append(LoadingState.EXPANDING_DISTANCE)
            self._emit(generation, LoadingState.EXPANDING_DISTANCE)

        final = decision.loading_state
        if final == LoadingState.LIMIT_REACHED:
            for step in self.relaxation.steps(filters, relaxed):
                relaxed = step.relaxed
                logger.info("Relaxing '{}' filter (now relaxed: {})", step.dropped, list(relaxed))
                found.extend(self._search_pass(filters, controller, relaxed, seen_ids, force))
                if len(found) >= self.cfg.min_results:
                    final = LoadingState.COMPLETE
                    break

        trail.append(final)
        self._emit(generation, final)
        return _RunOutcome(
            found=found,
            seen_ids=seen_ids,
            expansion=controller.state,
            relaxed=relaxed,
            loading_state=final,
            trail=trail,
        )

    def _fail(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self._session.loading_state = LoadingState.ERROR
        if self.on_state is not None:
            self.on_state(LoadingState.ERROR)

    def _expansion_info(self, session: DiscoverySession) -> ExpansionInfo:
        return ExpansionInfo(
            final_radius_m=session.expansion.radius_m,
            expansion_count=session.expansion.expansion_count,
            total_places_found=session.total_found,
        )

    def _pool_info(self, session: DiscoverySession) -> PoolInfo:
        remaining = len(session.pool)
        return PoolInfo(
            remaining_places=remaining,
            total_pool_size=session.total_found,
            needs_refresh=remaining < self.cfg.refill_threshold,
        )

    def _take_batch(self, session: DiscoverySession) -> List[PlaceRecord]:
        size = max(1, self.cfg.batch_size)
        batch = session.pool[:size]
        session.pool = session.pool[size:]
        session.served_ids.update(r.id for r in batch)
        if self.seed is not None:
            batch = SeededRandom(self.seed + session.batch_index).shuffled(batch)
        session.batch_index += 1
        return batch

    def _relaxation_info(self, filters: DiscoveryFilters, relaxed: Tuple[str, ...]) -> Optional[RelaxationInfo]:
        if not relaxed:
            return None
        return build_relaxation_info(relaxed, filters.active_dimensions())

    def discover(
        self,
        filters: Union[DiscoveryFilters, Mapping[str, Any]],
        *,
        force: bool = False,
    ) -> DiscoveryResult:
        normalized = normalize_filters(filters, self.cfg)

        with self._lock:
            inflight = self._inflight
            if (
                not force
                and inflight is not None
                and inflight[0] == self._generation
                and inflight[1] == normalized
            ):
                shared: Optional[Future] = inflight[2]
            else:
                shared = None
                self._generation += 1
                generation = self._generation
                pending: Future = Future()
                self._inflight = (generation, normalized, pending)

        if shared is not None:
            logger.debug("Joining in-flight discovery run {} with identical filters", inflight[0])
            return shared.result()

        try:
            result = self._discover(generation, normalized, force)
        except BaseException as exc:
            pending.set_exception(exc)
            raise
        else:
            pending.set_result(result)
        finally:
            with self._lock:
                if self._inflight is not None and self._inflight[2] is pending:
                    self._inflight = None
        return result

    def _discover(self, generation: int, normalized: DiscoveryFilters, force: bool) -> DiscoveryResult:
        logger.info(
            "Discovery started: category={} mood={} budget={} social={} time={} distance={}km",
            normalized.category.value if normalized.category else None,
            normalized.mood,
            normalized.budget.value if normalized.budget else None,
            normalized.social_context.value if normalized.social_context else None,
            normalized.time_of_day.value if normalized.time_of_day else None,
            normalized.distance_range_km,
        )

        try:
            outcome = self._run(generation, normalized, set(), None, (), force=force)
        except UpstreamUnavailableError:
            self._fail(generation)
            raise

        with self._lock:
            if generation != self._generation:
                logger.warning("Discovery run {} superseded by {}; discarding results", generation, self._generation)
                return DiscoveryResult(
                    places=[],
                    expansion_info=ExpansionInfo(outcome.expansion.radius_m, outcome.expansion.expansion_count, 0),
                    pool_info=self._pool_info(self._session),
                    loading_state=outcome.loading_state,
                    state_trail=outcome.trail,
                    superseded=True,
                )

            session = DiscoverySession(
                filters=normalized,
                seen_ids=outcome.seen_ids,
                pool=rank_places(outcome.found, normalized),
                expansion=outcome.expansion,
                relaxed=outcome.relaxed,
                loading_state=outcome.loading_state,
                relaxation=self._relaxation_info(normalized, outcome.relaxed),
            )
            self._session = session
            places = self._take_batch(session)
            result = DiscoveryResult(
                places=places,
                expansion_info=self._expansion_info(session),
                pool_info=self._pool_info(session),
                loading_state=session.loading_state,
                relaxation=session.relaxation,
                state_trail=outcome.trail,
            )

        logger.info(
            "Discovery {}: {} places found, radius={}m, expansions={}, relaxed={}",
            result.loading_state.value,
            result.expansion_info.total_places_found,
            result.expansion_info.final_radius_m,
            result.expansion_info.expansion_count,
            list(session.relaxed),
        )
        return result

    def next_batch(self) -> BatchResult:
        with self._lock:
            session = self._session
            if session.filters is None:
                return BatchResult(places=[], pool_info=self._pool_info(session), loading_state=session.loading_state)
            generation = self._generation
            filters = session.filters
            needs_refill = len(session.pool) < self.cfg.refill_threshold
            seen_copy = set(session.seen_ids)
            # after reset() the expansion starts over from the filter distance
            expansion = session.expansion if session.expansion.phase != ExpansionPhase.IDLE else None
            relaxed = session.relaxed

        refilled = False
        if needs_refill:
            logger.debug("Pool below {} places, refilling", self.cfg.refill_threshold)
            try:
                outcome = self._run(generation, filters, seen_copy, expansion, relaxed)
            except UpstreamUnavailableError:
                self._fail(generation)
                raise

            with self._lock:
                if generation != self._generation:
                    logger.warning("Pool refill superseded by a newer discovery; discarding results")
                    return BatchResult(
                        places=[],
                        pool_info=self._pool_info(self._session),
                        loading_state=self._session.loading_state,
                        superseded=True,
                    )
                session = self._session
                # another refill may have committed meanwhile
                fresh = [r for r in outcome.found if r.id not in session.seen_ids]
                session.seen_ids.update(outcome.seen_ids)
                if outcome.expansion.radius_m >= session.expansion.radius_m:
                    session.expansion = outcome.expansion
                session.relaxed = tuple(dict.fromkeys(session.relaxed + outcome.relaxed))
                session.relaxation = self._relaxation_info(filters, session.relaxed)
                session.pool = rank_places(session.pool + fresh, filters)
                session.loading_state = outcome.loading_state
                refilled = True
                logger.info("Pool refilled with {} new places ({} remaining)", len(fresh), len(session.pool))

        with self._lock:
            if generation != self._generation:
                return BatchResult(
                    places=[],
                    pool_info=self._pool_info(self._session),
                    loading_state=self._session.loading_state,
                    superseded=True,
                )
            session = self._session
            places = self._take_batch(session)
            return BatchResult(
                places=places,
                pool_info=self._pool_info(session),
                loading_state=session.loading_state,
                expansion_info=self._expansion_info(session),
                refilled=refilled,
            )

    def reset(self) -> None:
        with self._lock:
            self._generation += 1
            self._session = DiscoverySession(filters=self._session.filters)
        logger.debug("Discovery session reset")
