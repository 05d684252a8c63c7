from __future__ import annotations

import threading
import time
from collections import OrderedDict
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Callable, List, Optional

from loguru import logger

from models import PlaceRecord, SearchQueryDescriptor

SearchFn = Callable[[SearchQueryDescriptor], List[PlaceRecord]]


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    coalesced: int = 0
    upstream_calls: int = 0


@dataclass
class _Entry:
    future: Future
    completed_at: Optional[float] = None


class RequestCache:
    """Suppresses duplicate upstream searches for equal descriptors.

    Keeps the most recent descriptors (LRU, bounded) with their pending or
    finished future. A caller asking for a descriptor that is already in flight
    waits on the same future instead of issuing a second request. Successful
    results live for ``ttl_sec`` after completion; failures are never stored.
    """

    def __init__(
        self,
        fetch: SearchFn,
        *,
        ttl_sec: float = 300,
        max_entries: int = 32,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._fetch = fetch
        self._ttl = ttl_sec
        self._max = max(1, max_entries)
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: OrderedDict[SearchQueryDescriptor, _Entry] = OrderedDict()
        self.stats = CacheStats()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _fresh(self, entry: _Entry) -> bool:
        if entry.completed_at is None:
            return False
        return self._clock() - entry.completed_at <= self._ttl

    def _evict(self) -> None:
        # in-flight entries are never evicted; waiters still hold their future
        for key in list(self._entries.keys()):
            if len(self._entries) <= self._max:
                break
            if self._entries[key].future.done():
                self._entries.pop(key, None)

    def get(self, descriptor: SearchQueryDescriptor, force: bool = False) -> List[PlaceRecord]:
        with self._lock:
            entry = self._entries.get(descriptor)
            if entry is not None and not force:
                if not entry.future.done():
                    self.stats.coalesced += 1
                    logger.debug("Request cache: joining in-flight search '{}'", descriptor.text_query)
                    waiting = entry.future
                    entry = None
                elif self._fresh(entry):
                    self.stats.hits += 1
                    self._entries.move_to_end(descriptor)
                    logger.debug("Request cache hit '{}' radius={}m", descriptor.text_query, descriptor.radius_m)
                    return list(entry.future.result())
                else:
                    self._entries.pop(descriptor, None)
                    waiting = None
            else:
                waiting = None

            if waiting is None:
                self.stats.misses += 1
                self.stats.upstream_calls += 1
                entry = _Entry(future=Future())
                self._entries[descriptor] = entry
                self._entries.move_to_end(descriptor)
                self._evict()

        if waiting is not None:
            return list(waiting.result())

        assert entry is not None
        try:
            value = self._fetch(descriptor)
        except BaseException as exc:
            with self._lock:
                if self._entries.get(descriptor) is entry:
                    self._entries.pop(descriptor, None)
            entry.future.set_exception(exc)
            raise
        with self._lock:
            entry.completed_at = self._clock()
        entry.future.set_result(list(value))
        return list(value)
