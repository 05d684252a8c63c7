from __future__ import annotations

from typing import Iterable, List, Optional, Set

from models import Coordinates, PlaceRecord, RegionBounds
from utils import haversine_km


class GeoDedupFilter:
    """Drops out-of-region, too-far and already-seen places.

    The only writer of a session's seen-id set: survivors are added to it.
    """

    def __init__(self, bounds: Optional[RegionBounds] = None) -> None:
        self.bounds = bounds

    def _in_range(self, record: PlaceRecord, origin: Optional[Coordinates], max_distance_km: Optional[float]) -> bool:
        if self.bounds is not None and not self.bounds.contains(record.coordinates):
            return False
        if origin is None or max_distance_km is None:
            return True
        dist = haversine_km(origin.lat, origin.lng, record.coordinates.lat, record.coordinates.lng)
        return dist <= max_distance_km

    def apply(
        self,
        candidates: Iterable[PlaceRecord],
        seen_ids: Set[str],
        *,
        origin: Optional[Coordinates] = None,
        max_distance_km: Optional[float] = None,
    ) -> List[PlaceRecord]:
        kept: list[PlaceRecord] = []
        batch_ids: set[str] = set()
        for record in candidates:
            if record.id in seen_ids or record.id in batch_ids:
                continue
            if not self._in_range(record, origin, max_distance_km):
                continue
            batch_ids.add(record.id)
            kept.append(record)
        seen_ids.update(batch_ids)
        return kept
