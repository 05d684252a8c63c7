"""Utility helpers for the place discovery engine."""

from __future__ import annotations

import math
from typing import List, Optional, Sequence, TypeVar

T = TypeVar("T")

_LCG_MULTIPLIER = 1664525
_LCG_INCREMENT = 1013904223
_LCG_MODULUS = 2**32


def mask_secret(value: Optional[str], visible: int = 4) -> str:
    if not value:
        return "unset"
    if len(value) <= visible * 2:
        return "*" * len(value)
    return f"{value[:visible]}...{value[-visible:]}"


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in kilometers."""
    R = 6371.0
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return R * c


class SeededRandom:
    """Linear congruential generator with an explicit seed.

    Same seed, same sequence: shuffles built on it are reproducible in tests.
    """

    def __init__(self, seed: int) -> None:
        self._state = int(seed) % _LCG_MODULUS

    def next_int(self) -> int:
        self._state = (self._state * _LCG_MULTIPLIER + _LCG_INCREMENT) % _LCG_MODULUS
        return self._state

    def shuffled(self, items: Sequence[T]) -> List[T]:
        """Fisher-Yates over a copy of ``items``."""
        out = list(items)
        for i in range(len(out) - 1, 0, -1):
            j = self.next_int() % (i + 1)
            out[i], out[j] = out[j], out[i]
        return out
