from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

from config import RELAXABLE_FILTERS
from models import DiscoveryFilters, RelaxationInfo, Severity

RELAXATION_MESSAGES = {
    "budget": "We couldn't find places that matched your budget, but here are some popular spots in the area.",
    "mood": "We expanded your mood preferences to show more great places nearby.",
    "socialContext": "We found places that work well for different group sizes.",
    "timeOfDay": "We included places with different operating hours.",
}
MULTIPLE_RELAXED_MESSAGE = "We relaxed some filters to find more great places for you."
DEFAULT_MESSAGE = "We found places that closely match your preferences."


@dataclass(frozen=True)
class RelaxationStep:
    dropped: str
    relaxed: Tuple[str, ...]


class FilterRelaxationEngine:
    def __init__(self, order: Optional[Sequence[str]] = None) -> None:
        order = list(RELAXABLE_FILTERS if order is None else order)
        unknown = [name for name in order if name not in RELAXABLE_FILTERS]
        if unknown:
            raise ValueError(f"filters cannot be relaxed: {', '.join(unknown)}")
        self.order: Tuple[str, ...] = tuple(dict.fromkeys(order))

    def relaxable(self, filters: DiscoveryFilters) -> List[str]:
        active = set(filters.active_dimensions())
        return [name for name in self.order if name in active]

    def steps(self, filters: DiscoveryFilters, already_relaxed: Iterable[str] = ()) -> Iterator[RelaxationStep]:
        """Yield cumulative relaxation sets, one more dimension dropped each time."""
        relaxed = [name for name in self.order if name in set(already_relaxed)]
        for name in self.relaxable(filters):
            if name in relaxed:
                continue
            relaxed.append(name)
            yield RelaxationStep(dropped=name, relaxed=tuple(relaxed))


def build_relaxation_info(relaxed: Sequence[str], original: Sequence[str]) -> RelaxationInfo:
    relaxed = list(relaxed)
    if len(relaxed) > 1:
        message = MULTIPLE_RELAXED_MESSAGE
    elif relaxed:
        message = RELAXATION_MESSAGES.get(relaxed[0], DEFAULT_MESSAGE)
    else:
        message = DEFAULT_MESSAGE
    severity = Severity.WARNING if "budget" in relaxed or len(relaxed) > 2 else Severity.INFO
    return RelaxationInfo(
        relaxed_filters=relaxed,
        original_filters=list(original),
        message=message,
        severity=severity,
    )
