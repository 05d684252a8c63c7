from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from config import Configuration
from models import LoadingState


class ExpansionPhase(str, Enum):
    IDLE = "idle"
    AT_RADIUS = "at-radius"
    EXPANDED = "expanded"
    MAXED_OUT = "maxed-out"


@dataclass(frozen=True)
class ExpansionState:
    radius_m: int = 0
    expansion_count: int = 0
    phase: ExpansionPhase = ExpansionPhase.IDLE


@dataclass(frozen=True)
class ExpansionDecision:
    expand: bool
    radius_m: int
    loading_state: LoadingState


class RadiusExpansionController:
    """Widens the search circle while a pass under-returns.

    Radius only grows and ``expansion_count`` goes up by one per growth step,
    never beyond ``max_expansions``.
    """

    def __init__(
        self,
        *,
        min_results: int,
        max_radius_m: int,
        max_expansions: int,
        growth_factor: float,
    ) -> None:
        self.min_results = max(0, min_results)
        self.max_radius_m = max_radius_m
        self.max_expansions = max(0, max_expansions)
        self.growth_factor = growth_factor
        self._state = ExpansionState()

    @classmethod
    def from_config(cls, cfg: Configuration) -> "RadiusExpansionController":
        return cls(
            min_results=cfg.min_results,
            max_radius_m=cfg.max_radius_m,
            max_expansions=cfg.max_expansions,
            growth_factor=cfg.growth_factor,
        )

    @property
    def state(self) -> ExpansionState:
        return self._state

    @property
    def radius_m(self) -> int:
        return self._state.radius_m

    def can_expand(self) -> bool:
        return self._state.expansion_count < self.max_expansions and self._state.radius_m < self.max_radius_m

    def begin(self, radius_m: float) -> ExpansionState:
        radius = int(round(min(max(radius_m, 1), self.max_radius_m)))
        self._state = ExpansionState(radius_m=radius, expansion_count=0, phase=ExpansionPhase.AT_RADIUS)
        return self._state

    def resume(self, state: ExpansionState) -> ExpansionState:
        """Continue from a saved state; a maxed-out state may still grow if budget is left."""
        if state.phase == ExpansionPhase.IDLE:
            raise ValueError("cannot resume an expansion that never began")
        phase = ExpansionPhase.EXPANDED if state.expansion_count else ExpansionPhase.AT_RADIUS
        self._state = dataclasses.replace(state, phase=phase)
        return self._state

    def observe(self, result_count: int, *, satisfied: Optional[bool] = None) -> ExpansionDecision:
        if self._state.phase == ExpansionPhase.IDLE:
            raise ValueError("begin() must be called before observe()")
        if satisfied is None:
            satisfied = result_count >= self.min_results

        if not satisfied and self.can_expand():
            grown = int(round(min(self._state.radius_m * self.growth_factor, self.max_radius_m)))
            # guard against rounding leaving the radius unchanged
            grown = max(grown, self._state.radius_m + 1) if grown < self.max_radius_m else self.max_radius_m
            self._state = ExpansionState(
                radius_m=grown,
                expansion_count=self._state.expansion_count + 1,
                phase=ExpansionPhase.EXPANDED,
            )
            return ExpansionDecision(expand=True, radius_m=grown, loading_state=LoadingState.EXPANDING_DISTANCE)

        self._state = dataclasses.replace(self._state, phase=ExpansionPhase.MAXED_OUT)
        final = LoadingState.COMPLETE if satisfied else LoadingState.LIMIT_REACHED
        return ExpansionDecision(expand=False, radius_m=self._state.radius_m, loading_state=final)
