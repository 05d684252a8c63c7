from __future__ import annotations

import pytest

from models import LoadingState
from services.expansion import ExpansionPhase, RadiusExpansionController


def _controller(**overrides) -> RadiusExpansionController:
    params = dict(min_results=5, max_radius_m=50000, max_expansions=3, growth_factor=1.5)
    params.update(overrides)
    return RadiusExpansionController(**params)


def test_enough_results_completes_without_expanding() -> None:
    ctl = _controller()
    ctl.begin(5000)
    decision = ctl.observe(12)
    assert not decision.expand
    assert decision.loading_state == LoadingState.COMPLETE
    assert ctl.state.expansion_count == 0
    assert ctl.state.radius_m == 5000
    assert ctl.state.phase == ExpansionPhase.MAXED_OUT


def test_expands_by_growth_factor_until_limit() -> None:
    ctl = _controller()
    ctl.begin(5000)
    radii = []
    while True:
        decision = ctl.observe(0)
        if not decision.expand:
            break
        assert decision.loading_state == LoadingState.EXPANDING_DISTANCE
        radii.append(decision.radius_m)
    assert radii == [7500, 11250, 16875]
    assert ctl.state.expansion_count == 3
    assert decision.loading_state == LoadingState.LIMIT_REACHED


def test_radius_is_capped_at_maximum() -> None:
    ctl = _controller(max_radius_m=10000, max_expansions=10)
    ctl.begin(8000)
    first = ctl.observe(0)
    assert first.expand and first.radius_m == 10000
    second = ctl.observe(0)
    assert not second.expand
    assert second.loading_state == LoadingState.LIMIT_REACHED
    assert ctl.state.expansion_count == 1


def test_radius_never_decreases() -> None:
    ctl = _controller(max_expansions=5)
    ctl.begin(1000)
    last = ctl.radius_m
    for count in (0, 1, 2, 3, 4, 5, 6):
        ctl.observe(count)
        assert ctl.radius_m >= last
        last = ctl.radius_m
    assert ctl.state.expansion_count <= 5


def test_resume_keeps_radius_and_count() -> None:
    ctl = _controller()
    ctl.begin(5000)
    ctl.observe(0)
    ctl.observe(10)
    saved = ctl.state

    resumed = _controller()
    state = resumed.resume(saved)
    assert state.radius_m == 7500
    assert state.expansion_count == 1
    decision = resumed.observe(0)
    assert decision.expand
    assert decision.radius_m == 11250
    assert resumed.state.expansion_count == 2


def test_observe_before_begin_is_an_error() -> None:
    with pytest.raises(ValueError):
        _controller().observe(0)
