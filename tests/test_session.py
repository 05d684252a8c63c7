from __future__ import annotations

from config import Configuration
from services.discovery import DiscoveryPoolManager
from services.session import SessionManager
from fakes import FakePlaces


def _factory():
    cfg = Configuration(places_api_key="test-key")
    return lambda: DiscoveryPoolManager(cfg, FakePlaces([]).search)


class _Clock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_create_and_get() -> None:
    mgr = SessionManager(_factory(), ttl_sec=1000)
    sid = mgr.create()
    manager = mgr.get(sid)
    assert isinstance(manager, DiscoveryPoolManager)
    assert mgr.get(sid) is manager
    assert mgr.get("missing") is None
    assert mgr.get("") is None


def test_sessions_are_independent() -> None:
    mgr = SessionManager(_factory(), ttl_sec=1000)
    a, b = mgr.create(), mgr.create()
    assert a != b
    assert mgr.get(a) is not mgr.get(b)
    assert len(mgr) == 2


def test_drop_removes_session() -> None:
    mgr = SessionManager(_factory(), ttl_sec=1000)
    sid = mgr.create()
    assert mgr.drop(sid)
    assert mgr.get(sid) is None
    assert not mgr.drop(sid)


def test_cleanup_by_ttl() -> None:
    clock = _Clock()
    mgr = SessionManager(_factory(), ttl_sec=10, clock=clock)
    stale = mgr.create()
    clock.now = 5
    fresh = mgr.create()

    # force the first session to be stale
    clock.now = 12
    assert mgr.get(stale) is None
    assert mgr.get(fresh) is not None
    assert stale not in mgr._sessions  # type: ignore[attr-defined]
