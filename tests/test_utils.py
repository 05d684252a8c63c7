from __future__ import annotations

from utils import SeededRandom, haversine_km, mask_secret


def test_haversine_one_degree_latitude() -> None:
    assert abs(haversine_km(14.0, 121.0, 15.0, 121.0) - 111.195) < 0.01
    assert haversine_km(14.6, 121.0, 14.6, 121.0) == 0.0


def test_seeded_random_is_reproducible() -> None:
    items = list(range(10))
    assert SeededRandom(7).shuffled(items) == SeededRandom(7).shuffled(items)
    assert sorted(SeededRandom(7).shuffled(items)) == items
    assert items == list(range(10))


def test_seeded_random_sequence() -> None:
    rng = SeededRandom(0)
    assert rng.next_int() == 1013904223
    assert rng.next_int() == (1013904223 * 1664525 + 1013904223) % 2**32


def test_mask_secret() -> None:
    assert mask_secret(None) == "unset"
    assert mask_secret("short") == "*****"
    assert mask_secret("abcd1234efgh5678") == "abcd...5678"
