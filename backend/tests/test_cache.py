"""Tests for the observation TTL cache."""

from carbonlink.schemas.observations import Coordinate
from carbonlink.services.cache import ObservationCache


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_get_returns_fresh_entry(coordinate: Coordinate) -> None:
    cache = ObservationCache(ttl_seconds=300, clock=FakeClock())
    cache.set("weather", coordinate, "reading")
    assert cache.get("weather", coordinate) == "reading"


def test_entry_expires_at_ttl(coordinate: Coordinate) -> None:
    clock = FakeClock()
    cache = ObservationCache(ttl_seconds=300, clock=clock)
    cache.set("weather", coordinate, "reading")

    clock.now += 299
    assert cache.get("weather", coordinate) == "reading"
    clock.now += 1
    assert cache.get("weather", coordinate) is None


def test_expired_entry_does_not_evict_others(coordinate: Coordinate) -> None:
    clock = FakeClock()
    cache = ObservationCache(ttl_seconds=300, clock=clock)
    cache.set("weather", coordinate, "old")
    clock.now += 200
    cache.set("soil", coordinate, "new")
    clock.now += 150

    assert cache.get("weather", coordinate) is None
    assert cache.get("soil", coordinate) == "new"
    assert len(cache) == 2


def test_coordinates_rounded_to_four_decimals() -> None:
    cache = ObservationCache()
    cache.set("fire", Coordinate(latitude=10.00001, longitude=20.00004), "reading")
    assert cache.get("fire", Coordinate(latitude=10.0, longitude=20.0)) == "reading"
    assert cache.get("fire", Coordinate(latitude=10.001, longitude=20.0)) is None


def test_domains_are_separate_keys(coordinate: Coordinate) -> None:
    cache = ObservationCache()
    cache.set("weather", coordinate, "w")
    assert cache.get("satellite", coordinate) is None


def test_clear(coordinate: Coordinate) -> None:
    cache = ObservationCache()
    cache.set("weather", coordinate, "w")
    cache.clear()
    assert len(cache) == 0
