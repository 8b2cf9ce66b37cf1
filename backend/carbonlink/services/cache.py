"""In-memory TTL cache for resolved observations.

Entries are keyed by observation domain plus a rounded coordinate. Expired
entries are never returned and are replaced lazily on the next write; there
is no background eviction and no single-flight deduplication of misses.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from carbonlink.schemas.observations import Coordinate

CacheKey = tuple[str, float, float]


@dataclass(frozen=True)
class CacheEntry:
    value: Any
    fetched_at: float


class ObservationCache:
    def __init__(
        self,
        ttl_seconds: float = 300.0,
        precision: int = 4,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.precision = precision
        self._clock = clock
        self._entries: dict[CacheKey, CacheEntry] = {}

    def key(self, domain: str, coordinate: Coordinate) -> CacheKey:
        return (
            domain,
            round(coordinate.latitude, self.precision),
            round(coordinate.longitude, self.precision),
        )

    def get(self, domain: str, coordinate: Coordinate) -> Any | None:
        entry = self._entries.get(self.key(domain, coordinate))
        if entry is None:
            return None
        if self._clock() - entry.fetched_at >= self.ttl_seconds:
            return None
        return entry.value

    def set(self, domain: str, coordinate: Coordinate, value: Any) -> None:
        self._entries[self.key(domain, coordinate)] = CacheEntry(value=value, fetched_at=self._clock())

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
