from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class _Entry(Generic[T]):
    data: T
    fetched_at: float


class TtlCache(Generic[T]):
    """Single-value cache with a time-to-live and explicit invalidation."""

    def __init__(self, ttl_seconds: float, *, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entry: Optional[_Entry[T]] = None
        self._generation = 0

    def get(self) -> Optional[T]:
        entry = self._entry
        if entry is None:
            return None
        if self._clock() - entry.fetched_at > self.ttl_seconds:
            self._entry = None
            return None
        return entry.data

    def set(self, data: T) -> None:
        self._entry = _Entry(data=data, fetched_at=self._clock())

    def invalidate(self) -> None:
        self._entry = None
        self._generation += 1

    async def get_or_load(self, loader: Callable[[], Awaitable[T]]) -> T:
        cached = self.get()
        if cached is not None:
            return cached
        generation = self._generation
        data = await loader()
        # an invalidate() during the load means data may predate a write
        if generation == self._generation:
            self.set(data)
        return data
