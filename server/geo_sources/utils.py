from __future__ import annotations

import asyncio
import time
from typing import Any, Iterator, List, Optional, Sequence, TypeVar

from models import Coordinate

T = TypeVar("T")


def chunked(items: Sequence[T], size: int) -> Iterator[List[T]]:
    """Consecutive slices of at most ``size`` items."""
    if size < 1:
        raise ValueError("batch size must be >= 1")
    for start in range(0, len(items), size):
        yield list(items[start:start + size])


def _to_coordinate(lat: Any, lon: Any) -> Optional[Coordinate]:
    """Coordinate from loosely typed API values; None when they don't form one."""
    try:
        return Coordinate(latitude=float(lat), longitude=float(lon))
    except (TypeError, ValueError):
        return None


class _AsyncTokenBucket:
    """Simple async token bucket limiter shared by API clients."""

    def __init__(self, rate: float, burst: int):
        self.rate = float(rate)
        self.capacity = float(burst)
        self.tokens = float(burst)
        self.t = time.monotonic()
        self._lock = asyncio.Lock()

    async def acquire(self, n: float = 1.0) -> None:
        async with self._lock:
            now = time.monotonic()
            # Refill
            self.tokens = min(self.capacity, self.tokens + (now - self.t) * self.rate)
            self.t = now
            if self.tokens < n:
                wait = (n - self.tokens) / self.rate
                await asyncio.sleep(wait)
                self.tokens = 0.0
                self.t = time.monotonic()
            else:
                self.tokens -= n
