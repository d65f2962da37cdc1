"""In-process fixed-window counter.

Used on its own in single-instance deployments and as the fallback behind the
circuit breaker when the remote counter is unhealthy.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: one lock guards the whole map. A request does O(1) work under it
  plus, at most once per sweep interval, a sweep of at most ``sweep_batch_size``
  entries taken from the least recently used end.
- A window starts at the first hit for a key and lasts ``window_seconds``.
  Bursts of up to ~2x the quota across a window boundary are expected.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from itertools import islice
from typing import Callable

from app.adapters.rate_limit.base import AbstractCounter, RateLimitDecision
from app.schemas.policy import RateLimitPolicy

logger = logging.getLogger(__name__)


@dataclass
class CounterEntry:
    count: int
    window_ends_at: float


class InMemoryFixedWindowCounter(AbstractCounter):
    """Fixed-window counter held in a capped, LRU-ordered dict.

    Elapsed entries are never reset in place: the next hit replaces them with a
    fresh entry. They are dropped by a sweep that runs at most once per
    ``sweep_interval_seconds`` and inspects one batch from the least recently
    used end; while batches keep finding elapsed entries the next request
    continues the sweep. The least recently used keys are evicted whenever the
    map grows past ``max_entries``.
    """

    name = "memory"

    def __init__(
        self,
        *,
        max_entries: int = 10_000,
        sweep_interval_seconds: float = 60.0,
        sweep_batch_size: int = 1_000,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the in-process counter.

        Args:
            max_entries: Upper bound on tracked keys.
            sweep_interval_seconds: Minimum time between sweeps of elapsed windows.
            sweep_batch_size: Entries inspected per sweep on the request path.
            clock: Time source function returning UNIX time in seconds.

        Raises:
            ValueError: If any size or interval is not positive.
        """
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        if sweep_interval_seconds <= 0:
            raise ValueError("sweep_interval_seconds must be > 0")
        if sweep_batch_size < 1:
            raise ValueError("sweep_batch_size must be >= 1")

        self._max_entries = max_entries
        self._sweep_interval = sweep_interval_seconds
        self._sweep_batch_size = sweep_batch_size
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: OrderedDict[str, CounterEntry] = OrderedDict()
        self._next_sweep_at = clock() + sweep_interval_seconds

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def check(self, key: str, policy: RateLimitPolicy) -> RateLimitDecision:
        """Count one hit for ``key``.

        Raises:
            ValueError: If key is empty.
        """
        if not key:
            raise ValueError("key must be a non-empty string")

        now = self._clock()

        with self._lock:
            if now >= self._next_sweep_at:
                self._sweep_locked(now, limit=self._sweep_batch_size)

            entry = self._entries.get(key)
            if entry is None or entry.window_ends_at <= now:
                entry = CounterEntry(count=1, window_ends_at=now + policy.window_seconds)
                self._entries[key] = entry
            else:
                entry.count += 1
            self._entries.move_to_end(key)
            self._evict_if_over_capacity_locked()

            count = entry.count
            window_ends_at = entry.window_ends_at

        return RateLimitDecision(
            allowed=count <= policy.max_requests,
            limit=policy.max_requests,
            remaining=max(0, policy.max_requests - count),
            window_ends_at=window_ends_at,
        )

    def sweep(self) -> int:
        """Drop every entry whose window has elapsed.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            return self._sweep_locked(self._clock())

    def _sweep_locked(self, now: float, limit: int | None = None) -> int:
        batch = islice(self._entries.items(), limit)
        expired = [k for k, entry in batch if entry.window_ends_at <= now]
        for key in expired:
            del self._entries[key]

        # a full batch that found elapsed entries likely has more behind it
        if limit is not None and expired and len(self._entries) + len(expired) > limit:
            self._next_sweep_at = now
        else:
            self._next_sweep_at = now + self._sweep_interval
        if expired:
            logger.debug(
                "rate_limit.memory_swept",
                extra={"removed": len(expired), "size": len(self._entries)},
            )
        return len(expired)

    def _evict_if_over_capacity_locked(self) -> None:
        while len(self._entries) > self._max_entries:
            # popitem(last=False) removes the least recently used entry
            self._entries.popitem(last=False)
