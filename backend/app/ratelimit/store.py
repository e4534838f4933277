from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass


@dataclass
class RateBucket:
    count: int
    window_start: float


class RateLimitStore(ABC):
    """Counts requests per client key and decides whether each one is allowed."""

    @abstractmethod
    def increment(self, key: str, now: float) -> bool:
        raise NotImplementedError

    @abstractmethod
    def snapshot(self) -> dict[str, object]:
        raise NotImplementedError


class FixedWindowRateLimitStore(RateLimitStore):
    """Fixed-window counter.

    A bucket is reset to ``(1, now)`` when it does not exist or when more than
    ``window_seconds`` have passed since its window started. Otherwise the
    request is rejected once ``count`` has reached ``limit``.

    With ``max_buckets`` set, the least recently used key is evicted when a new
    key would exceed it. The default of 0 keeps every key.
    """

    def __init__(self, limit: int, window_seconds: float, max_buckets: int = 0) -> None:
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")

        self._limit = limit
        self._window_seconds = window_seconds
        self._max_buckets = max(0, max_buckets)
        self._buckets: OrderedDict[str, RateBucket] = OrderedDict()
        self._lock = threading.Lock()
        self._evictions = 0

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def window_seconds(self) -> float:
        return self._window_seconds

    def increment(self, key: str, now: float) -> bool:
        with self._lock:
            bucket = self._buckets.get(key)
            if bucket is None or now - bucket.window_start > self._window_seconds:
                self._buckets[key] = RateBucket(count=1, window_start=now)
                self._buckets.move_to_end(key)
                self._evict_if_needed()
                return True

            self._buckets.move_to_end(key)
            if bucket.count >= self._limit:
                return False

            bucket.count += 1
            return True

    def bucket(self, key: str) -> RateBucket | None:
        with self._lock:
            bucket = self._buckets.get(key)
            if bucket is None:
                return None
            return RateBucket(count=bucket.count, window_start=bucket.window_start)

    def snapshot(self) -> dict[str, object]:
        with self._lock:
            return {
                "limit": self._limit,
                "window_seconds": self._window_seconds,
                "max_buckets": self._max_buckets,
                "bucket_count": len(self._buckets),
                "evictions": self._evictions,
            }

    def _evict_if_needed(self) -> None:
        if not self._max_buckets:
            return
        while len(self._buckets) > self._max_buckets:
            self._buckets.popitem(last=False)
            self._evictions += 1


class UnlimitedRateLimitStore(RateLimitStore):
    """Allows every request; used when rate limiting is disabled."""

    def increment(self, key: str, now: float) -> bool:
        return True

    def snapshot(self) -> dict[str, object]:
        return {"limit": None, "bucket_count": 0}


def client_key_from_forwarded(forwarded_for: str | None, fallback: str = "local") -> str:
    """First address of an ``X-Forwarded-For`` value, or ``fallback``."""
    if not forwarded_for:
        return fallback
    first = forwarded_for.split(",")[0].strip()
    return first or fallback
