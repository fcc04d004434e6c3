"""In-memory sliding-window rate limiting for the auth endpoints."""

from __future__ import annotations

import math
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, Optional, Tuple

SWEEP_INTERVAL_SECONDS = 60.0


@dataclass(frozen=True)
class RateLimit:
    name: str
    limit: int
    window_seconds: int


class InMemoryRateLimiter:
    """
    Per-process limiter keyed by caller (IP, or IP and email for login).

    ``hit`` checks every window for a key under one lock and records the
    attempt only when all of them have room, so a rejected attempt does not
    count against the caller. Keys whose windows have fully expired are
    swept at most once per SWEEP_INTERVAL_SECONDS.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._hits: Dict[Tuple[str, str], Deque[float]] = {}
        self._windows: Dict[str, int] = {}
        self._last_sweep = time.monotonic()

    def _window(self, key: str, rule: RateLimit, now: float) -> Deque[float]:
        self._windows[rule.name] = rule.window_seconds
        hits = self._hits.setdefault((rule.name, key), deque())
        cutoff = now - rule.window_seconds
        while hits and hits[0] <= cutoff:
            hits.popleft()
        return hits

    def _sweep(self, now: float) -> None:
        if now - self._last_sweep < SWEEP_INTERVAL_SECONDS:
            return
        self._last_sweep = now
        stale = [
            bucket for bucket, hits in self._hits.items()
            if not hits or hits[-1] <= now - self._windows.get(bucket[0], 0)
        ]
        for bucket in stale:
            del self._hits[bucket]

    def hit(self, key: str, *rules: RateLimit) -> Optional[RateLimit]:
        """
        Record one attempt for ``key``

        Returns:
            None if allowed, otherwise the first exhausted rule
        """
        now = time.monotonic()
        with self._lock:
            self._sweep(now)
            windows = [(rule, self._window(key, rule, now)) for rule in rules]
            for rule, hits in windows:
                if len(hits) >= rule.limit:
                    return rule
            for _, hits in windows:
                hits.append(now)
        return None

    def retry_after(self, key: str, rule: RateLimit) -> int:
        """Whole seconds until ``rule`` has room again for ``key``"""
        now = time.monotonic()
        with self._lock:
            hits = self._window(key, rule, now)
            if len(hits) < rule.limit:
                return 0
            oldest = hits[len(hits) - rule.limit]
            return max(1, math.ceil(oldest + rule.window_seconds - now))

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()
            self._windows.clear()


rate_limiter = InMemoryRateLimiter()
