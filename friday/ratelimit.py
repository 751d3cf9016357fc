from __future__ import annotations

import math
import time
from dataclasses import dataclass
from typing import Callable, Dict

PRUNE_THRESHOLD = 1024


@dataclass
class _Window:
    count: int
    reset_at: float


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_after: float

    def headers(self) -> Dict[str, str]:
        """Standard RateLimit-* response headers."""
        return {
            "RateLimit-Limit": str(self.limit),
            "RateLimit-Remaining": str(self.remaining),
            "RateLimit-Reset": str(max(0, math.ceil(self.reset_after))),
        }


class RateLimiter:
    """Fixed-window request counter keyed by client address."""

    def __init__(self, max_requests: int, window_sec: float, clock: Callable[[], float] = time.monotonic) -> None:
        if max_requests <= 0 or window_sec <= 0:
            raise ValueError("Rate limit and window must be positive")
        self._max = max_requests
        self._window_sec = window_sec
        self._clock = clock
        self._windows: Dict[str, _Window] = {}

    def hit(self, key: str) -> RateLimitDecision:
        """Purpose: Count one request for a key and decide whether it may proceed.
        Inputs/Outputs: Input is a client key; output is a RateLimitDecision.
        Side Effects / State: Opens or advances the key's window; prunes stale windows.
        Dependencies: Uses the injected monotonic clock.
        Failure Modes: None.
        If Removed: The proxy accepts unlimited traffic per address.
        Testing Notes: Inject a fake clock and step past the window boundary.
        """
        now = self._clock()
        if len(self._windows) > PRUNE_THRESHOLD:
            self._windows = {k: w for k, w in self._windows.items() if w.reset_at > now}
        window = self._windows.get(key)
        if window is None or now >= window.reset_at:
            window = _Window(count=0, reset_at=now + self._window_sec)
            self._windows[key] = window
        window.count += 1
        return RateLimitDecision(
            allowed=window.count <= self._max,
            limit=self._max,
            remaining=max(0, self._max - window.count),
            reset_after=window.reset_at - now,
        )
