"""In-memory fixed-window rate limiter keyed by client identity.

Every limiter owns its own registry of :class:`ClientWindow` records. All
access to the registry, including the periodic sweep, is serialized by a
single :class:`threading.Lock`: request handling runs on the event loop while
:class:`bazaar.sweeper.RegistrySweeper` runs on its own thread.
"""
from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass, replace
from threading import Lock
from typing import Callable, Dict, Optional

LOGGER = logging.getLogger(__name__)

Clock = Callable[[], float]


def _wall_clock_ms() -> float:
    return time.time() * 1000


@dataclass(frozen=True)
class RateLimitConfig:
    """Window size and ceiling for a :class:`FixedWindowRateLimiter`."""

    window_ms: int
    max_requests_per_window: int
    stale_after_ms: int = 60_000

    def __post_init__(self) -> None:
        for name in ("window_ms", "max_requests_per_window", "stale_after_ms"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ValueError(f"{name} must be a positive integer, got {value!r}")


@dataclass
class ClientWindow:
    identity: str
    count: int
    window_end: float


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of a single admission check."""

    identity: str
    allowed: bool
    count: int
    limit: int
    reset_at_ms: float
    retry_after_seconds: int

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.count)


class RateLimitExceeded(Exception):
    """Raised when a client exceeds its request ceiling for the active window."""

    def __init__(self, decision: RateLimitDecision) -> None:
        super().__init__(
            f"Rate limit exceeded for {decision.identity}: "
            f"{decision.count} requests in the current window"
        )
        self.decision = decision


class FixedWindowRateLimiter:
    """Counts requests per identity in fixed, non-overlapping windows."""

    def __init__(self, config: RateLimitConfig, clock: Optional[Clock] = None) -> None:
        self.config = config
        self._clock = clock if clock is not None else _wall_clock_ms
        self._windows: Dict[str, ClientWindow] = {}
        self._lock = Lock()

    def hit(self, identity: str) -> RateLimitDecision:
        """Record one request for ``identity`` and decide whether to admit it."""

        now = self._clock()
        window_ms = self.config.window_ms
        limit = self.config.max_requests_per_window
        with self._lock:
            window = self._windows.get(identity)
            if window is None:
                window = ClientWindow(identity=identity, count=0, window_end=now + window_ms)
                self._windows[identity] = window
            if now > window.window_end:
                window.count = 0
                window.window_end = now + window_ms
            window.count += 1
            count = window.count
            window_end = window.window_end

        allowed = count <= limit
        retry_after = 0 if allowed else max(1, math.ceil((window_end - now) / 1000))
        decision = RateLimitDecision(
            identity=identity,
            allowed=allowed,
            count=count,
            limit=limit,
            reset_at_ms=window_end,
            retry_after_seconds=retry_after,
        )
        if not allowed:
            LOGGER.warning(
                "rate limit exceeded",
                extra={"client_ip": identity, "count": count, "limit": limit},
            )
        return decision

    def check(self, identity: str) -> RateLimitDecision:
        """Like :meth:`hit` but raise :class:`RateLimitExceeded` on rejection."""

        decision = self.hit(identity)
        if not decision.allowed:
            raise RateLimitExceeded(decision)
        return decision

    def allow(self, identity: str) -> bool:
        return self.hit(identity).allowed

    def sweep(self, now: Optional[float] = None) -> int:
        """Drop entries whose window ended at least ``stale_after_ms`` ago."""

        if now is None:
            now = self._clock()
        cutoff = now - self.config.stale_after_ms
        with self._lock:
            stale = [key for key, window in self._windows.items() if window.window_end <= cutoff]
            for key in stale:
                del self._windows[key]
        if stale:
            LOGGER.debug("swept stale rate limit entries", extra={"removed": len(stale)})
        return len(stale)

    def get(self, identity: str) -> Optional[ClientWindow]:
        with self._lock:
            window = self._windows.get(identity)
            return replace(window) if window else None

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)

    def __contains__(self, identity: object) -> bool:
        with self._lock:
            return identity in self._windows
