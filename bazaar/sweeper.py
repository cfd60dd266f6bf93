"""Background task that purges stale rate limiter entries."""
from __future__ import annotations

import logging
from threading import Event, Lock, Thread
from typing import Optional

from bazaar.rate_limit import FixedWindowRateLimiter

LOGGER = logging.getLogger(__name__)


class RegistrySweeper:
    """Runs :meth:`FixedWindowRateLimiter.sweep` on a fixed interval."""

    def __init__(self, limiter: FixedWindowRateLimiter, interval_seconds: float = 60.0) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._limiter = limiter
        self._interval = interval_seconds
        self._stop: Optional[Event] = None
        self._thread: Optional[Thread] = None
        self._lock = Lock()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        with self._lock:
            if self.running:
                return
            # Each thread owns its event so a thread left behind by a timed-out
            # stop() stays signalled.
            self._stop = Event()
            self._thread = Thread(
                target=self._run,
                args=(self._stop,),
                name="rate-limit-sweeper",
                daemon=True,
            )
            self._thread.start()
        LOGGER.info("rate limit sweeper started", extra={"interval": self._interval})

    def stop(self, timeout: Optional[float] = None) -> None:
        with self._lock:
            thread, stop = self._thread, self._stop
            self._thread = None
            self._stop = None
        if stop is not None:
            stop.set()
        if thread is not None:
            thread.join(timeout)
            LOGGER.info("rate limit sweeper stopped")

    def run_once(self) -> int:
        """Sweep immediately and return the number of removed entries."""

        removed = self._limiter.sweep()
        if removed:
            LOGGER.info(
                "removed stale clients",
                extra={"removed": removed, "remaining": len(self._limiter)},
            )
        return removed

    def _run(self, stop: Event) -> None:
        while not stop.wait(self._interval):
            try:
                self.run_once()
            except Exception:  # noqa: BLE001
                LOGGER.exception("rate limit sweep failed")
