"""Sliding-window rate gate shared by every request of one client."""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from typing import Callable

logger = logging.getLogger(__name__)

DEFAULT_MAX_REQUESTS = 5
DEFAULT_WINDOW_SECONDS = 15.0


class RateGate:
    """Allow at most ``max_requests`` acquisitions per rolling ``window_seconds``.

    Timestamps of the last ``max_requests`` permits are kept; a new caller
    waits until the oldest of them falls out of the window. Waiters queue on
    an internal lock, so any number of tasks may share one gate.
    """

    def __init__(
        self,
        max_requests: int = DEFAULT_MAX_REQUESTS,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        *,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_requests <= 0:
            raise ValueError(f"max_requests must be positive, got {max_requests}")
        if window_seconds <= 0:
            raise ValueError(f"window_seconds must be positive, got {window_seconds}")

        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._stamps: deque[float] = deque()
        self._lock = asyncio.Lock()

    def _evict(self, now: float) -> None:
        while self._stamps and now - self._stamps[0] >= self.window_seconds:
            self._stamps.popleft()

    async def acquire(self) -> None:
        """Wait until a permit is available and take it."""
        async with self._lock:
            while True:
                now = self._clock()
                self._evict(now)
                if len(self._stamps) < self.max_requests:
                    self._stamps.append(now)
                    return

                delay = self.window_seconds - (now - self._stamps[0])
                logger.debug("Rate limit reached, waiting %.3fs", delay)
                await asyncio.sleep(delay)

    @property
    def available(self) -> int:
        """Permits that could be taken right now without waiting."""
        self._evict(self._clock())
        return self.max_requests - len(self._stamps)

    def __repr__(self) -> str:
        return f"RateGate(max_requests={self.max_requests}, window_seconds={self.window_seconds})"
