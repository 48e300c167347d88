"""Per-channel rate limiting in front of a channel adapter."""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from collections.abc import Callable

from failover.channels.base import ChannelAdapter
from failover.types import Channel, ChannelAttempt, FailureReason, NormalizedRecipient, StatusReport

logger = logging.getLogger(__name__)


class SlidingWindowLimiter:
    """Allows at most ``limit`` acquisitions in any ``window_seconds`` span.

    Thread-safe: the trim, count and record happen under one lock so
    concurrent senders cannot overshoot the limit.
    """

    def __init__(
        self,
        limit: int,
        window_seconds: float = 60.0,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if limit <= 0:
            raise ValueError("limit must be positive")
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits: deque[float] = deque()
        self._lock = threading.Lock()

    def acquire(self) -> bool:
        """Take a slot. Returns False when the window is already full."""
        now = self._clock()
        window_start = now - self.window_seconds
        with self._lock:
            while self._hits and self._hits[0] <= window_start:
                self._hits.popleft()
            if len(self._hits) >= self.limit:
                return False
            self._hits.append(now)
            return True


class RateLimitedChannel:
    """Wraps an adapter and refuses sends beyond the configured rate.

    A refused send becomes a ``RateLimited`` attempt without any provider
    call, which lets the orchestrator fail over as usual.
    """

    def __init__(self, inner: ChannelAdapter, limiter: SlidingWindowLimiter) -> None:
        self._inner = inner
        self._limiter = limiter

    @property
    def channel(self) -> Channel:
        return self._inner.channel

    @property
    def works_offline(self) -> bool:
        return self._inner.works_offline

    def send(self, recipient: NormalizedRecipient, body: str) -> ChannelAttempt:
        if not self._limiter.acquire():
            logger.warning(
                "Rate limit reached for %s channel (%d per %ss)",
                self.channel.value,
                self._limiter.limit,
                self._limiter.window_seconds,
            )
            return ChannelAttempt.failure(
                self.channel,
                FailureReason.RATE_LIMITED,
                f"Local limit of {self._limiter.limit} messages per {self._limiter.window_seconds:g}s reached",
            )
        return self._inner.send(recipient, body)

    def fetch_status(self, provider_identifier: str) -> StatusReport | None:
        return self._inner.fetch_status(provider_identifier)
