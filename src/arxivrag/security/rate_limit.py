"""Per-client fixed-window rate limiting.

Each client key owns a counter that resets at a fixed boundary
``window_seconds`` after the first request of the window. Requests
rejected while the window is full do not consume quota. Because the
counter is reset rather than slid, a client can issue up to twice the
limit across a window boundary.

:meth:`FixedWindowRateLimiter.check_and_consume` never awaits, so on a
single event loop the read-check-write sequence cannot interleave with
another request. The mapping only bounds one process; a multi-process
deployment needs a shared counter store behind the same interface.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Mapping

UNKNOWN_CLIENT = "unknown"


@dataclass
class ClientWindow:
    client_key: str
    count: int
    reset_at: float


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    remaining: int


class FixedWindowRateLimiter:
    """In-process fixed-window counter keyed by client identity."""

    def __init__(
        self,
        max_requests: int = 10,
        window_seconds: float = 60,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: dict[str, ClientWindow] = {}

    def check_and_consume(self, client_key: str) -> RateLimitDecision:
        now = self._clock()
        window = self._windows.get(client_key)
        if window is None or now > window.reset_at:
            self._windows[client_key] = ClientWindow(
                client_key=client_key,
                count=1,
                reset_at=now + self.window_seconds,
            )
            return RateLimitDecision(allowed=True, remaining=self.max_requests - 1)
        if window.count >= self.max_requests:
            return RateLimitDecision(allowed=False, remaining=0)
        window.count += 1
        return RateLimitDecision(allowed=True, remaining=self.max_requests - window.count)

    def window_for(self, client_key: str) -> ClientWindow | None:
        return self._windows.get(client_key)

    def reset(self) -> None:
        self._windows.clear()

    @property
    def retry_after_seconds(self) -> int:
        return int(self.window_seconds)


def resolve_client_key(headers: Mapping[str, str]) -> str:
    """Identify the caller from proxy headers.

    The first ``X-Forwarded-For`` entry wins, then ``X-Real-IP``. Callers
    with neither share the ``"unknown"`` bucket.
    """

    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = headers.get("x-real-ip")
    if real_ip:
        return real_ip
    return UNKNOWN_CLIENT
