"""In-memory sliding-window rate limiter.

Keeps one deque of request timestamps per key (an actor id at the HTTP
edge). Memory is bounded: expired timestamps are pruned on access, keys
beyond ``max_keys`` are evicted least recently used first, and
``cleanup()`` drops every key whose window has emptied.
"""

from __future__ import annotations

import time
from collections import OrderedDict, deque
from typing import TYPE_CHECKING

from account_escrow.domain.exceptions import RateLimitExceededError
from account_escrow.logging_config import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable

logger = get_logger(__name__)


class SlidingWindowRateLimiter:
    def __init__(
        self,
        max_requests: int = 10,
        window_seconds: float = 60,
        max_keys: int = 10_000,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_requests < 1 or window_seconds <= 0 or max_keys < 1:
            raise ValueError("rate limiter bounds must be positive")
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.max_keys = max_keys
        self._clock = clock
        self._requests: OrderedDict[str, deque[float]] = OrderedDict()

    def __len__(self) -> int:
        return len(self._requests)

    def _prune(self, key: str, now: float) -> deque[float]:
        window = self._requests.get(key)
        if window is None:
            window = deque()
            self._requests[key] = window
        cutoff = now - self.window_seconds
        while window and window[0] <= cutoff:
            window.popleft()
        self._requests.move_to_end(key)
        return window

    def check(self, key: str) -> float | None:
        """Record a request for ``key``.

        Returns None when allowed, otherwise the seconds until the oldest
        request in the window expires. A refused request is not recorded.
        """
        now = self._clock()
        window = self._prune(key, now)
        if len(window) >= self.max_requests:
            return max(window[0] + self.window_seconds - now, 0.0)

        window.append(now)
        while len(self._requests) > self.max_keys:
            evicted, _ = self._requests.popitem(last=False)
            logger.debug("rate_limit.key_evicted", key=evicted)
        return None

    def hit(self, key: str) -> None:
        """Like ``check`` but raises when the limit is exceeded."""
        retry_after = self.check(key)
        if retry_after is not None:
            logger.warning("rate_limit.exceeded", key=key, retry_after=round(retry_after, 2))
            raise RateLimitExceededError(key, retry_after)

    def reset(self, key: str) -> None:
        self._requests.pop(key, None)

    def cleanup(self) -> int:
        """Drop keys with no request inside the window. Returns how many were dropped."""
        cutoff = self._clock() - self.window_seconds
        stale = [key for key, window in self._requests.items() if not window or window[-1] <= cutoff]
        for key in stale:
            del self._requests[key]
        return len(stale)
