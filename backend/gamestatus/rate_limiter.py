"""Fixed-window per-client rate limiting for the public lookup endpoint."""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable

logger = logging.getLogger("gamestatus.ratelimit")

DEFAULT_LIMIT = 10
DEFAULT_WINDOW_SECONDS = 60.0


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    remaining: int
    reset_in_ms: int
    limit: int

    @property
    def reset_in_seconds(self) -> int:
        return math.ceil(self.reset_in_ms / 1000)


@dataclass
class _WindowRecord:
    count: int
    window_reset_at: float


class FixedWindowRateLimiter:
    """Counts requests per client id in non-overlapping windows.

    Records are created lazily and replaced when their window expires; they
    are never swept, so memory grows with the number of distinct clients seen.
    Rejected requests leave the count untouched.
    """

    def __init__(
        self,
        limit: int = DEFAULT_LIMIT,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if limit < 1:
            raise ValueError("limit must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self._limit = limit
        self._window_seconds = window_seconds
        self._clock = clock
        self._records: dict[str, _WindowRecord] = {}
        self._lock = Lock()

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def window_seconds(self) -> float:
        return self._window_seconds

    def _reset_in_ms(self, record: _WindowRecord, now: float) -> int:
        return max(0, int(round((record.window_reset_at - now) * 1000)))

    def check(self, client_id: str) -> RateLimitDecision:
        now = self._clock()
        with self._lock:
            record = self._records.get(client_id)
            if record is None or now >= record.window_reset_at:
                record = _WindowRecord(count=1, window_reset_at=now + self._window_seconds)
                self._records[client_id] = record
                return RateLimitDecision(
                    allowed=True,
                    remaining=self._limit - 1,
                    reset_in_ms=self._reset_in_ms(record, now),
                    limit=self._limit,
                )

            if record.count >= self._limit:
                decision = RateLimitDecision(
                    allowed=False,
                    remaining=0,
                    reset_in_ms=self._reset_in_ms(record, now),
                    limit=self._limit,
                )
            else:
                record.count += 1
                decision = RateLimitDecision(
                    allowed=True,
                    remaining=self._limit - record.count,
                    reset_in_ms=self._reset_in_ms(record, now),
                    limit=self._limit,
                )

        if not decision.allowed:
            logger.info("Rate limit hit client=%s reset_in_ms=%d", client_id, decision.reset_in_ms)
        return decision

    def tracked_clients(self) -> int:
        with self._lock:
            return len(self._records)
