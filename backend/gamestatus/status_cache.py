"""In-memory TTL cache of probe results with single-flight de-duplication."""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from threading import Lock
from typing import Callable, Optional, Protocol

from gamestatus.models import CacheStats, ProbeError, ServerTarget, StatusResult
from gamestatus.normalizer import failure_result, normalize
from gamestatus.probes import ProbeOutcome
from gamestatus.probes.base import utcnow

logger = logging.getLogger("gamestatus.cache")

DEFAULT_TTL_SECONDS = 60.0


class Prober(Protocol):
    async def probe(self, target: ServerTarget) -> ProbeOutcome: ...


@dataclass(frozen=True)
class CacheEntry:
    result: StatusResult
    expires_at: datetime


class _ProbeAbandoned(Exception):
    """Set on a shared in-flight future when its leading caller was cancelled."""


class StatusCacheService:
    """Serves cached :class:`StatusResult` records keyed by ``host:port``.

    Entries live for ``ttl_seconds`` after the probe that produced them and are
    replaced on the next access after that; nothing is evicted in the
    background. Failed probes are cached like successful ones.

    All shared state sits behind one ``threading.Lock`` and in-flight probes are
    tracked with ``concurrent.futures.Future`` objects, so concurrent callers on
    separate threads or event loops still share a single probe per key.
    """

    def __init__(
        self,
        prober: Prober,
        *,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], datetime] = utcnow,
        name: str = "status",
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self._prober = prober
        self._ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock
        self.name = name
        self._lock = Lock()
        self._entries: dict[str, CacheEntry] = {}
        self._in_flight: dict[str, concurrent.futures.Future] = {}
        self._hits = 0
        self._misses = 0
        self._probes = 0

    @property
    def ttl_seconds(self) -> float:
        return self._ttl.total_seconds()

    def _claim(self, key: str) -> tuple[Optional[StatusResult], Optional[concurrent.futures.Future], bool]:
        """Return a fresh cached result, or the in-flight future and whether we lead it."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and self._clock() < entry.expires_at:
                self._hits += 1
                return entry.result, None, False
            future = self._in_flight.get(key)
            if future is not None:
                return None, future, False
            self._misses += 1
            self._probes += 1
            future = concurrent.futures.Future()
            self._in_flight[key] = future
            return None, future, True

    async def get_status(self, target: ServerTarget) -> StatusResult:
        key = target.key
        while True:
            cached, future, leader = self._claim(key)
            if cached is not None:
                return cached
            if leader:
                return await self._lead(target, future)
            try:
                # Shielded so a cancelled follower does not cancel the shared future.
                return await asyncio.shield(asyncio.wrap_future(future))
            except _ProbeAbandoned:
                logger.debug("In-flight probe for %s was abandoned; retrying", key)

    async def _lead(self, target: ServerTarget, future: concurrent.futures.Future) -> StatusResult:
        key = target.key
        try:
            outcome = await self._prober.probe(target)
            if isinstance(outcome, ProbeError):
                result = failure_result(outcome)
            else:
                result = normalize(outcome)
        except Exception:
            logger.exception("Prober raised for %s", key)
            result = StatusResult(online=False, error="Unexpected probe failure", queried_at=self._clock())
        except BaseException:
            with self._lock:
                if self._in_flight.get(key) is future:
                    del self._in_flight[key]
            future.set_exception(_ProbeAbandoned(key))
            raise

        result = self._store(key, result)
        future.set_result(result)
        return result

    def _store(self, key: str, result: StatusResult) -> StatusResult:
        with self._lock:
            self._in_flight.pop(key, None)
            existing = self._entries.get(key)
            if existing is not None and existing.result.queried_at > result.queried_at:
                # A newer probe already landed; keep it.
                return existing.result
            self._entries[key] = CacheEntry(result=result, expires_at=result.queried_at + self._ttl)
        logger.debug(
            "Cached %s online=%s cache=%s expires_in=%ss",
            key,
            result.online,
            self.name,
            self.ttl_seconds,
        )
        return result

    def peek(self, key: str) -> Optional[CacheEntry]:
        with self._lock:
            return self._entries.get(key)

    def clear(self) -> int:
        with self._lock:
            removed = len(self._entries)
            self._entries.clear()
        logger.info("Flushed %d entries from %s cache", removed, self.name)
        return removed

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                entries=len(self._entries),
                keys=sorted(self._entries),
                hits=self._hits,
                misses=self._misses,
                probes=self._probes,
                in_flight=len(self._in_flight),
                ttl_seconds=self.ttl_seconds,
            )
