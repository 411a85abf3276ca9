"""Concurrent fan-out of status lookups for a set of servers."""

import asyncio
import logging
import time
from typing import Iterable, Optional

from gamestatus.models import ServerTarget, StatusResult
from gamestatus.probes.base import utcnow
from gamestatus.status_cache import StatusCacheService

logger = logging.getLogger("gamestatus.batch")


def dedupe_targets(targets: Iterable[ServerTarget]) -> dict[str, ServerTarget]:
    """Index targets by ``host:port``; the first occurrence of a key wins."""
    unique: dict[str, ServerTarget] = {}
    for target in targets:
        unique.setdefault(target.key, target)
    return unique


async def _status_with_isolation(
    cache: StatusCacheService,
    target: ServerTarget,
    semaphore: Optional[asyncio.Semaphore],
) -> StatusResult:
    try:
        if semaphore is None:
            return await cache.get_status(target)
        async with semaphore:
            return await cache.get_status(target)
    except Exception as exc:
        logger.warning("Unexpected failure fetching status for %s (%s)", target.key, exc.__class__.__name__)
        return StatusResult(online=False, error="Status lookup failed", queried_at=utcnow())


async def get_many_statuses(
    cache: StatusCacheService,
    targets: Iterable[ServerTarget],
    *,
    max_concurrency: Optional[int] = None,
) -> dict[str, StatusResult]:
    """Fetch every distinct target concurrently and map ``host:port`` to its result.

    Each target resolves on its own: a failure or timeout for one key only
    turns that key's record offline. Total latency tracks the slowest probe.
    """
    unique = dedupe_targets(targets)
    if not unique:
        return {}

    semaphore = asyncio.Semaphore(max_concurrency) if max_concurrency and max_concurrency > 0 else None
    start = time.monotonic()
    results = await asyncio.gather(
        *(_status_with_isolation(cache, target, semaphore) for target in unique.values()),
        return_exceptions=False,
    )
    logger.debug(
        "Batch of %d targets resolved in %dms",
        len(unique),
        int((time.monotonic() - start) * 1000),
    )
    return dict(zip(unique.keys(), results))
