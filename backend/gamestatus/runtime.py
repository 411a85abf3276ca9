"""Process-wide status components, built once when the app is created."""

import logging
from dataclasses import dataclass
from typing import Optional

from gamestatus import config
from gamestatus.lookup import LookupService
from gamestatus.probes import ProbeProvider, StatusProber
from gamestatus.rate_limiter import FixedWindowRateLimiter
from gamestatus.server_registry import ServerRegistry
from gamestatus.status_cache import Prober, StatusCacheService

logger = logging.getLogger("gamestatus.runtime")


@dataclass
class StatusRuntime:
    prober: Prober
    lookup_cache: StatusCacheService
    server_list_cache: StatusCacheService
    rate_limiter: FixedWindowRateLimiter
    lookup_service: LookupService
    registry: ServerRegistry
    max_concurrency: Optional[int] = None

    def caches(self) -> dict[str, StatusCacheService]:
        return {"lookup": self.lookup_cache, "server_list": self.server_list_cache}

    def flush(self) -> int:
        return sum(cache.clear() for cache in self.caches().values())


def build_runtime(
    *,
    prober: Optional[Prober] = None,
    registry: Optional[ServerRegistry] = None,
    rate_limiter: Optional[FixedWindowRateLimiter] = None,
) -> StatusRuntime:
    if prober is None:
        try:
            provider = ProbeProvider(config.STATUS_PROVIDER)
        except ValueError:
            logger.warning("Unknown STATUS_PROVIDER %r; using native probes", config.STATUS_PROVIDER)
            provider = ProbeProvider.NATIVE
        prober = StatusProber(
            timeout_seconds=config.PROBE_TIMEOUT_SECONDS,
            provider=provider,
            api_base_url=config.MCSTATUS_IO_BASE_URL,
            user_agent=config.STATUS_USER_AGENT,
        )
    if rate_limiter is None:
        rate_limiter = FixedWindowRateLimiter(config.RATE_LIMIT_MAX, config.RATE_LIMIT_WINDOW_SECONDS)

    lookup_cache = StatusCacheService(prober, ttl_seconds=config.LOOKUP_CACHE_TTL_SECONDS, name="lookup")
    server_list_cache = StatusCacheService(
        prober,
        ttl_seconds=config.SERVER_LIST_CACHE_TTL_SECONDS,
        name="server_list",
    )
    return StatusRuntime(
        prober=prober,
        lookup_cache=lookup_cache,
        server_list_cache=server_list_cache,
        rate_limiter=rate_limiter,
        lookup_service=LookupService(lookup_cache, rate_limiter),
        registry=registry or ServerRegistry(config.SERVERS_CONFIG_PATH),
        max_concurrency=config.MAX_CONCURRENCY or None,
    )
