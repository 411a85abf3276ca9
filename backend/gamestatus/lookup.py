"""Public lookup of arbitrary external server addresses."""

import logging
import time
from dataclasses import dataclass
from typing import Optional

from gamestatus.errors import LookupValidationError, RateLimitExceeded
from gamestatus.models import GAME_TYPE_ALIASES, GameType, LookupQuery, LookupResponse, ServerTarget
from gamestatus.rate_limiter import FixedWindowRateLimiter, RateLimitDecision
from gamestatus.status_cache import StatusCacheService

logger = logging.getLogger("gamestatus.lookup")

MAX_HOST_LENGTH = 255
USAGE = "/api/lookup?server=hostname:port&type=minecraft"
SUPPORTED_TYPES = [game_type.value for game_type in GameType]
OFFLINE_FALLBACK_REASON = "Server is offline or unreachable"


@dataclass(frozen=True)
class LookupOutcome:
    response: LookupResponse
    rate_limit: RateLimitDecision


def resolve_game_type(value: Optional[str]) -> Optional[GameType]:
    if value is None or not value.strip():
        return GameType.MINECRAFT
    return GAME_TYPE_ALIASES.get(value.strip().lower())


def parse_server_address(server: str, game_type: GameType) -> tuple[str, int]:
    """Split ``host[:port]``; a missing or unusable port means the type's default."""
    host, _, port_text = server.strip().partition(":")
    port_text = port_text.split(":", 1)[0]
    if port_text.isdigit():
        port = int(port_text)
        if 0 < port <= 65535:
            return host, port
    return host, game_type.default_port


class LookupService:
    def __init__(self, cache: StatusCacheService, rate_limiter: FixedWindowRateLimiter) -> None:
        self.cache = cache
        self.rate_limiter = rate_limiter

    async def lookup(self, server: Optional[str], game_type: Optional[str], *, client_id: str) -> LookupOutcome:
        decision = self.rate_limiter.check(client_id)
        if not decision.allowed:
            raise RateLimitExceeded(decision)

        if not server or not server.strip():
            raise LookupValidationError(
                "Missing required parameter: server",
                rate_limit=decision,
                usage=USAGE,
                supported_types=SUPPORTED_TYPES,
            )

        resolved_type = resolve_game_type(game_type)
        if resolved_type is None:
            raise LookupValidationError(
                f"Invalid game type: {game_type}",
                rate_limit=decision,
                supported_types=SUPPORTED_TYPES,
            )

        host, port = parse_server_address(server, resolved_type)
        if not host or len(host) > MAX_HOST_LENGTH:
            raise LookupValidationError("Invalid server hostname", rate_limit=decision)

        target = ServerTarget(host=host, port=port, game_type=resolved_type)
        logger.info("Lookup %s (%s) client=%s", target.key, resolved_type.value, client_id)

        start = time.monotonic()
        result = await self.cache.get_status(target)
        query_time_ms = int((time.monotonic() - start) * 1000)

        query = LookupQuery(server=target.key, host=host, port=port, type=resolved_type)
        if result.online:
            response = LookupResponse(
                query=query,
                online=True,
                query_time_ms=query_time_ms,
                cached_at=result.queried_at,
                players=result.players,
                version=result.version,
                motd=result.motd,
                icon=result.icon,
                latency_ms=result.latency_ms,
            )
        else:
            response = LookupResponse(
                query=query,
                online=False,
                query_time_ms=query_time_ms,
                cached_at=result.queried_at,
                players=result.players,
                motd=result.motd if result.motd.raw or result.motd.clean else None,
                error=result.error or OFFLINE_FALLBACK_REASON,
            )
        return LookupOutcome(response=response, rate_limit=decision)
