"""Protocol prober: one bounded status query against one game server."""

import asyncio
import logging
import time
from datetime import datetime
from enum import Enum
from typing import Callable, Optional, Union

import httpx

from gamestatus.models import (
    BedrockStatusPayload,
    GameType,
    JavaStatusPayload,
    McStatusIoPayload,
    ProbeError,
    ProbeErrorKind,
    ServerTarget,
)
from gamestatus.probes import bedrock, hytale, java, mcstatus_io
from gamestatus.probes.base import ProbeFailure, utcnow

logger = logging.getLogger("gamestatus.probes")

DEFAULT_PROBE_TIMEOUT_SECONDS = 5.0

ProbeOutcome = Union[JavaStatusPayload, BedrockStatusPayload, McStatusIoPayload, ProbeError]


class ProbeProvider(str, Enum):
    NATIVE = "native"
    MCSTATUS_IO = "mcstatus_io"


class StatusProber:
    """Dispatches a target to its wire protocol and turns every failure into a ``ProbeError``.

    ``probe`` never raises (cancellation aside) and never retries; the cache
    decides when to ask again.
    """

    def __init__(
        self,
        *,
        timeout_seconds: float = DEFAULT_PROBE_TIMEOUT_SECONDS,
        provider: ProbeProvider = ProbeProvider.NATIVE,
        api_base_url: str = mcstatus_io.DEFAULT_BASE_URL,
        user_agent: str = "gamestatus/1.0",
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self.provider = ProbeProvider(provider)
        self._api_base_url = api_base_url
        self._user_agent = user_agent
        self._transport = transport
        self._clock = clock

    async def _dispatch(self, target: ServerTarget, queried_at: datetime):
        if target.game_type is GameType.HYTALE:
            return await hytale.fetch_status(target, timeout=self.timeout_seconds, queried_at=queried_at)
        if self.provider is ProbeProvider.MCSTATUS_IO:
            return await mcstatus_io.fetch_status(
                target,
                timeout=self.timeout_seconds,
                queried_at=queried_at,
                base_url=self._api_base_url,
                user_agent=self._user_agent,
                transport=self._transport,
            )
        if target.game_type is GameType.MINECRAFT_BEDROCK:
            return await bedrock.fetch_status(target, timeout=self.timeout_seconds, queried_at=queried_at)
        return await java.fetch_status(target, timeout=self.timeout_seconds, queried_at=queried_at)

    async def probe(self, target: ServerTarget) -> ProbeOutcome:
        queried_at = self._clock()
        start = time.monotonic()
        try:
            payload = await asyncio.wait_for(self._dispatch(target, queried_at), timeout=self.timeout_seconds)
        except ProbeFailure as exc:
            kind, reason = exc.kind, exc.reason
        except (asyncio.TimeoutError, httpx.TimeoutException):
            kind, reason = ProbeErrorKind.TIMEOUT, "Connection timeout"
        except httpx.HTTPError as exc:
            kind, reason = ProbeErrorKind.CONNECTION, f"Status API request failed ({exc.__class__.__name__})"
        except ConnectionRefusedError:
            kind, reason = ProbeErrorKind.CONNECTION, "Connection refused"
        except OSError as exc:
            # mcstatus reports malformed packets as errno-less OSErrors
            if exc.errno is None and not isinstance(exc, ConnectionError):
                kind, reason = ProbeErrorKind.PROTOCOL, str(exc) or "Invalid status response"
            else:
                kind, reason = ProbeErrorKind.CONNECTION, str(exc) or exc.__class__.__name__
        except (ValueError, KeyError, TypeError) as exc:
            kind, reason = ProbeErrorKind.PROTOCOL, f"Invalid status response ({exc.__class__.__name__})"
        except Exception as exc:
            logger.warning("Unexpected failure probing %s (%s)", target.key, exc.__class__.__name__, exc_info=True)
            kind, reason = ProbeErrorKind.PROTOCOL, f"Unexpected probe failure ({exc.__class__.__name__})"
        else:
            logger.debug(
                "Probed %s (%s) in %dms",
                target.key,
                target.game_type.value,
                int((time.monotonic() - start) * 1000),
            )
            return payload

        logger.info(
            "Probe failed target=%s type=%s kind=%s reason=%s",
            target.key,
            target.game_type.value,
            kind.value,
            reason,
        )
        return ProbeError(kind=kind, reason=reason, queried_at=queried_at)


__all__ = [
    "DEFAULT_PROBE_TIMEOUT_SECONDS",
    "ProbeFailure",
    "ProbeOutcome",
    "ProbeProvider",
    "StatusProber",
]
