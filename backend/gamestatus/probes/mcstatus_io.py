"""Status lookups through the public mcstatus.io v2 API.

Docs: https://mcstatus.io/docs
"""

from datetime import datetime
from typing import Optional
from urllib.parse import quote

import httpx

from gamestatus.log_redact import httpx_event_hooks
from gamestatus.models import GameType, McStatusIoPayload, ProbeErrorKind, ServerTarget
from gamestatus.probes.base import ProbeFailure

DEFAULT_BASE_URL = "https://api.mcstatus.io"


def status_url(base_url: str, target: ServerTarget) -> str:
    edition = "bedrock" if target.game_type is GameType.MINECRAFT_BEDROCK else "java"
    # The API resolves the edition's default port itself.
    address = target.host if target.port == target.game_type.default_port else target.key
    return f"{base_url.rstrip('/')}/v2/status/{edition}/{quote(address, safe='')}"


async def fetch_status(
    target: ServerTarget,
    *,
    timeout: float,
    queried_at: datetime,
    base_url: str = DEFAULT_BASE_URL,
    user_agent: str = "gamestatus/1.0",
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> McStatusIoPayload:
    headers = {"User-Agent": user_agent, "Accept": "application/json"}
    async with httpx.AsyncClient(
        timeout=httpx.Timeout(timeout=timeout),
        headers=headers,
        transport=transport,
        event_hooks=httpx_event_hooks(),
    ) as client:
        resp = await client.get(status_url(base_url, target))

    if resp.status_code != 200:
        raise ProbeFailure(ProbeErrorKind.UPSTREAM, f"API returned {resp.status_code}")
    try:
        data = resp.json()
    except ValueError as exc:
        raise ProbeFailure(ProbeErrorKind.PROTOCOL, "Status API returned invalid JSON") from exc
    if not isinstance(data, dict):
        raise ProbeFailure(ProbeErrorKind.PROTOCOL, "Status API returned an unexpected body")

    edition = "bedrock" if target.game_type is GameType.MINECRAFT_BEDROCK else "java"
    return McStatusIoPayload(edition=edition, data=data, queried_at=queried_at)
