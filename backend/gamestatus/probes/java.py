"""Minecraft Java edition Server List Ping."""

from datetime import datetime

from mcstatus import JavaServer

from gamestatus.models import JavaStatusPayload, ServerTarget


async def fetch_status(target: ServerTarget, *, timeout: float, queried_at: datetime) -> JavaStatusPayload:
    server = JavaServer(target.host, target.port, timeout=timeout)
    status = await server.async_status()
    return JavaStatusPayload(
        raw=dict(status.raw),
        latency_ms=round(status.latency, 2) if status.latency is not None else None,
        queried_at=queried_at,
    )
