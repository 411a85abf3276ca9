"""Minecraft Bedrock edition unconnected ping (RakNet over UDP)."""

from datetime import datetime

from mcstatus import BedrockServer

from gamestatus.models import BedrockStatusPayload, ServerTarget


async def fetch_status(target: ServerTarget, *, timeout: float, queried_at: datetime) -> BedrockStatusPayload:
    server = BedrockServer(target.host, target.port, timeout=timeout)
    status = await server.async_status()
    return BedrockStatusPayload(
        motd_raw=status.motd.to_minecraft(),
        motd_clean=status.motd.to_plain(),
        version_name=status.version.name,
        protocol=status.version.protocol,
        players_online=status.players.online,
        players_max=status.players.max,
        map_name=status.map_name,
        gamemode=status.gamemode,
        latency_ms=round(status.latency, 2) if status.latency is not None else None,
        queried_at=queried_at,
    )
