"""Data models for targets, canonical status records and upstream payloads."""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class GameType(str, Enum):
    MINECRAFT = "minecraft"
    MINECRAFT_BEDROCK = "minecraft_bedrock"
    HYTALE = "hytale"

    @property
    def default_port(self) -> int:
        return DEFAULT_PORTS[self]


DEFAULT_PORTS: dict[GameType, int] = {
    GameType.MINECRAFT: 25565,
    GameType.MINECRAFT_BEDROCK: 19132,
    # Hytale has no published query protocol yet; placeholder port.
    GameType.HYTALE: 27015,
}

GAME_TYPE_ALIASES: dict[str, GameType] = {
    "minecraft": GameType.MINECRAFT,
    "java": GameType.MINECRAFT,
    "minecraft_bedrock": GameType.MINECRAFT_BEDROCK,
    "bedrock": GameType.MINECRAFT_BEDROCK,
    "hytale": GameType.HYTALE,
    "other": GameType.HYTALE,
}


def target_key(host: str, port: int) -> str:
    return f"{host}:{port}"


class ServerTarget(BaseModel):
    model_config = ConfigDict(frozen=True)

    host: str = Field(min_length=1, max_length=255)
    port: int = Field(ge=1, le=65535)
    game_type: GameType = GameType.MINECRAFT

    @field_validator("host", mode="before")
    @classmethod
    def strip_host(cls, value):
        if isinstance(value, str):
            return value.strip()
        return value

    @property
    def key(self) -> str:
        return target_key(self.host, self.port)


# --- Canonical status record ---


class PlayerEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    display_name: str
    id: str = ""


class Players(BaseModel):
    model_config = ConfigDict(frozen=True)

    online: int = Field(default=0, ge=0)
    max: int = Field(default=0, ge=0)
    sample: tuple[PlayerEntry, ...] = ()


class Motd(BaseModel):
    model_config = ConfigDict(frozen=True)

    raw: Optional[str] = None
    clean: Optional[str] = None


class StatusResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    online: bool
    players: Players = Field(default_factory=Players)
    version: Optional[str] = None
    motd: Motd = Field(default_factory=Motd)
    icon: Optional[str] = None
    latency_ms: Optional[float] = None
    error: Optional[str] = None
    queried_at: datetime


# --- Probe failures ---


class ProbeErrorKind(str, Enum):
    TIMEOUT = "timeout"
    CONNECTION = "connection"
    PROTOCOL = "protocol"
    OFFLINE = "offline"
    UPSTREAM = "upstream"
    UNSUPPORTED = "unsupported"


class ProbeError(BaseModel):
    """A failed probe, returned as a value rather than raised."""

    model_config = ConfigDict(frozen=True)

    kind: ProbeErrorKind
    reason: str
    queried_at: datetime


# --- Upstream payloads (tagged union on ``provider``) ---


class JavaStatusPayload(BaseModel):
    """Server List Ping JSON as returned by a Java edition server."""

    model_config = ConfigDict(frozen=True)

    provider: Literal["java_native"] = "java_native"
    raw: dict[str, Any]
    latency_ms: Optional[float] = None
    queried_at: datetime


class BedrockStatusPayload(BaseModel):
    """Fields decoded from a Bedrock unconnected pong."""

    model_config = ConfigDict(frozen=True)

    provider: Literal["bedrock_native"] = "bedrock_native"
    motd_raw: Optional[str] = None
    motd_clean: Optional[str] = None
    version_name: Optional[str] = None
    protocol: Optional[int] = None
    players_online: int = 0
    players_max: int = 0
    map_name: Optional[str] = None
    gamemode: Optional[str] = None
    latency_ms: Optional[float] = None
    queried_at: datetime


class McStatusIoPayload(BaseModel):
    """Body of an ``api.mcstatus.io`` v2 status response (java or bedrock)."""

    model_config = ConfigDict(frozen=True)

    provider: Literal["mcstatus_io"] = "mcstatus_io"
    edition: Literal["java", "bedrock"] = "java"
    data: dict[str, Any]
    queried_at: datetime


UpstreamPayload = Annotated[
    Union[JavaStatusPayload, BedrockStatusPayload, McStatusIoPayload],
    Field(discriminator="provider"),
]


# --- Server registry ---


class ServerRecord(BaseModel):
    id: str
    name: str
    host: str = Field(min_length=1, max_length=255)
    port: int = Field(default=25565, ge=1, le=65535)
    game_type: GameType = GameType.MINECRAFT
    enabled: bool = True
    description: Optional[str] = None
    hide_port: bool = False
    modpack_name: Optional[str] = None
    bluemap_url: Optional[str] = None
    curseforge_url: Optional[str] = None
    order_index: int = 0

    @field_validator("host", mode="before")
    @classmethod
    def strip_host(cls, value):
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("game_type", mode="before")
    @classmethod
    def resolve_game_type_alias(cls, value):
        if isinstance(value, str):
            return GAME_TYPE_ALIASES.get(value.strip().lower(), value)
        return value

    def to_target(self) -> ServerTarget:
        return ServerTarget(host=self.host, port=self.port, game_type=self.game_type)


# --- Lookup responses ---


class LookupQuery(BaseModel):
    server: str
    host: str
    port: int
    type: GameType


class LookupResponse(BaseModel):
    query: LookupQuery
    online: bool
    query_time_ms: int
    cached_at: Optional[datetime] = None
    players: Players = Field(default_factory=Players)
    version: Optional[str] = None
    motd: Optional[Motd] = None
    icon: Optional[str] = None
    latency_ms: Optional[float] = None
    error: Optional[str] = None


class ServerStatusEntry(BaseModel):
    id: str
    name: str
    host: str
    port: int
    game_type: GameType
    description: Optional[str] = None
    hide_port: bool = False
    modpack_name: Optional[str] = None
    bluemap_url: Optional[str] = None
    curseforge_url: Optional[str] = None
    order_index: int = 0
    online: bool
    players: Players
    version: Optional[str] = None
    motd: Optional[str] = None
    icon: Optional[str] = None
    latency_ms: Optional[float] = None
    error: Optional[str] = None
    cached_at: datetime


class ServersStatusResponse(BaseModel):
    servers: list[ServerStatusEntry]
    fetched_at: datetime


class CacheStats(BaseModel):
    entries: int
    keys: list[str]
    hits: int
    misses: int
    probes: int
    in_flight: int
    ttl_seconds: float
