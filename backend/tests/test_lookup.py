import asyncio
from datetime import datetime, timezone

import pytest

from gamestatus.errors import LookupValidationError, RateLimitExceeded
from gamestatus.lookup import LookupService, parse_server_address, resolve_game_type
from gamestatus.models import GameType, JavaStatusPayload, ProbeError, ProbeErrorKind
from gamestatus.rate_limiter import FixedWindowRateLimiter
from gamestatus.status_cache import StatusCacheService


class FakeProber:
    def __init__(self, offline_hosts: set[str] | None = None):
        self.offline_hosts = offline_hosts or set()
        self.targets = []

    async def probe(self, target):
        self.targets.append(target)
        queried_at = datetime.now(timezone.utc)
        if target.host in self.offline_hosts:
            return ProbeError(kind=ProbeErrorKind.TIMEOUT, reason="Connection timeout", queried_at=queried_at)
        return JavaStatusPayload(
            raw={
                "version": {"name": "1.20.4"},
                "players": {"online": 12, "max": 100, "sample": [{"name": "Steve", "id": "u-1"}]},
                "description": "Welcome",
            },
            queried_at=queried_at,
        )


def _service(prober=None, limit: int = 10) -> LookupService:
    prober = prober or FakeProber()
    cache = StatusCacheService(prober, ttl_seconds=30, name="lookup")
    return LookupService(cache, FixedWindowRateLimiter(limit=limit, window_seconds=60))


def test_parse_server_address_with_explicit_port():
    assert parse_server_address("play.example.com:25570", GameType.MINECRAFT) == ("play.example.com", 25570)


def test_parse_server_address_defaults_port_per_type():
    assert parse_server_address("play.example.com", GameType.MINECRAFT) == ("play.example.com", 25565)
    assert parse_server_address("be.example.com", GameType.MINECRAFT_BEDROCK) == ("be.example.com", 19132)
    assert parse_server_address("hy.example.com", GameType.HYTALE) == ("hy.example.com", 27015)


def test_parse_server_address_ignores_invalid_port():
    assert parse_server_address("play.example.com:99999", GameType.MINECRAFT) == ("play.example.com", 25565)
    assert parse_server_address("play.example.com:abc", GameType.MINECRAFT) == ("play.example.com", 25565)


def test_resolve_game_type_accepts_aliases():
    assert resolve_game_type(None) is GameType.MINECRAFT
    assert resolve_game_type("Java") is GameType.MINECRAFT
    assert resolve_game_type("BEDROCK") is GameType.MINECRAFT_BEDROCK
    assert resolve_game_type("other") is GameType.HYTALE
    assert resolve_game_type("quake") is None


def test_lookup_returns_normalized_status_and_query_metadata():
    outcome = asyncio.run(_service().lookup("play.example.com:25565", "minecraft", client_id="198.51.100.4"))
    response = outcome.response

    assert response.query.server == "play.example.com:25565"
    assert response.query.host == "play.example.com"
    assert response.query.port == 25565
    assert response.query.type is GameType.MINECRAFT
    assert response.online is True
    assert response.players.online <= response.players.max
    assert response.players.sample[0].display_name == "Steve"
    assert response.version == "1.20.4"
    assert response.motd.clean == "Welcome"
    assert response.error is None
    assert response.query_time_ms >= 0
    assert outcome.rate_limit.remaining == 9


def test_repeated_lookup_within_ttl_reports_first_probe_time():
    prober = FakeProber()
    service = _service(prober)

    first = asyncio.run(service.lookup("play.example.com", "minecraft", client_id="c"))
    second = asyncio.run(service.lookup("play.example.com", "java", client_id="c"))

    assert len(prober.targets) == 1
    assert second.response.cached_at == first.response.cached_at


def test_offline_lookup_carries_error_and_zero_player_counts():
    service = _service(FakeProber(offline_hosts={"down.example.com"}))

    response = asyncio.run(service.lookup("down.example.com", "minecraft", client_id="c")).response

    assert response.online is False
    assert response.error == "Connection timeout"
    assert response.players.online == 0
    assert response.players.max == 0
    assert response.motd is None
    assert response.cached_at is not None


def test_missing_server_is_a_validation_error():
    with pytest.raises(LookupValidationError) as excinfo:
        asyncio.run(_service().lookup(None, "minecraft", client_id="c"))

    assert excinfo.value.message == "Missing required parameter: server"
    assert "minecraft_bedrock" in excinfo.value.supported_types
    assert excinfo.value.rate_limit.allowed is True


def test_unknown_type_is_a_validation_error():
    with pytest.raises(LookupValidationError) as excinfo:
        asyncio.run(_service().lookup("play.example.com", "quake", client_id="c"))

    assert excinfo.value.message == "Invalid game type: quake"


def test_overlong_host_is_a_validation_error():
    prober = FakeProber()

    with pytest.raises(LookupValidationError) as excinfo:
        asyncio.run(_service(prober).lookup("a" * 256, "minecraft", client_id="c"))

    assert excinfo.value.message == "Invalid server hostname"
    assert prober.targets == []


def test_empty_host_is_a_validation_error():
    with pytest.raises(LookupValidationError):
        asyncio.run(_service().lookup(":25565", "minecraft", client_id="c"))


def test_rate_limit_applies_before_validation():
    service = _service(limit=2)
    asyncio.run(service.lookup("play.example.com", "minecraft", client_id="c"))
    with pytest.raises(LookupValidationError):
        asyncio.run(service.lookup(None, "minecraft", client_id="c"))

    with pytest.raises(RateLimitExceeded) as excinfo:
        asyncio.run(service.lookup("play.example.com", "minecraft", client_id="c"))

    assert excinfo.value.rate_limit.allowed is False
    assert 1 <= excinfo.value.retry_after_seconds <= 60
