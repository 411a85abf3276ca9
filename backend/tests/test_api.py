import json
from datetime import datetime, timezone

from fastapi.testclient import TestClient

import gamestatus.main as main_module
from gamestatus.main import create_app
from gamestatus.models import JavaStatusPayload, ProbeError, ProbeErrorKind
from gamestatus.rate_limiter import FixedWindowRateLimiter
from gamestatus.runtime import build_runtime
from gamestatus.server_registry import ServerRegistry


class FakeProber:
    def __init__(self, offline_hosts: set[str] | None = None):
        self.offline_hosts = offline_hosts or set()
        self.keys: list[str] = []

    async def probe(self, target):
        self.keys.append(target.key)
        queried_at = datetime.now(timezone.utc)
        if target.host in self.offline_hosts:
            return ProbeError(kind=ProbeErrorKind.CONNECTION, reason="Connection refused", queried_at=queried_at)
        return JavaStatusPayload(
            raw={
                "version": {"name": "Paper 1.20.4"},
                "players": {"online": 3, "max": 20, "sample": [{"name": "Alex", "id": "u-2"}]},
                "description": {"text": "§aHello", "extra": [{"text": " world"}]},
                "favicon": "data:image/png;base64,iVBORw0KGgo=",
            },
            latency_ms=12.5,
            queried_at=queried_at,
        )


def _client(tmp_path, prober=None, servers=None, limit: int = 10):
    path = tmp_path / "servers.json"
    path.write_text(json.dumps({"servers": servers or []}), encoding="utf-8")
    runtime = build_runtime(
        prober=prober or FakeProber(),
        registry=ServerRegistry(str(path)),
        rate_limiter=FixedWindowRateLimiter(limit=limit, window_seconds=60),
    )
    return TestClient(create_app(runtime)), runtime


def test_lookup_returns_status_with_rate_limit_and_cache_headers(tmp_path):
    client, _ = _client(tmp_path)

    response = client.get("/api/lookup", params={"server": "play.example.com:25570", "type": "minecraft"})

    assert response.status_code == 200
    assert response.headers["X-RateLimit-Limit"] == "10"
    assert response.headers["X-RateLimit-Remaining"] == "9"
    assert response.headers["X-RateLimit-Reset"] == "60"
    assert response.headers["Cache-Control"] == "public, max-age=30"
    body = response.json()
    assert body["query"] == {
        "server": "play.example.com:25570",
        "host": "play.example.com",
        "port": 25570,
        "type": "minecraft",
    }
    assert body["online"] is True
    assert body["players"]["online"] == 3
    assert body["players"]["sample"] == [{"display_name": "Alex", "id": "u-2"}]
    assert body["version"] == "Paper 1.20.4"
    assert body["motd"] == {"raw": "§aHello world", "clean": "Hello world"}
    assert body["icon"] == "iVBORw0KGgo="
    assert body["latency_ms"] == 12.5
    assert "error" not in body


def test_lookup_of_offline_server_reports_error(tmp_path):
    client, _ = _client(tmp_path, prober=FakeProber(offline_hosts={"down.example.com"}))

    response = client.get("/api/lookup", params={"server": "down.example.com"})

    assert response.status_code == 200
    body = response.json()
    assert body["online"] is False
    assert body["error"] == "Connection refused"
    assert body["players"] == {"online": 0, "max": 0, "sample": []}


def test_lookup_without_server_is_bad_request_with_usage(tmp_path):
    client, _ = _client(tmp_path)

    response = client.get("/api/lookup")

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Missing required parameter: server"
    assert "usage" in body
    assert "minecraft" in body["supported_types"]
    assert response.headers["X-RateLimit-Remaining"] == "9"


def test_lookup_with_unknown_type_is_bad_request(tmp_path):
    client, _ = _client(tmp_path)

    response = client.get("/api/lookup", params={"server": "play.example.com", "type": "quake"})

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid game type: quake"


def test_lookup_rate_limit_returns_429_per_client_behind_trusted_proxy(tmp_path, monkeypatch):
    monkeypatch.setattr(main_module.config, "TRUST_FORWARDED_FOR", True)
    prober = FakeProber()
    client, _ = _client(tmp_path, prober=prober, limit=2)
    headers = {"X-Forwarded-For": "198.51.100.7, 10.0.0.1"}

    for _ in range(2):
        assert client.get("/api/lookup", params={"server": "play.example.com"}, headers=headers).status_code == 200
    limited = client.get("/api/lookup", params={"server": "play.example.com"}, headers=headers)

    assert limited.status_code == 429
    assert limited.headers["Retry-After"] == str(limited.json()["retry_after"])
    assert limited.headers["X-RateLimit-Remaining"] == "0"
    assert 1 <= limited.json()["retry_after"] <= 60

    other = client.get(
        "/api/lookup",
        params={"server": "play.example.com"},
        headers={"X-Forwarded-For": "203.0.113.50"},
    )
    assert other.status_code == 200
    assert prober.keys == ["play.example.com:25565"]


def test_spoofed_proxy_headers_do_not_reset_rate_limit_by_default(tmp_path, monkeypatch):
    monkeypatch.setattr(main_module.config, "TRUST_FORWARDED_FOR", False)
    client, _ = _client(tmp_path, limit=2)

    statuses = [
        client.get(
            "/api/lookup",
            params={"server": "play.example.com"},
            headers={"X-Forwarded-For": f"198.51.100.{i}", "X-Real-IP": f"203.0.113.{i}"},
        ).status_code
        for i in range(3)
    ]

    assert statuses == [200, 200, 429]


def test_servers_status_lists_enabled_servers_in_order(tmp_path):
    prober = FakeProber(offline_hosts={"down.example.com"})
    servers = [
        {"id": "lobby", "name": "Lobby", "host": "mc.example.com", "order_index": 2},
        {"id": "creative", "name": "Creative", "host": "mc.example.com", "order_index": 1},
        {"id": "down", "name": "Down", "host": "down.example.com", "order_index": 3},
        {"id": "old", "name": "Old", "host": "old.example.com", "enabled": False},
    ]
    client, _ = _client(tmp_path, prober=prober, servers=servers)

    response = client.get("/api/servers/status")

    assert response.status_code == 200
    assert response.headers["Cache-Control"] == "public, s-maxage=60, stale-while-revalidate=30"
    body = response.json()
    assert [entry["id"] for entry in body["servers"]] == ["creative", "lobby", "down"]
    assert body["servers"][0]["online"] is True
    assert body["servers"][0]["motd"] == "Hello world"
    assert body["servers"][2]["online"] is False
    assert body["servers"][2]["error"] == "Connection refused"
    assert sorted(prober.keys) == ["down.example.com:25565", "mc.example.com:25565"]


def test_servers_status_skips_blank_host_rows(tmp_path):
    servers = [
        {"id": "good", "name": "Good", "host": "good.example.com"},
        {"id": "blank", "name": "Blank", "host": " "},
    ]
    client, _ = _client(tmp_path, servers=servers)

    response = client.get("/api/servers/status")

    assert response.status_code == 200
    assert [entry["id"] for entry in response.json()["servers"]] == ["good"]
    assert response.json()["servers"][0]["online"] is True


def test_servers_status_for_adhoc_address(tmp_path):
    prober = FakeProber()
    client, runtime = _client(tmp_path, prober=prober)

    response = client.get("/api/servers/status", params={"address": "be.example.com", "type": "bedrock"})

    assert response.status_code == 200
    assert response.json()["online"] is True
    assert prober.keys == ["be.example.com:19132"]
    assert runtime.server_list_cache.stats().entries == 1
    assert runtime.lookup_cache.stats().entries == 0


def test_servers_status_rejects_unknown_adhoc_type(tmp_path):
    client, _ = _client(tmp_path)

    response = client.get("/api/servers/status", params={"address": "mc.example.com", "type": "quake"})

    assert response.status_code == 400


def test_single_server_status_and_missing_server(tmp_path):
    servers = [{"id": "survival", "name": "Survival", "host": "mc.example.com", "port": 25566}]
    client, _ = _client(tmp_path, servers=servers)

    found = client.get("/api/servers/survival/status")
    missing = client.get("/api/servers/nope/status")

    assert found.status_code == 200
    assert found.json()["port"] == 25566
    assert found.json()["players"]["max"] == 20
    assert missing.status_code == 404


def test_admin_cache_requires_configured_token(tmp_path, monkeypatch):
    monkeypatch.setattr(main_module.config, "ADMIN_TOKEN", "")
    client, _ = _client(tmp_path)

    assert client.get("/api/admin/cache").status_code == 503


def test_admin_cache_rejects_wrong_token(tmp_path, monkeypatch):
    monkeypatch.setattr(main_module.config, "ADMIN_TOKEN", "admin-token")
    client, _ = _client(tmp_path)

    response = client.get("/api/admin/cache", headers={"Authorization": "Bearer wrong"})

    assert response.status_code == 401


def test_admin_cache_stats_and_flush(tmp_path, monkeypatch):
    monkeypatch.setattr(main_module.config, "ADMIN_TOKEN", "admin-token")
    client, _ = _client(tmp_path)
    auth = {"Authorization": "Bearer admin-token"}
    client.get("/api/lookup", params={"server": "play.example.com"})
    client.get("/api/lookup", params={"server": "play.example.com"})

    stats = client.get("/api/admin/cache", headers=auth)

    assert stats.status_code == 200
    lookup_stats = stats.json()["lookup"]
    assert lookup_stats["entries"] == 1
    assert lookup_stats["keys"] == ["play.example.com:25565"]
    assert lookup_stats["hits"] == 1
    assert lookup_stats["probes"] == 1
    assert stats.json()["server_list"]["entries"] == 0

    flushed = client.delete("/api/admin/cache", headers=auth)

    assert flushed.json() == {"status": "flushed", "entries": 1}
    assert client.get("/api/admin/cache", headers=auth).json()["lookup"]["entries"] == 0


def test_healthz(tmp_path):
    client, _ = _client(tmp_path)

    assert client.get("/healthz").json() == {"status": "ok"}
