"""Settings read from environment variables."""

import os


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_csv(name: str) -> list[str]:
    raw = os.getenv(name, "")
    if not raw:
        return []
    return [item.strip() for item in raw.split(",") if item.strip()]


# Probing
PROBE_TIMEOUT_SECONDS: float = float(os.getenv("PROBE_TIMEOUT_SECONDS", "5"))
STATUS_PROVIDER: str = os.getenv("STATUS_PROVIDER", "native").strip().lower()
MCSTATUS_IO_BASE_URL: str = os.getenv("MCSTATUS_IO_BASE_URL", "https://api.mcstatus.io")
STATUS_USER_AGENT: str = os.getenv("STATUS_USER_AGENT", "gamestatus/1.0")

# Caching
LOOKUP_CACHE_TTL_SECONDS: float = float(os.getenv("LOOKUP_CACHE_TTL_SECONDS", "30"))
SERVER_LIST_CACHE_TTL_SECONDS: float = float(os.getenv("SERVER_LIST_CACHE_TTL_SECONDS", "60"))
MAX_CONCURRENCY: int = int(os.getenv("MAX_CONCURRENCY", "0"))

# Public lookup rate limiting
RATE_LIMIT_MAX: int = int(os.getenv("RATE_LIMIT_MAX", "10"))
RATE_LIMIT_WINDOW_SECONDS: float = float(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "60"))
TRUST_FORWARDED_FOR: bool = _env_bool("TRUST_FORWARDED_FOR", False)

# Registry / HTTP
SERVERS_CONFIG_PATH: str = os.getenv("SERVERS_CONFIG_PATH", "/data/servers.json")
CORS_ORIGINS: list[str] = _env_csv("CORS_ORIGINS")
ADMIN_TOKEN: str = os.getenv("ADMIN_TOKEN", "")
