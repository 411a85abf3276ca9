"""Game server status API."""

import hmac
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from gamestatus import config
from gamestatus.batch import get_many_statuses
from gamestatus.errors import LookupValidationError, RateLimitExceeded
from gamestatus.log_redact import install_log_redaction
from gamestatus.lookup import resolve_game_type
from gamestatus.models import (
    CacheStats,
    ServerRecord,
    ServerStatusEntry,
    ServersStatusResponse,
    ServerTarget,
    StatusResult,
)
from gamestatus.rate_limiter import RateLimitDecision
from gamestatus.runtime import StatusRuntime, build_runtime

# --- Logging ---
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
logger = logging.getLogger("gamestatus.api")

SERVER_LIST_CACHE_CONTROL = "public, s-maxage=60, stale-while-revalidate=30"


def _log_startup_env_warnings() -> None:
    if not config.ADMIN_TOKEN:
        logger.warning("ADMIN_TOKEN is not set; admin cache endpoints are disabled.")


def get_runtime(request: Request) -> StatusRuntime:
    return request.app.state.runtime


def _client_id(
    request: Request,
    x_forwarded_for: Optional[str],
    x_real_ip: Optional[str],
) -> str:
    # Proxy headers are client-controlled unless a trusted proxy sets them.
    if config.TRUST_FORWARDED_FOR:
        forwarded = (x_forwarded_for or "").split(",")[0].strip()
        if forwarded:
            return forwarded[:128]
        if x_real_ip and x_real_ip.strip():
            return x_real_ip.strip()[:128]
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def _rate_limit_headers(decision: Optional[RateLimitDecision]) -> dict[str, str]:
    if decision is None:
        return {}
    return {
        "X-RateLimit-Limit": str(decision.limit),
        "X-RateLimit-Remaining": str(decision.remaining),
        "X-RateLimit-Reset": str(decision.reset_in_seconds),
    }


def _enabled_servers(runtime: StatusRuntime) -> list[ServerRecord]:
    try:
        return runtime.registry.list_servers()
    except Exception:
        logger.exception("Failed loading servers config")
        return []


def _server_entry(server: ServerRecord, result: StatusResult) -> ServerStatusEntry:
    return ServerStatusEntry(
        id=server.id,
        name=server.name,
        host=server.host,
        port=server.port,
        game_type=server.game_type,
        description=server.description,
        hide_port=server.hide_port,
        modpack_name=server.modpack_name,
        bluemap_url=server.bluemap_url,
        curseforge_url=server.curseforge_url,
        order_index=server.order_index,
        online=result.online,
        players=result.players,
        version=result.version,
        motd=result.motd.clean or result.motd.raw,
        icon=result.icon,
        latency_ms=result.latency_ms,
        error=result.error,
        cached_at=result.queried_at,
    )


def _require_admin(authorization: str = Header(default="")) -> None:
    if not config.ADMIN_TOKEN:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Admin API is disabled",
        )

    prefix = "Bearer "
    token = authorization[len(prefix):] if authorization.startswith(prefix) else ""
    if not hmac.compare_digest(token, config.ADMIN_TOKEN):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid admin token",
            headers={"WWW-Authenticate": "Bearer"},
        )


def create_app(runtime: Optional[StatusRuntime] = None) -> FastAPI:
    @asynccontextmanager
    async def _lifespan(app: FastAPI):
        install_log_redaction()
        _log_startup_env_warnings()
        try:
            yield
        finally:
            flushed = app.state.runtime.flush()
            logger.info("Shutdown flushed %d cached statuses", flushed)

    app = FastAPI(
        title="gamestatus",
        version="1.0.0",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=_lifespan,
    )
    app.state.runtime = runtime or build_runtime()

    if config.CORS_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.CORS_ORIGINS,
            allow_methods=["GET", "DELETE"],
            allow_headers=["Authorization", "Content-Type"],
        )

    @app.get("/api/lookup")
    async def lookup_server(
        request: Request,
        server: Optional[str] = Query(default=None),
        type: Optional[str] = Query(default="minecraft"),
        x_forwarded_for: Optional[str] = Header(default=None, alias="X-Forwarded-For"),
        x_real_ip: Optional[str] = Header(default=None, alias="X-Real-IP"),
        runtime: StatusRuntime = Depends(get_runtime),
    ):
        client_id = _client_id(request, x_forwarded_for, x_real_ip)
        try:
            outcome = await runtime.lookup_service.lookup(server, type, client_id=client_id)
        except RateLimitExceeded as exc:
            headers = _rate_limit_headers(exc.rate_limit)
            headers["Retry-After"] = str(exc.retry_after_seconds)
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={
                    "error": "Rate limit exceeded. Please try again later.",
                    "retry_after": exc.retry_after_seconds,
                },
                headers=headers,
            )
        except LookupValidationError as exc:
            content: dict = {"error": exc.message}
            if exc.usage:
                content["usage"] = exc.usage
            if exc.supported_types:
                content["supported_types"] = exc.supported_types
            return JSONResponse(
                status_code=status.HTTP_400_BAD_REQUEST,
                content=content,
                headers=_rate_limit_headers(exc.rate_limit),
            )

        headers = _rate_limit_headers(outcome.rate_limit)
        headers["Cache-Control"] = f"public, max-age={int(runtime.lookup_cache.ttl_seconds)}"
        return JSONResponse(
            content=jsonable_encoder(outcome.response, exclude_none=True),
            headers=headers,
        )

    @app.get("/api/servers/status")
    async def get_servers_status(
        address: Optional[str] = Query(default=None),
        port: Optional[int] = Query(default=None),
        type: Optional[str] = Query(default=None),
        runtime: StatusRuntime = Depends(get_runtime),
    ):
        if address:
            game_type = resolve_game_type(type)
            if game_type is None:
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid game type: {type}")
            try:
                target = ServerTarget(host=address, port=port or game_type.default_port, game_type=game_type)
            except ValidationError as exc:
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid server address") from exc
            result = await runtime.server_list_cache.get_status(target)
            return JSONResponse(
                content=jsonable_encoder(result),
                headers={"Cache-Control": SERVER_LIST_CACHE_CONTROL},
            )

        servers = _enabled_servers(runtime)
        results = await get_many_statuses(
            runtime.server_list_cache,
            [server.to_target() for server in servers],
            max_concurrency=runtime.max_concurrency,
        )
        payload = ServersStatusResponse(
            servers=[_server_entry(server, results[server.to_target().key]) for server in servers],
            fetched_at=datetime.now(timezone.utc),
        )
        return JSONResponse(
            content=jsonable_encoder(payload),
            headers={"Cache-Control": SERVER_LIST_CACHE_CONTROL},
        )

    @app.get("/api/servers/{server_id}/status", response_model=ServerStatusEntry)
    async def get_server_status(server_id: str, runtime: StatusRuntime = Depends(get_runtime)):
        try:
            server = runtime.registry.get_server(server_id)
        except Exception:
            logger.exception("Failed loading servers config")
            server = None
        if server is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Server not found")
        result = await runtime.server_list_cache.get_status(server.to_target())
        return _server_entry(server, result)

    @app.get("/api/admin/cache", response_model=dict[str, CacheStats])
    async def get_admin_cache(
        _: None = Depends(_require_admin),
        runtime: StatusRuntime = Depends(get_runtime),
    ):
        return {name: cache.stats() for name, cache in runtime.caches().items()}

    @app.delete("/api/admin/cache")
    async def flush_admin_cache(
        _: None = Depends(_require_admin),
        runtime: StatusRuntime = Depends(get_runtime),
    ):
        flushed = runtime.flush()
        logger.info("Admin flushed %d cached statuses", flushed)
        return {"status": "flushed", "entries": flushed}

    @app.get("/healthz")
    async def healthz():
        return {"status": "ok"}

    return app


# --- App ---
app = create_app()
