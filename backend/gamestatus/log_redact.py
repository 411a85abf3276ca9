"""Log redaction for client addresses, bearer tokens and secret query params."""

from __future__ import annotations

import ipaddress
import logging
import re
import traceback
from urllib.parse import parse_qsl, quote_plus, urlsplit, urlunsplit

import httpx

SENSITIVE_QUERY_KEYS = frozenset({"apikey", "api-key", "token", "access-token", "key", "secret", "password", "auth"})
_URL_PATTERN = re.compile(r"(?i)https?://[^\s\"'<>]+")
_BEARER_PATTERN = re.compile(r"(?i)\bBearer\s+[A-Za-z0-9._~+\-/]+=*")
_KV_SECRET_PATTERN = re.compile(r"(?i)(\b(?:apikey|api_key|token|secret|password)\b[ \t]*[=:][ \t]*)([^&\s,;\"'<>]+)")
_CLIENT_PATTERN = re.compile(r"(\bclient=)([^\s,;]+)")

_FILTER_LOGGERS = (
    "",
    "uvicorn",
    "uvicorn.error",
    "uvicorn.access",
    "httpx",
    "httpcore",
    "gamestatus",
)
_HTTP_LOGGER = logging.getLogger("gamestatus.http")


def mask_client_address(value: str) -> str:
    """Keep the network part of an IP address so logs stay useful for abuse triage."""
    try:
        address = ipaddress.ip_address(value)
    except ValueError:
        return value
    if address.version == 4:
        octets = str(address).split(".")
        return ".".join(octets[:2] + ["x", "x"])
    groups = address.exploded.split(":")
    return ":".join(groups[:3]) + "::x"


def redact_url(url: str) -> str:
    """Replace sensitive query-param values in a URL with ``***``."""
    if not url or "?" not in url:
        return url
    try:
        parsed = urlsplit(url)
    except ValueError:
        return url

    pairs = parse_qsl(parsed.query, keep_blank_values=True)
    redacted = [
        (key, "***" if key.strip().lower().replace("_", "-") in SENSITIVE_QUERY_KEYS else value)
        for key, value in pairs
    ]
    if redacted == pairs:
        return url
    query = "&".join(
        f"{quote_plus(key)}={'***' if value == '***' else quote_plus(value)}" for key, value in redacted
    )
    return urlunsplit((parsed.scheme, parsed.netloc, parsed.path, query, parsed.fragment))


def redact_text(value: str | None) -> str | None:
    if value is None:
        return None
    text = str(value)
    text = _URL_PATTERN.sub(lambda match: redact_url(match.group(0)), text)
    text = _KV_SECRET_PATTERN.sub(r"\1***", text)
    text = _BEARER_PATTERN.sub("Bearer ***", text)
    text = _CLIENT_PATTERN.sub(lambda match: match.group(1) + mask_client_address(match.group(2)), text)
    return text


class RedactionFilter(logging.Filter):
    """Rewrites each record's message with secrets and client addresses masked."""

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            message = record.getMessage()
        except Exception:
            message = str(record.msg)

        record.msg = redact_text(message) or ""
        record.args = ()
        if record.exc_info:
            record.exc_text = redact_text("".join(traceback.format_exception(*record.exc_info)))
        return True


def install_log_redaction() -> None:
    """Attach the redaction filter process-wide and quiet httpx request-line logs."""
    redaction_filter = RedactionFilter()
    for logger_name in _FILTER_LOGGERS:
        logger = logging.getLogger(logger_name)
        if not any(isinstance(existing, RedactionFilter) for existing in logger.filters):
            logger.addFilter(redaction_filter)
        for handler in logger.handlers:
            if not any(isinstance(existing, RedactionFilter) for existing in handler.filters):
                handler.addFilter(redaction_filter)

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


async def _log_http_response(response: httpx.Response) -> None:
    request = response.request
    _HTTP_LOGGER.info(
        "Status API response method=%s url=%s status=%d",
        request.method,
        redact_url(str(request.url)),
        response.status_code,
    )


def httpx_event_hooks() -> dict[str, list]:
    return {"response": [_log_http_response]}
