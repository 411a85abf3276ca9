"""Map upstream status payloads onto the canonical :class:`StatusResult`.

``normalize`` is total over :data:`gamestatus.models.UpstreamPayload` and
pure: it performs no I/O and reads no clock, so ``queried_at`` is taken from
the payload itself.
"""

from __future__ import annotations

import re
from typing import Any, Iterable, Optional

from gamestatus.models import (
    BedrockStatusPayload,
    JavaStatusPayload,
    McStatusIoPayload,
    Motd,
    PlayerEntry,
    Players,
    ProbeError,
    StatusResult,
)

_FORMATTING_CODE = re.compile(r"§[0-9a-fk-orx]", re.IGNORECASE)
OFFLINE_REASON = "Server is offline"


def strip_formatting(text: str) -> str:
    """Remove ``§`` colour/style codes from Minecraft text."""
    return _FORMATTING_CODE.sub("", text)


def strip_data_uri(icon: Optional[str]) -> Optional[str]:
    """Return only the base64 body of an icon; safe to apply repeatedly."""
    if not icon:
        return None
    if icon.startswith("data:"):
        comma = icon.find(",")
        if comma != -1:
            icon = icon[comma + 1:]
    return icon or None


def join_lines(value: Any) -> Optional[str]:
    """Collapse a string-or-list field into one newline-joined string."""
    if value is None:
        return None
    if isinstance(value, str):
        return value or None
    if isinstance(value, (list, tuple)):
        joined = "\n".join(str(line) for line in value if line is not None)
        return joined or None
    return str(value) or None


def _first_text(*values: Any) -> Optional[str]:
    for value in values:
        text = join_lines(value)
        if text:
            return text
    return None


def _count(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    try:
        return max(0, int(value))
    except (TypeError, ValueError):
        return 0


def _mapping(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def flatten_chat(component: Any) -> str:
    """Flatten a Java chat component (string, dict with ``text``/``extra``, or list)."""
    if component is None:
        return ""
    if isinstance(component, str):
        return component
    if isinstance(component, list):
        return "".join(flatten_chat(part) for part in component)
    if isinstance(component, dict):
        text = component.get("text", "")
        parts = [text if isinstance(text, str) else str(text)]
        extra = component.get("extra")
        if isinstance(extra, list):
            parts.extend(flatten_chat(part) for part in extra)
        return "".join(parts)
    return str(component)


def _player_sample(entries: Any, *, clean_keys: Iterable[str], raw_keys: Iterable[str]) -> tuple[PlayerEntry, ...]:
    if not isinstance(entries, list):
        return ()
    clean_keys = tuple(clean_keys)
    raw_keys = tuple(raw_keys)
    sample: list[PlayerEntry] = []
    for entry in entries:
        if isinstance(entry, str):
            sample.append(PlayerEntry(display_name=strip_formatting(entry) or entry))
            continue
        if not isinstance(entry, dict):
            continue
        clean = _first_text(*(entry.get(key) for key in clean_keys))
        raw = _first_text(*(entry.get(key) for key in raw_keys))
        display_name = clean or raw or "Unknown"
        player_id = entry.get("id") or entry.get("uuid") or ""
        sample.append(PlayerEntry(display_name=display_name, id=str(player_id)))
    return tuple(sample)


def _normalize_java(payload: JavaStatusPayload) -> StatusResult:
    raw = payload.raw
    players = _mapping(raw.get("players"))
    version = _mapping(raw.get("version"))

    motd_raw = flatten_chat(raw.get("description")) or None
    motd_clean = None
    if motd_raw:
        motd_clean = strip_formatting(motd_raw) or None

    version_name = _first_text(version.get("name"))
    if version_name:
        version_name = strip_formatting(version_name) or version_name

    sample: list[PlayerEntry] = []
    for entry in _player_sample(players.get("sample"), clean_keys=(), raw_keys=("name",)):
        # SLP sample names are raw text and may carry formatting codes
        sample.append(entry.model_copy(update={"display_name": strip_formatting(entry.display_name) or entry.display_name}))

    return StatusResult(
        online=True,
        players=Players(online=_count(players.get("online")), max=_count(players.get("max")), sample=tuple(sample)),
        version=version_name,
        motd=Motd(raw=motd_raw, clean=motd_clean),
        icon=strip_data_uri(raw.get("favicon")),
        latency_ms=payload.latency_ms,
        queried_at=payload.queried_at,
    )


def _normalize_bedrock(payload: BedrockStatusPayload) -> StatusResult:
    motd_raw = join_lines(payload.motd_raw)
    motd_clean = join_lines(payload.motd_clean)
    if motd_clean is None and motd_raw is not None:
        motd_clean = strip_formatting(motd_raw) or None

    version_name = join_lines(payload.version_name)
    if version_name:
        version_name = strip_formatting(version_name) or version_name

    return StatusResult(
        online=True,
        players=Players(online=_count(payload.players_online), max=_count(payload.players_max)),
        version=version_name,
        motd=Motd(raw=motd_raw, clean=motd_clean),
        latency_ms=payload.latency_ms,
        queried_at=payload.queried_at,
    )


def _normalize_mcstatus_io(payload: McStatusIoPayload) -> StatusResult:
    data = payload.data
    players = _mapping(data.get("players"))
    counts = Players(online=_count(players.get("online")), max=_count(players.get("max")))

    if not data.get("online"):
        return StatusResult(online=False, players=counts, error=OFFLINE_REASON, queried_at=payload.queried_at)

    version = _mapping(data.get("version"))
    motd = _mapping(data.get("motd"))
    motd_raw = join_lines(motd.get("raw"))
    motd_clean = join_lines(motd.get("clean"))
    if motd_clean is None and motd_raw is not None:
        motd_clean = strip_formatting(motd_raw) or None

    return StatusResult(
        online=True,
        players=counts.model_copy(
            update={
                "sample": _player_sample(
                    players.get("list"),
                    clean_keys=("name_clean",),
                    raw_keys=("name_raw", "name"),
                )
            }
        ),
        version=_first_text(version.get("name_clean"), version.get("name_raw"), version.get("name")),
        motd=Motd(raw=motd_raw, clean=motd_clean),
        icon=strip_data_uri(data.get("icon")),
        queried_at=payload.queried_at,
    )


def normalize(payload: JavaStatusPayload | BedrockStatusPayload | McStatusIoPayload) -> StatusResult:
    if isinstance(payload, JavaStatusPayload):
        return _normalize_java(payload)
    if isinstance(payload, BedrockStatusPayload):
        return _normalize_bedrock(payload)
    if isinstance(payload, McStatusIoPayload):
        return _normalize_mcstatus_io(payload)
    raise TypeError(f"Unsupported upstream payload: {type(payload).__name__}")


def failure_result(error: ProbeError) -> StatusResult:
    """Offline record stored in place of a failed probe."""
    return StatusResult(online=False, error=error.reason, queried_at=error.queried_at)
