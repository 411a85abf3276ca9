"""Hytale status probe placeholder."""

from datetime import datetime

from gamestatus.models import ProbeErrorKind, ServerTarget
from gamestatus.probes.base import ProbeFailure


async def fetch_status(target: ServerTarget, *, timeout: float, queried_at: datetime):
    raise ProbeFailure(ProbeErrorKind.UNSUPPORTED, "Hytale protocol not yet implemented")
