"""Pieces shared by the individual protocol probes."""

from datetime import datetime, timezone

from gamestatus.models import ProbeErrorKind


class ProbeFailure(Exception):
    """Raised inside a protocol probe for a failure with a known reason."""

    def __init__(self, kind: ProbeErrorKind, reason: str) -> None:
        self.kind = kind
        self.reason = reason
        super().__init__(reason)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
