"""Errors that cross the status core boundary.

Probe failures are not in here: they are represented as
:class:`gamestatus.models.ProbeError` values and cached as offline records.
"""

import math
from typing import Optional

from gamestatus.rate_limiter import RateLimitDecision


class LookupValidationError(Exception):
    """Malformed lookup input (missing server, bad type, bad host)."""

    def __init__(
        self,
        message: str,
        *,
        rate_limit: Optional[RateLimitDecision] = None,
        usage: Optional[str] = None,
        supported_types: Optional[list[str]] = None,
    ) -> None:
        self.message = message
        self.rate_limit = rate_limit
        self.usage = usage
        self.supported_types = supported_types
        super().__init__(message)


class RateLimitExceeded(Exception):
    """Raised when a client exceeds its fixed-window lookup budget."""

    def __init__(self, decision: RateLimitDecision) -> None:
        self.rate_limit = decision
        super().__init__(f"Rate limit exceeded; retry in {self.retry_after_seconds}s")

    @property
    def retry_after_seconds(self) -> int:
        return max(1, math.ceil(self.rate_limit.reset_in_ms / 1000))
