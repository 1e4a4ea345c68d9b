from __future__ import annotations

import asyncio
from dataclasses import dataclass

from ..exceptions import NonceConflictError, RateLimitedError


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry with fixed delays per transient failure class."""

    max_attempts: int = 3
    rate_limit_backoff: float = 2.0
    nonce_conflict_backoff: float = 1.0

    def delay_for(self, error: Exception) -> float:
        """Return the fixed backoff for ``error``."""
        if isinstance(error, RateLimitedError):
            return self.rate_limit_backoff
        if isinstance(error, NonceConflictError):
            return self.nonce_conflict_backoff
        return 0.0


async def schedule_retry(delay: float) -> None:
    """Sleep for ``delay`` seconds before retrying."""
    await asyncio.sleep(delay)
