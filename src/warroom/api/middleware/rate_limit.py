"""
Rate limiting -- caps how many deliberations one client can start.

Every new session fans out into a full round of model calls, so session
creation (HTTP and WebSocket) is limited per client with an in-memory sliding
window. The limiter lives on app.state, one per application.

Configuration via environment:
  WARROOM_SESSION_RATE_LIMIT=10  (sessions per minute per client)
"""

import logging
import os
import time
from collections import defaultdict

from fastapi import HTTPException, Request

logger = logging.getLogger(__name__)

DEFAULT_SESSIONS_PER_MINUTE = 10


def _get_rate_limit() -> int:
    """Load rate limit from environment."""
    try:
        return int(
            os.environ.get("WARROOM_SESSION_RATE_LIMIT", DEFAULT_SESSIONS_PER_MINUTE)
        )
    except ValueError:
        return DEFAULT_SESSIONS_PER_MINUTE


class RateLimiter:
    """Sliding-window counter per client id."""

    def __init__(self, limit: int | None = None, window_seconds: float = 60.0):
        self.limit = limit if limit is not None else _get_rate_limit()
        self.window_seconds = window_seconds
        self._log: dict[str, list[float]] = defaultdict(list)

    def allow(self, client_id: str) -> bool:
        """Record an attempt; False if the client is over the limit."""
        now = time.time()
        cutoff = now - self.window_seconds
        self._log[client_id] = [ts for ts in self._log[client_id] if ts > cutoff]
        if len(self._log[client_id]) >= self.limit:
            logger.warning(f"[RateLimit] Client {client_id} exceeded {self.limit}/min")
            return False
        self._log[client_id].append(now)
        return True


async def check_session_rate_limit(request: Request) -> None:
    """
    FastAPI dependency for session-creating routes.

    Raises HTTP 429 if the client has exceeded the limit.
    """
    limiter: RateLimiter = request.app.state.rate_limiter
    client_id = request.client.host if request.client else "unknown"
    if not limiter.allow(client_id):
        raise HTTPException(
            status_code=429,
            detail=f"Rate limit exceeded ({limiter.limit} sessions per minute)",
            headers={"Retry-After": "60"},
        )
