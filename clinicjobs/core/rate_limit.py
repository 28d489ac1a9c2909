"""
In-memory sliding-window rate limiting for write endpoints.

Each limiter keeps one deque of request times per client IP. Limits are
per process; a multi-worker deployment multiplies the effective ceiling.
"""
import logging
import math
import time
from collections import defaultdict, deque
from threading import Lock
from typing import Callable, Deque, Dict

from fastapi import HTTPException, Request, Response, status

from clinicjobs.core import config

logger = logging.getLogger(__name__)


def get_client_ip(request: Request) -> str:
    """Extract client IP address from request."""
    # First hop of a proxy chain
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()

    if request.client:
        return request.client.host

    return "unknown"


class SlidingWindowLimiter:
    """
    Allow at most `max_requests()` hits per client within `window_seconds`.

    `max_requests` is a callable so the ceiling follows config changes
    without rebuilding the limiter.
    """

    def __init__(self, scope: str, max_requests: Callable[[], int], window_seconds: int = 60, clock=time.monotonic):
        self.scope = scope
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.clock = clock
        self._hits: Dict[str, Deque[float]] = defaultdict(deque)
        self._lock = Lock()

    def hit(self, client: str) -> int:
        """
        Record one request for a client.

        Returns:
            Requests still allowed in the current window

        Raises:
            HTTPException: 429 with Retry-After once the ceiling is reached
        """
        limit = self.max_requests()
        now = self.clock()
        with self._lock:
            hits = self._hits[client]
            while hits and hits[0] <= now - self.window_seconds:
                hits.popleft()

            if len(hits) >= limit:
                retry_after = max(1, math.ceil(hits[0] + self.window_seconds - now)) if hits else self.window_seconds
                logger.warning(
                    f"Rate limit exceeded: scope={self.scope}, client={client}, "
                    f"{len(hits)} requests in {self.window_seconds}s"
                )
                raise HTTPException(
                    status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                    detail=f"Rate limit exceeded. Maximum {limit} requests per {self.window_seconds} seconds.",
                    headers={"Retry-After": str(retry_after)},
                )

            hits.append(now)
            return limit - len(hits)

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()


apply_limiter = SlidingWindowLimiter("apply", lambda: config.APPLY_RATE_LIMIT_PER_MINUTE, window_seconds=60)


def apply_rate_limit(request: Request, response: Response) -> None:
    """Dependency guarding application submission and resubmission."""
    remaining = apply_limiter.hit(get_client_ip(request))
    response.headers["RateLimit-Limit"] = str(apply_limiter.max_requests())
    response.headers["RateLimit-Remaining"] = str(remaining)
