"""
Rate Limiting Middleware.

Fixed-window, in-memory rate limiting per client IP. Enabled in production
or when RATE_LIMIT_ENABLED=true; RATE_LIMIT_ENABLED=false always disables it.
"""

import logging
import time
from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from shared.config import ServiceSettings

logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = "Too many requests, please try again later."


class RateLimitMiddleware(BaseHTTPMiddleware):
    """In-memory fixed-window rate limiting keyed by client IP."""

    def __init__(self, app, settings: ServiceSettings):
        super().__init__(app)
        self.enabled = settings.rate_limit_active
        self.window = settings.RATE_LIMIT_TTL
        self.limit = settings.RATE_LIMIT_LIMIT
        self.skip_paths = settings.rate_limit_skip_paths_set
        self.buckets: dict[str, dict[str, Any]] = {}
        self._last_sweep = 0
        if self.enabled:
            logger.info("Rate limiting enabled: %d requests per %ds", self.limit, self.window)

    def _key(self, request: Request) -> str:
        return request.client.host if request.client else "unknown"

    def _sweep(self, now: int) -> None:
        """Drop buckets whose window has ended; runs at most once per window."""
        expired = [key for key, bucket in self.buckets.items() if now - bucket["window_start"] >= self.window]
        for key in expired:
            del self.buckets[key]
        self._last_sweep = now

    async def dispatch(self, request: Request, call_next):
        if not self.enabled:
            return await call_next(request)

        path = request.url.path or "/"
        if path in self.skip_paths:
            return await call_next(request)

        now = int(time.time())
        if now - self._last_sweep >= self.window:
            self._sweep(now)
        key = self._key(request)
        bucket = self.buckets.get(key, {"count": 0, "window_start": now})
        if now - bucket["window_start"] >= self.window:
            bucket = {"count": 0, "window_start": now}
        bucket["count"] += 1
        self.buckets[key] = bucket
        if bucket["count"] > self.limit:
            retry_after = max(1, self.window - (now - bucket["window_start"]))
            logger.warning(f"Rate limit exceeded for {key}: {bucket['count']}/{self.limit}")
            return JSONResponse(
                status_code=429,
                content={"statusCode": 429, "message": RATE_LIMIT_MESSAGE},
                headers={"Retry-After": str(retry_after)},
            )

        return await call_next(request)
