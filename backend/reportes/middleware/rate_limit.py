"""
Per-IP rate limiting with token buckets.

Three tiers share the same mechanism:
    login and signup (/auth)          auth_limit per minute
    AI ticket extraction (/tickets)   extraction_limit per minute
    everything else                   default_limit per minute

A client gets one bucket per tier, so exhausting the login tier does not
lock a driver out of an open reporte. Uploaded media served from /media
is never limited.

Set DISABLE_RATE_LIMIT=true to turn it off (test suites, load tests).

Note: Buckets live in process memory, so limits are per worker.
"""

import logging
import os
import time
from typing import Callable, Dict, List, Tuple

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

RATE_LIMIT_DETAIL = "Demasiadas solicitudes, intenta de nuevo en un momento"

EXEMPT_PREFIXES = ("/media/",)

# Buckets idle for longer than this are dropped on cleanup
BUCKET_IDLE_SECONDS = 600


def rate_limit_disabled() -> bool:
    return os.getenv("DISABLE_RATE_LIMIT", "").lower() in {"1", "true", "yes"}


class TokenBucket:
    """
    Bucket holding up to capacity tokens, refilled continuously.

    Attributes:
        capacity: Burst size
        refill_rate: Tokens added per second
        tokens: Tokens currently available (fractional)
    """

    def __init__(self, capacity: int, refill_rate: float):
        self.capacity = capacity
        self.refill_rate = refill_rate
        self.tokens = float(capacity)
        self.last_refill = time.time()

    def _refill(self) -> None:
        now = time.time()
        self.tokens = min(self.capacity, self.tokens + (now - self.last_refill) * self.refill_rate)
        self.last_refill = now

    def consume(self, tokens: int = 1) -> bool:
        """Take tokens if available; consume(0) only refills."""
        self._refill()
        if self.tokens < tokens:
            return False
        self.tokens -= tokens
        return True

    def get_wait_time(self) -> float:
        """Seconds until one token is available."""
        missing = 1 - self.tokens
        return max(0.0, missing / self.refill_rate)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Reject clients that exceed their tier with 429 Too Many Requests.

    Example:
        app.add_middleware(
            RateLimitMiddleware,
            auth_limit=10,
            default_limit=120,
            extraction_limit=20,
        )

    Note:
        The client is the first X-Forwarded-For address when present, so
        deploy behind a proxy that overwrites that header.
    """

    def __init__(
        self,
        app,
        auth_limit: int = 10,
        default_limit: int = 120,
        extraction_limit: int = 20,
        cleanup_interval: int = 300,
    ):
        super().__init__(app)
        self.auth_limit = auth_limit
        self.default_limit = default_limit
        self.extraction_limit = extraction_limit
        self.cleanup_interval = cleanup_interval

        # Path fragment -> requests per minute, first match wins
        self.tiers: List[Tuple[str, int]] = [
            ("/auth", auth_limit),
            ("/tickets", extraction_limit),
        ]

        # "ip|limit" -> (bucket, last access)
        self.buckets: Dict[str, Tuple[TokenBucket, float]] = {}
        self.last_cleanup = time.time()

        logger.info(
            "Rate limiting initialized",
            extra={
                "auth_limit": auth_limit,
                "default_limit": default_limit,
                "extraction_limit": extraction_limit,
            }
        )

    @staticmethod
    def _get_client_ip(request: Request) -> str:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return forwarded.split(",")[0].strip()
        return request.client.host if request.client else "unknown"

    def _get_rate_limit(self, path: str) -> int:
        """Requests per minute allowed for a path."""
        for fragment, limit in self.tiers:
            if fragment in path:
                return limit
        return self.default_limit

    def _get_or_create_bucket(self, ip: str, limit: int) -> TokenBucket:
        """Bucket of a client for one tier; full on first use."""
        now = time.time()
        if now - self.last_cleanup > self.cleanup_interval:
            self._cleanup_old_buckets(now)

        key = f"{ip}|{limit}"
        entry = self.buckets.get(key)
        bucket = entry[0] if entry else TokenBucket(capacity=limit, refill_rate=limit / 60.0)
        self.buckets[key] = (bucket, now)
        return bucket

    def _cleanup_old_buckets(self, now: float) -> None:
        stale = [
            key for key, (_, last_access) in self.buckets.items()
            if now - last_access > BUCKET_IDLE_SECONDS
        ]
        for key in stale:
            del self.buckets[key]

        if stale:
            logger.info("Dropped idle rate limit buckets", extra={"count": len(stale)})

        self.last_cleanup = now

    @staticmethod
    def _too_many_requests(limit: int, wait_time: float) -> JSONResponse:
        retry_after = int(wait_time) + 1
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content={
                "detail": RATE_LIMIT_DETAIL,
                "limit": limit,
                "window": "1 minute",
                "retry_after": retry_after,
            },
            headers={
                "Retry-After": str(retry_after),
                "X-RateLimit-Limit": str(limit),
                "X-RateLimit-Remaining": "0",
            }
        )

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        if rate_limit_disabled() or path.startswith(EXEMPT_PREFIXES):
            return await call_next(request)

        client_ip = self._get_client_ip(request)
        limit = self._get_rate_limit(path)
        bucket = self._get_or_create_bucket(client_ip, limit)

        if not bucket.consume():
            wait_time = bucket.get_wait_time()
            logger.warning(
                "Rate limit exceeded",
                extra={
                    "client_ip": client_ip,
                    "path": path,
                    "limit": limit,
                    "wait_time": wait_time,
                    "request_id": getattr(request.state, "request_id", None),
                }
            )
            return self._too_many_requests(limit, wait_time)

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(limit)
        response.headers["X-RateLimit-Remaining"] = str(int(bucket.tokens))
        return response
