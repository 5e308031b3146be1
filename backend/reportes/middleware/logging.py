"""
Access logging middleware.

One "Request started" and one "Request completed" line per API call,
tagged with the correlation ID set by RequestIDMiddleware, so register
this middleware before it (Starlette runs the last registered first).
Uploaded media under /media is served without log lines.
"""

import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from reportes.core.logging_config import get_logger


logger = get_logger(__name__)

_SKIP_PREFIXES = ("/media/",)


def _elapsed_ms(start: float) -> float:
    return round((time.perf_counter() - start) * 1000, 2)


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Log each request with method, path, status code and latency.

    Example output:
        {"level": "INFO", "message": "Request completed", "method": "POST",
         "path": "/api/v1/chat/5f0c.../messages", "status_code": 201,
         "latency_ms": 42.7, "request_id": "abc-123", ...}

    Responses with a 5xx status are logged at WARNING; unhandled
    exceptions at ERROR with the traceback, then re-raised.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        if path.startswith(_SKIP_PREFIXES):
            return await call_next(request)

        context = {
            "method": request.method,
            "path": path,
            "request_id": getattr(request.state, "request_id", None),
        }
        logger.info(
            "Request started",
            extra={**context, "query_params": str(request.query_params) or None},
        )

        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error(
                "Request failed",
                extra={
                    **context,
                    "latency_ms": _elapsed_ms(start),
                    "exception_type": type(exc).__name__,
                    "error": str(exc),
                },
                exc_info=True,
            )
            raise

        log = logger.warning if response.status_code >= 500 else logger.info
        log(
            "Request completed",
            extra={**context, "status_code": response.status_code, "latency_ms": _elapsed_ms(start)},
        )
        return response
