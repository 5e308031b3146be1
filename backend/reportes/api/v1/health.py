"""
Liveness and readiness probes.

/health answers as long as the process runs; /health/ready also checks
the database, the model API and the media directory, and answers 503
when any of them fails.
"""

import asyncio
import time
from datetime import datetime, timezone
from typing import Awaitable, Dict, Tuple

from fastapi import APIRouter, Response, status

from reportes.core.probes import check_database, check_media_storage, check_openrouter
from reportes.schemas.health import HealthCheckDetail, HealthResponse, ReadinessResponse


router = APIRouter()

PROBE_ERRORS = {
    "db": "Database connection failed or timed out",
    "openrouter": "OpenRouter API unreachable or timed out",
    "storage": "Media directory is not writable",
}


async def _timed(probe: Awaitable[bool]) -> Tuple[bool, float]:
    start = time.perf_counter()
    healthy = await probe
    return healthy, round((time.perf_counter() - start) * 1000, 2)


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Liveness probe",
)
async def health_check() -> HealthResponse:
    return HealthResponse(status="ok", timestamp=datetime.now(timezone.utc))


@router.get(
    "/health/ready",
    response_model=ReadinessResponse,
    summary="Readiness probe",
    description="Checks the database, the model API and the media directory",
)
async def readiness_check(response: Response) -> ReadinessResponse:
    """
    Run every probe concurrently.

    Example response (unhealthy):
        {
            "status": "not_ready",
            "checks": {
                "db": {"healthy": true, "latency_ms": 10.2},
                "openrouter": {"healthy": false, "latency_ms": 3000.0, "error": "..."},
                "storage": {"healthy": true, "latency_ms": 0.3}
            },
            "timestamp": "2025-11-24T10:30:00.123456Z"
        }
    """
    names = ("db", "openrouter", "storage")
    results = await asyncio.gather(
        _timed(check_database()),
        _timed(check_openrouter()),
        _timed(asyncio.to_thread(check_media_storage)),
    )

    checks: Dict[str, HealthCheckDetail] = {
        name: HealthCheckDetail(
            healthy=healthy,
            latency_ms=latency,
            error=None if healthy else PROBE_ERRORS[name],
        )
        for name, (healthy, latency) in zip(names, results)
    }

    ready = all(check.healthy for check in checks.values())
    if not ready:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return ReadinessResponse(
        status="ready" if ready else "not_ready",
        checks=checks,
        timestamp=datetime.now(timezone.utc),
    )
