"""
Dependency probes for the readiness endpoint.

Each probe returns True when its dependency is usable and never raises,
so /health/ready can report every failure at once.
"""

import asyncio
import logging
import os
from pathlib import Path

import httpx
from sqlalchemy import text

from reportes.core.config import settings
from reportes.core.database import async_session_maker

logger = logging.getLogger(__name__)


async def check_database(timeout_seconds: float = 2.0) -> bool:
    """SELECT 1 against the configured database within timeout_seconds."""
    try:
        async with asyncio.timeout(timeout_seconds):
            async with async_session_maker() as session:
                await session.execute(text("SELECT 1"))
        return True
    except asyncio.TimeoutError:
        logger.warning("Database probe timed out", extra={"timeout_seconds": timeout_seconds})
    except Exception as e:
        logger.warning("Database probe failed", extra={"error": str(e)})
    return False


async def check_openrouter(timeout_seconds: float = 3.0) -> bool:
    """
    HEAD the models endpoint of the OpenAI-compatible API.

    Ticket extraction and chat analysis both depend on it; any 2xx
    answer counts as available.
    """
    headers = {
        "Authorization": f"Bearer {settings.openrouter_api_key}",
        "X-Title": settings.project_name,
    }
    try:
        async with httpx.AsyncClient(timeout=timeout_seconds) as client:
            response = await client.head(f"{settings.openrouter_base_url}/models", headers=headers)
        return 200 <= response.status_code < 300
    except httpx.HTTPError as e:
        logger.info("Model API unreachable", extra={"error_type": type(e).__name__})
    except Exception as e:
        logger.warning("Model API probe failed", extra={"error": str(e)})
    return False


def check_media_storage(media_directory: str | None = None) -> bool:
    """Whether uploaded evidence and chat images can be written."""
    root = Path(media_directory or settings.media_directory)
    try:
        root.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.warning("Media directory unavailable", extra={"path": str(root), "error": str(e)})
        return False
    return os.access(root, os.W_OK)
