"""
Correlation ID middleware.

Drivers report problems with a screenshot of the app, so every response
carries an X-Request-ID that support can search for in the logs. A
client supplied ID is kept when it looks sane; otherwise a UUID4 is
generated. The ID is stored in request.state.request_id.
"""

import re
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

REQUEST_ID_HEADER = "X-Request-ID"

_VALID_REQUEST_ID = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


def resolve_request_id(header_value: str | None) -> str:
    if header_value and _VALID_REQUEST_ID.match(header_value):
        return header_value
    return str(uuid.uuid4())


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Attach a correlation ID to the request and echo it in the response.

    Example:
        @router.post("/conductor/reportes/{reporte_id}/submit")
        async def submit(reporte_id: str, request: Request):
            logger.info(
                "Submitting reporte",
                extra={"request_id": request.state.request_id, "reporte_id": reporte_id},
            )
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
