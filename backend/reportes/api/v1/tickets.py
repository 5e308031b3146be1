"""
Ticket extraction endpoint.

Reads an OXXO delivery ticket photo with a vision model and returns the
structured data for the driver to review before confirming it.
"""

import logging

from fastapi import APIRouter, HTTPException, Request, status

from reportes.api.dependencies import CurrentUser, Storage, TicketExtractor
from reportes.schemas.ticket import (
    TicketExtractRequest,
    TicketExtractResponse,
    TicketData,
    TicketValidation,
)
from reportes.services.storage import StorageError
from reportes.services.ticket_extractor import (
    RateLimitedError,
    TicketExtractionError,
    validate_ticket_data,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tickets")


@router.post("/extract", response_model=TicketExtractResponse)
async def extract_ticket(
    request: TicketExtractRequest,
    http_request: Request,
    current_user: CurrentUser,
    extractor: TicketExtractor,
    storage: Storage,
) -> TicketExtractResponse:
    """
    Extract ticket data from an uploaded photo.

    Args:
        request: Body with imageUrl (public /media/ URL of an uploaded photo)

    Returns:
        Normalised ticket data and the validation result

    Raises:
        HTTPException 400: imageUrl missing or not one of our media URLs
        HTTPException 429: Model provider still rate limiting after retries
        HTTPException 502: Image read, model or parsing failure

    Example:
        POST /api/v1/tickets/extract
        {"imageUrl": "http://localhost:8000/media/evidence/.../ticket_1732.jpg"}
    """
    if not request.image_url:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="URL de imagen requerida",
        )

    try:
        storage.locate(request.image_url)
    except StorageError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e

    correlation_id = getattr(http_request.state, "request_id", None)

    try:
        data = await extractor.extract(request.image_url, correlation_id=correlation_id)
    except RateLimitedError as e:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Límite de solicitudes alcanzado. Por favor espera un momento e intenta de nuevo.",
        ) from e
    except TicketExtractionError as e:
        logger.error(
            "Ticket extraction failed",
            extra={"user_id": current_user.id, "error": str(e)},
        )
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e)) from e

    validation = validate_ticket_data(data)

    return TicketExtractResponse(
        data=TicketData.model_validate(data),
        validation=TicketValidation(**validation),
    )
