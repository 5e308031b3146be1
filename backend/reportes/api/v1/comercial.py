"""
Comercial panel endpoints.

Comerciales follow the open reportes of their own zona and close them
once the problem is handled.
"""

import logging

from fastapi import APIRouter, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from reportes.api.dependencies import (
    ComercialUser,
    DatabaseSession,
    StaffUser,
    get_visible_reporte,
)
from reportes.models.reporte import Reporte, STATUS_SUBMITTED, STATUS_RESOLVED_BY_DRIVER
from reportes.repositories.message import MessageRepository
from reportes.repositories.reporte import ReporteRepository
from reportes.schemas.message import MessageResponse
from reportes.schemas.reporte import (
    ComercialReporteItem,
    ComercialReporteListResponse,
    ReporteResponse,
    ReporteTimelineResponse,
    TransitionResponse,
)
from reportes.services.reporte_state import ReporteEvent, transition

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/comercial")

# Statuses a comercial may close from
CLOSABLE_STATUSES = (STATUS_SUBMITTED, STATUS_RESOLVED_BY_DRIVER)


async def build_timeline(db: AsyncSession, reporte: Reporte) -> ReporteTimelineResponse:
    """Reporte detail plus its messages, oldest first."""
    messages = await MessageRepository(db).list_for_reporte(reporte.id)
    return ReporteTimelineResponse(
        reporte=ReporteResponse.from_model(reporte),
        evidence=reporte.get_evidence(),
        conductor_nombre=reporte.conductor_nombre,
        messages=[MessageResponse.model_validate(m) for m in messages],
    )


@router.get("/reportes", response_model=ComercialReporteListResponse)
async def list_zona_reportes(
    db: DatabaseSession,
    current_user: ComercialUser,
) -> ComercialReporteListResponse:
    """
    Open reportes of the caller's zona, newest first (at most 20).

    A comercial without a zona gets an empty list and an explanation.
    """
    if not current_user.zona:
        return ComercialReporteListResponse(
            reportes=[],
            zona=None,
            message="No tienes una zona asignada. Contacta a un administrador.",
        )

    reportes = await ReporteRepository(db).list_open_by_zona(current_user.zona, limit=20)
    return ComercialReporteListResponse(
        reportes=[ComercialReporteItem.from_model(r) for r in reportes],
        zona=current_user.zona,
    )


@router.get("/reportes/{reporte_id}", response_model=ReporteTimelineResponse)
async def get_zona_reporte(
    reporte_id: str,
    db: DatabaseSession,
    current_user: ComercialUser,
) -> ReporteTimelineResponse:
    """Reporte detail with the chat timeline; 404 outside the caller's zona."""
    reporte = await get_visible_reporte(db, current_user, reporte_id)
    return await build_timeline(db, reporte)


@router.post("/reportes/{reporte_id}/close", response_model=TransitionResponse)
async def close_reporte(
    reporte_id: str,
    db: DatabaseSession,
    current_user: StaffUser,
) -> TransitionResponse:
    """
    Mark a reporte as completed.

    Raises:
        HTTPException 404: Not visible to the caller
        HTTPException 409: Not submitted nor resolved by the driver
    """
    reporte = await get_visible_reporte(db, current_user, reporte_id)

    if reporte.status not in CLOSABLE_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"No se puede cerrar un reporte en estado '{reporte.status_label}'",
        )

    transition(reporte, ReporteEvent.ADMIN_COMPLETES)
    reporte = await ReporteRepository(db).save(reporte)
    await db.commit()

    logger.info("Reporte closed", extra={"reporte_id": reporte.id, "user_id": current_user.id})
    return TransitionResponse(reporte=ReporteResponse.from_model(reporte))
