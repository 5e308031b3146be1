"""
Reporte endpoints shared by every role.

Creation and editing belong to the owning conductor; reading is open to
the owner, administradores and comerciales of the reporte's zona.
"""

import logging

from fastapi import APIRouter, HTTPException, status

from reportes.api.dependencies import (
    CurrentUser,
    DatabaseSession,
    get_owned_reporte,
    get_visible_reporte,
)
from reportes.models.reporte import STATUS_DRAFT
from reportes.repositories.reporte import ReporteRepository, ActiveReporteExistsError
from reportes.repositories.store import StoreRepository
from reportes.schemas.reporte import (
    ReporteCreateRequest,
    ReporteCreateResponse,
    ReporteDetailResponse,
    ReporteResponse,
    ReporteUpdateRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/reportes",
    response_model=ReporteCreateResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_reporte(
    request: ReporteCreateRequest,
    db: DatabaseSession,
    current_user: CurrentUser,
) -> ReporteCreateResponse:
    """
    Start a draft reporte at a validated store.

    Raises:
        HTTPException 404: Unknown store
        HTTPException 409: The caller already has a draft or submitted
            reporte; the detail carries its id so the client can resume it
    """
    store = await StoreRepository(db).get_by_id(request.store_id)
    if store is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Tienda no encontrada",
        )

    try:
        reporte = await ReporteRepository(db).create_reporte(
            current_user, store, conductor_nombre=request.conductor_nombre
        )
    except ActiveReporteExistsError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"message": str(e), "reporte_id": e.reporte_id},
        )

    await db.commit()

    logger.info(
        "Reporte created",
        extra={"reporte_id": reporte.id, "user_id": current_user.id, "codigo_tienda": store.codigo_tienda},
    )
    return ReporteCreateResponse(reporte=ReporteResponse.from_model(reporte))


@router.get("/reportes/{reporte_id}", response_model=ReporteDetailResponse)
async def get_reporte(
    reporte_id: str,
    db: DatabaseSession,
    current_user: CurrentUser,
) -> ReporteDetailResponse:
    reporte = await get_visible_reporte(db, current_user, reporte_id)
    return ReporteDetailResponse(
        reporte=ReporteResponse.from_model(reporte),
        evidence=reporte.get_evidence(),
    )


@router.patch("/reportes/{reporte_id}", response_model=ReporteResponse)
async def update_reporte(
    reporte_id: str,
    request: ReporteUpdateRequest,
    db: DatabaseSession,
    current_user: CurrentUser,
) -> ReporteResponse:
    """
    Update the editable fields of an own draft.

    Only fields present in the body are written; metadata keys are merged.

    Raises:
        HTTPException 404: Not found or not owned
        HTTPException 409: Reporte is no longer a draft
    """
    reporte = await get_owned_reporte(db, current_user, reporte_id)

    if reporte.status != STATUS_DRAFT:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Solo se pueden editar reportes en borrador",
        )

    changes = request.model_dump(exclude_unset=True)

    if "tipo_reporte" in changes:
        reporte.tipo_reporte = changes["tipo_reporte"]
    if "motivo" in changes:
        reporte.motivo = changes["motivo"]
    if "rechazo_details" in changes:
        reporte.set_rechazo_details(changes["rechazo_details"])
    if "incident_details" in changes:
        reporte.set_incident_details(changes["incident_details"])
    if changes.get("metadata"):
        reporte.merge_metadata(changes["metadata"])

    reporte = await ReporteRepository(db).save(reporte)
    await db.commit()

    logger.info(
        "Reporte updated",
        extra={"reporte_id": reporte.id, "fields": sorted(changes)},
    )
    return ReporteResponse.from_model(reporte)
