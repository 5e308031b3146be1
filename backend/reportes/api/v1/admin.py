"""
Administrador panel endpoints.

User management (role, zona, active flag), the history of closed
reportes across every zona, and the administrador's own push preference.
"""

import logging

from fastapi import APIRouter, HTTPException, status

from reportes.api.v1.comercial import build_timeline
from reportes.api.dependencies import AdminUser, DatabaseSession, get_visible_reporte
from reportes.core.config import settings
from reportes.repositories.reporte import ReporteRepository
from reportes.repositories.user_profile import UserProfileRepository
from reportes.schemas.reporte import (
    ComercialReporteItem,
    ComercialReporteListResponse,
    ReporteTimelineResponse,
)
from reportes.schemas.user import (
    NotificationToggleRequest,
    UpdateActiveRequest,
    UpdateRoleRequest,
    UserListResponse,
    UserProfileResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin")


@router.get("/usuarios", response_model=UserListResponse)
async def list_users(db: DatabaseSession, current_user: AdminUser) -> UserListResponse:
    """All profiles, newest first, plus the zonas that can be assigned."""
    profiles = await UserProfileRepository(db).list_profiles()
    return UserListResponse(
        users=[UserProfileResponse.from_model(p) for p in profiles],
        zonas=settings.zonas,
    )


@router.put("/usuarios/{user_id}", response_model=UserProfileResponse)
async def update_user_role(
    user_id: str,
    request: UpdateRoleRequest,
    db: DatabaseSession,
    current_user: AdminUser,
) -> UserProfileResponse:
    """
    Change a user's role and zona.

    Raises:
        HTTPException 400: Comercial without zona, or unknown zona
        HTTPException 404: Unknown user
    """
    if request.zona and request.zona not in settings.zonas:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Zona inválida: {request.zona}",
        )

    try:
        profile = await UserProfileRepository(db).update_role_and_zona(
            user_id, request.role, request.zona
        )
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    await db.commit()

    logger.info(
        "User role updated",
        extra={"user_id": current_user.id, "target_user_id": user_id, "role": request.role, "zona": request.zona},
    )
    return UserProfileResponse.from_model(profile)


@router.put("/usuarios/{user_id}/active", response_model=UserProfileResponse)
async def update_user_active(
    user_id: str,
    request: UpdateActiveRequest,
    db: DatabaseSession,
    current_user: AdminUser,
) -> UserProfileResponse:
    try:
        profile = await UserProfileRepository(db).set_active(user_id, request.is_active)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    await db.commit()

    logger.info(
        "User active flag updated",
        extra={"user_id": current_user.id, "target_user_id": user_id, "is_active": request.is_active},
    )
    return UserProfileResponse.from_model(profile)


@router.get("/reportes/cerrados", response_model=ComercialReporteListResponse)
async def list_closed_reportes(
    db: DatabaseSession,
    current_user: AdminUser,
) -> ComercialReporteListResponse:
    """Completed, timed out and archived reportes of every zona (at most 50)."""
    reportes = await ReporteRepository(db).list_closed(limit=50)
    return ComercialReporteListResponse(
        reportes=[ComercialReporteItem.from_model(r) for r in reportes],
    )


@router.get("/reportes/{reporte_id}", response_model=ReporteTimelineResponse)
async def get_any_reporte(
    reporte_id: str,
    db: DatabaseSession,
    current_user: AdminUser,
) -> ReporteTimelineResponse:
    reporte = await get_visible_reporte(db, current_user, reporte_id)
    return await build_timeline(db, reporte)


@router.put("/notifications", response_model=UserProfileResponse)
async def toggle_notifications(
    request: NotificationToggleRequest,
    db: DatabaseSession,
    current_user: AdminUser,
) -> UserProfileResponse:
    """Opt the calling administrador in or out of chat push notifications."""
    profile = await UserProfileRepository(db).set_notifications_enabled(
        current_user, request.enabled
    )
    await db.commit()
    return UserProfileResponse.from_model(profile)
