"""
FastAPI dependency functions.

Provides reusable dependency injection functions for FastAPI routes:
authentication, role guards, reporte access checks and the providers of
the external services (AI models, store directory, storage, web push).
Tests replace the providers through app.dependency_overrides.
"""

import logging
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, UploadFile, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from reportes.core.config import settings
from reportes.core.database import get_db
from reportes.core.security import decode_access_token
from reportes.models.reporte import Reporte
from reportes.models.user_profile import (
    UserProfile,
    ROLE_COMERCIAL,
    ROLE_ADMINISTRADOR,
)
from reportes.repositories.reporte import ReporteRepository
from reportes.repositories.user_profile import UserProfileRepository
from reportes.services.interfaces import (
    IPushSender,
    IResolutionAnalyzer,
    IStoreDirectory,
    ITicketExtractor,
)
from reportes.services.push_notifier import WebPushSender
from reportes.services.resolution import OpenRouterResolutionAnalyzer
from reportes.services.storage import LocalStorage
from reportes.services.store_directory import N8nStoreDirectory
from reportes.services.ticket_extractor import OpenRouterTicketExtractor

logger = logging.getLogger(__name__)


# HTTP Bearer token scheme; missing credentials are reported as 401 below
security = HTTPBearer(auto_error=False)

DatabaseSession = Annotated[AsyncSession, Depends(get_db)]


async def get_current_user(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    db: DatabaseSession,
) -> UserProfile:
    """
    Dependency to get the current authenticated profile from the JWT token.

    The profile row is re-read on every request so role, zona and active
    flag changes apply immediately.

    Args:
        credentials: HTTP Bearer credentials from Authorization header
        db: Database session

    Returns:
        UserProfile of the caller

    Raises:
        HTTPException 401: If the token is missing, invalid or expired,
            or the profile no longer exists or is inactive

    Example:
        @router.get("/me")
        async def me(current_user: CurrentUser):
            return {"email": current_user.email}
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="No autenticado",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if credentials is None:
        raise credentials_exception

    token_data = decode_access_token(credentials.credentials)
    if token_data is None:
        raise credentials_exception

    profile = await UserProfileRepository(db).get_by_id(token_data.user_id)
    if profile is None or not profile.is_active:
        raise credentials_exception

    return profile


CurrentUser = Annotated[UserProfile, Depends(get_current_user)]


def require_roles(*roles: str):
    """
    Build a dependency that only lets the given roles through.

    Example:
        AdminUser = Annotated[UserProfile, Depends(require_roles("administrador"))]
    """

    async def _checker(current_user: CurrentUser) -> UserProfile:
        if current_user.role not in roles:
            logger.info(
                "Role check failed",
                extra={"user_id": current_user.id, "role": current_user.role, "required": list(roles)},
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="No tienes permiso para acceder a esta sección",
            )
        return current_user

    return _checker


ComercialUser = Annotated[UserProfile, Depends(require_roles(ROLE_COMERCIAL))]
AdminUser = Annotated[UserProfile, Depends(require_roles(ROLE_ADMINISTRADOR))]
StaffUser = Annotated[
    UserProfile, Depends(require_roles(ROLE_COMERCIAL, ROLE_ADMINISTRADOR))
]


def reporte_not_found() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail="Reporte no encontrado",
    )


def can_view_reporte(user: UserProfile, reporte: Reporte) -> bool:
    """
    Whether a user may read a reporte and its chat.

    The owner, any administrador, and comerciales of the reporte's zona.
    """
    if reporte.user_id == user.id:
        return True
    if user.role == ROLE_ADMINISTRADOR:
        return True
    if user.role == ROLE_COMERCIAL:
        return bool(user.zona) and user.zona == reporte.store_zona
    return False


async def get_visible_reporte(db: AsyncSession, user: UserProfile, reporte_id: str) -> Reporte:
    """
    Load a reporte the user may view.

    Raises:
        HTTPException 404: Missing reporte or no access (existence is not leaked)
    """
    reporte = await ReporteRepository(db).get_by_id(reporte_id)
    if reporte is None or not can_view_reporte(user, reporte):
        raise reporte_not_found()
    return reporte


async def get_owned_reporte(db: AsyncSession, user: UserProfile, reporte_id: str) -> Reporte:
    """
    Load a reporte owned by the user.

    Raises:
        HTTPException 404: Missing reporte or owned by someone else
    """
    reporte = await ReporteRepository(db).get_by_id(reporte_id)
    if reporte is None or reporte.user_id != user.id:
        raise reporte_not_found()
    return reporte


# External service providers

def get_resolution_analyzer() -> Optional[IResolutionAnalyzer]:
    """Resolution analyser, or None when analysis is switched off."""
    if not settings.resolution_analysis_enabled:
        return None
    return OpenRouterResolutionAnalyzer()


def get_store_directory() -> IStoreDirectory:
    return N8nStoreDirectory()


def get_storage() -> LocalStorage:
    return LocalStorage()


def get_ticket_extractor(
    storage: Annotated[LocalStorage, Depends(get_storage)],
) -> ITicketExtractor:
    return OpenRouterTicketExtractor(storage=storage)


def get_push_sender() -> Optional[IPushSender]:
    """Web push sender, or None when VAPID keys are not configured."""
    if not settings.push_enabled:
        return None
    return WebPushSender()


TicketExtractor = Annotated[ITicketExtractor, Depends(get_ticket_extractor)]
ResolutionAnalyzer = Annotated[Optional[IResolutionAnalyzer], Depends(get_resolution_analyzer)]
StoreDirectory = Annotated[IStoreDirectory, Depends(get_store_directory)]
Storage = Annotated[LocalStorage, Depends(get_storage)]
PushSender = Annotated[Optional[IPushSender], Depends(get_push_sender)]


async def read_upload(file: UploadFile, image_only: bool = False) -> bytes:
    """
    Read an uploaded file, enforcing the size limit.

    Raises:
        HTTPException 400: Empty file, or not an image when image_only is set
        HTTPException 413: File larger than settings.max_upload_bytes
    """
    if image_only and not (file.content_type or "").startswith("image/"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="El archivo debe ser una imagen",
        )

    data = await file.read(settings.max_upload_bytes + 1)
    if not data:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No se recibió ningún archivo",
        )
    if len(data) > settings.max_upload_bytes:
        limit_mb = settings.max_upload_bytes // (1024 * 1024)
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"El archivo es demasiado grande. Máximo {limit_mb}MB",
        )
    return data
