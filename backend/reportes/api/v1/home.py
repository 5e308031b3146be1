"""
Home endpoint: tells the client which panels the caller may open.
"""

from typing import List

from fastapi import APIRouter

from reportes.api.dependencies import CurrentUser
from reportes.models.user_profile import (
    ROLE_CONDUCTOR,
    ROLE_COMERCIAL,
    ROLE_ADMINISTRADOR,
)
from reportes.schemas.user import HomeResponse, UserProfileResponse

router = APIRouter()


def panels_for(role: str) -> List[str]:
    """
    Panels available to a role.

    Administradores see every panel.
    """
    panels = []
    if role in (ROLE_CONDUCTOR, ROLE_ADMINISTRADOR):
        panels.append("conductor")
    if role in (ROLE_COMERCIAL, ROLE_ADMINISTRADOR):
        panels.append("comercial")
    if role == ROLE_ADMINISTRADOR:
        panels.append("admin")
    return panels


@router.get("/home", response_model=HomeResponse)
async def home(current_user: CurrentUser) -> HomeResponse:
    return HomeResponse(
        user=UserProfileResponse.from_model(current_user),
        panels=panels_for(current_user.role),
    )
