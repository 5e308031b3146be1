"""
Pydantic schemas for authentication, profiles and the admin user panel.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from reportes.models.user_profile import UserProfile


Role = Literal["conductor", "comercial", "administrador"]


class SignupRequest(BaseModel):
    """
    Self-service registration payload.

    New accounts are always conductores.
    """
    email: str = Field(..., min_length=3, max_length=255, description="Login email")
    password: str = Field(..., min_length=8, max_length=128, description="Password")

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        v = v.strip().lower()
        local, _, domain = v.partition("@")
        if not local or "." not in domain:
            raise ValueError("Correo electrónico inválido")
        return v


class UserProfileResponse(BaseModel):
    """
    Public view of a user profile.

    Attributes:
        id: Profile UUID
        email: Login email
        display_name: Name shown to other users
        role: conductor, comercial or administrador
        zona: Assigned zona (comerciales)
        is_active: Whether the user may log in
        notifications_enabled: Effective push preference for the role
        created_at: ISO creation timestamp
    """
    id: str
    email: str
    display_name: Optional[str] = None
    role: Role
    zona: Optional[str] = None
    avatar_url: Optional[str] = None
    is_active: bool
    notifications_enabled: bool
    created_at: str

    @classmethod
    def from_model(cls, profile: UserProfile) -> "UserProfileResponse":
        return cls(
            id=profile.id,
            email=profile.email,
            display_name=profile.display_name,
            role=profile.role,
            zona=profile.zona,
            avatar_url=profile.avatar_url,
            is_active=profile.is_active,
            notifications_enabled=profile.notifications_enabled(
                default=profile.role == "comercial"
            ),
            created_at=profile.created_at,
        )


class HomeResponse(BaseModel):
    """Panels the current user may open."""
    user: UserProfileResponse
    panels: List[Literal["conductor", "comercial", "admin"]]


class UserListResponse(BaseModel):
    """Admin user list with the zonas that can be assigned."""
    users: List[UserProfileResponse]
    zonas: List[str]


class UpdateRoleRequest(BaseModel):
    """
    Role and zona change requested by an administrador.

    A comercial must be assigned a zona.
    """
    role: Role
    zona: Optional[str] = Field(default=None, max_length=64)


class UpdateActiveRequest(BaseModel):
    is_active: bool


class NotificationToggleRequest(BaseModel):
    enabled: bool
