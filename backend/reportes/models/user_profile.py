"""
User profile model.

Every authenticated user has exactly one profile carrying the role
that gates the conductor, comercial and admin panels.
"""

from sqlalchemy import Column, String, Text, Boolean, Index
from sqlalchemy.orm import relationship

from reportes.models.base import Base, UUIDMixin, TimestampMixin, ModelMixin, load_json, dump_json


ROLE_CONDUCTOR = "conductor"
ROLE_COMERCIAL = "comercial"
ROLE_ADMINISTRADOR = "administrador"

ROLES = (ROLE_CONDUCTOR, ROLE_COMERCIAL, ROLE_ADMINISTRADOR)


class UserProfile(Base, UUIDMixin, TimestampMixin, ModelMixin):
    """
    Profile of a driver, commercial staff member or administrator.

    Attributes:
        id: UUID primary key (also the JWT subject)
        email: Login email (unique, stored lowercase)
        hashed_password: Bcrypt hash of the password
        display_name: Name shown in chat and report listings
        role: conductor, comercial or administrador
        zona: Zona a comercial is scoped to (None for others)
        avatar_url: Optional avatar image URL
        is_active: Inactive users cannot log in
        metadata: JSON map (e.g. notifications_enabled)
    """

    __tablename__ = "user_profiles"

    email = Column(
        String(255),
        nullable=False,
        unique=True,
        doc="Login email"
    )

    hashed_password = Column(
        String(255),
        nullable=False,
        doc="Bcrypt password hash"
    )

    display_name = Column(
        String(255),
        nullable=True,
        doc="Human-readable display name"
    )

    role = Column(
        String(32),
        nullable=False,
        default=ROLE_CONDUCTOR,
        doc="conductor, comercial or administrador"
    )

    zona = Column(
        String(64),
        nullable=True,
        doc="Zona assigned to a comercial"
    )

    avatar_url = Column(
        Text,
        nullable=True,
        doc="Avatar image URL"
    )

    is_active = Column(
        Boolean,
        nullable=False,
        default=True,
        doc="Whether the user may log in"
    )

    # "metadata" is reserved on declarative classes
    extra = Column(
        "metadata",
        Text,
        nullable=False,
        default="{}",
        doc="JSON metadata: notifications_enabled"
    )

    reportes = relationship(
        "Reporte",
        back_populates="user",
        cascade="all, delete-orphan"
    )

    push_subscriptions = relationship(
        "PushSubscription",
        back_populates="user",
        cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("idx_user_profiles_role", "role"),
    )

    def get_metadata(self) -> dict:
        """Parse metadata JSON string to dictionary."""
        return load_json(self.extra, {})

    def set_metadata(self, metadata: dict) -> None:
        """Store metadata dictionary as JSON."""
        self.extra = dump_json(metadata or {})

    def notifications_enabled(self, default: bool) -> bool:
        """
        Whether this user wants push notifications.

        Args:
            default: Value used when the user never set a preference.
                Comerciales are opted in by default, administradores are not.
        """
        value = self.get_metadata().get("notifications_enabled")
        if value is None:
            return default
        return bool(value)

    def __repr__(self) -> str:
        return f"UserProfile(id='{self.id}', email='{self.email}', role='{self.role}')"
