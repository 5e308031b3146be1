"""
User profile repository.

Provides data access for UserProfile with email uniqueness checks
and the role, zona and notification updates used by the admin panel.
"""

from typing import Optional, Sequence

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from reportes.models.user_profile import (
    UserProfile,
    ROLES,
    ROLE_CONDUCTOR,
    ROLE_COMERCIAL,
)


class UserProfileRepository:
    """
    Repository for user profile data access.

    Attributes:
        session: SQLAlchemy async session for database operations
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize repository with database session.

        Args:
            session: SQLAlchemy async session
        """
        self.session = session

    async def create_profile(
        self,
        email: str,
        hashed_password: str,
        display_name: Optional[str] = None,
        role: str = ROLE_CONDUCTOR,
        zona: Optional[str] = None,
    ) -> UserProfile:
        """
        Create a new user profile.

        Args:
            email: Login email (must be unique, case-insensitive)
            hashed_password: Bcrypt hash of the password
            display_name: Display name; defaults to the email local part
            role: conductor, comercial or administrador
            zona: Zona (required for comerciales)

        Returns:
            Created UserProfile with all fields populated

        Raises:
            ValueError: If the email is taken or role/zona are invalid

        Example:
            >>> profile = await repo.create_profile(
            ...     email="juan@example.com",
            ...     hashed_password=get_password_hash("secret-pass"),
            ... )
            >>> profile.display_name
            'juan'
        """
        email = email.strip().lower()

        if await self.email_exists(email):
            raise ValueError(f"El correo '{email}' ya está registrado")

        self._validate_role_zona(role, zona)

        profile = UserProfile(
            email=email,
            hashed_password=hashed_password,
            display_name=display_name or email.split("@")[0],
            role=role,
            zona=zona,
            is_active=True,
        )
        profile.set_metadata({})

        self.session.add(profile)
        await self.session.flush()
        await self.session.refresh(profile)

        return profile

    async def get_by_id(self, profile_id: str) -> Optional[UserProfile]:
        """
        Retrieve a profile by ID.

        Args:
            profile_id: UUID of the profile

        Returns:
            UserProfile if found, None otherwise
        """
        stmt = select(UserProfile).where(UserProfile.id == profile_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> Optional[UserProfile]:
        """Retrieve a profile by login email (case-insensitive)."""
        stmt = select(UserProfile).where(
            func.lower(UserProfile.email) == email.strip().lower()
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def email_exists(self, email: str) -> bool:
        """Check whether an email is already registered."""
        stmt = select(func.count()).select_from(UserProfile).where(
            func.lower(UserProfile.email) == email.strip().lower()
        )
        result = await self.session.execute(stmt)
        return result.scalar_one() > 0

    async def list_profiles(self) -> Sequence[UserProfile]:
        """
        List every profile, newest first.

        Returns:
            Profiles ordered by created_at descending
        """
        stmt = select(UserProfile).order_by(UserProfile.created_at.desc())
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def list_by_roles(
        self,
        roles: Sequence[str],
        active_only: bool = True,
    ) -> Sequence[UserProfile]:
        """
        List profiles holding any of the given roles.

        Args:
            roles: Roles to include
            active_only: Skip deactivated profiles

        Returns:
            Matching profiles (unordered)
        """
        stmt = select(UserProfile).where(UserProfile.role.in_(list(roles)))
        if active_only:
            stmt = stmt.where(UserProfile.is_active.is_(True))
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def update_role_and_zona(
        self,
        profile_id: str,
        role: str,
        zona: Optional[str],
    ) -> UserProfile:
        """
        Change a profile's role and zona.

        Args:
            profile_id: Target profile
            role: New role
            zona: New zona (cleared when empty)

        Returns:
            Updated profile

        Raises:
            LookupError: If the profile does not exist
            ValueError: If role is unknown or a comercial has no zona
        """
        profile = await self.get_by_id(profile_id)
        if profile is None:
            raise LookupError(f"Usuario {profile_id} no encontrado")

        zona = zona or None
        self._validate_role_zona(role, zona)

        profile.role = role
        profile.zona = zona
        await self.session.flush()
        await self.session.refresh(profile)
        return profile

    async def set_active(self, profile_id: str, is_active: bool) -> UserProfile:
        """
        Activate or deactivate a profile.

        Raises:
            LookupError: If the profile does not exist
        """
        profile = await self.get_by_id(profile_id)
        if profile is None:
            raise LookupError(f"Usuario {profile_id} no encontrado")

        profile.is_active = is_active
        await self.session.flush()
        await self.session.refresh(profile)
        return profile

    async def set_notifications_enabled(self, profile: UserProfile, enabled: bool) -> UserProfile:
        """Store the push notification preference in the profile metadata."""
        metadata = profile.get_metadata()
        metadata["notifications_enabled"] = enabled
        profile.set_metadata(metadata)
        await self.session.flush()
        await self.session.refresh(profile)
        return profile

    @staticmethod
    def _validate_role_zona(role: str, zona: Optional[str]) -> None:
        if role not in ROLES:
            raise ValueError(f"Rol inválido: {role}")
        if role == ROLE_COMERCIAL and not zona:
            raise ValueError("Los comerciales deben tener una zona asignada")
