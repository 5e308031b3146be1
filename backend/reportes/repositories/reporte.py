"""
Reporte repository.

Provides data access for reportes: creation from a store, the
per-role listings and the overdue query used by the timeout sweeper.
"""

from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from reportes.models.reporte import (
    Reporte,
    ACTIVE_STATUSES,
    STATUS_DRAFT,
    STATUS_SUBMITTED,
    STATUS_RESOLVED_BY_DRIVER,
    STATUS_TIMED_OUT,
    STATUS_COMPLETED,
    STATUS_ARCHIVED,
)
from reportes.models.processed_ticket import ProcessedTicket
from reportes.models.store import Store
from reportes.models.user_profile import UserProfile


# Reportes a comercial still has to look at
OPEN_STATUSES = (STATUS_DRAFT, STATUS_SUBMITTED, STATUS_RESOLVED_BY_DRIVER)

# Reportes listed in the admin history
CLOSED_STATUSES = (STATUS_COMPLETED, STATUS_TIMED_OUT, STATUS_ARCHIVED)


class ActiveReporteExistsError(ValueError):
    """Raised when a conductor already has a draft or submitted reporte."""

    def __init__(self, reporte_id: Optional[str]):
        super().__init__("Ya tienes un reporte activo")
        self.reporte_id = reporte_id


class ReporteRepository:
    """
    Repository for reporte data access.

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

    async def create_reporte(
        self,
        user: UserProfile,
        store: Store,
        conductor_nombre: Optional[str] = None,
    ) -> Reporte:
        """
        Create a draft reporte for a conductor.

        Store fields are copied onto the reporte. The conductor name falls
        back to the profile display name, then to "Conductor".

        The insert runs in a savepoint backed by the uq_reportes_user_active
        partial index, so a concurrent request that slips past the lookup
        fails on the index instead of leaving two active reportes.

        Args:
            user: Owning conductor
            store: Visited store
            conductor_nombre: Name typed by the driver (optional)

        Returns:
            Created Reporte in draft status

        Raises:
            ActiveReporteExistsError: If the user already has an active reporte

        Example:
            >>> reporte = await repo.create_reporte(user, store)
            >>> reporte.status
            'draft'
        """
        user_id = user.id
        existing = await self.get_active_for_user(user_id)
        if existing is not None:
            raise ActiveReporteExistsError(existing.id)

        nombre = (conductor_nombre or "").strip() or user.display_name or "Conductor"

        reporte = Reporte(
            user_id=user_id,
            store_id=store.id,
            status=STATUS_DRAFT,
            store_codigo=store.codigo_tienda,
            store_nombre=store.nombre,
            store_zona=store.zona,
            conductor_nombre=nombre,
        )
        reporte.set_evidence({})
        reporte.set_metadata({})

        try:
            async with self.session.begin_nested():
                self.session.add(reporte)
        except IntegrityError:
            existing = await self.get_active_for_user(user_id)
            raise ActiveReporteExistsError(existing.id if existing else None)

        await self.session.refresh(reporte)

        return reporte

    async def get_by_id(self, reporte_id: str) -> Optional[Reporte]:
        """
        Retrieve a reporte by ID.

        Args:
            reporte_id: UUID of the reporte

        Returns:
            Reporte if found, None otherwise
        """
        stmt = select(Reporte).where(Reporte.id == reporte_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_active_for_user(self, user_id: str) -> Optional[Reporte]:
        """Most recent draft or submitted reporte of a user."""
        stmt = (
            select(Reporte)
            .where(Reporte.user_id == user_id)
            .where(Reporte.status.in_(ACTIVE_STATUSES))
            .order_by(Reporte.created_at.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_latest_draft(self, user_id: str) -> Optional[Reporte]:
        """Most recent draft reporte of a user."""
        stmt = (
            select(Reporte)
            .where(Reporte.user_id == user_id)
            .where(Reporte.status == STATUS_DRAFT)
            .order_by(Reporte.created_at.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_open_by_zona(self, zona: str, limit: int = 20) -> Sequence[Reporte]:
        """
        List open reportes of a zona, newest first.

        Args:
            zona: Store zona to filter on
            limit: Maximum number of rows

        Returns:
            Reportes in draft, submitted or resolved_by_driver status
        """
        stmt = (
            select(Reporte)
            .where(Reporte.store_zona == zona)
            .where(Reporte.status.in_(OPEN_STATUSES))
            .order_by(Reporte.created_at.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def list_closed(self, limit: int = 50) -> Sequence[Reporte]:
        """List completed, timed out and archived reportes, newest first."""
        stmt = (
            select(Reporte)
            .where(Reporte.status.in_(CLOSED_STATUSES))
            .order_by(Reporte.created_at.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def list_overdue(self, now_iso: str) -> Sequence[Reporte]:
        """
        List submitted reportes whose timeout has passed.

        Args:
            now_iso: Current UTC time as produced by utc_now_iso()

        Note:
            Comparison is lexical, which matches chronological order for
            timestamps written by utc_now_iso().
        """
        stmt = (
            select(Reporte)
            .where(Reporte.status == STATUS_SUBMITTED)
            .where(Reporte.timeout_at.is_not(None))
            .where(Reporte.timeout_at < now_iso)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def delete(self, reporte: Reporte) -> None:
        """Delete a reporte and its messages."""
        await self.session.delete(reporte)
        await self.session.flush()

    async def archive_ticket(
        self,
        reporte: Reporte,
        tipo: str,
        data: dict,
        image_url: Optional[str],
    ) -> ProcessedTicket:
        """
        Archive a confirmed ticket.

        Args:
            reporte: Reporte the ticket belongs to
            tipo: recibido or devolucion
            data: Confirmed ticket data
            image_url: Photo of the ticket

        Returns:
            The archived ProcessedTicket row
        """
        ticket = ProcessedTicket(
            reporte_id=reporte.id,
            user_id=reporte.user_id,
            tipo=tipo,
            image_url=image_url,
        )
        ticket.set_data(data)
        self.session.add(ticket)
        await self.session.flush()
        return ticket

    async def list_processed_tickets(self, reporte_id: str) -> Sequence[ProcessedTicket]:
        stmt = (
            select(ProcessedTicket)
            .where(ProcessedTicket.reporte_id == reporte_id)
            .order_by(ProcessedTicket.created_at.asc())
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def save(self, reporte: Reporte) -> Reporte:
        """Flush pending changes on a reporte and reload it."""
        await self.session.flush()
        await self.session.refresh(reporte)
        return reporte
