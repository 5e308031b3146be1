"""
Store repository.

Keeps the local store cache in sync with the store directory.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from reportes.models.store import Store


class StoreRepository:
    """
    Repository for store data access.

    Attributes:
        session: SQLAlchemy async session for database operations
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, store_id: str) -> Optional[Store]:
        """Retrieve a store by ID."""
        stmt = select(Store).where(Store.id == store_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_codigo(self, codigo_tienda: str) -> Optional[Store]:
        """Retrieve a store by its store code."""
        stmt = select(Store).where(Store.codigo_tienda == codigo_tienda)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def upsert(
        self,
        codigo_tienda: str,
        nombre: str,
        zona: Optional[str] = None,
        direccion: Optional[str] = None,
    ) -> Store:
        """
        Insert a store or refresh the cached copy.

        Args:
            codigo_tienda: Store code (conflict key)
            nombre: Store name
            zona: Store zona
            direccion: Plaza or address

        Returns:
            The inserted or updated Store

        Example:
            >>> store = await repo.upsert("50ABC", "OXXO Centro", zona="CDMX")
            >>> store.codigo_tienda
            '50ABC'
        """
        store = await self.get_by_codigo(codigo_tienda)

        if store is None:
            store = Store(codigo_tienda=codigo_tienda, nombre=nombre)
            self.session.add(store)

        store.nombre = nombre
        store.zona = zona
        store.direccion = direccion

        await self.session.flush()
        await self.session.refresh(store)
        return store
