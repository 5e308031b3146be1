"""
Store model.

Stores are cached locally from the store directory webhook the first
time a driver validates a store code.
"""

from sqlalchemy import Column, String, Text, Index

from reportes.models.base import Base, UUIDMixin, TimestampMixin, ModelMixin


class Store(Base, UUIDMixin, TimestampMixin, ModelMixin):
    """
    Store (tienda) visited by drivers.

    Attributes:
        id: UUID primary key
        codigo_tienda: Store code such as "50ABC" (unique)
        nombre: Store name
        zona: Zona the store belongs to
        direccion: Plaza/address reported by the directory
    """

    __tablename__ = "stores"

    codigo_tienda = Column(
        String(16),
        nullable=False,
        unique=True,
        doc="Store code"
    )

    nombre = Column(
        String(255),
        nullable=False,
        doc="Store name"
    )

    zona = Column(
        String(64),
        nullable=True,
        doc="Store zona"
    )

    direccion = Column(
        Text,
        nullable=True,
        doc="Plaza or address"
    )

    __table_args__ = (
        Index("idx_stores_zona", "zona"),
    )

    def __repr__(self) -> str:
        return f"Store(codigo_tienda='{self.codigo_tienda}', nombre='{self.nombre}')"
