"""
Processed ticket archive model.

Each confirmed ticket extraction is archived here, independent of
later edits to the reporte.
"""

from sqlalchemy import Column, String, Text, ForeignKey, Index

from reportes.models.base import Base, UUIDMixin, TimestampMixin, ModelMixin, load_json, dump_json


TICKET_RECIBIDO = "recibido"
TICKET_DEVOLUCION = "devolucion"
TICKET_MERMA = "merma"

TICKET_KINDS = (TICKET_RECIBIDO, TICKET_DEVOLUCION, TICKET_MERMA)


class ProcessedTicket(Base, UUIDMixin, TimestampMixin, ModelMixin):
    """
    Archived copy of a confirmed ticket.

    Attributes:
        reporte_id: Reporte the ticket belongs to
        user_id: Driver who confirmed it
        tipo: recibido or devolucion
        image_url: Photo of the ticket
        data: JSON ticket data as confirmed
    """

    __tablename__ = "processed_tickets"

    reporte_id = Column(
        String,
        ForeignKey("reportes.id", ondelete="CASCADE"),
        nullable=False
    )

    user_id = Column(
        String,
        ForeignKey("user_profiles.id", ondelete="CASCADE"),
        nullable=False
    )

    tipo = Column(String(16), nullable=False)
    image_url = Column(Text, nullable=True)
    data = Column(Text, nullable=False, default="{}")

    __table_args__ = (
        Index("idx_processed_tickets_reporte", "reporte_id"),
    )

    def get_data(self) -> dict:
        return load_json(self.data, {})

    def set_data(self, data: dict) -> None:
        self.data = dump_json(data or {})
