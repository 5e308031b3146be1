"""
Reporte model.

A reporte is a driver's record of one store visit: photo evidence,
ticket data and the lifecycle status reviewed by commercial staff.
"""

from typing import Any, Optional

from sqlalchemy import Column, String, Text, Boolean, ForeignKey, Index, text
from sqlalchemy.orm import relationship

from reportes.models.base import (
    Base,
    UUIDMixin,
    TimestampMixin,
    ModelMixin,
    load_json,
    dump_json,
)


STATUS_DRAFT = "draft"
STATUS_SUBMITTED = "submitted"
STATUS_RESOLVED_BY_DRIVER = "resolved_by_driver"
STATUS_TIMED_OUT = "timed_out"
STATUS_COMPLETED = "completed"
STATUS_ARCHIVED = "archived"

STATUSES = (
    STATUS_DRAFT,
    STATUS_SUBMITTED,
    STATUS_RESOLVED_BY_DRIVER,
    STATUS_TIMED_OUT,
    STATUS_COMPLETED,
    STATUS_ARCHIVED,
)

# Statuses that block a driver from opening a new reporte
ACTIVE_STATUSES = (STATUS_DRAFT, STATUS_SUBMITTED)

# Partial index predicate enforcing one active reporte per driver
ACTIVE_STATUS_PREDICATE = text("status IN ('draft', 'submitted')")

STATUS_LABELS = {
    STATUS_DRAFT: "Borrador",
    STATUS_SUBMITTED: "Enviado",
    STATUS_RESOLVED_BY_DRIVER: "Resuelto por conductor",
    STATUS_TIMED_OUT: "Tiempo agotado",
    STATUS_COMPLETED: "Completado",
    STATUS_ARCHIVED: "Archivado",
}

TIPO_LABELS = {
    "rechazo_completo": "Rechazo Completo",
    "rechazo_parcial": "Rechazo Parcial",
    "devolucion": "Devolución",
    "faltante": "Faltante",
    "sobrante": "Sobrante",
    "entrega": "Entrega",
    "tienda_cerrada": "Tienda Cerrada",
    "bascula": "Bascula",
}

TIPOS = tuple(TIPO_LABELS)


class Reporte(Base, UUIDMixin, TimestampMixin, ModelMixin):
    """
    Store-visit report submitted by a conductor.

    Store fields are denormalised at creation so listings never join
    against the store directory cache.

    Attributes:
        id: UUID primary key
        user_id: Owning conductor profile
        store_id: Visited store
        status: Lifecycle status (see reportes.services.reporte_state)
        tipo_reporte: Report type (entrega, tienda_cerrada, bascula, ...)
        evidence: JSON map of photo category -> public URL
        ticket_data: JSON of the confirmed delivery ticket
        incident_details: JSON list of reported incidents
        metadata: JSON map (no_ticket_reason, last_step_before_chat, ...)
        timeout_at: When a submitted report times out
    """

    __tablename__ = "reportes"

    user_id = Column(
        String,
        ForeignKey("user_profiles.id", ondelete="CASCADE"),
        nullable=False,
        doc="Owning conductor"
    )

    store_id = Column(
        String,
        ForeignKey("stores.id"),
        nullable=True,
        doc="Visited store"
    )

    status = Column(String(32), nullable=False, default=STATUS_DRAFT)
    tipo_reporte = Column(String(32), nullable=True)

    store_codigo = Column(String(16), nullable=True)
    store_nombre = Column(String(255), nullable=True)
    store_zona = Column(String(64), nullable=True)
    conductor_nombre = Column(String(255), nullable=True)

    motivo = Column(Text, nullable=True)
    current_step = Column(String(64), nullable=True)
    rechazo_details = Column(Text, nullable=True, doc="JSON rejection details")

    ticket_data = Column(Text, nullable=True, doc="JSON confirmed ticket")
    ticket_image_url = Column(Text, nullable=True)
    ticket_extraction_confirmed = Column(Boolean, nullable=False, default=False)

    return_ticket_data = Column(Text, nullable=True, doc="JSON confirmed return ticket")
    return_ticket_image_url = Column(Text, nullable=True)
    return_ticket_extraction_confirmed = Column(Boolean, nullable=False, default=False)

    evidence = Column(Text, nullable=False, default="{}", doc="JSON evidence map")
    incident_details = Column(Text, nullable=True, doc="JSON incident list")

    # "metadata" is reserved on declarative classes
    extra = Column("metadata", Text, nullable=False, default="{}")

    submitted_at = Column(String, nullable=True)
    resolved_at = Column(String, nullable=True)
    timeout_at = Column(String, nullable=True)

    user = relationship("UserProfile", back_populates="reportes")
    store = relationship("Store")

    messages = relationship(
        "Message",
        back_populates="reporte",
        cascade="all, delete-orphan",
        order_by="Message.created_at"
    )

    __table_args__ = (
        Index("idx_reportes_user_status", "user_id", "status"),
        Index("idx_reportes_zona_status", "store_zona", "status"),
        Index("idx_reportes_timeout", "status", "timeout_at"),
        Index(
            "uq_reportes_user_active",
            "user_id",
            unique=True,
            sqlite_where=ACTIVE_STATUS_PREDICATE,
            postgresql_where=ACTIVE_STATUS_PREDICATE,
        ),
    )

    # JSON accessors

    def get_evidence(self) -> dict[str, str]:
        return load_json(self.evidence, {})

    def set_evidence(self, evidence: dict[str, str]) -> None:
        self.evidence = dump_json(evidence or {})

    def get_metadata(self) -> dict[str, Any]:
        return load_json(self.extra, {})

    def set_metadata(self, metadata: dict[str, Any]) -> None:
        self.extra = dump_json(metadata or {})

    def merge_metadata(self, updates: dict[str, Any]) -> dict[str, Any]:
        """
        Shallow-merge keys into metadata.

        Keys whose value is None are removed.

        Returns:
            The merged metadata dictionary
        """
        merged = self.get_metadata()
        for key, value in updates.items():
            if value is None:
                merged.pop(key, None)
            else:
                merged[key] = value
        self.set_metadata(merged)
        return merged

    def get_incident_details(self) -> list:
        return load_json(self.incident_details, [])

    def set_incident_details(self, incidents: Optional[list]) -> None:
        self.incident_details = dump_json(incidents)

    def get_rechazo_details(self) -> Optional[dict]:
        return load_json(self.rechazo_details, None)

    def set_rechazo_details(self, details: Optional[dict]) -> None:
        self.rechazo_details = dump_json(details)

    def get_ticket_data(self) -> Optional[dict]:
        return load_json(self.ticket_data, None)

    def set_ticket_data(self, data: Optional[dict]) -> None:
        self.ticket_data = dump_json(data)

    def get_return_ticket_data(self) -> Optional[dict]:
        return load_json(self.return_ticket_data, None)

    def set_return_ticket_data(self, data: Optional[dict]) -> None:
        self.return_ticket_data = dump_json(data)

    @property
    def status_label(self) -> str:
        return STATUS_LABELS.get(self.status, self.status)

    @property
    def tipo_label(self) -> str:
        return TIPO_LABELS.get(self.tipo_reporte or "", self.tipo_reporte or "Reporte")

    def __repr__(self) -> str:
        return f"Reporte(id='{self.id}', status='{self.status}', store='{self.store_codigo}')"
