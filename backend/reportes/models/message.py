"""
Chat message model.

Messages form the per-reporte conversation between the driver and
commercial staff.
"""

from sqlalchemy import Column, String, Text, Boolean, Float, ForeignKey, Index
from sqlalchemy.orm import relationship

from reportes.models.base import Base, UUIDMixin, ModelMixin, utc_now_iso


SENDER_USER = "user"
SENDER_AGENT = "agent"
SENDER_SYSTEM = "system"

SENDERS = (SENDER_USER, SENDER_AGENT, SENDER_SYSTEM)


class Message(Base, UUIDMixin, ModelMixin):
    """
    One chat message attached to a reporte.

    Messages are append-only, so there is no updated_at column.

    Attributes:
        id: UUID primary key
        reporte_id: Conversation the message belongs to
        sender: "user" (driver), "agent" (comercial/admin) or "system"
        sender_user_id: Author profile, None for system messages
        text: Message body
        image_url: Optional attached image
        ai_resolution_detected: Set when the analyser judged the message
            to resolve the report
        ai_confidence: Analyser confidence for that judgement
        created_at: Insertion timestamp, conversation ordering key
    """

    __tablename__ = "messages"

    reporte_id = Column(
        String,
        ForeignKey("reportes.id", ondelete="CASCADE"),
        nullable=False
    )

    sender = Column(String(16), nullable=False)

    sender_user_id = Column(
        String,
        ForeignKey("user_profiles.id", ondelete="SET NULL"),
        nullable=True
    )

    text = Column(Text, nullable=True)
    image_url = Column(Text, nullable=True)

    ai_resolution_detected = Column(Boolean, nullable=False, default=False)
    ai_confidence = Column(Float, nullable=True)

    created_at = Column(
        String,
        nullable=False,
        default=utc_now_iso,
        doc="UTC timestamp when the message was inserted"
    )

    reporte = relationship("Reporte", back_populates="messages")

    __table_args__ = (
        Index("idx_messages_reporte_created", "reporte_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"Message(id='{self.id}', reporte_id='{self.reporte_id}', sender='{self.sender}')"
