"""
Message repository.

Chat messages are append-only and always read in insertion order.
"""

from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from reportes.models.message import Message, SENDERS


class MessageRepository:
    """
    Repository for chat message data access.

    Attributes:
        session: SQLAlchemy async session for database operations
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_for_reporte(self, reporte_id: str) -> Sequence[Message]:
        """
        List the messages of a reporte.

        Args:
            reporte_id: Conversation to read

        Returns:
            Messages ordered by created_at ascending
        """
        stmt = (
            select(Message)
            .where(Message.reporte_id == reporte_id)
            .order_by(Message.created_at.asc())
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def recent_history(self, reporte_id: str, limit: int = 5) -> list[Message]:
        """
        Last messages of a conversation, oldest first.

        Args:
            reporte_id: Conversation to read
            limit: Number of messages to return

        Returns:
            At most `limit` messages in chronological order
        """
        stmt = (
            select(Message)
            .where(Message.reporte_id == reporte_id)
            .order_by(Message.created_at.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(reversed(result.scalars().all()))

    async def create_message(
        self,
        reporte_id: str,
        sender: str,
        text: Optional[str] = None,
        image_url: Optional[str] = None,
        sender_user_id: Optional[str] = None,
    ) -> Message:
        """
        Append a message to a conversation.

        Args:
            reporte_id: Conversation the message belongs to
            sender: "user", "agent" or "system"
            text: Message body
            image_url: Attached image URL
            sender_user_id: Author profile

        Returns:
            The persisted Message

        Raises:
            ValueError: If sender is unknown or the message is empty
        """
        if sender not in SENDERS:
            raise ValueError(f"Remitente inválido: {sender}")
        if not (text and text.strip()) and not image_url:
            raise ValueError("El mensaje debe tener texto o imagen")

        message = Message(
            reporte_id=reporte_id,
            sender=sender,
            sender_user_id=sender_user_id,
            text=text.strip() if text else None,
            image_url=image_url,
        )
        self.session.add(message)
        await self.session.flush()
        await self.session.refresh(message)
        return message

    async def mark_resolution(self, message: Message, confidence: float) -> Message:
        """Flag a message as resolving its reporte."""
        message.ai_resolution_detected = True
        message.ai_confidence = confidence
        await self.session.flush()
        return message
