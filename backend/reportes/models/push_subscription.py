"""
Web push subscription model.
"""

from sqlalchemy import Column, String, Text, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from reportes.models.base import Base, UUIDMixin, TimestampMixin, ModelMixin


class PushSubscription(Base, UUIDMixin, TimestampMixin, ModelMixin):
    """
    Browser push subscription registered by a user.

    A user may hold one subscription per browser endpoint.

    Attributes:
        user_id: Subscribed profile
        endpoint: Push service endpoint URL
        p256dh: Client public key (urlsafe base64)
        auth: Client auth secret (urlsafe base64)
        user_agent: Browser that registered the subscription
    """

    __tablename__ = "push_subscriptions"

    user_id = Column(
        String,
        ForeignKey("user_profiles.id", ondelete="CASCADE"),
        nullable=False
    )

    endpoint = Column(Text, nullable=False)
    p256dh = Column(Text, nullable=False)
    auth = Column(Text, nullable=False)
    user_agent = Column(Text, nullable=True)

    user = relationship("UserProfile", back_populates="push_subscriptions")

    __table_args__ = (
        UniqueConstraint("user_id", "endpoint", name="uq_push_subscription_user_endpoint"),
    )

    def subscription_info(self) -> dict:
        """Subscription in the shape expected by pywebpush."""
        return {
            "endpoint": self.endpoint,
            "keys": {"p256dh": self.p256dh, "auth": self.auth},
        }

    def __repr__(self) -> str:
        return f"PushSubscription(id='{self.id}', user_id='{self.user_id}')"
