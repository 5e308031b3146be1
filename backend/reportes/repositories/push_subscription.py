"""
Push subscription repository.
"""

from typing import Optional, Sequence

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from reportes.models.push_subscription import PushSubscription


class PushSubscriptionRepository:
    """
    Repository for web push subscriptions.

    Attributes:
        session: SQLAlchemy async session for database operations
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def upsert(
        self,
        user_id: str,
        endpoint: str,
        p256dh: str,
        auth: str,
        user_agent: Optional[str] = None,
    ) -> PushSubscription:
        """
        Register a subscription, refreshing keys on (user_id, endpoint) conflict.

        Returns:
            The stored subscription
        """
        stmt = select(PushSubscription).where(
            PushSubscription.user_id == user_id,
            PushSubscription.endpoint == endpoint,
        )
        subscription = (await self.session.execute(stmt)).scalar_one_or_none()

        if subscription is None:
            subscription = PushSubscription(user_id=user_id, endpoint=endpoint)
            self.session.add(subscription)

        subscription.p256dh = p256dh
        subscription.auth = auth
        subscription.user_agent = user_agent

        await self.session.flush()
        await self.session.refresh(subscription)
        return subscription

    async def list_for_users(self, user_ids: Sequence[str]) -> Sequence[PushSubscription]:
        """List every subscription held by the given users."""
        if not user_ids:
            return []
        stmt = select(PushSubscription).where(PushSubscription.user_id.in_(list(user_ids)))
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def delete_by_id(self, subscription_id: str) -> None:
        """Remove a subscription the push service reported as gone."""
        await self.session.execute(
            delete(PushSubscription).where(PushSubscription.id == subscription_id)
        )
        await self.session.flush()
