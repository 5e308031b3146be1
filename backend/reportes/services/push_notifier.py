"""
Web push notifications for commercial staff.

Builds the notification payloads, picks the recipients by role and
notification preference, and fans the message out to every browser
subscription they registered. Delivery problems never propagate to
the caller: they are counted, and subscriptions the push service
reports as gone (404/410) are deleted.
"""

import asyncio
import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from pywebpush import WebPushException, webpush
from sqlalchemy.ext.asyncio import AsyncSession

from reportes.core.config import settings
from reportes.models.base import utc_now, parse_iso
from reportes.models.reporte import Reporte
from reportes.models.user_profile import UserProfile, ROLE_COMERCIAL, ROLE_ADMINISTRADOR
from reportes.repositories.push_subscription import PushSubscriptionRepository
from reportes.repositories.user_profile import UserProfileRepository
from reportes.services.interfaces.push_sender import IPushSender

logger = logging.getLogger(__name__)


NOTIFICATION_ICON = "/icon-192.png"
MESSAGE_PREVIEW_LENGTH = 100

# Status codes meaning the subscription no longer exists
GONE_STATUS_CODES = (404, 410)


class PushDeliveryError(Exception):
    """Raised by a push sender when the push service rejects a message."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class PushNotConfiguredError(Exception):
    """Raised when VAPID keys are missing."""


class WebPushSender(IPushSender):
    """Push sender using pywebpush with VAPID authentication."""

    def __init__(
        self,
        vapid_private_key: Optional[str] = None,
        vapid_subject: Optional[str] = None,
        ttl: Optional[int] = None,
    ):
        self.vapid_private_key = vapid_private_key or settings.vapid_private_key
        self.vapid_subject = vapid_subject or settings.vapid_subject
        self.ttl = settings.push_ttl_seconds if ttl is None else ttl

        if not self.vapid_private_key:
            raise PushNotConfiguredError("VAPID_PRIVATE_KEY no está configurada")

    async def send(self, subscription_info: Dict[str, Any], payload: Dict[str, Any]) -> None:
        """
        Send one payload; pywebpush is blocking, so it runs in a worker thread.

        Raises:
            PushDeliveryError: If the push service rejected the message
        """
        try:
            await asyncio.to_thread(
                webpush,
                subscription_info=subscription_info,
                data=json.dumps(payload, ensure_ascii=False),
                vapid_private_key=self.vapid_private_key,
                vapid_claims={"sub": self.vapid_subject},
                ttl=self.ttl,
            )
        except WebPushException as exc:
            response = getattr(exc, "response", None)
            status_code = getattr(response, "status_code", None)
            raise PushDeliveryError(str(exc), status_code=status_code) from exc


def format_time_remaining(timeout_at: Optional[str], now: Optional[datetime] = None) -> str:
    """
    Human readable time left before a reporte times out.

    Returns "Xh Ym" or "Ym"; "20m" when no future timeout is set.

    Example:
        >>> format_time_remaining("2025-01-01T10:45:00+00:00",
        ...     now=datetime(2025, 1, 1, 9, 30, tzinfo=timezone.utc))
        '1h 15m'
    """
    now = now or utc_now()
    deadline = parse_iso(timeout_at)
    if deadline is None or deadline <= now:
        return f"{settings.report_timeout_minutes}m"

    minutes = int((deadline - now).total_seconds() // 60)
    hours, mins = divmod(minutes, 60)
    if hours > 0:
        return f"{hours}h {mins}m"
    return f"{mins}m"


def build_chat_started_payload(reporte: Reporte, time_remaining: str) -> Dict[str, Any]:
    """Payload announcing that a driver opened a help chat."""
    store_name = reporte.store_nombre or "Tienda"
    return {
        "title": f"🚨 {reporte.tipo_label} - {store_name}",
        "body": f"Conductor necesita ayuda. Tiempo restante: {time_remaining}",
        "icon": NOTIFICATION_ICON,
        "badge": NOTIFICATION_ICON,
        "tag": f"report-{reporte.id}",
        "data": {
            "url": f"/comercial/chat/{reporte.id}",
            "reportId": reporte.id,
        },
        "requireInteraction": True,
        "urgency": "high",
    }


def build_message_payload(reporte: Reporte, message_text: str) -> Dict[str, Any]:
    """Payload announcing a new driver chat message."""
    store_name = reporte.store_nombre or "Tienda"
    body = message_text
    if len(body) > MESSAGE_PREVIEW_LENGTH:
        body = body[:MESSAGE_PREVIEW_LENGTH] + "..."
    return {
        "title": f"Nuevo mensaje - {store_name}",
        "body": body,
        "icon": NOTIFICATION_ICON,
        "badge": NOTIFICATION_ICON,
        "tag": f"report-{reporte.id}",
        "data": {
            "url": f"/comercial/chat/{reporte.id}",
            "reportId": reporte.id,
        },
        "requireInteraction": True,
    }


def wants_notifications(profile: UserProfile) -> bool:
    """Comerciales are opted in unless they opted out; administradores must opt in."""
    if profile.role == ROLE_COMERCIAL:
        return profile.notifications_enabled(default=True)
    if profile.role == ROLE_ADMINISTRADOR:
        return profile.notifications_enabled(default=False)
    return False


class PushNotifier:
    """
    Sends report notifications to commercial staff.

    Attributes:
        session: Database session used to read recipients and prune subscriptions
        sender: Push sender; None when VAPID keys are not configured
    """

    def __init__(self, session: AsyncSession, sender: Optional[IPushSender]):
        self.session = session
        self.sender = sender
        self.profiles = UserProfileRepository(session)
        self.subscriptions = PushSubscriptionRepository(session)

    async def notify_chat_started(self, reporte: Reporte) -> Dict[str, Any]:
        """
        Tell comerciales and opted-in administradores a driver needs help.

        No zona filter applies: every eligible user is notified.

        Returns:
            {success, sent, failed, total, timeRemaining}, or
            {success, noSubscribers} / {success, noSubscriptions}
        """
        time_remaining = format_time_remaining(reporte.timeout_at)
        recipients = await self._recipients([ROLE_COMERCIAL, ROLE_ADMINISTRADOR])
        payload = build_chat_started_payload(reporte, time_remaining)

        result = await self._fan_out(recipients, payload, reporte.id)
        if "sent" in result:
            result["timeRemaining"] = time_remaining
        return result

    async def notify_new_message(self, reporte: Reporte, message_text: str) -> Dict[str, Any]:
        """
        Tell comerciales about a new driver message.

        Returns:
            Same shape as notify_chat_started, without timeRemaining
        """
        recipients = await self._recipients([ROLE_COMERCIAL])
        payload = build_message_payload(reporte, message_text)
        return await self._fan_out(recipients, payload, reporte.id)

    async def _recipients(self, roles: List[str]) -> List[UserProfile]:
        profiles = await self.profiles.list_by_roles(roles)
        return [p for p in profiles if wants_notifications(p)]

    async def _fan_out(
        self,
        recipients: List[UserProfile],
        payload: Dict[str, Any],
        reporte_id: str,
    ) -> Dict[str, Any]:
        if not recipients:
            logger.info("No push recipients", extra={"reporte_id": reporte_id})
            return {"success": True, "noSubscribers": True}

        subscriptions = await self.subscriptions.list_for_users([p.id for p in recipients])
        if not subscriptions:
            logger.info("No push subscriptions", extra={"reporte_id": reporte_id})
            return {"success": True, "noSubscriptions": True}

        if self.sender is None:
            logger.warning(
                "Push notifications not configured, skipping",
                extra={"reporte_id": reporte_id, "subscriptions": len(subscriptions)},
            )
            return {
                "success": False,
                "sent": 0,
                "failed": len(subscriptions),
                "total": len(subscriptions),
            }

        results = await asyncio.gather(
            *(self.sender.send(s.subscription_info(), payload) for s in subscriptions),
            return_exceptions=True,
        )

        sent = 0
        for subscription, outcome in zip(subscriptions, results):
            if outcome is None:
                sent += 1
                continue

            status_code = getattr(outcome, "status_code", None)
            logger.warning(
                "Push delivery failed",
                extra={
                    "reporte_id": reporte_id,
                    "subscription_id": subscription.id,
                    "status_code": status_code,
                    "error": str(outcome),
                },
            )
            if status_code in GONE_STATUS_CODES:
                await self.subscriptions.delete_by_id(subscription.id)

        failed = len(subscriptions) - sent
        logger.info(
            "Push notifications sent",
            extra={"reporte_id": reporte_id, "sent": sent, "failed": failed},
        )

        return {
            "success": True,
            "sent": sent,
            "failed": failed,
            "total": len(subscriptions),
        }
