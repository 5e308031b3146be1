"""
Web push endpoints.

Browsers fetch the VAPID public key, register their subscription, and
the chat clients ask for comerciales to be notified.
"""

import logging

from fastapi import APIRouter, HTTPException, Request, status

from reportes.api.dependencies import (
    CurrentUser,
    DatabaseSession,
    PushSender,
    get_visible_reporte,
)
from reportes.core.config import settings
from reportes.models.message import SENDER_USER
from reportes.repositories.push_subscription import PushSubscriptionRepository
from reportes.schemas.push import (
    ChatNotificationRequest,
    PushResultResponse,
    PushSendRequest,
    PushSubscribeRequest,
    PushSubscribeResponse,
    VapidPublicKeyResponse,
)
from reportes.services.push_notifier import PushNotifier

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/push")


@router.get("/vapid-public-key", response_model=VapidPublicKeyResponse)
async def vapid_public_key() -> VapidPublicKeyResponse:
    """
    Application server key for PushManager.subscribe().

    Raises:
        HTTPException 503: VAPID keys not configured
    """
    if not settings.vapid_public_key:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Notificaciones push no configuradas",
        )
    return VapidPublicKeyResponse(public_key=settings.vapid_public_key)


@router.post("/subscribe", response_model=PushSubscribeResponse)
async def subscribe(
    request: PushSubscribeRequest,
    http_request: Request,
    db: DatabaseSession,
    current_user: CurrentUser,
) -> PushSubscribeResponse:
    """Register (or refresh) the caller's browser subscription."""
    subscription = await PushSubscriptionRepository(db).upsert(
        user_id=current_user.id,
        endpoint=request.endpoint,
        p256dh=request.keys.p256dh,
        auth=request.keys.auth,
        user_agent=http_request.headers.get("user-agent"),
    )
    await db.commit()

    logger.info("Push subscription saved", extra={"user_id": current_user.id})
    return PushSubscribeResponse(success=True, id=subscription.id)


@router.post(
    "/send",
    response_model=PushResultResponse,
    response_model_exclude_none=True,
)
async def send_message_notification(
    request: PushSendRequest,
    db: DatabaseSession,
    current_user: CurrentUser,
    sender: PushSender,
) -> PushResultResponse:
    """
    Notify comerciales about a chat message.

    Only driver messages (sender "user") trigger a notification.
    """
    if request.sender != SENDER_USER:
        return PushResultResponse(success=True, skipped=True)

    reporte = await get_visible_reporte(db, current_user, request.report_id)
    result = await PushNotifier(db, sender).notify_new_message(reporte, request.message_text)
    await db.commit()

    return PushResultResponse.model_validate(result)


@router.post(
    "/send-chat-notification",
    response_model=PushResultResponse,
    response_model_exclude_none=True,
)
async def send_chat_notification(
    request: ChatNotificationRequest,
    db: DatabaseSession,
    current_user: CurrentUser,
    sender: PushSender,
) -> PushResultResponse:
    """Notify comerciales and opted-in administradores that a chat started."""
    reporte = await get_visible_reporte(db, current_user, request.report_id)
    result = await PushNotifier(db, sender).notify_chat_started(reporte)
    await db.commit()

    return PushResultResponse.model_validate(result)
