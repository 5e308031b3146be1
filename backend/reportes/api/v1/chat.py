"""
Chat endpoints.

One conversation per reporte between the driver and commercial staff.
Driver messages on a submitted reporte are checked by the resolution
analyser; a confident "resolved" verdict closes the reporte on the
driver's behalf.
"""

import logging

from fastapi import APIRouter, File, Form, HTTPException, UploadFile, status

from reportes.api.dependencies import (
    CurrentUser,
    DatabaseSession,
    PushSender,
    ResolutionAnalyzer,
    Storage,
    get_visible_reporte,
    read_upload,
)
from reportes.models.message import SENDER_USER, SENDER_AGENT
from reportes.models.reporte import STATUS_SUBMITTED
from reportes.repositories.message import MessageRepository
from reportes.schemas.message import (
    ChatImageUploadResponse,
    MessageCreateRequest,
    MessageCreateResponse,
    MessageListResponse,
    MessageResponse,
)
from reportes.services.push_notifier import PushNotifier
from reportes.services.reporte_state import ReporteEvent, can_transition, transition
from reportes.services.resolution import HISTORY_WINDOW
from reportes.services.storage import (
    REPORTES_BUCKET,
    StorageError,
    chat_image_path,
    file_extension,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat")

IMAGE_ONLY_PREVIEW = "📷 Imagen"


@router.get("/{reporte_id}/messages", response_model=MessageListResponse)
async def list_messages(
    reporte_id: str,
    db: DatabaseSession,
    current_user: CurrentUser,
) -> MessageListResponse:
    """Messages of a reporte, oldest first."""
    await get_visible_reporte(db, current_user, reporte_id)
    messages = await MessageRepository(db).list_for_reporte(reporte_id)
    return MessageListResponse(
        messages=[MessageResponse.model_validate(m) for m in messages]
    )


@router.post(
    "/{reporte_id}/messages",
    response_model=MessageCreateResponse,
    status_code=status.HTTP_201_CREATED,
)
async def send_message(
    reporte_id: str,
    request: MessageCreateRequest,
    db: DatabaseSession,
    current_user: CurrentUser,
    analyzer: ResolutionAnalyzer,
    sender: PushSender,
) -> MessageCreateResponse:
    """
    Post a chat message.

    The owner writes as "user"; comerciales and administradores as "agent".

    Side effects for driver messages:
        - On a submitted reporte the message is analysed; a detected
          resolution flags the message and moves the reporte to
          resolved_by_driver.
        - Comerciales are notified by web push.

    Analysis and push failures never fail the request.
    """
    reporte = await get_visible_reporte(db, current_user, reporte_id)
    is_driver = reporte.user_id == current_user.id
    repo = MessageRepository(db)

    analyse = (
        is_driver
        and analyzer is not None
        and reporte.status == STATUS_SUBMITTED
        and bool((request.text or "").strip())
    )

    history = []
    if analyse:
        history = [
            {"sender": m.sender, "text": m.text}
            for m in await repo.recent_history(reporte.id, limit=HISTORY_WINDOW)
        ]

    try:
        message = await repo.create_message(
            reporte_id=reporte.id,
            sender=SENDER_USER if is_driver else SENDER_AGENT,
            text=request.text,
            image_url=request.image_url,
            sender_user_id=current_user.id,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    resolution = None
    if analyse and message.text:
        resolution = await analyzer.analyze(
            message=message.text,
            tipo_reporte=reporte.tipo_reporte,
            motivo=reporte.motivo,
            history=history,
        )

        if resolution["is_resolved"] and can_transition(reporte, ReporteEvent.DRIVER_CONFIRMS_RESOLUTION):
            await repo.mark_resolution(message, resolution["confidence"])
            transition(reporte, ReporteEvent.DRIVER_CONFIRMS_RESOLUTION)
            logger.info(
                "Resolution detected in chat",
                extra={"reporte_id": reporte.id, "confidence": resolution["confidence"]},
            )

    await db.commit()
    await db.refresh(message)

    notification = None
    if is_driver:
        notification = await PushNotifier(db, sender).notify_new_message(
            reporte, message.text or IMAGE_ONLY_PREVIEW
        )
        await db.commit()

    return MessageCreateResponse(
        message=MessageResponse.model_validate(message),
        resolution=resolution,
        status=reporte.status,
        notification=notification,
    )


@router.post("/upload-image", response_model=ChatImageUploadResponse)
async def upload_chat_image(
    db: DatabaseSession,
    current_user: CurrentUser,
    storage: Storage,
    file: UploadFile = File(...),
    report_id: str = Form(..., alias="reportId"),
) -> ChatImageUploadResponse:
    """
    Upload an image to attach to a chat message.

    Raises:
        HTTPException 400: Not an image
        HTTPException 404: Reporte not visible to the caller
        HTTPException 413: Larger than the upload limit
    """
    reporte = await get_visible_reporte(db, current_user, report_id)
    data = await read_upload(file, image_only=True)

    path = chat_image_path(reporte.id, file_extension(file.filename, file.content_type))
    try:
        url = await storage.save(REPORTES_BUCKET, path, data)
    except StorageError as e:
        logger.error("Chat image upload failed", extra={"reporte_id": reporte.id, "error": str(e)})
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error al subir la imagen",
        )

    return ChatImageUploadResponse(success=True, url=url)
