"""
Conductor endpoints.

Everything a driver does on an own reporte: resuming the capture flow,
uploading evidence, confirming tickets, escalating to the chat and
closing the reporte once the problem is solved.
"""

import logging
import re
from typing import Literal, Optional

from fastapi import APIRouter, File, Form, HTTPException, Query, UploadFile, status

from reportes.api.dependencies import (
    CurrentUser,
    DatabaseSession,
    PushSender,
    Storage,
    get_owned_reporte,
    read_upload,
)
from reportes.models.reporte import Reporte, ACTIVE_STATUSES, STATUS_DRAFT
from reportes.models.processed_ticket import TICKET_RECIBIDO, TICKET_DEVOLUCION
from reportes.repositories.reporte import ReporteRepository
from reportes.schemas.reporte import (
    ActiveReporteResponse,
    ChatStartRequest,
    ConductorHomeResponse,
    EvidenceUploadResponse,
    FlowResponse,
    IncidentsRequest,
    ReporteResponse,
    StepUpdateRequest,
    TicketConfirmRequest,
    TransitionResponse,
)
from reportes.services.flow import CHAT_STEPS, resolve_flow_position
from reportes.services.push_notifier import PushNotifier
from reportes.services.reporte_state import (
    InvalidTransitionError,
    ReporteEvent,
    transition,
)
from reportes.services.storage import (
    EVIDENCE_BUCKET,
    StorageError,
    evidence_path,
    file_extension,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/conductor")

EVIDENCE_KEY_RE = re.compile(r"^[a-z0-9_]{1,64}$")

# Evidence photo each confirmed ticket kind is read from
TICKET_EVIDENCE_KEYS = {
    TICKET_RECIBIDO: "ticket",
    TICKET_DEVOLUCION: "return_ticket",
}


def _conflict(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=detail)


def _require_active(reporte: Reporte) -> None:
    if reporte.status not in ACTIVE_STATUSES:
        raise _conflict("El reporte ya fue cerrado")


def _apply(reporte: Reporte, event: ReporteEvent) -> None:
    try:
        transition(reporte, event)
    except InvalidTransitionError as e:
        raise _conflict(str(e))


async def _notify_chat_started(db: DatabaseSession, sender: PushSender, reporte: Reporte) -> dict:
    result = await PushNotifier(db, sender).notify_chat_started(reporte)
    await db.commit()
    return result


@router.get("", response_model=ConductorHomeResponse)
async def conductor_home(db: DatabaseSession, current_user: CurrentUser) -> ConductorHomeResponse:
    """Profile plus the most recent draft, so the driver can resume it."""
    draft = await ReporteRepository(db).get_latest_draft(current_user.id)
    return ConductorHomeResponse(
        display_name=current_user.display_name,
        email=current_user.email,
        draft=ReporteResponse.from_model(draft) if draft else None,
    )


@router.get("/active", response_model=ActiveReporteResponse)
async def active_reporte(db: DatabaseSession, current_user: CurrentUser) -> ActiveReporteResponse:
    reporte = await ReporteRepository(db).get_active_for_user(current_user.id)
    return ActiveReporteResponse(
        reporte=ReporteResponse.from_model(reporte) if reporte else None
    )


@router.get("/reportes/{reporte_id}/flujo", response_model=FlowResponse)
async def get_flow(
    reporte_id: str,
    db: DatabaseSession,
    current_user: CurrentUser,
    step: Optional[str] = Query(default=None, max_length=64),
) -> FlowResponse:
    """
    Work out where the driver resumes a reporte.

    Args:
        step: Step explicitly requested by the client (optional)

    Returns:
        step to open, or redirect_to="chat" when the driver left the flow
        for the chat and the reporte is still submitted

    Example:
        GET /api/v1/conductor/reportes/{id}/flujo
        {"step": "4a", "next_step": "4a", "redirect_to": null, "reporte": {...}}
    """
    reporte = await get_owned_reporte(db, current_user, reporte_id)
    position = resolve_flow_position(reporte, step)
    return FlowResponse(
        step=position.step,
        next_step=position.next_step,
        redirect_to=position.redirect_to,
        reporte=ReporteResponse.from_model(reporte),
    )


@router.put("/reportes/{reporte_id}/step", response_model=ReporteResponse)
async def save_step(
    reporte_id: str,
    request: StepUpdateRequest,
    db: DatabaseSession,
    current_user: CurrentUser,
) -> ReporteResponse:
    """Remember the current step; chat steps are never saved."""
    reporte = await get_owned_reporte(db, current_user, reporte_id)

    if request.step not in CHAT_STEPS:
        reporte.current_step = request.step
        reporte = await ReporteRepository(db).save(reporte)
        await db.commit()

    return ReporteResponse.from_model(reporte)


@router.delete("/reportes/{reporte_id}", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_reporte(reporte_id: str, db: DatabaseSession, current_user: CurrentUser) -> None:
    """
    Cancel (delete) an own draft.

    Raises:
        HTTPException 409: The reporte was already submitted
    """
    reporte = await get_owned_reporte(db, current_user, reporte_id)

    if reporte.status != STATUS_DRAFT:
        raise _conflict("Solo se pueden cancelar reportes en borrador")

    await ReporteRepository(db).delete(reporte)
    await db.commit()

    logger.info("Reporte cancelled", extra={"reporte_id": reporte_id, "user_id": current_user.id})


@router.post("/reportes/{reporte_id}/evidence/{key}", response_model=EvidenceUploadResponse)
async def upload_evidence(
    reporte_id: str,
    key: str,
    db: DatabaseSession,
    current_user: CurrentUser,
    storage: Storage,
    file: UploadFile = File(...),
) -> EvidenceUploadResponse:
    """
    Upload an evidence photo and record it under evidence[key].

    Args:
        key: Photo category (e.g. arrival_exhibit, ticket, facade)
        file: Image (multipart field "file")

    Raises:
        HTTPException 400: Invalid key or empty file
        HTTPException 413: File too large
    """
    if not EVIDENCE_KEY_RE.match(key):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Tipo de evidencia inválido",
        )

    reporte = await get_owned_reporte(db, current_user, reporte_id)
    _require_active(reporte)

    data = await read_upload(file, image_only=True)
    path = evidence_path(reporte.id, key, file_extension(file.filename, file.content_type))

    try:
        url = await storage.save(EVIDENCE_BUCKET, path, data)
    except StorageError as e:
        logger.error("Evidence upload failed", extra={"reporte_id": reporte.id, "error": str(e)})
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error al subir la imagen",
        )

    evidence = reporte.get_evidence()
    evidence[key] = url
    reporte.set_evidence(evidence)
    reporte = await ReporteRepository(db).save(reporte)
    await db.commit()

    return EvidenceUploadResponse(url=url, evidence=reporte.get_evidence())


@router.post("/reportes/{reporte_id}/incidents", response_model=TransitionResponse)
async def report_incidents(
    reporte_id: str,
    request: IncidentsRequest,
    db: DatabaseSession,
    current_user: CurrentUser,
    sender: PushSender,
) -> TransitionResponse:
    """
    Save delivery incidents and hand the reporte over to commercial staff.

    A draft is escalated and comerciales are notified; a reporte already
    in the chat only gets its incidents updated.
    """
    reporte = await get_owned_reporte(db, current_user, reporte_id)
    _require_active(reporte)

    reporte.set_incident_details(request.items)
    escalated = reporte.status == STATUS_DRAFT
    if escalated:
        _apply(reporte, ReporteEvent.ESCALATE)

    reporte = await ReporteRepository(db).save(reporte)
    await db.commit()

    notification = await _notify_chat_started(db, sender, reporte) if escalated else None
    return TransitionResponse(reporte=ReporteResponse.from_model(reporte), notification=notification)


@router.post("/reportes/{reporte_id}/no-ticket", response_model=ReporteResponse)
async def report_no_ticket(
    reporte_id: str,
    db: DatabaseSession,
    current_user: CurrentUser,
    storage: Storage,
    reason: str = Form(..., min_length=1, max_length=1000),
    file: Optional[UploadFile] = File(default=None),
) -> ReporteResponse:
    """
    Record why the store gave no delivery ticket.

    An optional photo is stored as evidence["no_ticket"]. A reason lets
    the reporte be submitted without a confirmed ticket.
    """
    reporte = await get_owned_reporte(db, current_user, reporte_id)
    _require_active(reporte)

    if file is not None and file.filename:
        data = await read_upload(file, image_only=True)
        path = evidence_path(reporte.id, "no_ticket", file_extension(file.filename, file.content_type))
        try:
            url = await storage.save(EVIDENCE_BUCKET, path, data)
        except StorageError as e:
            logger.error("Evidence upload failed", extra={"reporte_id": reporte.id, "error": str(e)})
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error al subir la imagen",
            )
        evidence = reporte.get_evidence()
        evidence["no_ticket"] = url
        reporte.set_evidence(evidence)

    reporte.merge_metadata({"no_ticket_reason": reason.strip()})
    reporte = await ReporteRepository(db).save(reporte)
    await db.commit()

    return ReporteResponse.from_model(reporte)


@router.put("/reportes/{reporte_id}/tickets/{kind}", response_model=ReporteResponse)
async def confirm_ticket(
    reporte_id: str,
    kind: Literal["recibido", "devolucion", "merma"],
    request: TicketConfirmRequest,
    db: DatabaseSession,
    current_user: CurrentUser,
) -> ReporteResponse:
    """
    Save ticket data reviewed by the driver.

    recibido and devolucion tickets are also archived as processed
    tickets; merma data only lives in the reporte metadata.
    """
    reporte = await get_owned_reporte(db, current_user, reporte_id)
    _require_active(reporte)

    repo = ReporteRepository(db)

    if kind == "merma":
        reporte.merge_metadata({"ticket_merma_data": request.data})
    else:
        evidence_key = TICKET_EVIDENCE_KEYS[kind]
        image_url = request.image_url or reporte.get_evidence().get(evidence_key)

        if kind == TICKET_RECIBIDO:
            reporte.set_ticket_data(request.data)
            reporte.ticket_image_url = image_url
            reporte.ticket_extraction_confirmed = True
        else:
            reporte.set_return_ticket_data(request.data)
            reporte.return_ticket_image_url = image_url
            reporte.return_ticket_extraction_confirmed = True

        await repo.archive_ticket(reporte, kind, request.data, image_url)

    reporte = await repo.save(reporte)
    await db.commit()

    logger.info("Ticket confirmed", extra={"reporte_id": reporte.id, "kind": kind})
    return ReporteResponse.from_model(reporte)


@router.post("/reportes/{reporte_id}/chat/start", response_model=TransitionResponse)
async def start_chat(
    reporte_id: str,
    db: DatabaseSession,
    current_user: CurrentUser,
    sender: PushSender,
    request: Optional[ChatStartRequest] = None,
) -> TransitionResponse:
    """
    Open the help chat for a reporte.

    Saves the step the driver left, escalates a draft and notifies
    commercial staff. Calling it again on a submitted reporte changes
    nothing and sends no notification.
    """
    reporte = await get_owned_reporte(db, current_user, reporte_id)
    _require_active(reporte)

    if reporte.status != STATUS_DRAFT:
        return TransitionResponse(reporte=ReporteResponse.from_model(reporte), notification=None)

    last_step = (request.step if request else None) or reporte.current_step
    if last_step and last_step not in CHAT_STEPS:
        reporte.merge_metadata({"last_step_before_chat": last_step})
    reporte.current_step = "chat"
    _apply(reporte, ReporteEvent.ESCALATE)

    reporte = await ReporteRepository(db).save(reporte)
    await db.commit()

    notification = await _notify_chat_started(db, sender, reporte)
    return TransitionResponse(reporte=ReporteResponse.from_model(reporte), notification=notification)


@router.post("/reportes/{reporte_id}/submit", response_model=TransitionResponse)
async def submit_reporte(
    reporte_id: str,
    db: DatabaseSession,
    current_user: CurrentUser,
) -> TransitionResponse:
    """
    Submit a finished draft.

    Raises:
        HTTPException 409: Not a draft, or the delivery ticket is neither
            confirmed nor explained with a no-ticket reason
    """
    reporte = await get_owned_reporte(db, current_user, reporte_id)
    _apply(reporte, ReporteEvent.SUBMIT)

    reporte = await ReporteRepository(db).save(reporte)
    await db.commit()

    return TransitionResponse(reporte=ReporteResponse.from_model(reporte))


@router.post("/reportes/{reporte_id}/resolve", response_model=TransitionResponse)
async def resolve_reporte(
    reporte_id: str,
    db: DatabaseSession,
    current_user: CurrentUser,
) -> TransitionResponse:
    """The driver confirms the problem was solved in the chat."""
    reporte = await get_owned_reporte(db, current_user, reporte_id)
    _apply(reporte, ReporteEvent.DRIVER_CONFIRMS_RESOLUTION)

    reporte = await ReporteRepository(db).save(reporte)
    await db.commit()

    return TransitionResponse(reporte=ReporteResponse.from_model(reporte))
