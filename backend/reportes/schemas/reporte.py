"""
Pydantic schemas for reportes and the conductor flow.

JSON text columns are decoded in ReporteResponse.from_model so clients
always receive objects, never JSON strings.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from reportes.models.reporte import Reporte
from reportes.schemas.message import MessageResponse


TipoReporte = Literal[
    "rechazo_completo",
    "rechazo_parcial",
    "devolucion",
    "faltante",
    "sobrante",
    "entrega",
    "tienda_cerrada",
    "bascula",
]

TicketKind = Literal["recibido", "devolucion", "merma"]


class ReporteCreateRequest(BaseModel):
    """Start a reporte at a validated store."""
    store_id: str = Field(..., description="Store returned by /stores/validate")
    conductor_nombre: Optional[str] = Field(default=None, max_length=255)


class ReporteUpdateRequest(BaseModel):
    """
    Editable fields of a draft reporte.

    Omitted fields are left untouched. metadata is merged key by key;
    a key set to null is removed.
    """
    tipo_reporte: Optional[TipoReporte] = None
    motivo: Optional[str] = Field(default=None, max_length=2000)
    rechazo_details: Optional[Dict[str, Any]] = None
    incident_details: Optional[List[Dict[str, Any]]] = None
    metadata: Optional[Dict[str, Any]] = None


class ReporteResponse(BaseModel):
    """Full reporte with decoded JSON fields."""
    id: str
    user_id: str
    store_id: Optional[str] = None
    status: str
    status_label: str
    tipo_reporte: Optional[str] = None
    store_codigo: Optional[str] = None
    store_nombre: Optional[str] = None
    store_zona: Optional[str] = None
    conductor_nombre: Optional[str] = None
    motivo: Optional[str] = None
    current_step: Optional[str] = None
    rechazo_details: Optional[Dict[str, Any]] = None
    ticket_data: Optional[Dict[str, Any]] = None
    ticket_image_url: Optional[str] = None
    ticket_extraction_confirmed: bool = False
    return_ticket_data: Optional[Dict[str, Any]] = None
    return_ticket_image_url: Optional[str] = None
    return_ticket_extraction_confirmed: bool = False
    evidence: Dict[str, str] = Field(default_factory=dict)
    incident_details: List[Dict[str, Any]] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: str
    updated_at: str
    submitted_at: Optional[str] = None
    resolved_at: Optional[str] = None
    timeout_at: Optional[str] = None

    @classmethod
    def from_model(cls, reporte: Reporte) -> "ReporteResponse":
        return cls(
            id=reporte.id,
            user_id=reporte.user_id,
            store_id=reporte.store_id,
            status=reporte.status,
            status_label=reporte.status_label,
            tipo_reporte=reporte.tipo_reporte,
            store_codigo=reporte.store_codigo,
            store_nombre=reporte.store_nombre,
            store_zona=reporte.store_zona,
            conductor_nombre=reporte.conductor_nombre,
            motivo=reporte.motivo,
            current_step=reporte.current_step,
            rechazo_details=reporte.get_rechazo_details(),
            ticket_data=reporte.get_ticket_data(),
            ticket_image_url=reporte.ticket_image_url,
            ticket_extraction_confirmed=bool(reporte.ticket_extraction_confirmed),
            return_ticket_data=reporte.get_return_ticket_data(),
            return_ticket_image_url=reporte.return_ticket_image_url,
            return_ticket_extraction_confirmed=bool(reporte.return_ticket_extraction_confirmed),
            evidence=reporte.get_evidence(),
            incident_details=reporte.get_incident_details(),
            metadata=reporte.get_metadata(),
            created_at=reporte.created_at,
            updated_at=reporte.updated_at,
            submitted_at=reporte.submitted_at,
            resolved_at=reporte.resolved_at,
            timeout_at=reporte.timeout_at,
        )


class ReporteCreateResponse(BaseModel):
    reporte: ReporteResponse


class ReporteDetailResponse(BaseModel):
    """Reporte plus its evidence map, as shown on the detail views."""
    reporte: ReporteResponse
    evidence: Dict[str, str]


class ConductorHomeResponse(BaseModel):
    """Conductor landing data: profile and the draft to resume, if any."""
    display_name: Optional[str] = None
    email: str
    draft: Optional[ReporteResponse] = None


class ActiveReporteResponse(BaseModel):
    reporte: Optional[ReporteResponse] = None


class FlowResponse(BaseModel):
    """
    Where the driver client resumes a reporte.

    Attributes:
        step: Step to open (None when redirect_to is set)
        next_step: Step derived from evidence and metadata
        redirect_to: "chat" when the driver should go back to the chat
        reporte: Current reporte
    """
    step: Optional[str] = None
    next_step: str
    redirect_to: Optional[Literal["chat"]] = None
    reporte: ReporteResponse


class StepUpdateRequest(BaseModel):
    step: str = Field(..., min_length=1, max_length=64)


class EvidenceUploadResponse(BaseModel):
    url: str
    evidence: Dict[str, str]


class IncidentsRequest(BaseModel):
    """Incidents found on delivery; reporting them escalates to commercial staff."""
    items: List[Dict[str, Any]] = Field(..., min_length=1)


class ChatStartRequest(BaseModel):
    """Step the driver was on when asking for help (defaults to the saved step)."""
    step: Optional[str] = Field(default=None, max_length=64)


class TicketConfirmRequest(BaseModel):
    """Ticket data reviewed and confirmed by the driver."""
    data: Dict[str, Any]
    image_url: Optional[str] = None


class TransitionResponse(BaseModel):
    """Result of a lifecycle action."""
    reporte: ReporteResponse
    notification: Optional[Dict[str, Any]] = None


class ComercialReporteItem(BaseModel):
    """Row of the comercial/admin reporte lists."""
    id: str
    status: str
    status_label: str
    tipo_reporte: Optional[str] = None
    store_codigo: Optional[str] = None
    store_nombre: Optional[str] = None
    store_zona: Optional[str] = None
    conductor_nombre: Optional[str] = None
    created_at: str
    submitted_at: Optional[str] = None
    timeout_at: Optional[str] = None
    resolved_at: Optional[str] = None

    @classmethod
    def from_model(cls, reporte: Reporte) -> "ComercialReporteItem":
        return cls(
            id=reporte.id,
            status=reporte.status,
            status_label=reporte.status_label,
            tipo_reporte=reporte.tipo_reporte,
            store_codigo=reporte.store_codigo,
            store_nombre=reporte.store_nombre,
            store_zona=reporte.store_zona,
            conductor_nombre=reporte.conductor_nombre,
            created_at=reporte.created_at,
            submitted_at=reporte.submitted_at,
            timeout_at=reporte.timeout_at,
            resolved_at=reporte.resolved_at,
        )


class ComercialReporteListResponse(BaseModel):
    reportes: List[ComercialReporteItem]
    zona: Optional[str] = None
    message: Optional[str] = None


class ReporteTimelineResponse(BaseModel):
    """
    Staff view of a reporte with its whole conversation.

    Attributes:
        reporte: The reporte (status_label included)
        evidence: Evidence map
        conductor_nombre: Driver name shown in the header
        messages: Chat messages, oldest first
    """
    reporte: ReporteResponse
    evidence: Dict[str, str]
    conductor_nombre: Optional[str] = None
    messages: List[MessageResponse]
