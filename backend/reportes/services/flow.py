"""
Conductor flow step resolution.

The driver client walks through numbered capture steps whose order
depends on the report type. These helpers decide where a driver resumes
a reporte from its evidence and metadata.

Step names:
    4a              photo of the exhibitor on arrival (entrega)
    4b              photo of the closed store facade (tienda_cerrada)
    4c              photo of the scale (bascula)
    incident_check  decide whether there are incidents
    6               photo of the arranged product
    waste_check     decide whether there is waste (merma)
    8               delivery ticket photo
    return_check    decide whether there is a return ticket
    11              return confirmation
    finish          nothing left to capture
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from reportes.models.reporte import Reporte, STATUS_SUBMITTED


CHAT_STEPS = frozenset({"chat", "chat_redirect"})

DEFAULT_STEPS = {
    "entrega": "4a",
    "tienda_cerrada": "4b",
    "bascula": "4c",
}


def default_step(tipo_reporte: Optional[str]) -> str:
    """First step of a report type; untyped reportes start as entrega."""
    return DEFAULT_STEPS.get(tipo_reporte or "entrega", "unknown")


def get_next_step(
    tipo_reporte: Optional[str],
    evidence: Optional[Dict[str, str]] = None,
    metadata: Optional[Dict[str, Any]] = None,
    incident_details: Optional[List[Any]] = None,
    status: Optional[str] = None,
) -> str:
    """
    Work out the next capture step for a reporte.

    Args:
        tipo_reporte: Report type
        evidence: Evidence map (photo category -> URL)
        metadata: Reporte metadata
        incident_details: Incidents already reported
        status: Current reporte status

    Returns:
        Step name (see module docstring)

    Example:
        >>> get_next_step("entrega", {"arrival_exhibit": "https://..."})
        'incident_check'
        >>> get_next_step("bascula", {"scale": "https://..."})
        'finish'
    """
    evidence = evidence or {}
    metadata = metadata or {}

    if metadata.get("should_return_to_step"):
        return metadata["should_return_to_step"]

    # Still in the chat: resume where the driver left the flow
    if metadata.get("last_step_before_chat") and status == STATUS_SUBMITTED:
        return metadata["last_step_before_chat"]

    if tipo_reporte == "tienda_cerrada":
        return "finish" if evidence.get("facade") else "4b"

    if tipo_reporte == "bascula":
        return "finish" if evidence.get("scale") else "4c"

    if tipo_reporte == "entrega":
        if not evidence.get("arrival_exhibit"):
            return "4a"

        if not evidence.get("product_arranged"):
            return "6" if incident_details else "incident_check"

        if not evidence.get("waste_evidence") and not evidence.get("remission"):
            return "waste_check"

        if not evidence.get("ticket"):
            return "8"

        if not evidence.get("return_ticket"):
            return "return_check"

        return "11"

    return "4a"


@dataclass
class FlowPosition:
    """Where the driver client should take the user for a reporte."""
    step: Optional[str]
    next_step: str
    redirect_to: Optional[str] = None


def resolve_flow_position(reporte: Reporte, requested_step: Optional[str] = None) -> FlowPosition:
    """
    Choose the step to open for a reporte.

    Precedence is requested step, then saved step, then the type default.
    A saved chat step on a submitted reporte sends the driver back to
    the chat instead; chat steps are never opened inside the flow.

    Args:
        reporte: Reporte being resumed
        requested_step: Step explicitly asked for by the client

    Returns:
        FlowPosition with step, next_step and optional redirect ("chat")
    """
    next_step = get_next_step(
        reporte.tipo_reporte,
        reporte.get_evidence(),
        reporte.get_metadata(),
        reporte.get_incident_details(),
        reporte.status,
    )

    saved_step = reporte.current_step
    if not requested_step and saved_step in CHAT_STEPS and reporte.status == STATUS_SUBMITTED:
        return FlowPosition(step=None, next_step=next_step, redirect_to="chat")

    fallback = default_step(reporte.tipo_reporte)
    step = requested_step or saved_step or fallback
    if step in CHAT_STEPS:
        step = fallback

    return FlowPosition(step=step, next_step=next_step)
