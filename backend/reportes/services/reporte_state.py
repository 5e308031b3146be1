"""
Reporte lifecycle state machine.

Every status change of a reporte goes through transition(), which looks
the event up in a fixed table, checks its guard and applies its effect
(timestamps) to the row. Routes translate InvalidTransitionError into
409 responses.

    draft ──SUBMIT/ESCALATE──▶ submitted ──DRIVER_CONFIRMS_RESOLUTION──▶ resolved_by_driver
                                   │                                           │
                                   ├──TIMEOUT──▶ timed_out                     │
                                   │                 │                         │
                                   └─────────────────┴──ADMIN_COMPLETES──▶ completed ──ARCHIVE──▶ archived
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from reportes.core.config import settings
from reportes.core.logging_config import log_with_context
from reportes.models.base import utc_now, parse_iso
from reportes.models.reporte import (
    Reporte,
    STATUS_DRAFT,
    STATUS_SUBMITTED,
    STATUS_RESOLVED_BY_DRIVER,
    STATUS_TIMED_OUT,
    STATUS_COMPLETED,
    STATUS_ARCHIVED,
)

logger = logging.getLogger(__name__)


class ReporteEvent(str, Enum):
    """Events that move a reporte between statuses."""
    SUBMIT = "SUBMIT"
    ESCALATE = "ESCALATE"
    DRIVER_CONFIRMS_RESOLUTION = "DRIVER_CONFIRMS_RESOLUTION"
    TIMEOUT = "TIMEOUT"
    ADMIN_COMPLETES = "ADMIN_COMPLETES"
    ARCHIVE = "ARCHIVE"


class InvalidTransitionError(Exception):
    """Raised when an event is not allowed from the reporte's current status."""

    def __init__(self, status: str, event: ReporteEvent):
        super().__init__(f"Transición inválida: {status} -> {event.value}")
        self.status = status
        self.event = event


def ticket_ready(reporte: Reporte) -> bool:
    """
    Whether a reporte may be submitted.

    Only "entrega" reportes collect a delivery ticket. Those need the
    extraction confirmed, or a recorded reason for not having one.
    """
    if reporte.ticket_extraction_confirmed:
        return True
    if reporte.tipo_reporte != "entrega":
        return True
    return bool(reporte.get_metadata().get("no_ticket_reason"))


def is_timed_out(reporte: Reporte, now: Optional[datetime] = None) -> bool:
    """
    Whether the reporte's timeout has passed.

    Args:
        reporte: Reporte to check
        now: Reference time (defaults to current UTC time)

    Returns:
        False when no timeout is set
    """
    timeout_at = parse_iso(reporte.timeout_at)
    if timeout_at is None:
        return False
    return (now or utc_now()) > timeout_at


def _start_timer(reporte: Reporte, now: datetime) -> None:
    reporte.submitted_at = now.isoformat(timespec="microseconds")
    reporte.timeout_at = (
        now + timedelta(minutes=settings.report_timeout_minutes)
    ).isoformat(timespec="microseconds")


def _mark_resolved(reporte: Reporte, now: datetime) -> None:
    reporte.resolved_at = now.isoformat(timespec="microseconds")


@dataclass(frozen=True)
class Transition:
    """One row of the transition table."""
    source: str
    target: str
    event: ReporteEvent
    guard: Optional[Callable[[Reporte, datetime], bool]] = None
    effect: Optional[Callable[[Reporte, datetime], None]] = None


TRANSITIONS: List[Transition] = [
    Transition(
        STATUS_DRAFT, STATUS_SUBMITTED, ReporteEvent.SUBMIT,
        guard=lambda r, now: ticket_ready(r),
        effect=_start_timer,
    ),
    # Driver asked for help from the chat; no ticket requirement
    Transition(
        STATUS_DRAFT, STATUS_SUBMITTED, ReporteEvent.ESCALATE,
        effect=_start_timer,
    ),
    Transition(
        STATUS_SUBMITTED, STATUS_RESOLVED_BY_DRIVER, ReporteEvent.DRIVER_CONFIRMS_RESOLUTION,
        effect=_mark_resolved,
    ),
    Transition(
        STATUS_SUBMITTED, STATUS_TIMED_OUT, ReporteEvent.TIMEOUT,
        guard=lambda r, now: is_timed_out(r, now),
    ),
    Transition(
        STATUS_SUBMITTED, STATUS_COMPLETED, ReporteEvent.ADMIN_COMPLETES,
        effect=_mark_resolved,
    ),
    Transition(
        STATUS_RESOLVED_BY_DRIVER, STATUS_COMPLETED, ReporteEvent.ADMIN_COMPLETES,
        effect=_mark_resolved,
    ),
    Transition(
        STATUS_TIMED_OUT, STATUS_COMPLETED, ReporteEvent.ADMIN_COMPLETES,
        effect=_mark_resolved,
    ),
    Transition(STATUS_COMPLETED, STATUS_ARCHIVED, ReporteEvent.ARCHIVE),
]


def _find(status: str, event: ReporteEvent) -> Optional[Transition]:
    for candidate in TRANSITIONS:
        if candidate.source == status and candidate.event == event:
            return candidate
    return None


def can_transition(
    reporte: Reporte,
    event: ReporteEvent,
    now: Optional[datetime] = None,
) -> bool:
    """
    Check if an event is allowed from the reporte's current status.

    Args:
        reporte: Reporte to check
        event: Event to apply
        now: Reference time for time-based guards

    Returns:
        True if a transition exists and its guard passes
    """
    candidate = _find(reporte.status, event)
    if candidate is None:
        return False
    if candidate.guard is not None and not candidate.guard(reporte, now or utc_now()):
        return False
    return True


def transition(
    reporte: Reporte,
    event: ReporteEvent,
    now: Optional[datetime] = None,
) -> str:
    """
    Apply an event to a reporte in place.

    The caller flushes/commits the session.

    Args:
        reporte: Reporte to update
        event: Event to apply
        now: Reference time (defaults to current UTC time)

    Returns:
        The new status

    Raises:
        InvalidTransitionError: If the event is not allowed

    Example:
        >>> transition(reporte, ReporteEvent.ESCALATE)
        'submitted'
        >>> reporte.timeout_at  # submitted_at + 20 minutes
        '2025-11-24T10:50:00.000000+00:00'
    """
    now = now or utc_now()

    if not can_transition(reporte, event, now):
        raise InvalidTransitionError(reporte.status, event)

    candidate = _find(reporte.status, event)
    previous = reporte.status
    reporte.status = candidate.target

    if candidate.effect is not None:
        candidate.effect(reporte, now)

    log_with_context(
        logger,
        "info",
        "Reporte transitioned",
        reporte_id=reporte.id,
        user_id=reporte.user_id,
        event=event.value,
        from_status=previous,
        to_status=reporte.status,
    )

    return reporte.status


def valid_events(reporte: Reporte, now: Optional[datetime] = None) -> List[ReporteEvent]:
    """List the events currently allowed for a reporte, in table order."""
    now = now or utc_now()
    events: List[ReporteEvent] = []
    for candidate in TRANSITIONS:
        if candidate.source != reporte.status or candidate.event in events:
            continue
        if candidate.guard is None or candidate.guard(reporte, now):
            events.append(candidate.event)
    return events


async def expire_overdue(session: AsyncSession, now: Optional[datetime] = None) -> int:
    """
    Time out every submitted reporte whose timeout has passed.

    Args:
        session: Database session (the caller commits)
        now: Reference time (defaults to current UTC time)

    Returns:
        Number of reportes marked timed_out
    """
    from reportes.repositories.reporte import ReporteRepository

    now = now or utc_now()
    overdue = await ReporteRepository(session).list_overdue(
        now.isoformat(timespec="microseconds")
    )

    expired = 0
    for reporte in overdue:
        if can_transition(reporte, ReporteEvent.TIMEOUT, now):
            transition(reporte, ReporteEvent.TIMEOUT, now)
            expired += 1

    if expired:
        await session.flush()
        logger.info("Expired overdue reportes", extra={"count": expired})

    return expired
