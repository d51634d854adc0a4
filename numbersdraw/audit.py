"""Writing and reading the append-only audit log."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Iterable, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from .models import AuditEvent

logger = logging.getLogger(__name__)

BATCH_COMMITTED = "BatchCommitted"
ENTRIES_LOCKED = "EntriesLocked"
DRAW_REQUESTED = "DrawRequested"
DRAW_FULFILLED = "DrawFulfilled"
DRAW_CANCELLED = "DrawCancelled"
GAME_FORMAT_UPDATED = "GameFormatUpdated"
RANDOMNESS_CONFIG_UPDATED = "RandomnessConfigUpdated"
PAUSED = "Paused"
UNPAUSED = "Unpaused"
OPERATOR_TRANSFER_STARTED = "OperatorTransferStarted"
OPERATOR_TRANSFERRED = "OperatorTransferred"

EVENT_TYPES = frozenset(
    {
        BATCH_COMMITTED,
        ENTRIES_LOCKED,
        DRAW_REQUESTED,
        DRAW_FULFILLED,
        DRAW_CANCELLED,
        GAME_FORMAT_UPDATED,
        RANDOMNESS_CONFIG_UPDATED,
        PAUSED,
        UNPAUSED,
        OPERATOR_TRANSFER_STARTED,
        OPERATOR_TRANSFERRED,
    }
)


def record_event(
    session: Session,
    event_type: str,
    payload: dict[str, Any],
    *,
    round_id: Optional[str] = None,
    request_id: Optional[str] = None,
    occurred_at: Optional[datetime] = None,
) -> AuditEvent:
    """Append an event to the audit log within the caller's transaction.

    Parameters
    ----------
    session : Session
        Session whose transaction also carries the state change being audited.
    event_type : str
        One of the names in :data:`EVENT_TYPES`.
    payload : dict[str, Any]
        JSON-serializable event arguments.
    round_id : Optional[str], default: None
        Round the event belongs to, duplicated into an indexed column.
    request_id : Optional[str], default: None
        Provider request id, duplicated into a column for lookups.
    occurred_at : Optional[datetime], default: None
        Event timestamp; defaults to the current UTC time.

    Returns
    -------
    AuditEvent
        The flushed row, with ``sequence`` populated.
    """
    if event_type not in EVENT_TYPES:
        raise ValueError(f"Unknown audit event type '{event_type}'")

    audit_event = AuditEvent(
        event_type=event_type,
        round_id=round_id,
        request_id=request_id,
        payload=payload,
        occurred_at=occurred_at or datetime.now(timezone.utc),
    )
    session.add(audit_event)
    session.flush()
    logger.info(
        f"Audit {event_type} #{audit_event.sequence} round={round_id} request={request_id}"
    )
    return audit_event


def list_events(
    session: Session,
    *,
    round_id: Optional[str] = None,
    event_types: Optional[Iterable[str]] = None,
    after_sequence: Optional[int] = None,
) -> Sequence[AuditEvent]:
    """Return audit events in log order, optionally filtered."""
    stmt = select(AuditEvent)
    if round_id is not None:
        stmt = stmt.where(AuditEvent.round_id == round_id)
    if event_types is not None:
        stmt = stmt.where(AuditEvent.event_type.in_(list(event_types)))
    if after_sequence is not None:
        stmt = stmt.where(AuditEvent.sequence > after_sequence)
    return session.scalars(stmt.order_by(AuditEvent.sequence.asc())).all()


__all__ = [
    "BATCH_COMMITTED",
    "DRAW_CANCELLED",
    "DRAW_FULFILLED",
    "DRAW_REQUESTED",
    "ENTRIES_LOCKED",
    "EVENT_TYPES",
    "GAME_FORMAT_UPDATED",
    "OPERATOR_TRANSFERRED",
    "OPERATOR_TRANSFER_STARTED",
    "PAUSED",
    "RANDOMNESS_CONFIG_UPDATED",
    "UNPAUSED",
    "list_events",
    "record_event",
]
