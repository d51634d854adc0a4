"""Append-only audit event table."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import JSON, DateTime, Index, String, event
from sqlalchemy.orm import Mapped, mapped_column

from numbersdraw.errors import AuditLogImmutable

from .base import Base
from .id_type import ID_TYPE, OPAQUE_ID_LENGTH


class AuditEvent(Base):
    """One state transition, in commit order.

    This table is the system of record for independent verification: every
    committed batch (with its full entries), lock, draw request, fulfillment,
    cancellation and configuration change appends a row here.
    """

    __tablename__ = "audit_events"

    sequence: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    """Monotonic position in the log."""

    event_type: Mapped[str] = mapped_column(String(50), nullable=False)
    """Event name, e.g. ``"BatchCommitted"``."""

    round_id: Mapped[Optional[str]] = mapped_column(
        String(OPAQUE_ID_LENGTH), nullable=True
    )
    """Round the event refers to; ``None`` for configuration events."""

    request_id: Mapped[Optional[str]] = mapped_column(
        String(OPAQUE_ID_LENGTH), nullable=True
    )

    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    """Event arguments as emitted."""

    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        Index("ix_audit_events_round_sequence", "round_id", "sequence"),
        Index("ix_audit_events_event_type", "event_type"),
    )

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return (
            f"<AuditEvent(sequence={self.sequence}, event_type={self.event_type!r}, "
            f"round_id={self.round_id!r})>"
        )


@event.listens_for(AuditEvent, "before_update")
def _reject_update(mapper, connection, target: AuditEvent) -> None:
    raise AuditLogImmutable(f"audit event {target.sequence} cannot be modified")


@event.listens_for(AuditEvent, "before_delete")
def _reject_delete(mapper, connection, target: AuditEvent) -> None:
    raise AuditLogImmutable(f"audit event {target.sequence} cannot be deleted")
