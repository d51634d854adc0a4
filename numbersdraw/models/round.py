"""Per-round counters owned by the entry ledger."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    Integer,
    String,
    select,
    text,
)
from sqlalchemy.orm import Mapped, Session, mapped_column

from .base import Base
from .id_type import OPAQUE_ID_LENGTH


class EntryRound(Base):
    """Committed batch and entry counters for one sweepstakes round.

    Entry payloads are never stored here; they only exist in the
    ``BatchCommitted`` audit events.
    """

    __tablename__ = "entry_rounds"

    round_id: Mapped[str] = mapped_column(String(OPAQUE_ID_LENGTH), primary_key=True)
    """Caller supplied round identifier."""

    batch_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    """Number of batches committed so far; also the next expected batch index."""

    entry_count: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    """Cumulative number of committed entries."""

    locked: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )
    """One-way flag; once set the counters above never change."""

    locked_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        CheckConstraint("batch_count >= 0", name="batch_count_non_negative"),
        CheckConstraint("entry_count >= 0", name="entry_count_non_negative"),
    )

    @classmethod
    def get(
        cls, session: Session, round_id: str, *, for_update: bool = False
    ) -> Optional["EntryRound"]:
        """Return the round row, optionally locking it for the current transaction."""
        stmt = select(cls).where(cls.round_id == round_id)
        if for_update:
            stmt = stmt.with_for_update()
        return session.scalar(stmt)

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return (
            f"<EntryRound(round_id={self.round_id!r}, batch_count={self.batch_count}, "
            f"entry_count={self.entry_count}, locked={self.locked})>"
        )
