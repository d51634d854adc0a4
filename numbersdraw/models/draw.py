"""Database models owned by the draw coordinator."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Index,
    Integer,
    String,
    select,
    text,
)
from sqlalchemy.orm import Mapped, Session, mapped_column

from .base import Base
from .id_type import ID_TYPE, OPAQUE_ID_LENGTH

# Decimal rendering of a uint256 random word is at most 78 characters.
RANDOM_WORD_LENGTH = 78


class Draw(Base):
    """Live draw record for a round.

    A row exists from the moment randomness is requested until it is either
    fulfilled (kept forever) or cancelled (deleted so the round can be redrawn).
    """

    __tablename__ = "draws"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    """Surrogate primary key."""

    round_id: Mapped[str] = mapped_column(
        String(OPAQUE_ID_LENGTH), nullable=False, unique=True
    )
    """Round this draw belongs to; at most one row per round."""

    request_id: Mapped[str] = mapped_column(String(OPAQUE_ID_LENGTH), nullable=False)
    """Handle returned by the randomness provider for this request."""

    pick_count: Mapped[int] = mapped_column(Integer, nullable=False)
    """Game format pick count captured when the draw was requested."""

    max_range: Mapped[int] = mapped_column(Integer, nullable=False)
    """Game format range captured when the draw was requested."""

    active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default=text("true")
    )
    """``True`` while waiting for the provider callback."""

    fulfilled: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )
    """One-way flag set when the provider delivered randomness."""

    random_word: Mapped[Optional[str]] = mapped_column(
        String(RANDOM_WORD_LENGTH), nullable=True
    )
    """Decimal string of the random word used to expand the winning numbers."""

    winning_numbers: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    """Sorted unique winning numbers; empty until fulfilled."""

    requested_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    fulfilled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        CheckConstraint("NOT (active AND fulfilled)", name="active_xor_fulfilled"),
        Index("ix_draws_request_id", "request_id"),
    )

    @classmethod
    def get_by_round(
        cls, session: Session, round_id: str, *, for_update: bool = False
    ) -> Optional["Draw"]:
        stmt = select(cls).where(cls.round_id == round_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return session.scalar(stmt)

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return (
            f"<Draw(round_id={self.round_id!r}, request_id={self.request_id!r}, "
            f"active={self.active}, fulfilled={self.fulfilled})>"
        )


class RandomnessRequest(Base):
    """Maps an outstanding provider request id back to its round."""

    __tablename__ = "randomness_requests"

    request_id: Mapped[str] = mapped_column(String(OPAQUE_ID_LENGTH), primary_key=True)
    round_id: Mapped[str] = mapped_column(
        String(OPAQUE_ID_LENGTH), nullable=False, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )


class GameFormat(Base):
    """Process-wide draw format. A single row with ``id == 1``."""

    __tablename__ = "game_formats"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=1)
    pick_count: Mapped[int] = mapped_column(Integer, nullable=False)
    max_range: Mapped[int] = mapped_column(Integer, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        CheckConstraint("pick_count BETWEEN 1 AND 9", name="pick_count_range"),
        CheckConstraint(
            "max_range >= pick_count AND max_range <= 99", name="max_range_range"
        ),
    )


class RandomnessConfig(Base):
    """Parameters sent with every randomness request. A single row with ``id == 1``."""

    __tablename__ = "randomness_configs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=1)

    key_hash: Mapped[str] = mapped_column(String(66), nullable=False)
    """Gas lane identifier selecting the provider's proving key."""

    subscription_id: Mapped[str] = mapped_column(String(OPAQUE_ID_LENGTH), nullable=False)
    """Billing subscription funding the requests."""

    callback_gas_limit: Mapped[int] = mapped_column(Integer, nullable=False)
    request_confirmations: Mapped[int] = mapped_column(Integer, nullable=False)
    native_payment: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )


__all__ = ["Draw", "GameFormat", "RandomnessConfig", "RandomnessRequest"]
