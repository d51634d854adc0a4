from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, DateTime, Integer, String, select, text
from sqlalchemy.orm import Mapped, Session, mapped_column

from .base import Base
from .id_type import OPAQUE_ID_LENGTH


class ControlState(Base):
    """Operator identity and pause switch. A single row with ``id == 1``."""

    __tablename__ = "control_state"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=1)
    operator: Mapped[str] = mapped_column(String(OPAQUE_ID_LENGTH), nullable=False)
    pending_operator: Mapped[Optional[str]] = mapped_column(
        String(OPAQUE_ID_LENGTH), nullable=True
    )
    paused: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    @classmethod
    def load(cls, session: Session, *, for_update: bool = False) -> Optional["ControlState"]:
        """Return the singleton row; ``for_update`` serializes gated operations."""
        stmt = select(cls).where(cls.id == 1)
        if for_update:
            stmt = stmt.with_for_update()
        return session.scalar(stmt)
