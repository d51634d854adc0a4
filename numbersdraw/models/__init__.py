from .base import Base

# import models so Alembic/autoloaders can discover mappers
from .round import EntryRound  # noqa: F401
from .draw import Draw, GameFormat, RandomnessConfig, RandomnessRequest  # noqa: F401
from .control import ControlState  # noqa: F401
from .audit import AuditEvent  # noqa: F401

__all__ = [
    "Base",
    "EntryRound",
    "Draw",
    "GameFormat",
    "RandomnessConfig",
    "RandomnessRequest",
    "ControlState",
    "AuditEvent",
]
