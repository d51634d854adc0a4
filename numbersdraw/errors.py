"""Exception types raised by the ledger, coordinator and capability gate.

Caller-facing failures derive from :class:`SweepstakesError` and carry a stable
``code`` plus the context a caller needs to decide the corrective action.
Fulfillment integrity violations derive from :class:`IntegrityFault` instead,
since they signal a miswired or compromised randomness provider rather than a
recoverable client mistake.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional


class SweepstakesError(Exception):
    """Base class for structured, caller-recoverable errors."""

    code: str = "sweepstakes_error"

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


# -------- entry ledger --------


class AlreadyLocked(SweepstakesError):
    code = "already_locked"

    def __init__(self, round_id: str) -> None:
        super().__init__(f"Round {round_id!r} is locked", round_id=round_id)
        self.round_id = round_id


class InvalidBatchSize(SweepstakesError):
    code = "invalid_batch_size"

    def __init__(self, size: int, limit: int) -> None:
        super().__init__(
            f"Batch size {size} is outside the allowed range 1..{limit}",
            size=size,
            limit=limit,
        )
        self.size = size
        self.limit = limit


class InvalidEntry(SweepstakesError):
    code = "invalid_entry"

    def __init__(self, index: int) -> None:
        super().__init__(
            f"Entry at position {index} is not a positive integer", index=index
        )
        self.index = index


class BatchIndexMismatch(SweepstakesError):
    code = "batch_index_mismatch"

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(
            f"Expected batch index {expected} but the round is at {actual}",
            expected=expected,
            actual=actual,
        )
        self.expected = expected
        self.actual = actual


# -------- draw coordinator --------


class DrawAlreadyInProgress(SweepstakesError):
    code = "draw_already_in_progress"

    def __init__(self, round_id: str, request_id: Optional[str] = None) -> None:
        super().__init__(
            f"Round {round_id!r} already has a pending draw",
            round_id=round_id,
            request_id=request_id,
        )
        self.round_id = round_id
        self.request_id = request_id


class RoundAlreadyDrawn(SweepstakesError):
    code = "round_already_drawn"

    def __init__(self, round_id: str) -> None:
        super().__init__(f"Round {round_id!r} has already been drawn", round_id=round_id)
        self.round_id = round_id


class DrawNotFound(SweepstakesError):
    code = "draw_not_found"

    def __init__(self, round_id: str) -> None:
        super().__init__(f"No fulfilled draw for round {round_id!r}", round_id=round_id)
        self.round_id = round_id


class DrawNotPending(SweepstakesError):
    code = "draw_not_pending"

    def __init__(self, round_id: str) -> None:
        super().__init__(f"Round {round_id!r} has no pending draw", round_id=round_id)
        self.round_id = round_id


class DrawNotTimedOut(SweepstakesError):
    code = "draw_not_timed_out"

    def __init__(self, requested_at: datetime, timeout_at: datetime) -> None:
        super().__init__(
            f"Draw requested at {requested_at.isoformat()} cannot be cancelled "
            f"before {timeout_at.isoformat()}",
            requested_at=requested_at.isoformat(),
            timeout_at=timeout_at.isoformat(),
        )
        self.requested_at = requested_at
        self.timeout_at = timeout_at


class InvalidGameFormat(SweepstakesError):
    code = "invalid_game_format"

    def __init__(self, pick_count: int, max_range: int) -> None:
        super().__init__(
            f"Invalid game format pick_count={pick_count}, max_range={max_range}",
            pick_count=pick_count,
            max_range=max_range,
        )
        self.pick_count = pick_count
        self.max_range = max_range


class InvalidRandomnessConfig(SweepstakesError):
    code = "invalid_randomness_config"

    def __init__(self, field: str, value: Any) -> None:
        super().__init__(f"Invalid randomness setting {field}={value!r}", field=field)
        self.field = field


# -------- capability gate --------


class Paused(SweepstakesError):
    code = "paused"

    def __init__(self) -> None:
        super().__init__("Operations are paused")


class NotPaused(SweepstakesError):
    code = "not_paused"

    def __init__(self) -> None:
        super().__init__("Operations are not paused")


class Unauthorized(SweepstakesError):
    code = "unauthorized"

    def __init__(self, caller: Optional[str]) -> None:
        super().__init__(f"Caller {caller!r} is not authorized", caller=caller)
        self.caller = caller


class GateNotInitialized(SweepstakesError):
    code = "gate_not_initialized"

    def __init__(self) -> None:
        super().__init__("No operator has been configured")


class GateAlreadyInitialized(SweepstakesError):
    code = "gate_already_initialized"

    def __init__(self) -> None:
        super().__init__("The operator has already been configured")


# -------- integrity faults --------


class IntegrityFault(RuntimeError):
    """A provider callback violated the request/fulfillment contract."""

    def __init__(self, message: str, *, request_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.request_id = request_id


class UnknownRequest(IntegrityFault):
    pass


class RequestMismatch(IntegrityFault):
    pass


class DuplicateFulfillment(IntegrityFault):
    pass


class InvalidRandomness(IntegrityFault):
    pass


class AuditLogImmutable(RuntimeError):
    """Raised when code attempts to rewrite or delete an audit event."""


class AuditVerificationError(RuntimeError):
    """Audit replay found history inconsistent with the ledger rules."""


class RandomnessProviderError(RuntimeError):
    """The randomness provider could not accept or report on a request."""
