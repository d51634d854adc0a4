"""Single-operator authorization and the emergency pause switch."""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.orm import Session

from . import audit
from .errors import (
    GateAlreadyInitialized,
    GateNotInitialized,
    NotPaused,
    Paused,
    Unauthorized,
)
from .models import ControlState

logger = logging.getLogger(__name__)


def _normalize_identity(value: str, name: str) -> str:
    if value is None:
        raise ValueError(f"{name} must not be None")
    if not isinstance(value, str):
        raise TypeError(f"{name} must be a string")
    normalized = value.strip()
    if not normalized:
        raise ValueError(f"{name} must not be empty")
    return normalized


class CapabilityGate:
    """Checks consulted by every mutating ledger and coordinator operation.

    The gate stores one operator identity and a paused flag in the
    :class:`ControlState` singleton row. Loading that row ``FOR UPDATE`` on
    every gated call gives all mutating operations a single global order on
    databases that support row locks.

    Ownership can be handed over with :meth:`transfer_operator` followed by
    :meth:`accept_operator`, but it can never be abandoned: without an
    operator no round could be locked, drawn or recovered.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    # -------- bootstrap --------
    def initialize(self, operator: str) -> ControlState:
        """Create the control row with ``operator`` as the first operator."""
        operator = _normalize_identity(operator, "operator")
        if ControlState.load(self._session) is not None:
            raise GateAlreadyInitialized()
        state = ControlState(id=1, operator=operator, paused=False)
        self._session.add(state)
        self._session.flush()
        logger.info(f"Capability gate initialized with operator {operator}")
        return state

    def _state(self, *, for_update: bool = True) -> ControlState:
        state = ControlState.load(self._session, for_update=for_update)
        if state is None:
            raise GateNotInitialized()
        return state

    # -------- reads --------
    @property
    def operator(self) -> str:
        return self._state(for_update=False).operator

    @property
    def pending_operator(self) -> Optional[str]:
        return self._state(for_update=False).pending_operator

    def is_paused(self) -> bool:
        return self._state(for_update=False).paused

    # -------- checks --------
    def require_operator(self, caller: Optional[str]) -> ControlState:
        """Raise :class:`Unauthorized` unless ``caller`` is the operator."""
        state = self._state()
        if caller is None or caller != state.operator:
            logger.warning(f"Rejected call from non-operator {caller!r}")
            raise Unauthorized(caller)
        return state

    def authorize(self, caller: Optional[str]) -> ControlState:
        """Require the operator and an unpaused system."""
        state = self.require_operator(caller)
        if state.paused:
            logger.warning("Rejected operator call while paused")
            raise Paused()
        return state

    # -------- pause switch --------
    def pause(self, caller: str) -> None:
        state = self.require_operator(caller)
        if state.paused:
            raise Paused()
        state.paused = True
        audit.record_event(self._session, audit.PAUSED, {"operator": state.operator})
        logger.warning(f"Operations paused by {caller}")

    def unpause(self, caller: str) -> None:
        state = self.require_operator(caller)
        if not state.paused:
            raise NotPaused()
        state.paused = False
        audit.record_event(self._session, audit.UNPAUSED, {"operator": state.operator})
        logger.info(f"Operations resumed by {caller}")

    # -------- operator transfer --------
    def transfer_operator(self, caller: str, new_operator: str) -> None:
        """Nominate ``new_operator``; control moves only once they accept."""
        new_operator = _normalize_identity(new_operator, "new_operator")
        state = self.require_operator(caller)
        state.pending_operator = new_operator
        audit.record_event(
            self._session,
            audit.OPERATOR_TRANSFER_STARTED,
            {"operator": state.operator, "pending_operator": new_operator},
        )

    def accept_operator(self, caller: str) -> None:
        state = self._state()
        if state.pending_operator is None or caller != state.pending_operator:
            raise Unauthorized(caller)
        previous = state.operator
        state.operator = state.pending_operator
        state.pending_operator = None
        audit.record_event(
            self._session,
            audit.OPERATOR_TRANSFERRED,
            {"previous_operator": previous, "operator": state.operator},
        )
        logger.info(f"Operator changed from {previous} to {state.operator}")


__all__ = ["CapabilityGate"]
