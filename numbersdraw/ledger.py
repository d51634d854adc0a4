"""Batch ingestion of sweepstakes entries with idempotency and locking."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, NamedTuple, Optional, Sequence

from sqlalchemy.orm import Session

from . import audit
from .db.utils import ensure_utc
from .errors import AlreadyLocked, BatchIndexMismatch, InvalidBatchSize, InvalidEntry
from .gate import CapabilityGate
from .models import EntryRound

logger = logging.getLogger(__name__)

ENTRIES_PER_BATCH = 1000
"""Upper bound on the number of entries accepted by one :meth:`EntryLedger.commit_batch`."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RoundStats(NamedTuple):
    entry_count: int
    batch_count: int
    locked: bool


def _first_invalid_entry(entries: Sequence[int]) -> Optional[int]:
    """Return the position of the first entry that is not a positive integer."""
    for index, entry in enumerate(entries):
        if isinstance(entry, bool) or not isinstance(entry, int) or entry <= 0:
            return index
    return None


class EntryLedger:
    """Append-only ledger of entry batches per round.

    Only the per-round counters are kept as queryable state; each batch's full
    entry list is written to the audit log as a ``BatchCommitted`` event.
    Every precondition is checked before any row is touched, so a rejected
    call leaves no trace and a failed flush is undone with the caller's
    transaction.
    """

    def __init__(
        self,
        session: Session,
        *,
        gate: Optional[CapabilityGate] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        """Create a ledger bound to a SQLAlchemy session.

        Parameters
        ----------
        session : Session
            Active session; the caller owns the transaction boundary.
        gate : Optional[CapabilityGate], default: None
            Gate used for operator and pause checks. A gate bound to the same
            session is created when omitted.
        clock : Optional[Callable[[], datetime]], default: None
            Source of the lock timestamp. Defaults to UTC wall-clock time.
        """
        self._session = session
        self._gate = gate or CapabilityGate(session)
        self._clock = clock or _utcnow

    def commit_batch(
        self,
        caller: str,
        round_id: str,
        expected_batch_index: int,
        entries: Sequence[int],
    ) -> int:
        """Append one batch of encoded entries to ``round_id``.

        ``expected_batch_index`` must equal the round's current batch count.
        A retransmitted request that was already applied therefore fails with
        :class:`BatchIndexMismatch` instead of being recorded twice.

        Parameters
        ----------
        caller : str
            Identity of the caller; must be the operator.
        round_id : str
            Round receiving the batch. The round is created on first commit.
        expected_batch_index : int
            Index the caller believes this batch will receive.
        entries : Sequence[int]
            Encoded entries, between 1 and :data:`ENTRIES_PER_BATCH` of them.

        Returns
        -------
        int
            The batch index assigned to this batch.

        Raises
        ------
        AlreadyLocked
            If the round has been locked.
        InvalidBatchSize
            If ``entries`` is empty or longer than :data:`ENTRIES_PER_BATCH`.
        InvalidEntry
            If an entry is zero (or otherwise not a positive integer).
        BatchIndexMismatch
            If ``expected_batch_index`` differs from the round's batch count.
        """
        self._gate.authorize(caller)

        entry_round = EntryRound.get(self._session, round_id, for_update=True)
        if entry_round is not None and entry_round.locked:
            raise AlreadyLocked(round_id)

        batch = list(entries)
        if not 1 <= len(batch) <= ENTRIES_PER_BATCH:
            raise InvalidBatchSize(len(batch), ENTRIES_PER_BATCH)

        invalid_index = _first_invalid_entry(batch)
        if invalid_index is not None:
            raise InvalidEntry(invalid_index)

        current_index = entry_round.batch_count if entry_round is not None else 0
        if expected_batch_index != current_index:
            logger.warning(
                f"Batch index mismatch for round {round_id}: "
                f"expected={expected_batch_index} actual={current_index}"
            )
            raise BatchIndexMismatch(expected_batch_index, current_index)

        if entry_round is None:
            entry_round = EntryRound(
                round_id=round_id, batch_count=0, entry_count=0, locked=False
            )
            self._session.add(entry_round)

        batch_index = entry_round.batch_count
        entry_round.batch_count = batch_index + 1
        entry_round.entry_count = entry_round.entry_count + len(batch)

        audit.record_event(
            self._session,
            audit.BATCH_COMMITTED,
            {
                "round_id": round_id,
                "batch_index": batch_index,
                "entry_count": len(batch),
                "entries": batch,
            },
            round_id=round_id,
        )
        logger.info(
            f"Committed batch {batch_index} ({len(batch)} entries) to round {round_id}"
        )
        return batch_index

    def lock_entries(self, caller: str, round_id: str) -> RoundStats:
        """Close ``round_id`` to further batches, permanently.

        Locking a round that has never received a batch is allowed and
        freezes it at zero entries.

        Raises
        ------
        AlreadyLocked
            If the round is already locked.
        """
        self._gate.authorize(caller)

        entry_round = EntryRound.get(self._session, round_id, for_update=True)
        if entry_round is not None and entry_round.locked:
            raise AlreadyLocked(round_id)
        if entry_round is None:
            entry_round = EntryRound(
                round_id=round_id, batch_count=0, entry_count=0, locked=False
            )
            self._session.add(entry_round)

        entry_round.locked = True
        locked_at = ensure_utc(self._clock())
        entry_round.locked_at = locked_at

        audit.record_event(
            self._session,
            audit.ENTRIES_LOCKED,
            {"round_id": round_id, "total_entries": entry_round.entry_count},
            round_id=round_id,
            occurred_at=locked_at,
        )
        logger.info(
            f"Locked round {round_id} with {entry_round.entry_count} entries "
            f"in {entry_round.batch_count} batches"
        )
        return RoundStats(entry_round.entry_count, entry_round.batch_count, True)

    def get_round_stats(self, round_id: str) -> RoundStats:
        """Return ``(entry_count, batch_count, locked)``; unknown rounds read as zero."""
        entry_round = EntryRound.get(self._session, round_id)
        if entry_round is None:
            return RoundStats(0, 0, False)
        return RoundStats(
            entry_round.entry_count, entry_round.batch_count, entry_round.locked
        )


__all__ = ["ENTRIES_PER_BATCH", "EntryLedger", "RoundStats"]
