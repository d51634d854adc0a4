from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Sequence

from sqlalchemy.orm import Session

from . import audit
from .draw_engine import expand_seed
from .errors import AuditVerificationError, BatchIndexMismatch
from .ledger import ENTRIES_PER_BATCH, EntryLedger


@dataclass(frozen=True)
class BatchCommitOutcome:
    """Result of :func:`commit_batch_idempotent`.

    Attributes
    ----------
    batch_index : int
        Index the batch occupies in the round.
    applied : bool
        ``True`` when this call recorded the batch, ``False`` when an earlier
        attempt had already recorded the identical batch.
    """

    batch_index: int
    applied: bool


@dataclass(frozen=True)
class BatchRecord:
    round_id: str
    batch_index: int
    entry_count: int
    entries: tuple[int, ...]
    sequence: int


@dataclass
class DrawRecord:
    """One draw attempt reconstructed from the audit log."""

    request_id: str
    pick_count: int
    max_range: int
    status: str = "requested"
    random_word: Optional[int] = None
    winning_numbers: tuple[int, ...] = ()


@dataclass
class RoundReplay:
    """Round history rebuilt solely from audit events."""

    round_id: str
    batches: list[BatchRecord] = field(default_factory=list)
    locked: bool = False
    locked_total: Optional[int] = None
    draws: list[DrawRecord] = field(default_factory=list)
    problems: list[str] = field(default_factory=list)

    @property
    def entry_count(self) -> int:
        return sum(batch.entry_count for batch in self.batches)

    @property
    def batch_count(self) -> int:
        return len(self.batches)

    @property
    def entries(self) -> list[int]:
        collected: list[int] = []
        for batch in self.batches:
            collected.extend(batch.entries)
        return collected

    @property
    def winning_numbers(self) -> Optional[tuple[int, ...]]:
        for draw in self.draws:
            if draw.status == "fulfilled":
                return draw.winning_numbers
        return None


def submit_entries(
    session: Session,
    caller: str,
    round_id: str,
    entries: Sequence[int],
    *,
    ledger: Optional[EntryLedger] = None,
    batch_size: int = ENTRIES_PER_BATCH,
) -> list[int]:
    """Commit ``entries`` to ``round_id`` in consecutive batches.

    The entries are split into chunks of at most ``batch_size`` and committed
    in order, starting from the round's current batch count.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session.
    caller : str
        Operator identity.
    round_id : str
        Target round.
    entries : Sequence[int]
        Encoded entries, in submission order.
    ledger : Optional[EntryLedger], default: None
        Ledger to use; one bound to ``session`` is created when omitted.
    batch_size : int, default: ENTRIES_PER_BATCH
        Maximum chunk size, capped at :data:`ENTRIES_PER_BATCH`.

    Returns
    -------
    list[int]
        Batch indices assigned to the chunks, in order.
    """
    if not 1 <= batch_size <= ENTRIES_PER_BATCH:
        raise ValueError(f"batch_size must be between 1 and {ENTRIES_PER_BATCH}")

    ledger = ledger or EntryLedger(session)
    values = list(entries)
    if not values:
        return []

    next_index = ledger.get_round_stats(round_id).batch_count
    indices: list[int] = []
    for start in range(0, len(values), batch_size):
        chunk = values[start : start + batch_size]
        indices.append(ledger.commit_batch(caller, round_id, next_index, chunk))
        next_index += 1
    return indices


def commit_batch_idempotent(
    session: Session,
    caller: str,
    round_id: str,
    expected_batch_index: int,
    entries: Sequence[int],
    *,
    ledger: Optional[EntryLedger] = None,
) -> BatchCommitOutcome:
    """Commit a batch, treating a retry of an already-recorded batch as success.

    When the ledger reports :class:`BatchIndexMismatch` because the round has
    moved past ``expected_batch_index``, the ``BatchCommitted`` event at that
    index is read back. If it carries exactly ``entries`` the earlier attempt
    succeeded and no second copy is written.

    Raises
    ------
    BatchIndexMismatch
        If the index is ahead of the round, or a different batch occupies it.
    """
    ledger = ledger or EntryLedger(session)
    try:
        index = ledger.commit_batch(caller, round_id, expected_batch_index, entries)
        return BatchCommitOutcome(batch_index=index, applied=True)
    except BatchIndexMismatch as exc:
        if exc.actual <= expected_batch_index:
            raise
        recorded = _committed_batch(session, round_id, expected_batch_index)
        if recorded is None or list(recorded.entries) != list(entries):
            raise
        return BatchCommitOutcome(batch_index=expected_batch_index, applied=False)


def _committed_batch(
    session: Session, round_id: str, batch_index: int
) -> Optional[BatchRecord]:
    for event in audit.list_events(
        session, round_id=round_id, event_types=[audit.BATCH_COMMITTED]
    ):
        if event.payload.get("batch_index") == batch_index:
            return _batch_from_event(round_id, event)
    return None


def _batch_from_event(round_id: str, event) -> BatchRecord:
    payload = event.payload
    return BatchRecord(
        round_id=round_id,
        batch_index=int(payload["batch_index"]),
        entry_count=int(payload["entry_count"]),
        entries=tuple(int(value) for value in payload["entries"]),
        sequence=event.sequence,
    )


def replay_round(session: Session, round_id: str) -> RoundReplay:
    """Rebuild ``round_id``'s entry and draw history from the audit log only.

    Inconsistencies are collected in :attr:`RoundReplay.problems` instead of
    raised; :func:`verify_round` turns them into an error.
    """
    replay = RoundReplay(round_id=round_id)
    active: Optional[DrawRecord] = None

    for event in audit.list_events(session, round_id=round_id):
        payload = event.payload
        kind = event.event_type

        if kind == audit.BATCH_COMMITTED:
            batch = _batch_from_event(round_id, event)
            if replay.locked:
                replay.problems.append(
                    f"batch {batch.batch_index} committed after lock (#{event.sequence})"
                )
            if batch.batch_index != replay.batch_count:
                replay.problems.append(
                    f"batch index {batch.batch_index} out of order, "
                    f"expected {replay.batch_count} (#{event.sequence})"
                )
            if batch.entry_count != len(batch.entries):
                replay.problems.append(
                    f"batch {batch.batch_index} declares {batch.entry_count} entries "
                    f"but carries {len(batch.entries)}"
                )
            if any(value <= 0 for value in batch.entries):
                replay.problems.append(f"batch {batch.batch_index} contains a zero entry")
            replay.batches.append(batch)

        elif kind == audit.ENTRIES_LOCKED:
            if replay.locked:
                replay.problems.append(f"round locked twice (#{event.sequence})")
            replay.locked = True
            replay.locked_total = int(payload["total_entries"])
            if replay.locked_total != replay.entry_count:
                replay.problems.append(
                    f"lock reports {replay.locked_total} entries, "
                    f"batches sum to {replay.entry_count}"
                )

        elif kind == audit.DRAW_REQUESTED:
            if active is not None:
                replay.problems.append(
                    f"request {payload['request_id']} issued while "
                    f"{active.request_id} was pending"
                )
            if replay.winning_numbers is not None:
                replay.problems.append(
                    f"request {payload['request_id']} issued after the round was drawn"
                )
            active = DrawRecord(
                request_id=str(payload["request_id"]),
                pick_count=int(payload["pick_count"]),
                max_range=int(payload["max_range"]),
            )
            replay.draws.append(active)

        elif kind == audit.DRAW_FULFILLED:
            request_id = str(payload["request_id"])
            if active is None or active.request_id != request_id:
                replay.problems.append(f"fulfillment for unexpected request {request_id}")
                continue
            active.status = "fulfilled"
            active.random_word = int(payload["random_word"])
            active.winning_numbers = tuple(int(n) for n in payload["winning_numbers"])
            try:
                expected = expand_seed(
                    active.random_word, active.pick_count, active.max_range
                )
            except ValueError as exc:
                replay.problems.append(f"request {request_id} cannot be recomputed: {exc}")
            else:
                if list(active.winning_numbers) != expected:
                    replay.problems.append(
                        f"winning numbers {list(active.winning_numbers)} do not match "
                        f"recomputed {expected} for request {request_id}"
                    )
            active = None

        elif kind == audit.DRAW_CANCELLED:
            request_id = str(payload["request_id"])
            if active is None or active.request_id != request_id:
                replay.problems.append(f"cancellation for unexpected request {request_id}")
                continue
            active.status = "cancelled"
            active = None

    return replay


def verify_round(session: Session, round_id: str) -> RoundReplay:
    """Replay ``round_id`` and raise if its audit history breaks any rule.

    Raises
    ------
    AuditVerificationError
        Listing every inconsistency found.
    """
    replay = replay_round(session, round_id)
    if replay.problems:
        raise AuditVerificationError(
            f"Audit log for round {round_id!r} failed verification: "
            + "; ".join(replay.problems)
        )
    return replay


__all__ = [
    "BatchCommitOutcome",
    "BatchRecord",
    "DrawRecord",
    "RoundReplay",
    "commit_batch_idempotent",
    "replay_round",
    "submit_entries",
    "verify_round",
]
