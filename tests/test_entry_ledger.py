from __future__ import annotations

import unittest
from datetime import datetime, timezone

from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker

from numbersdraw import audit
from numbersdraw.db.utils import ensure_utc
from numbersdraw.errors import (
    AlreadyLocked,
    BatchIndexMismatch,
    InvalidBatchSize,
    InvalidEntry,
    Paused,
    Unauthorized,
)
from numbersdraw.gate import CapabilityGate
from numbersdraw.ledger import ENTRIES_PER_BATCH, EntryLedger, RoundStats
from numbersdraw.models import AuditEvent, Base, EntryRound

OPERATOR = "operator-1"


class EntryLedgerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
        Base.metadata.create_all(self.engine)
        self.Session = sessionmaker(
            bind=self.engine, future=True, expire_on_commit=False
        )
        with self.Session.begin() as session:
            CapabilityGate(session).initialize(OPERATOR)

    def tearDown(self) -> None:
        self.engine.dispose()

    def test_commit_and_lock_scenario(self) -> None:
        with self.Session.begin() as session:
            ledger = EntryLedger(session)
            batch_index = ledger.commit_batch(
                OPERATOR, "R1", 0, [601020304050607, 701020304050607]
            )
            self.assertEqual(batch_index, 0)
            self.assertEqual(ledger.get_round_stats("R1"), RoundStats(2, 1, False))

            ledger.lock_entries(OPERATOR, "R1")

        with self.Session() as session:
            stats = EntryLedger(session).get_round_stats("R1")
            self.assertEqual(stats, (2, 1, True))

    def test_counters_track_every_accepted_batch(self) -> None:
        sizes = [3, 1, 7, 1000]
        with self.Session.begin() as session:
            ledger = EntryLedger(session)
            total = 0
            for index, size in enumerate(sizes):
                entries = [1000 + i for i in range(size)]
                self.assertEqual(ledger.commit_batch(OPERATOR, "R1", index, entries), index)
                total += size
                stats = ledger.get_round_stats("R1")
                self.assertEqual(stats.entry_count, total)
                self.assertEqual(stats.batch_count, index + 1)
                self.assertFalse(stats.locked)

    def test_retransmitted_batch_reports_true_index(self) -> None:
        with self.Session.begin() as session:
            ledger = EntryLedger(session)
            ledger.commit_batch(OPERATOR, "R1", 0, [301020304])

            with self.assertRaises(BatchIndexMismatch) as ctx:
                ledger.commit_batch(OPERATOR, "R1", 0, [301020304])
            self.assertEqual(ctx.exception.expected, 0)
            self.assertEqual(ctx.exception.actual, 1)
            self.assertEqual(ledger.get_round_stats("R1"), (1, 1, False))

    def test_index_ahead_of_round_is_rejected(self) -> None:
        with self.Session.begin() as session:
            ledger = EntryLedger(session)
            with self.assertRaises(BatchIndexMismatch) as ctx:
                ledger.commit_batch(OPERATOR, "fresh", 3, [101])
            self.assertEqual(ctx.exception.actual, 0)
            self.assertIsNone(EntryRound.get(session, "fresh"))

    def test_locked_round_rejects_commits_and_second_lock(self) -> None:
        with self.Session.begin() as session:
            ledger = EntryLedger(session)
            ledger.commit_batch(OPERATOR, "R1", 0, [101, 102])
            locked = ledger.lock_entries(OPERATOR, "R1")
            self.assertEqual(locked, (2, 1, True))

            with self.assertRaises(AlreadyLocked):
                ledger.commit_batch(OPERATOR, "R1", 1, [103])
            with self.assertRaises(AlreadyLocked):
                ledger.lock_entries(OPERATOR, "R1")
            self.assertEqual(ledger.get_round_stats("R1"), (2, 1, True))

    def test_lock_checked_before_batch_contents(self) -> None:
        with self.Session.begin() as session:
            ledger = EntryLedger(session)
            ledger.lock_entries(OPERATOR, "R1")
            with self.assertRaises(AlreadyLocked):
                ledger.commit_batch(OPERATOR, "R1", 0, [])

    def test_zero_entry_rejects_whole_batch(self) -> None:
        with self.Session.begin() as session:
            ledger = EntryLedger(session)
            with self.assertRaises(InvalidEntry) as ctx:
                ledger.commit_batch(OPERATOR, "R1", 0, [101, 102, 0, 104, 0])
            self.assertEqual(ctx.exception.index, 2)
            self.assertEqual(ledger.get_round_stats("R1"), (0, 0, False))
            self.assertEqual(list(audit.list_events(session, round_id="R1")), [])

    def test_negative_entry_is_rejected(self) -> None:
        with self.Session.begin() as session:
            with self.assertRaises(InvalidEntry) as ctx:
                EntryLedger(session).commit_batch(OPERATOR, "R1", 0, [101, -5])
            self.assertEqual(ctx.exception.index, 1)

    def test_batch_size_bounds(self) -> None:
        with self.Session.begin() as session:
            ledger = EntryLedger(session)
            with self.assertRaises(InvalidBatchSize) as ctx:
                ledger.commit_batch(OPERATOR, "R1", 0, [])
            self.assertEqual(ctx.exception.size, 0)

            too_many = [1] * (ENTRIES_PER_BATCH + 1)
            with self.assertRaises(InvalidBatchSize) as ctx:
                ledger.commit_batch(OPERATOR, "R1", 0, too_many)
            self.assertEqual(ctx.exception.limit, ENTRIES_PER_BATCH)

            full = [1] * ENTRIES_PER_BATCH
            self.assertEqual(ledger.commit_batch(OPERATOR, "R1", 0, full), 0)
            self.assertEqual(ledger.get_round_stats("R1").entry_count, ENTRIES_PER_BATCH)

    def test_batch_committed_event_carries_full_entries(self) -> None:
        entries = [601020304050607, 9010203040506070809, 101]
        with self.Session.begin() as session:
            ledger = EntryLedger(session)
            ledger.commit_batch(OPERATOR, "R1", 0, entries)
            ledger.lock_entries(OPERATOR, "R1")

        with self.Session() as session:
            events = audit.list_events(session, round_id="R1")
            self.assertEqual(
                [event.event_type for event in events],
                [audit.BATCH_COMMITTED, audit.ENTRIES_LOCKED],
            )
            self.assertEqual(
                events[0].payload,
                {
                    "round_id": "R1",
                    "batch_index": 0,
                    "entry_count": 3,
                    "entries": entries,
                },
            )
            self.assertEqual(events[1].payload, {"round_id": "R1", "total_entries": 3})

    def test_failed_transaction_leaves_no_partial_state(self) -> None:
        with self.assertRaises(RuntimeError):
            with self.Session.begin() as session:
                EntryLedger(session).commit_batch(OPERATOR, "R1", 0, [101, 102])
                raise RuntimeError("crash after commit_batch")

        with self.Session() as session:
            self.assertEqual(EntryLedger(session).get_round_stats("R1"), (0, 0, False))
            self.assertIsNone(session.get(EntryRound, "R1"))
            batch_events = session.scalars(
                select(AuditEvent).where(AuditEvent.event_type == audit.BATCH_COMMITTED)
            ).all()
            self.assertEqual(batch_events, [])

    def test_unknown_round_reads_as_empty(self) -> None:
        with self.Session() as session:
            self.assertEqual(EntryLedger(session).get_round_stats("nope"), (0, 0, False))

    def test_lock_empty_round(self) -> None:
        with self.Session.begin() as session:
            stats = EntryLedger(session).lock_entries(OPERATOR, "empty")
            self.assertEqual(stats, (0, 0, True))

    def test_lock_time_comes_from_clock(self) -> None:
        locked_at = datetime(2026, 10, 19, 9, 30, tzinfo=timezone.utc)
        with self.Session.begin() as session:
            EntryLedger(session, clock=lambda: locked_at).lock_entries(OPERATOR, "R1")

        with self.Session() as session:
            self.assertEqual(ensure_utc(EntryRound.get(session, "R1").locked_at), locked_at)
            locked = audit.list_events(
                session, round_id="R1", event_types=[audit.ENTRIES_LOCKED]
            )
            self.assertEqual(len(locked), 1)
            self.assertEqual(ensure_utc(locked[0].occurred_at), locked_at)

    def test_rounds_are_independent(self) -> None:
        with self.Session.begin() as session:
            ledger = EntryLedger(session)
            ledger.commit_batch(OPERATOR, "A", 0, [101])
            ledger.lock_entries(OPERATOR, "A")
            self.assertEqual(ledger.commit_batch(OPERATOR, "B", 0, [102, 103]), 0)
            self.assertEqual(ledger.get_round_stats("B"), (2, 1, False))

    def test_non_operator_is_rejected(self) -> None:
        with self.Session.begin() as session:
            ledger = EntryLedger(session)
            with self.assertRaises(Unauthorized):
                ledger.commit_batch("intruder", "R1", 0, [101])
            with self.assertRaises(Unauthorized):
                ledger.lock_entries("intruder", "R1")
            self.assertEqual(ledger.get_round_stats("R1"), (0, 0, False))

    def test_paused_system_rejects_mutations(self) -> None:
        with self.Session.begin() as session:
            gate = CapabilityGate(session)
            ledger = EntryLedger(session, gate=gate)
            gate.pause(OPERATOR)
            with self.assertRaises(Paused):
                ledger.commit_batch(OPERATOR, "R1", 0, [101])
            with self.assertRaises(Paused):
                ledger.lock_entries(OPERATOR, "R1")

            gate.unpause(OPERATOR)
            self.assertEqual(ledger.commit_batch(OPERATOR, "R1", 0, [101]), 0)


if __name__ == "__main__":
    unittest.main()
