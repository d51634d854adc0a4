from __future__ import annotations

import unittest
from datetime import datetime, timezone

from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker

from numbersdraw import audit
from numbersdraw.errors import AuditLogImmutable
from numbersdraw.models import AuditEvent, Base


class AuditLogTests(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
        Base.metadata.create_all(self.engine)
        self.Session = sessionmaker(bind=self.engine, future=True)

    def tearDown(self) -> None:
        self.engine.dispose()

    def _seed(self) -> None:
        with self.Session.begin() as session:
            audit.record_event(
                session,
                audit.BATCH_COMMITTED,
                {"round_id": "A", "batch_index": 0, "entry_count": 1, "entries": [101]},
                round_id="A",
            )
            audit.record_event(
                session, audit.GAME_FORMAT_UPDATED, {"pick_count": 5, "max_range": 30}
            )
            audit.record_event(
                session,
                audit.BATCH_COMMITTED,
                {"round_id": "B", "batch_index": 0, "entry_count": 1, "entries": [202]},
                round_id="B",
            )
            audit.record_event(
                session,
                audit.ENTRIES_LOCKED,
                {"round_id": "A", "total_entries": 1},
                round_id="A",
            )

    def test_record_assigns_increasing_sequence(self) -> None:
        with self.Session.begin() as session:
            first = audit.record_event(session, audit.PAUSED, {"operator": "op"})
            second = audit.record_event(session, audit.UNPAUSED, {"operator": "op"})
            self.assertIsNotNone(first.sequence)
            self.assertGreater(second.sequence, first.sequence)
            self.assertIsNotNone(first.occurred_at)

    def test_explicit_timestamp_is_kept(self) -> None:
        stamp = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        with self.Session.begin() as session:
            event = audit.record_event(
                session, audit.PAUSED, {"operator": "op"}, occurred_at=stamp
            )
            self.assertEqual(event.occurred_at, stamp)

    def test_unknown_event_type_rejected(self) -> None:
        with self.Session.begin() as session:
            with self.assertRaises(ValueError):
                audit.record_event(session, "Whatever", {})
            self.assertEqual(session.scalars(select(AuditEvent)).all(), [])

    def test_filters_and_ordering(self) -> None:
        self._seed()
        with self.Session() as session:
            everything = audit.list_events(session)
            self.assertEqual(len(everything), 4)
            sequences = [event.sequence for event in everything]
            self.assertEqual(sequences, sorted(sequences))

            round_a = audit.list_events(session, round_id="A")
            self.assertEqual(
                [event.event_type for event in round_a],
                [audit.BATCH_COMMITTED, audit.ENTRIES_LOCKED],
            )

            batches = audit.list_events(session, event_types=[audit.BATCH_COMMITTED])
            self.assertEqual([event.round_id for event in batches], ["A", "B"])

            later = audit.list_events(session, after_sequence=sequences[1])
            self.assertEqual([event.sequence for event in later], sequences[2:])

    def test_events_cannot_be_modified(self) -> None:
        self._seed()
        with self.Session() as session:
            event = audit.list_events(session, round_id="A")[0]
            event.event_type = audit.ENTRIES_LOCKED
            with self.assertRaises(AuditLogImmutable):
                session.flush()
            session.rollback()

        with self.Session() as session:
            self.assertEqual(
                audit.list_events(session, round_id="A")[0].event_type,
                audit.BATCH_COMMITTED,
            )

    def test_events_cannot_be_deleted(self) -> None:
        self._seed()
        with self.Session() as session:
            event = audit.list_events(session)[0]
            session.delete(event)
            with self.assertRaises(AuditLogImmutable):
                session.flush()
            session.rollback()

        with self.Session() as session:
            self.assertEqual(len(audit.list_events(session)), 4)

    def test_event_rolls_back_with_transaction(self) -> None:
        with self.assertRaises(RuntimeError):
            with self.Session.begin() as session:
                audit.record_event(session, audit.PAUSED, {"operator": "op"})
                raise RuntimeError("abort")

        with self.Session() as session:
            self.assertEqual(audit.list_events(session), [])


if __name__ == "__main__":
    unittest.main()
