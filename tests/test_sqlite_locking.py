from __future__ import annotations

import tempfile
import threading
import time
import unittest
from pathlib import Path

from numbersdraw import audit
from numbersdraw.config import Settings
from numbersdraw.coordinator import DrawCoordinator
from numbersdraw.db.engine import get_sessionmaker, make_engine
from numbersdraw.errors import BatchIndexMismatch
from numbersdraw.gate import CapabilityGate
from numbersdraw.ledger import EntryLedger
from numbersdraw.models import Base, Draw

OPERATOR = "operator-1"
SETTINGS = Settings(vrf_key_hash="0xabc", vrf_subscription_id="42")


class SlowProvider:
    """Holds the caller's transaction open for ``delay`` seconds."""

    def __init__(self, request_id: str, delay: float) -> None:
        self.request_id = request_id
        self.delay = delay
        self.entered = threading.Event()

    def request_random_words(self, request) -> str:
        self.entered.set()
        time.sleep(self.delay)
        return self.request_id


class FixedProvider:
    def __init__(self, request_id: str) -> None:
        self.request_id = request_id

    def request_random_words(self, request) -> str:
        return self.request_id


class FileBackedSqliteTests(unittest.TestCase):
    """Writers sharing one SQLite file through engines from ``make_engine``."""

    def setUp(self) -> None:
        self._tmpdir = tempfile.TemporaryDirectory()
        url = f"sqlite:///{Path(self._tmpdir.name) / 'draws.db'}"
        self.engine = make_engine(url, busy_timeout=30)
        Base.metadata.create_all(self.engine)
        self.Session = get_sessionmaker(self.engine)
        with self.Session.begin() as session:
            CapabilityGate(session).initialize(OPERATOR)

    def tearDown(self) -> None:
        self.engine.dispose()
        self._tmpdir.cleanup()

    def _run(self, target, *args) -> threading.Thread:
        thread = threading.Thread(target=target, args=args)
        thread.start()
        return thread

    def test_concurrent_batches_with_same_index(self) -> None:
        barrier = threading.Barrier(2)
        results = []

        def commit(entries) -> None:
            barrier.wait()
            try:
                with self.Session.begin() as session:
                    EntryLedger(session).commit_batch(OPERATOR, "R1", 0, entries)
                results.append("ok")
            except BatchIndexMismatch as exc:
                results.append(exc)

        threads = [self._run(commit, [101, 102]), self._run(commit, [201, 202])]
        for thread in threads:
            thread.join(timeout=30)

        self.assertEqual(len(results), 2)
        self.assertEqual(results.count("ok"), 1)
        rejected = [r for r in results if isinstance(r, BatchIndexMismatch)]
        self.assertEqual(len(rejected), 1)
        self.assertEqual((rejected[0].expected, rejected[0].actual), (0, 1))

        with self.Session() as session:
            self.assertEqual(EntryLedger(session).get_round_stats("R1"), (2, 1, False))
            committed = audit.list_events(
                session, round_id="R1", event_types=[audit.BATCH_COMMITTED]
            )
            self.assertEqual(len(committed), 1)

    def test_fulfillment_waits_for_slow_draw_request(self) -> None:
        with self.Session.begin() as session:
            DrawCoordinator(
                session, FixedProvider("req-A"), settings=SETTINGS
            ).request_draw(OPERATOR, "A")

        slow = SlowProvider("req-B", delay=1.0)
        outcome = []

        def request_b() -> None:
            with self.Session.begin() as session:
                DrawCoordinator(session, slow, settings=SETTINGS).request_draw(OPERATOR, "B")
            outcome.append("requested")

        thread = self._run(request_b)
        self.assertTrue(slow.entered.wait(timeout=10))

        # blocks on the write lock until round B's request commits
        with self.Session.begin() as session:
            winning = DrawCoordinator(
                session, FixedProvider("unused"), settings=SETTINGS
            ).fulfill_random_words("req-A", [12345])
        thread.join(timeout=30)

        self.assertEqual(outcome, ["requested"])
        self.assertEqual(len(winning), 6)
        with self.Session() as session:
            self.assertTrue(Draw.get_by_round(session, "A").fulfilled)
            self.assertTrue(Draw.get_by_round(session, "B").active)


if __name__ == "__main__":
    unittest.main()
