import random

from numbersdraw.config import load_settings
from numbersdraw.db.engine import get_sessionmaker, make_engine
from numbersdraw.entries import encode_entry
from numbersdraw.gate import CapabilityGate
from numbersdraw.ledger import EntryLedger
from numbersdraw.logging_config import configure_logging
from numbersdraw.models import Base, GameFormat, RandomnessConfig
from numbersdraw.workflows import submit_entries

DEV_ROUND_ID = "dev-round-1"
DEV_ENTRY_COUNT = 2500


def main() -> None:
    """Seed the development database with an operator, configuration and one locked round."""
    settings = load_settings()
    configure_logging(settings.log_level)
    engine = make_engine()

    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    Session = get_sessionmaker(engine)

    operator = settings.operator_id or "dev-operator"

    with Session.begin() as session:
        CapabilityGate(session).initialize(operator)
        session.add(
            GameFormat(
                id=1,
                pick_count=settings.default_pick_count,
                max_range=settings.default_max_range,
            )
        )
        session.add(
            RandomnessConfig(
                id=1,
                key_hash=settings.vrf_key_hash or "0x" + "00" * 32,
                subscription_id=settings.vrf_subscription_id or "1",
                callback_gas_limit=settings.vrf_callback_gas_limit,
                request_confirmations=settings.vrf_request_confirmations,
                native_payment=settings.vrf_native_payment,
            )
        )

    # Fixed seed so every developer gets the same sample round.
    rng = random.Random(20261019)
    entries = []
    for _ in range(DEV_ENTRY_COUNT):
        picks = sorted(rng.sample(range(1, settings.default_max_range + 1), settings.default_pick_count))
        entries.append(encode_entry(picks))

    with Session.begin() as session:
        ledger = EntryLedger(session)
        indices = submit_entries(session, operator, DEV_ROUND_ID, entries, ledger=ledger)
        stats = ledger.lock_entries(operator, DEV_ROUND_ID)

    print(
        f"Seeded round {DEV_ROUND_ID}: {stats.entry_count} entries in "
        f"{len(indices)} batches, operator={operator}"
    )


if __name__ == "__main__":
    main()
