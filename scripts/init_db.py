from __future__ import annotations

import argparse
from typing import Optional, Sequence

from numbersdraw.config import load_settings
from numbersdraw.db import migrations
from numbersdraw.db.engine import make_engine
from numbersdraw.logging_config import configure_logging


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Migrate the configured database and report which tables exist."""
    parser = argparse.ArgumentParser(description=main.__doc__)
    parser.add_argument("--revision", default="head")
    parser.add_argument("--database-url", help="Override DB_URL")
    args = parser.parse_args(argv)

    configure_logging(load_settings().log_level)
    migrations.upgrade(args.revision, database_url=args.database_url)

    engine = make_engine(args.database_url)
    try:
        tables = migrations.managed_tables_present(engine)
    finally:
        engine.dispose()
    print(f"Schema at {args.revision}; tables: {', '.join(tables) or '(none)'}")


if __name__ == "__main__":
    main()
