from __future__ import annotations

import argparse
import sys
from typing import Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from numbersdraw.db.engine import make_engine
from numbersdraw.db.migrations import schema_diff


def _describe(ops, depth: int = 0) -> list[str]:
    lines = []
    for op in ops:
        lines.append(f"{'  ' * depth}- {op}")
        lines.extend(_describe(getattr(op, "ops", None) or [], depth + 1))
    return lines


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Compare the ledger models with the live schema.

    Exit codes: 0 in sync, 1 drift found, 2 the comparison itself failed.
    """
    parser = argparse.ArgumentParser(description=main.__doc__)
    parser.add_argument("--database-url", help="Override DB_URL for this check")
    args = parser.parse_args(argv)

    engine = make_engine(args.database_url)
    target = engine.url.render_as_string(hide_password=True)
    try:
        diff = schema_diff(engine)
    except (SQLAlchemyError, RuntimeError) as exc:
        print(f"schema check failed for {target}: {exc}", file=sys.stderr)
        return 2
    finally:
        engine.dispose()

    if diff.is_empty():
        print(f"{target}: schema matches the models")
        return 0
    print(f"{target}: schema drift detected")
    print("\n".join(_describe(diff.ops)))
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
