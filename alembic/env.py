from __future__ import annotations

import sys
from logging.config import fileConfig
from pathlib import Path

from alembic import context

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from numbersdraw.db.engine import make_engine, resolve_database_url  # noqa: E402
from numbersdraw.db.migrations import context_options  # noqa: E402
from numbersdraw.models import Base  # noqa: E402

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name, disable_existing_loggers=False)

# scripts may hand over an explicit URL; otherwise DB_URL decides
database_url = resolve_database_url(config.attributes.get("database_url"))
config.set_main_option("sqlalchemy.url", database_url.replace("%", "%%"))


def run_offline() -> None:
    """Render the ledger schema as SQL for review."""
    dialect_name = database_url.split(":", 1)[0].split("+", 1)[0]
    context.configure(
        url=database_url,
        target_metadata=Base.metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **context_options(dialect_name),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_online() -> None:
    engine = make_engine(database_url)
    try:
        with engine.connect() as connection:
            context.configure(
                connection=connection,
                target_metadata=Base.metadata,
                **context_options(connection.dialect.name),
            )
            with context.begin_transaction():
                context.run_migrations()
    finally:
        engine.dispose()


if context.is_offline_mode():
    run_offline()
else:
    run_online()
