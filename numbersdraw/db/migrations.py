"""Alembic helpers shared by ``alembic/env.py`` and the maintenance scripts."""

from __future__ import annotations

import logging
from typing import Any, Optional

from alembic import command
from alembic.autogenerate import produce_migrations
from alembic.config import Config
from alembic.operations.ops import UpgradeOps
from alembic.runtime.migration import MigrationContext
from sqlalchemy import Engine, inspect

from numbersdraw.models import Base

from .engine import ROOT_DIR

logger = logging.getLogger(__name__)

ALEMBIC_INI = ROOT_DIR / "alembic.ini"
SCRIPT_LOCATION = ROOT_DIR / "alembic"


def include_managed_tables(name: Optional[str], type_: str, parent_names: Any) -> bool:
    """Alembic ``include_name`` hook limiting comparisons to our own tables.

    The version table and anything else sharing the database are skipped.
    """
    if type_ == "table":
        return name in Base.metadata.tables
    return True


def context_options(dialect_name: str) -> dict[str, Any]:
    """Options passed to ``context.configure`` for both migration and drift runs."""
    return {
        "compare_type": True,
        "include_name": include_managed_tables,
        # SQLite cannot ALTER constraints in place
        "render_as_batch": dialect_name == "sqlite",
    }


def alembic_config(database_url: Optional[str] = None) -> Config:
    cfg = Config(str(ALEMBIC_INI))
    cfg.set_main_option("script_location", str(SCRIPT_LOCATION))
    if database_url:
        cfg.attributes["database_url"] = database_url
    return cfg


def upgrade(revision: str = "head", *, database_url: Optional[str] = None) -> None:
    logger.info(f"Upgrading schema to {revision}")
    command.upgrade(alembic_config(database_url), revision)


def managed_tables_present(engine: Engine) -> list[str]:
    """Names of ledger, draw and audit tables that exist in the database."""
    existing = set(inspect(engine).get_table_names())
    return sorted(name for name in Base.metadata.tables if name in existing)


def schema_diff(engine: Engine) -> UpgradeOps:
    """Operations needed to bring the live schema in line with the models."""
    with engine.connect() as connection:
        context = MigrationContext.configure(
            connection=connection, opts=context_options(connection.dialect.name)
        )
        migration = produce_migrations(context, Base.metadata)
    if migration.upgrade_ops is None:
        raise RuntimeError("Alembic produced no upgrade operations")
    return migration.upgrade_ops


__all__ = [
    "alembic_config",
    "context_options",
    "include_managed_tables",
    "managed_tables_present",
    "schema_diff",
    "upgrade",
]
