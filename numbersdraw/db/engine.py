"""Engine and session factories for the ledger database."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import sessionmaker

from numbersdraw.config import load_settings

from .utils import resolve_sqlite_url

# Project root directory (repo root)
ROOT_DIR = Path(__file__).resolve().parents[2]
FALLBACK_DB_URL = "sqlite:///./dev.db"


SQLITE_LOCK_MARGIN = 15
"""Seconds a SQLite writer waits beyond the randomness provider timeout."""


def resolve_database_url(override: Optional[str] = None) -> str:
    """Return ``override``, else ``DB_URL``, else the local development file.

    Relative SQLite paths are anchored at the project root.
    """
    url = override or load_settings().db_url or FALLBACK_DB_URL
    return resolve_sqlite_url(url, ROOT_DIR)


def sqlite_busy_timeout() -> float:
    """Seconds to wait for the SQLite write lock.

    A draw request holds the lock while the provider call is in flight, so a
    concurrent writer must be willing to wait out the whole provider timeout.
    """
    return float(load_settings().randomness_timeout + SQLITE_LOCK_MARGIN)


def make_engine(
    database_url: Optional[str] = None,
    echo: bool = False,
    *,
    busy_timeout: Optional[float] = None,
) -> Engine:
    url = resolve_database_url(database_url)
    if not url.startswith("sqlite"):
        return create_engine(url, echo=echo, future=True)

    if busy_timeout is None:
        busy_timeout = sqlite_busy_timeout()
    engine = create_engine(
        url,
        echo=echo,
        future=True,
        connect_args={"timeout": busy_timeout, "check_same_thread": False},
    )

    # SQLite ignores FOR UPDATE; take the write lock when the transaction
    # starts so ledger and draw operations still run one at a time.
    @event.listens_for(engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(connection):
        connection.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def get_sessionmaker(engine: Engine) -> sessionmaker:
    """Session factory used by scripts; callers own transaction boundaries."""
    return sessionmaker(
        bind=engine,
        autoflush=False,
        expire_on_commit=False,
        future=True,
    )
