"""Logging configuration."""

from __future__ import annotations

import logging


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for scripts and services.

    Library modules only create loggers with ``logging.getLogger(__name__)``;
    entry points call this once.
    """

    resolved = getattr(logging, str(level).upper(), logging.INFO)

    logging.basicConfig(
        level=resolved,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    # SQL echo is controlled by make_engine(echo=...), not the log level
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
