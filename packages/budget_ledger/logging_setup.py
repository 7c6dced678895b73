"""Logging for ``budget_ledger``.

Every module logs through ``get_logger("budget_ledger.<module>")``; the CLI
root callback calls :func:`configure_logging` once, after ``.env`` is loaded,
so ``BUDGET_LEDGER_LOG_LEVEL`` can come from either place. Output goes to
stderr and never mixes with report text on stdout.

Level usage across the package:

- ERROR: a read that degraded to an empty result, or a rollover step that
  failed after the statement was already closed.
- WARNING: data that was skipped or kept but could not be interpreted, such as
  CSV lines with the wrong column count, stored amounts, dates or criticality
  values that do not parse, rows outside a weekly range and repaired headers.
- INFO: files created or rewritten, imports, rollovers and snapshots.
- DEBUG: per-call record counts.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

_PKG_LOGGER_NAME = "budget_ledger"
_LEVEL_ENV = "BUDGET_LEDGER_LOG_LEVEL"
_CONFIGURED = False


def _level_from_name(name: str) -> int | None:
    name = name.strip().upper()
    if name.isdigit():
        return int(name)
    numeric = getattr(logging, name, None)
    return numeric if isinstance(numeric, int) else None


def _parse_level(level: int | str | None) -> int:
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        parsed = _level_from_name(level)
        if parsed is not None:
            return parsed
    env_val = os.getenv(_LEVEL_ENV)
    if env_val:
        parsed = _level_from_name(env_val)
        if parsed is not None:
            return parsed
    return logging.INFO


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] = sys.stderr,
) -> None:
    """Send ``budget_ledger`` records to ``stream``; later calls are no-ops.

    ``level`` accepts a number or a level name. Without one the
    ``BUDGET_LEDGER_LOG_LEVEL`` variable decides, and INFO applies when it is
    unset or unrecognized. Records do not propagate to the root logger, so a
    host that configures its own logging sees no duplicates.
    """

    global _CONFIGURED
    if _CONFIGURED:
        return

    logger = logging.getLogger(_PKG_LOGGER_NAME)

    for h in list(logger.handlers):
        if isinstance(h, logging.NullHandler):
            logger.removeHandler(h)

    resolved = _parse_level(level)
    handler = logging.StreamHandler(stream)
    handler.setLevel(resolved)
    handler.setFormatter(
        logging.Formatter(fmt or "%(asctime)s %(name)s %(levelname)s %(message)s")
    )

    logger.setLevel(resolved)
    logger.addHandler(handler)
    logger.propagate = False

    _CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    """Logger for one ``budget_ledger`` module.

    Before :func:`configure_logging` runs, the package logger holds only a
    ``NullHandler``, so importing the package as a library prints nothing.
    """

    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if not _CONFIGURED and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)


__all__ = ["configure_logging", "get_logger"]
