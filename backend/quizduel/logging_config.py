"""
backend.quizduel.logging_config - logging setup
===============================================

Modules log through ``logging.getLogger(__name__)``; this attaches a single
stream handler to the package logger so service and client output share one
format.
"""

from __future__ import annotations

import logging
import sys

PACKAGE_LOGGER = "backend.quizduel"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(level: int | str = logging.INFO) -> logging.Logger:
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)

    # Avoid stacking handlers when called more than once (e.g. app reloads)
    for handler in list(logger.handlers):
        if getattr(handler, "_quizduel", False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._quizduel = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    return logger
