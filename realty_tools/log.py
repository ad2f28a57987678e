"""Logging helpers: one namespaced stream handler, single-line records."""

import logging
import os
from typing import Optional

_NAMESPACE = "realty_tools"


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """
    Returns the package logger, attaching a stream handler on first use.

    Records are printed as ``asctime levelname name message`` so they stay
    greppable when the server runs under a process manager.
    """
    logger = logging.getLogger(_NAMESPACE)
    if level:
        logger.setLevel(level.upper())
    if logger.handlers:
        return logger

    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        )
    )
    logger.addHandler(handler)
    if not level:
        logger.setLevel(os.getenv("LOG_LEVEL", "INFO").upper())
    logger.propagate = False
    return logger


def get_logger(child: Optional[str] = None) -> logging.Logger:
    base = configure_logging()
    if child:
        return base.getChild(child)
    return base
