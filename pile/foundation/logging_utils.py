"""Logging setup for the command line entrypoint."""

from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(message)s"


def setup_logger(*, verbose: bool = False, name: str = "pile") -> logging.Logger:
    """Configure the package logger (stderr only)."""

    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.handlers.clear()

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    stream_handler.setFormatter(logging.Formatter(LOG_FORMAT))

    logger.addHandler(stream_handler)
    logger.propagate = False

    logger.debug("Logging initialized (verbose=%s)", verbose)
    return logger
