"""Logging setup and secret masking helpers."""

from __future__ import annotations

import logging
import os
import sys

_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def setup_logging(level: str | int | None = None, *, stream=None) -> logging.Logger:
    """Configure the ``vipps-login`` logger hierarchy.

    *level* defaults to ``LOG_LEVEL`` from the environment, then ``INFO``.
    Calling it again only adjusts the level.
    """
    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO")
    if isinstance(level, str):
        level = logging.getLevelName(level.strip().upper())
        if not isinstance(level, int):
            level = logging.INFO

    logger = logging.getLogger("vipps-login")
    logger.setLevel(level)
    if not logger.handlers:
        handler = logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(logging.Formatter(_FORMAT))
        logger.addHandler(handler)
    return logger


def mask_sensitive(value: str | None, keep_chars: int = 4) -> str:
    """Return *value* with everything but the first *keep_chars* replaced.

    >>> mask_sensitive("abcdefgh", 3)
    'abc*****'
    """
    if not value:
        return "<empty>"
    if len(value) <= keep_chars:
        return "*" * len(value)
    return value[:keep_chars] + "*" * (len(value) - keep_chars)
