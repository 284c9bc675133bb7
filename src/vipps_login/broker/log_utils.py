"""Structured logging helpers for the login flow.

This module restricts **which** contextual attributes are attached to log
records so that secrets never leak by accident.  Only these fields are
injected:

- ``session_id``     – login session handle (first 8 chars kept)
- ``correlation_id`` – request correlation id set by the HTTP middleware

Usage
-----
>>> from vipps_login.broker.log_utils import get_flow_logger
>>> log = get_flow_logger(session_id="0f2d3c4e-aaaa-bbbb-cccc-111122223333")
>>> log.info("Callback accepted")
INFO vipps-login.broker.flow session_id=0f2d3c4e ...
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, MutableMapping

_SESSION_ID_KEEP = 8


class _FlowLoggerAdapter(logging.LoggerAdapter):
    """Inject whitelisted flow context into log records."""

    extra_keys = ("session_id", "correlation_id")

    def __init__(self, logger: logging.Logger, extra: Mapping[str, Any] | None = None):
        extra_clean: MutableMapping[str, Any] = {}
        for k in self.extra_keys:
            if not extra or extra.get(k) is None:
                continue
            if k == "session_id":
                extra_clean[k] = str(extra[k])[:_SESSION_ID_KEEP]
            else:
                extra_clean[k] = extra[k]
        super().__init__(logger, extra_clean)

    def process(self, msg: str, kwargs: MutableMapping[str, Any]):
        if "extra" not in kwargs or kwargs["extra"] is None:
            kwargs["extra"] = {}
        # call-site extras win
        for k, v in self.extra.items():
            kwargs["extra"].setdefault(k, v)
        context = " ".join(f"{k}={v}" for k, v in self.extra.items())
        if context:
            msg = f"{msg} [{context}]"
        return msg, kwargs


def get_flow_logger(
    *,
    base_logger_name: str = "vipps-login.broker.flow",
    session_id: str | None = None,
    correlation_id: str | None = None,
) -> logging.LoggerAdapter:
    """Return a LoggerAdapter pre-filled with login flow context."""
    logger = logging.getLogger(base_logger_name)
    return _FlowLoggerAdapter(
        logger,
        {"session_id": session_id, "correlation_id": correlation_id},
    )
