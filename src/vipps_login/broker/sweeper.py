"""Periodic removal of expired login sessions.

The sweep only bounds memory: stores already hide expired sessions on
lookup.  :class:`SessionSweeper` owns one daemon thread and is started and
stopped explicitly, normally by the web application's lifespan.
"""

from __future__ import annotations

import logging
import threading

from vipps_login.broker.store import SessionStore

_LOG = logging.getLogger("vipps-login.broker.sweeper")

DEFAULT_SWEEP_INTERVAL = 5 * 60


class SessionSweeper:
    """Run :meth:`SessionStore.sweep_expired` every *interval* seconds."""

    def __init__(self, store: SessionStore, interval: float = DEFAULT_SWEEP_INTERVAL) -> None:
        if interval <= 0:
            raise ValueError("sweep interval must be positive")
        self.store = store
        self.interval = interval
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_once(self) -> int:
        """Sweep now and return the number of removed sessions."""
        removed = self.store.sweep_expired()
        if removed:
            _LOG.info("Cleaned %d expired sessions", removed)
        return removed

    def _loop(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                self.run_once()
            except Exception:  # keep sweeping on the next tick
                _LOG.exception("Session sweep failed")

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._loop, name="session-sweeper", daemon=True
        )
        self._thread.start()
        _LOG.debug("Session sweeper started (interval=%ss)", self.interval)

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        thread, self._thread = self._thread, None
        if thread is not None:
            thread.join(timeout)
            _LOG.debug("Session sweeper stopped")

    def __enter__(self) -> "SessionSweeper":
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()
