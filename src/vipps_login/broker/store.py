"""Concurrency-safe, in-process storage for login sessions.

This module introduces a *narrow* storage interface (:class:`SessionStore`)
and a dictionary-backed implementation (:class:`InMemorySessionStore`).
The design follows these goals:

* **Two unique keys** – every session is reachable by ``id`` and, until the
  callback consumes it, by ``state``.
* **Lazy expiry** – lookups evict expired entries before answering, so
  correctness never depends on the periodic sweep.
* **Single-use state** – :meth:`SessionStore.consume_state` resolves and
  unlinks a state atomically.
* **Short critical sections** – one lock guards both tables and is never
  held across I/O.

Sessions do not survive a process restart.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
from typing import Protocol, runtime_checkable

from vipps_login.broker.clock import Clock, default_clock
from vipps_login.broker.models import LoginSession, ProfileRecord
from vipps_login.broker.tokens import expires_after, generate_opaque_id

_LOG = logging.getLogger("vipps-login.broker.store")

DEFAULT_INITIAL_TTL = 30 * 60
DEFAULT_EXTENDED_TTL = 60 * 60


# --------------------------------------------------------------------------- #
# public interface                                                            #
# --------------------------------------------------------------------------- #


@runtime_checkable
class SessionStore(Protocol):
    """Minimal storage contract for login sessions."""

    def create_session(self, state: str) -> str: ...
    def find_by_state(self, state: str) -> LoginSession | None: ...
    def consume_state(self, state: str) -> LoginSession | None: ...
    def find_by_id(self, session_id: str) -> LoginSession | None: ...

    def update_session(
        self,
        session_id: str,
        *,
        access_token: str | None = None,
        refresh_token: str | None = None,
        profile: ProfileRecord | None = None,
    ) -> bool: ...

    def delete_session(self, session_id: str) -> bool: ...
    def sweep_expired(self) -> int: ...


# --------------------------------------------------------------------------- #
# In-memory implementation                                                    #
# --------------------------------------------------------------------------- #


class InMemorySessionStore(SessionStore):
    """Lock-guarded dictionary implementation of :class:`SessionStore`."""

    def __init__(
        self,
        *,
        initial_ttl: float = DEFAULT_INITIAL_TTL,
        extended_ttl: float = DEFAULT_EXTENDED_TTL,
        clock: Clock = default_clock,
    ) -> None:
        if initial_ttl <= 0 or extended_ttl <= 0:
            raise ValueError("session TTLs must be positive")
        if extended_ttl <= initial_ttl:
            raise ValueError("extended_ttl must exceed initial_ttl")
        self.initial_ttl = initial_ttl
        self.extended_ttl = extended_ttl
        self._clock = clock
        self._lock = threading.Lock()
        self._sessions: dict[str, LoginSession] = {}
        self._state_index: dict[str, str] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        """Raw presence probe; does **not** apply expiry."""
        with self._lock:
            return session_id in self._sessions

    # ---------------- helpers (caller holds the lock) -------------------- #
    def _evict(self, session: LoginSession) -> None:
        self._sessions.pop(session.id, None)
        if self._state_index.get(session.state) == session.id:
            del self._state_index[session.state]

    def _live(self, session_id: str | None) -> LoginSession | None:
        if session_id is None:
            return None
        session = self._sessions.get(session_id)
        if session is None:
            return None
        if session.is_expired(clock=self._clock):
            self._evict(session)
            _LOG.debug("Evicted expired session=%s****", session.id[:8])
            return None
        return session

    @staticmethod
    def _snapshot(session: LoginSession) -> LoginSession:
        return dataclasses.replace(session)

    # ---------------- create / read --------------------------------------- #
    def create_session(self, state: str) -> str:
        if not state:
            raise ValueError("state must be a non-empty string")
        now = self._clock()
        with self._lock:
            if self._live(self._state_index.get(state)) is not None:
                raise ValueError("state already bound to a live session")
            session_id = generate_opaque_id()
            while session_id in self._sessions:
                session_id = generate_opaque_id()
            self._sessions[session_id] = LoginSession(
                id=session_id,
                state=state,
                created_at=now,
                expires_at=expires_after(self.initial_ttl, start=now),
            )
            self._state_index[state] = session_id
        _LOG.debug("Created session=%s****", session_id[:8])
        return session_id

    def find_by_state(self, state: str) -> LoginSession | None:
        with self._lock:
            session = self._live(self._state_index.get(state))
            return self._snapshot(session) if session else None

    def consume_state(self, state: str) -> LoginSession | None:
        """Return the session bound to *state* and unlink the state (single-use)."""
        with self._lock:
            session = self._live(self._state_index.get(state))
            if session is None:
                return None
            del self._state_index[state]
            return self._snapshot(session)

    def find_by_id(self, session_id: str) -> LoginSession | None:
        with self._lock:
            session = self._live(session_id)
            return self._snapshot(session) if session else None

    # ---------------- mutate ---------------------------------------------- #
    def update_session(
        self,
        session_id: str,
        *,
        access_token: str | None = None,
        refresh_token: str | None = None,
        profile: ProfileRecord | None = None,
    ) -> bool:
        """Merge non-null fields and reset validity to *extended_ttl*; *False* if absent."""
        with self._lock:
            session = self._live(session_id)
            if session is None:
                return False
            if access_token:
                session.provider_access_token = access_token
            if refresh_token:
                session.provider_refresh_token = refresh_token
            if profile is not None:
                session.profile = profile
            session.expires_at = expires_after(self.extended_ttl, clock=self._clock)
        return True

    def delete_session(self, session_id: str) -> bool:
        """Remove the session; *False* when it was absent or already expired."""
        with self._lock:
            session = self._live(session_id)
            if session is None:
                return False
            self._evict(session)
        return True

    # ---------------- maintenance ---------------------------------------- #
    def sweep_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [s for s in self._sessions.values() if now >= s.expires_at]
            for session in expired:
                self._evict(session)
        return len(expired)
