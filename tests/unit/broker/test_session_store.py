"""
Unit tests for InMemorySessionStore.

Coverage:
* create / find by state and id, TTLs against a fake clock
* lazy self-eviction on expired lookups
* update merge semantics and validity extension
* single-use state consumption
* delete idempotency and periodic sweep
* concurrent creation keeps ids and states unique
"""

from __future__ import annotations

import threading

import pytest

from vipps_login.broker.models import ProfileRecord, SessionStatus
from vipps_login.broker.store import InMemorySessionStore, SessionStore


def test_store_satisfies_protocol(store: InMemorySessionStore) -> None:
    assert isinstance(store, SessionStore)


# --------------------------------------------------------------------------- #
# create / find                                                               #
# --------------------------------------------------------------------------- #
def test_create_then_find_by_state(store: InMemorySessionStore, clock) -> None:
    session_id = store.create_session("s1")

    session = store.find_by_state("s1")
    assert session is not None
    assert session.id == session_id
    assert session.state == "s1"
    assert session.profile is None
    assert session.provider_access_token is None
    assert session.status is SessionStatus.STARTED
    assert session.created_at == clock.now
    assert session.expires_at == clock.now + 30 * 60


def test_find_by_id_unknown_returns_none(store: InMemorySessionStore) -> None:
    assert store.find_by_id("missing") is None
    assert store.find_by_state("missing") is None


def test_create_rejects_empty_or_live_duplicate_state(store: InMemorySessionStore) -> None:
    with pytest.raises(ValueError):
        store.create_session("")
    store.create_session("dup")
    with pytest.raises(ValueError):
        store.create_session("dup")


def test_returned_sessions_are_snapshots(store: InMemorySessionStore) -> None:
    session_id = store.create_session("s1")
    snap = store.find_by_id(session_id)
    assert snap is not None
    snap.profile = ProfileRecord(sub="intruder")
    snap.expires_at = 0
    fresh = store.find_by_id(session_id)
    assert fresh is not None and fresh.profile is None and fresh.expires_at > 0


# --------------------------------------------------------------------------- #
# expiry                                                                      #
# --------------------------------------------------------------------------- #
def test_expired_lookup_by_id_self_evicts(store: InMemorySessionStore, clock) -> None:
    session_id = store.create_session("s1")
    clock.advance(30 * 60 - 1)
    assert store.find_by_id(session_id) is not None

    clock.advance(1)  # now == expires_at
    assert store.find_by_id(session_id) is None
    # physically gone as well, and the state no longer resolves
    assert session_id not in store
    assert store.find_by_state("s1") is None


def test_expired_lookup_by_state_self_evicts(store: InMemorySessionStore, clock) -> None:
    session_id = store.create_session("s1")
    clock.advance(31 * 60)
    assert store.find_by_state("s1") is None
    assert session_id not in store
    assert len(store) == 0


def test_expired_state_can_be_reused_for_new_session(store: InMemorySessionStore, clock) -> None:
    store.create_session("s1")
    clock.advance(31 * 60)
    new_id = store.create_session("s1")
    assert store.find_by_state("s1").id == new_id  # type: ignore[union-attr]


# --------------------------------------------------------------------------- #
# update                                                                      #
# --------------------------------------------------------------------------- #
def test_update_merges_fields_and_extends_validity(store: InMemorySessionStore, clock) -> None:
    session_id = store.create_session("s1")
    before = store.find_by_id(session_id).expires_at  # type: ignore[union-attr]

    clock.advance(5)
    ok = store.update_session(
        session_id, access_token="a", profile=ProfileRecord.from_userinfo({"sub": "x"})
    )
    assert ok is True

    session = store.find_by_id(session_id)
    assert session is not None
    assert session.profile is not None and session.profile.to_dict() == {"sub": "x"}
    assert session.provider_access_token == "a"
    assert session.provider_refresh_token is None
    assert session.status is SessionStatus.COMPLETED
    assert session.expires_at == clock.now + 60 * 60
    assert session.expires_at > before


def test_update_keeps_fields_not_provided(store: InMemorySessionStore) -> None:
    session_id = store.create_session("s1")
    store.update_session(session_id, access_token="a", refresh_token="r")
    store.update_session(session_id, profile=ProfileRecord(sub="x"))
    session = store.find_by_id(session_id)
    assert session is not None
    assert session.provider_access_token == "a"
    assert session.provider_refresh_token == "r"
    assert session.profile == ProfileRecord(sub="x")


def test_update_is_idempotent(store: InMemorySessionStore, clock) -> None:
    session_id = store.create_session("s1")
    profile = ProfileRecord(sub="x")
    assert store.update_session(session_id, access_token="a", profile=profile)
    clock.advance(10)
    assert store.update_session(session_id, access_token="a", profile=profile)
    session = store.find_by_id(session_id)
    assert session is not None
    assert session.profile == profile
    assert session.expires_at == clock.now + 60 * 60


def test_update_missing_session_creates_nothing(store: InMemorySessionStore) -> None:
    assert store.update_session("ghost", access_token="a") is False
    assert "ghost" not in store
    assert len(store) == 0


def test_update_expired_session_fails(store: InMemorySessionStore, clock) -> None:
    session_id = store.create_session("s1")
    clock.advance(30 * 60)
    assert store.update_session(session_id, access_token="a") is False


def test_update_strictly_increases_validity(store: InMemorySessionStore, clock) -> None:
    session_id = store.create_session("s1")
    before = store.find_by_id(session_id).expires_at  # type: ignore[union-attr]
    assert store.update_session(session_id, access_token="a") is True
    after = store.find_by_id(session_id).expires_at  # type: ignore[union-attr]
    assert after > before

    clock.advance(10)
    store.update_session(session_id, refresh_token="r")
    assert store.find_by_id(session_id).expires_at > after  # type: ignore[union-attr]


def test_invalid_ttls_rejected() -> None:
    with pytest.raises(ValueError):
        InMemorySessionStore(initial_ttl=0)


@pytest.mark.parametrize("extended", [60, 600])
def test_extension_not_longer_than_initial_rejected(extended: int) -> None:
    with pytest.raises(ValueError, match="extended_ttl"):
        InMemorySessionStore(initial_ttl=600, extended_ttl=extended)


# --------------------------------------------------------------------------- #
# single-use state                                                            #
# --------------------------------------------------------------------------- #
def test_consume_state_is_single_use(store: InMemorySessionStore) -> None:
    session_id = store.create_session("s1")

    first = store.consume_state("s1")
    assert first is not None and first.id == session_id
    assert store.consume_state("s1") is None
    assert store.find_by_state("s1") is None
    # session itself stays reachable by id
    assert store.find_by_id(session_id) is not None


# --------------------------------------------------------------------------- #
# delete / sweep                                                              #
# --------------------------------------------------------------------------- #
def test_delete_is_idempotent(store: InMemorySessionStore) -> None:
    session_id = store.create_session("s1")
    assert store.delete_session(session_id) is True
    assert store.delete_session(session_id) is False
    assert store.find_by_id(session_id) is None
    assert store.find_by_state("s1") is None


def test_sweep_removes_only_expired(store: InMemorySessionStore, clock) -> None:
    old = store.create_session("old")
    clock.advance(20 * 60)
    young = store.create_session("young")
    clock.advance(10 * 60)  # "old" reached its expiry, "young" has 20 min left

    assert store.sweep_expired() == 1
    assert old not in store
    assert young in store
    assert store.sweep_expired() == 0


# --------------------------------------------------------------------------- #
# concurrency                                                                 #
# --------------------------------------------------------------------------- #
def test_concurrent_creates_keep_keys_unique(store: InMemorySessionStore) -> None:
    ids: list[str] = []
    lock = threading.Lock()

    def worker(n: int) -> None:
        for i in range(50):
            sid = store.create_session(f"state-{n}-{i}")
            with lock:
                ids.append(sid)

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(ids) == len(set(ids)) == 400
    assert len(store) == 400


def test_concurrent_consume_has_single_winner(store: InMemorySessionStore) -> None:
    store.create_session("contended")
    winners: list[object] = []
    barrier = threading.Barrier(6)

    def worker() -> None:
        barrier.wait()
        result = store.consume_state("contended")
        if result is not None:
            winners.append(result)

    threads = [threading.Thread(target=worker) for _ in range(6)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(winners) == 1
