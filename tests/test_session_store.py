"""Tests for the in-memory session store."""

from __future__ import annotations

import threading

import pytest

from consult_relay.services.session_store import InMemorySessionStore, Session


@pytest.fixture
def store():
    return InMemorySessionStore()


class TestInMemorySessionStore:
    def test_unknown_session_is_none(self, store):
        assert store.get("nope") is None
        assert store.has_tokens("nope") is False

    @pytest.mark.parametrize("session_id", [None, ""])
    def test_no_session_id_has_no_tokens(self, store, session_id):
        assert store.has_tokens(session_id) is False

    def test_set_tokens_authenticates_session(self, store):
        session = store.set_tokens("sid-1", {"access_token": "a"})
        assert session == Session("sid-1", {"access_token": "a"})
        assert session.is_authenticated
        assert store.has_tokens("sid-1") is True

    def test_overwrite_replaces_whole_bundle(self, store):
        store.set_tokens("sid-1", {"access_token": "a", "refresh_token": "r"})
        store.set_tokens("sid-1", {"access_token": "b"})
        assert store.get("sid-1").tokens == {"access_token": "b"}
        assert len(store) == 1

    def test_stored_bundle_is_a_copy(self, store):
        tokens = {"access_token": "a"}
        store.set_tokens("sid-1", tokens)
        tokens["access_token"] = "mutated"
        assert store.get("sid-1").tokens == {"access_token": "a"}

    def test_sessions_are_isolated(self, store):
        store.set_tokens("sid-1", {"access_token": "a"})
        assert store.has_tokens("sid-2") is False

    def test_clear(self, store):
        store.set_tokens("sid-1", {"access_token": "a"})
        assert store.clear("sid-1") is True
        assert store.clear("sid-1") is False
        assert store.get("sid-1") is None

    def test_concurrent_writers_leave_one_complete_bundle(self, store):
        def _write(n: int):
            store.set_tokens("shared", {"access_token": f"a{n}", "refresh_token": f"r{n}"})

        threads = [threading.Thread(target=_write, args=(n,)) for n in range(20)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        tokens = store.get("shared").tokens
        assert tokens["access_token"][1:] == tokens["refresh_token"][1:]
