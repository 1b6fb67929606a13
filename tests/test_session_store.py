"""Tests for the session aggregate and its persistence."""

import json
from unittest.mock import MagicMock

import pytest

from conftest import make_listen, make_track
from session_store import SESSION_STORAGE_KEY, Session, SessionStore


@pytest.fixture
def store(storage, clock) -> SessionStore:
    return SessionStore(storage, clock=clock)


def _saved(storage) -> dict:
    return json.loads(storage.get(SESSION_STORAGE_KEY))


class TestLifecycle:
    def test_new_store_is_empty_and_inactive(self, store: SessionStore) -> None:
        assert store.session == Session()

    def test_start_activates_with_fresh_history(self, store: SessionStore, storage, clock) -> None:
        store.start()

        assert store.session.is_active
        assert store.session.start_time == clock.now
        assert store.session.end_time is None
        assert _saved(storage)["is_active"] is True

    def test_start_discards_previous_history(self, store: SessionStore, storage) -> None:
        store.start()
        track = make_track()
        store.append(track, make_listen(track, 3))
        store.stop()

        store.start()

        assert store.session.tracks == []
        assert store.session.track_listens == []
        assert store.session.total_duration == 0
        assert _saved(storage)["track_listens"] == []

    def test_start_removes_persisted_blob_before_saving(self, clock) -> None:
        storage = MagicMock()
        store = SessionStore(storage, clock=clock)

        store.start()

        assert [c[0] for c in storage.method_calls] == ["remove", "set"]

    def test_stop_keeps_history_and_sets_end_time(self, store: SessionStore, storage, clock) -> None:
        store.start()
        track = make_track()
        store.append(track, make_listen(track, 30))
        clock.advance(600)

        store.stop()

        assert not store.session.is_active
        assert store.session.end_time == clock.now
        assert len(store.session.track_listens) == 1
        assert _saved(storage)["end_time"] == clock.now

    def test_clear_resets_and_removes_persisted_state(self, store: SessionStore, storage) -> None:
        store.start()
        store.clear()

        assert store.session == Session()
        assert storage.get(SESSION_STORAGE_KEY) is None


class TestAppend:
    def test_duplicate_track_grows_listens_but_not_tracks(self, store: SessionStore) -> None:
        store.start()
        track = make_track("t1", duration_ms=120_000)

        assert store.append(track, make_listen(track, 5))
        assert store.append(track, make_listen(track, 100))

        assert [t.id for t in store.session.tracks] == ["t1"]
        assert len(store.session.track_listens) == 2
        assert store.session.total_duration == pytest.approx(4.0)

    def test_tracks_keep_first_seen_order(self, store: SessionStore) -> None:
        store.start()
        a, b = make_track("a"), make_track("b")
        for track in (a, b, a):
            store.append(track, make_listen(track, 50))

        assert [t.id for t in store.session.tracks] == ["a", "b"]
        assert [l.track.id for l in store.session.track_listens] == ["a", "b", "a"]

    def test_append_after_stop_is_a_noop(self, store: SessionStore, storage) -> None:
        store.start()
        store.stop()
        before = _saved(storage)
        track = make_track()

        assert store.append(track, make_listen(track, 20)) is False

        assert store.session.track_listens == []
        assert not store.session.is_active
        assert _saved(storage) == before

    def test_append_without_session_is_a_noop(self, store: SessionStore) -> None:
        track = make_track()
        assert store.append(track, make_listen(track, 20)) is False
        assert store.session.tracks == []

    def test_append_for_replaced_session_is_dropped(self, store: SessionStore) -> None:
        store.start()
        old = store.session
        store.start()
        track = make_track()

        assert store.append(track, make_listen(track, 20), expected=old) is False
        assert store.session.track_listens == []
        assert store.append(track, make_listen(track, 20), expected=store.session) is True

    def test_write_failure_keeps_in_memory_state(self, clock) -> None:
        storage = MagicMock()
        storage.set.side_effect = OSError("disk full")
        store = SessionStore(storage, clock=clock)
        store.start()
        track = make_track()

        assert store.append(track, make_listen(track, 20))
        assert len(store.session.track_listens) == 1


class TestLoad:
    def test_restores_persisted_session(self, store: SessionStore, storage, clock) -> None:
        store.start()
        track = make_track("t9", artists=("A", "B"))
        store.append(track, make_listen(track, 42, timestamp=clock.now))

        restored = SessionStore(storage, clock=clock)
        restored.load()

        assert restored.session == store.session

    def test_missing_blob_keeps_default(self, store: SessionStore) -> None:
        store.load()
        assert store.session == Session()

    def test_blob_without_start_or_tracks_is_ignored(self, store: SessionStore, storage) -> None:
        storage.set(SESSION_STORAGE_KEY, json.dumps({"is_active": True, "start_time": None, "tracks": []}))

        store.load()

        assert store.session == Session()

    def test_unparseable_blob_keeps_default(self, store: SessionStore, storage) -> None:
        storage.set(SESSION_STORAGE_KEY, "{broken")
        store.load()
        assert store.session == Session()

    @pytest.mark.parametrize("blob", ["[]", "null", '"x"', "5", '{"tracks": [1, 2]}'])
    def test_non_object_blob_keeps_default(self, store: SessionStore, storage, blob: str) -> None:
        storage.set(SESSION_STORAGE_KEY, blob)

        store.load()

        assert store.session == Session()

    def test_read_failure_keeps_default(self, clock) -> None:
        storage = MagicMock()
        storage.get.side_effect = OSError("unreadable")
        store = SessionStore(storage, clock=clock)

        store.load()

        assert store.session == Session()


class TestDerived:
    def test_session_duration_runs_until_now_while_active(self, store: SessionStore, clock) -> None:
        assert store.session_duration() == 0
        store.start()
        clock.advance(150)
        assert store.session_duration() == 2

    def test_session_duration_uses_end_time_after_stop(self, store: SessionStore, clock) -> None:
        store.start()
        clock.advance(300)
        store.stop()
        clock.advance(3600)
        assert store.session_duration() == 5

    def test_stats(self, store: SessionStore) -> None:
        store.start()
        a = make_track("a", artists=("X", "Y"), duration_ms=90_000)
        b = make_track("b", artists=("Y",), duration_ms=90_000)
        store.append(a, make_listen(a, 50))
        store.append(b, make_listen(b, 50))

        stats = store.stats()

        assert stats["track_count"] == 2
        assert stats["unique_artists"] == 2
        assert stats["total_listening_time"] == 3
