"""Shared fixtures for the listening session tests."""

import pytest

from session_store import TrackListen
from spotify_client import Track
from storage import JsonFileStorage


class FakeClock:
    """Manually advanced stand-in for time.time."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_track(track_id: str = "t1", *, artists=("Artist",), album: str = "Album",
               duration_ms: int = 200_000, name: str | None = None) -> Track:
    return Track(
        id=track_id,
        name=name or f"Song {track_id}",
        artists=tuple(artists),
        album=album,
        album_art=f"https://img/{album}.jpg" if album else None,
        duration_ms=duration_ms,
    )


def make_listen(track: Track, listened: float, *, timestamp: float = 0.0) -> TrackListen:
    total = track.duration_ms / 1000
    return TrackListen(
        track=track,
        listen_duration=listened,
        total_duration=total,
        was_skipped=listened < total - 5,
        was_early_skip=listened < 10,
        completion_rate=listened / total * 100,
        timestamp=timestamp,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def storage(tmp_path) -> JsonFileStorage:
    return JsonFileStorage(str(tmp_path / "state" / "session_state.json"))
