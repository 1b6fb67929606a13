"""
Listening session state.

- Holds the single Session aggregate: lifecycle flags plus track and listen history.
- Persists the whole session as one JSON blob after every mutation.
- The in-memory session is authoritative; persistence is best-effort.
"""

from __future__ import annotations
import json
import logging
import math
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List

from spotify_client import Track
from storage import JsonFileStorage

log = logging.getLogger("session")

SESSION_STORAGE_KEY = "listening_session"

@dataclass(frozen=True)
class TrackListen:
    track: Track
    listen_duration: float   # seconds actually observed
    total_duration: float    # track length in seconds
    was_skipped: bool        # stopped 5+ seconds before the end
    was_early_skip: bool     # under 10 seconds
    completion_rate: float   # % of the track, not clamped
    timestamp: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "track": self.track.to_dict(),
            "listen_duration": self.listen_duration,
            "total_duration": self.total_duration,
            "was_skipped": self.was_skipped,
            "was_early_skip": self.was_early_skip,
            "completion_rate": self.completion_rate,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> TrackListen:
        return cls(
            track=Track.from_dict(data["track"]),
            listen_duration=float(data["listen_duration"]),
            total_duration=float(data["total_duration"]),
            was_skipped=bool(data["was_skipped"]),
            was_early_skip=bool(data["was_early_skip"]),
            completion_rate=float(data["completion_rate"]),
            timestamp=float(data["timestamp"]),
        )

@dataclass
class Session:
    is_active: bool = False
    start_time: float | None = None
    end_time: float | None = None
    tracks: List[Track] = field(default_factory=list)
    track_listens: List[TrackListen] = field(default_factory=list)
    total_duration: float = 0.0  # minutes

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_active": self.is_active,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "tracks": [t.to_dict() for t in self.tracks],
            "track_listens": [l.to_dict() for l in self.track_listens],
            "total_duration": self.total_duration,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Session:
        return cls(
            is_active=bool(data.get("is_active")),
            start_time=data.get("start_time"),
            end_time=data.get("end_time"),
            tracks=[Track.from_dict(t) for t in data.get("tracks") or []],
            track_listens=[TrackListen.from_dict(l) for l in data.get("track_listens") or []],
            total_duration=float(data.get("total_duration") or 0),
        )

class SessionStore:
    def __init__(self, storage: JsonFileStorage, key: str = SESSION_STORAGE_KEY,
                 clock: Callable[[], float] = time.time):
        self.storage = storage
        self.key = key
        self.clock = clock
        self._lock = threading.Lock()
        self._session = Session()

    @property
    def session(self) -> Session:
        return self._session

    # -------- persistence --------
    def _save(self) -> None:
        try:
            self.storage.set(self.key, json.dumps(self._session.to_dict()))
        except (OSError, TypeError, ValueError) as e:
            log.error("Error saving session: %s", e)

    def _discard(self) -> None:
        try:
            self.storage.remove(self.key)
        except OSError as e:
            log.error("Error removing saved session: %s", e)

    def load(self) -> None:
        """Restore the persisted session; anything unusable leaves the empty default in place."""
        try:
            raw = self.storage.get(self.key)
            if not raw:
                log.info("No saved session found")
                return
            data = json.loads(raw)
            if not isinstance(data, dict):
                log.error("Saved session is not an object (%s), ignoring", type(data).__name__)
                return
            restored = Session.from_dict(data)
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            log.error("Error loading session: %s", e)
            return

        log.info("Loaded saved session: active=%s tracks=%s",
                 restored.is_active, len(restored.tracks))
        # Only keep it if there's valid data
        if restored.start_time or restored.tracks:
            with self._lock:
                self._session = restored

    # -------- lifecycle --------
    def start(self) -> None:
        with self._lock:
            # Drop the old blob first so no stale fields leak into the new session
            self._discard()
            self._session = Session(is_active=True, start_time=self.clock())
            self._save()
        log.info("Session started")

    def stop(self) -> None:
        with self._lock:
            self._session.is_active = False
            self._session.end_time = self.clock()
            self._save()
        log.info("Session stopped: tracks=%s listens=%s",
                 len(self._session.tracks), len(self._session.track_listens))

    def clear(self) -> None:
        with self._lock:
            self._session = Session()
            self._discard()
        log.info("Session cleared")

    def append(self, track: Track, listen: TrackListen, expected: Session | None = None) -> bool:
        """Record one listen. Returns False (and changes nothing) once the session has stopped.

        With `expected`, the listen is also dropped when a different session has been
        started or the session cleared since the caller looked.
        """
        with self._lock:
            session = self._session
            if not session.is_active:
                log.info("Session no longer active, skipping track update")
                return False
            if expected is not None and session is not expected:
                log.info("Session replaced while polling, dropping stale listen")
                return False
            if not any(t.id == track.id for t in session.tracks):
                session.tracks.append(track)
            session.track_listens.append(listen)
            session.total_duration += track.duration_ms / 1000 / 60
            self._save()
        return True

    # -------- derived --------
    def session_duration(self, now: float | None = None) -> int:
        """Whole minutes from start to end, or to now while the session runs."""
        session = self._session
        if not session.start_time:
            return 0
        end = session.end_time or (now if now is not None else self.clock())
        return math.floor((end - session.start_time) / 60)

    def stats(self, now: float | None = None) -> Dict[str, int]:
        session = self._session
        artists = {name for t in session.tracks for name in t.artists}
        return {
            "duration": self.session_duration(now),
            "track_count": len(session.tracks),
            "unique_artists": len(artists),
            "total_listening_time": math.floor(session.total_duration + 0.5),
        }
