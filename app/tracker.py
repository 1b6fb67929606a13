import logging
import time

from session_store import TrackListen
from spotify_client import PlaybackSnapshot

log = logging.getLogger("tracker")

SKIP_MARGIN_SECS = 5   # stopped this close to the end still counts as finished
EARLY_SKIP_SECS = 10

class ListenTracker:
    """Turns successive playback snapshots into TrackListen events.

    A listen is recorded when the track id changes (or on the first snapshot of a
    session), using the new track's own position at that moment as the listened
    time. The outgoing track is never closed out with its last known position, so
    a listen reflects progress at detection time, bounded by the poll interval.
    """

    def __init__(self):
        self.last_track_id: str | None = None
        self.last_position: float = 0.0  # seconds

    def reset(self):
        self.last_track_id = None
        self.last_position = 0.0

    def observe(self, snapshot: PlaybackSnapshot, now: float | None = None) -> TrackListen | None:
        track = snapshot.track
        if track is None:
            return None

        position = snapshot.position_ms / 1000
        # Same track still playing: only remember how far along it is
        if track.id == self.last_track_id:
            self.last_position = position
            return None

        log.info("New track detected: %s", track.name)
        total = track.duration_ms / 1000
        if total > 0:
            completion = position / total * 100
        else:
            log.warning("Track %s reports no duration; completion set to 0", track.id)
            completion = 0.0

        listen = TrackListen(
            track=track,
            listen_duration=position,
            total_duration=total,
            was_skipped=position < total - SKIP_MARGIN_SECS,
            was_early_skip=position < EARLY_SKIP_SECS,
            completion_rate=completion,
            timestamp=time.time() if now is None else now,
        )
        log.debug("Listen: %.0fs / %.0fs (%.0f%%) skipped=%s early=%s",
                  position, total, completion, listen.was_skipped, listen.was_early_skip)

        self.last_track_id = track.id
        self.last_position = position
        return listen
