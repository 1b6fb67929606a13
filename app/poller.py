from __future__ import annotations
import logging
import threading
from typing import Callable

from metrics import DetailedMetrics, calculate_detailed_metrics
from insights import generate_insights
from session_store import Session, SessionStore
from spotify_auth import SpotifyAuth
from spotify_client import SpotifyAuthError, SpotifyClient
from tracker import ListenTracker

log = logging.getLogger("poller")

POLL_INTERVAL = 30  # seconds

class Poller:
    """Runs a callback now and then every `interval` seconds on a background thread.

    Only one schedule exists at a time: start() cancels the previous one first.
    """

    def __init__(self, interval: float, callback: Callable[[], None]):
        self.interval = interval
        self.callback = callback
        self._thread: threading.Thread | None = None
        self._stop: threading.Event | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        self.stop()
        stop = threading.Event()
        thread = threading.Thread(target=self._run, args=(stop,), name="poller", daemon=True)
        self._stop, self._thread = stop, thread
        log.info("Polling every %ss", self.interval)
        thread.start()

    def stop(self):
        stop, thread = self._stop, self._thread
        self._stop = self._thread = None
        if stop is None:
            return
        stop.set()
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self.interval)
        log.info("Polling stopped")

    def _run(self, stop: threading.Event):
        # First cycle runs immediately; wait() returns True once stop is set
        while not stop.is_set():
            try:
                self.callback()
            except Exception:
                log.exception("Poll cycle failed")
            if stop.wait(self.interval):
                break

class SessionTracker:
    """Owns one listening session end to end: store, inferencer, poller and Spotify access."""

    def __init__(self, *, auth: SpotifyAuth, client: SpotifyClient, store: SessionStore,
                 interval: float = POLL_INTERVAL, tracker: ListenTracker | None = None):
        self.auth = auth
        self.client = client
        self.store = store
        self.tracker = tracker or ListenTracker()
        self.poller = Poller(interval, self.poll_once)

    @property
    def session(self) -> Session:
        return self.store.session

    # -------- lifecycle --------
    def load(self):
        # An in-flight cycle must finish before the inferencer is reset
        self.poller.stop()
        self.store.load()
        if self.store.session.is_active:
            log.info("Resuming active session")
            self.tracker.reset()
            self.poller.start()

    def start_session(self):
        self.poller.stop()
        self.store.start()
        self.tracker.reset()
        self.poller.start()

    def stop_session(self):
        self.store.stop()
        self.poller.stop()

    def clear_session(self):
        self.poller.stop()
        self.store.clear()
        self.tracker.reset()

    # -------- polling --------
    def poll_once(self):
        """One observation cycle. Failures are logged and never end the session."""
        session = self.store.session
        if not session.is_active:
            return
        try:
            token = self.auth.get_access_token()
            if not token:
                log.debug("No valid token available for polling")
                return
            snapshot = self.client.get_currently_playing(token)
        except SpotifyAuthError as e:
            log.warning("Spotify rejected the access token: %s", e)
            self.auth.invalidate()
            return
        except Exception as e:
            log.warning("Currently-playing fetch failed: %s", e)
            return

        if snapshot is None or snapshot.track is None:
            log.debug("No music currently playing")
            return

        # Stop/start/clear can land while the fetch is out; a late result belongs to no session
        if self.store.session is not session or not session.is_active:
            log.debug("Session changed during fetch, discarding snapshot")
            return

        listen = self.tracker.observe(snapshot)
        if listen is not None:
            self.store.append(listen.track, listen, expected=session)

    # -------- projections --------
    def metrics(self, include_simulated: bool = False) -> DetailedMetrics:
        session = self.store.session
        return calculate_detailed_metrics(
            session.tracks, session.track_listens,
            session.start_time, session.end_time,
            include_simulated=include_simulated,
        )

    def insights(self, include_simulated: bool = False) -> list[str]:
        return generate_insights(self.metrics(include_simulated=include_simulated))
