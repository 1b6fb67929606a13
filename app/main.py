import os
import time
import logging

from spotify_client import SpotifyClient
from spotify_auth import SpotifyAuth
from storage import JsonFileStorage
from session_store import SessionStore
from poller import SessionTracker
from notifier import from_env as notifier_from_env

# -------------------------
# Configuration via ENV VARS
# -------------------------
SPOTIFY_API_BASE = os.getenv("SPOTIFY_API_BASE", "https://api.spotify.com/v1")
SPOTIFY_BACKEND_URL = os.getenv("SPOTIFY_BACKEND_URL")
SPOTIFY_ACCESS_TOKEN = os.getenv("SPOTIFY_ACCESS_TOKEN")
SPOTIFY_REFRESH_TOKEN = os.getenv("SPOTIFY_REFRESH_TOKEN")

POLL_INTERVAL = max(1, int(os.getenv("POLL_INTERVAL", "30")))
HTTP_TIMEOUT = int(os.getenv("HTTP_TIMEOUT", "10"))
STATE_PATH = os.getenv("STATE_PATH", "/data/session_state.json")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# -------------------------
# Logging setup
# -------------------------
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    force=True,  # ensure our config is used even if libs pre-configure logging
)
log = logging.getLogger("listening-session")

def build_tracker(storage: JsonFileStorage) -> SessionTracker:
    auth = SpotifyAuth(storage, SPOTIFY_BACKEND_URL, timeout=HTTP_TIMEOUT)
    if SPOTIFY_ACCESS_TOKEN or SPOTIFY_REFRESH_TOKEN:
        auth.seed(access_token=SPOTIFY_ACCESS_TOKEN, refresh_token=SPOTIFY_REFRESH_TOKEN)
    return SessionTracker(
        auth=auth,
        client=SpotifyClient(SPOTIFY_API_BASE, timeout=HTTP_TIMEOUT),
        store=SessionStore(storage),
        interval=POLL_INTERVAL,
    )

def main():
    storage = JsonFileStorage(STATE_PATH)
    notifier = notifier_from_env()  # ok if NOTIFY_WEBHOOK_URL is empty
    tracker = build_tracker(storage)

    # Validate credentials up-front for clear errors
    tokens = tracker.auth.get_tokens()
    if tokens is None or not (tokens.access_token or tokens.refresh_token):
        raise SystemExit("Provide SPOTIFY_ACCESS_TOKEN or SPOTIFY_REFRESH_TOKEN")
    if not tokens.refresh_token:
        log.warning("No refresh token; tracking stops working once the access token expires")
        notifier.send("WARNING", "No refresh token",
                      "Polling will pause when the current access token expires.")

    tracker.load()
    if tracker.session.is_active:
        log.info("Continuing session started at %s",
                 time.strftime("%H:%M:%S", time.localtime(tracker.session.start_time)))
    else:
        tracker.start_session()
    log.info("Tracking listening session. Poll interval: %ss | State: %s", POLL_INTERVAL, STATE_PATH)
    notifier.session_started(POLL_INTERVAL)

    try:
        while True:
            time.sleep(60)
            log.debug("Session stats: %s", tracker.store.stats())
    finally:
        tracker.stop_session()
        stats = tracker.store.stats()
        metrics = tracker.metrics()
        log.info("Session finished: %s min, %s tracks, %s artists, skip rate %s%%",
                 stats["duration"], stats["track_count"], stats["unique_artists"], metrics.skip_rate)
        for rec in metrics.songs_to_remove:
            log.info("Consider removing: %s (%s)", rec.track.name, rec.reason)
        for rec in metrics.songs_to_keep:
            log.info("Keeper: %s (%s)", rec.track.name, rec.reason)
        insights = tracker.insights()
        for line in insights:
            log.info("%s", line)
        notifier.session_stopped(stats, metrics, insights)


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        log.info("Shutting down…")
