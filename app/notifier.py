"""
Webhook notifier for listening session events.

- POSTs a JSON body to NOTIFY_WEBHOOK_URL describing the session: stats, skip rate,
  songs flagged for removal and the insight lines.
- Respects NOTIFY_MIN_LEVEL (e.g., WARNING and above).
- Best-effort: failures are logged and never interrupt tracking.
"""

from __future__ import annotations
import logging
import os
from typing import Any, Dict, List

import requests

from metrics import DetailedMetrics

log = logging.getLogger("notifier")

_LEVELS = {
    "DEBUG": 10, "INFO": 20, "WARNING": 30, "ERROR": 40, "CRITICAL": 50
}

def session_payload(stats: Dict[str, int], metrics: DetailedMetrics | None = None,
                    insights: List[str] | None = None) -> Dict[str, Any]:
    """Flatten session stats and (optionally) metrics into webhook-friendly fields."""
    payload: Dict[str, Any] = {
        "duration_minutes": stats.get("duration", 0),
        "track_count": stats.get("track_count", 0),
        "unique_artists": stats.get("unique_artists", 0),
        "listening_minutes": stats.get("total_listening_time", 0),
    }
    if metrics is not None:
        payload["skip_rate"] = metrics.skip_rate
        payload["top_artist"] = metrics.top_artists[0].name if metrics.top_artists else None
        payload["songs_to_remove"] = [
            {"id": r.track.id, "name": r.track.name, "reason": r.reason} for r in metrics.songs_to_remove
        ]
        payload["songs_to_keep"] = [r.track.name for r in metrics.songs_to_keep]
    if insights:
        payload["insights"] = list(insights)
    return payload

class Notifier:
    def __init__(self, webhook_url: str | None, min_level: str = "WARNING",
                 app_tag: str = "Listening Session", timeout: int = 5):
        self.webhook_url = webhook_url.strip() if webhook_url else None
        self.min_level = _LEVELS.get(min_level.upper(), 30)
        self.app_tag = app_tag
        self.timeout = timeout

    def enabled_for(self, level: str) -> bool:
        return bool(self.webhook_url) and _LEVELS.get(level.upper(), 30) >= self.min_level

    def send(self, level: str, title: str, message: str, session: Dict[str, Any] | None = None):
        if not self.enabled_for(level):
            return

        body: Dict[str, Any] = {
            "level": level.upper(),
            "title": f"{self.app_tag}: {title}",
            "message": message,
        }
        if session is not None:
            body["session"] = session
        try:
            requests.post(self.webhook_url, json=body, timeout=self.timeout)
        except requests.RequestException as e:
            log.debug("Notification send failed: %s", e)

    def session_started(self, interval: int):
        self.send("INFO", "Session started", f"Polling Spotify every {interval}s.")

    def session_stopped(self, stats: Dict[str, int], metrics: DetailedMetrics,
                        insights: List[str] | None = None):
        message = (f"{stats.get('track_count', 0)} tracks in {stats.get('duration', 0)} min, "
                   f"skip rate {metrics.skip_rate}%, {len(metrics.songs_to_remove)} to remove")
        self.send("INFO", "Session stopped", message, session_payload(stats, metrics, insights))

def from_env() -> Notifier:
    return Notifier(
        webhook_url=os.getenv("NOTIFY_WEBHOOK_URL"),
        min_level=os.getenv("NOTIFY_MIN_LEVEL", "WARNING"),
        app_tag=os.getenv("APP_TAG", "Listening Session"),
    )
