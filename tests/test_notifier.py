"""Tests for the webhook notifier."""

from unittest.mock import patch

import requests

from conftest import make_listen, make_track
from metrics import calculate_detailed_metrics
from notifier import Notifier, from_env, session_payload

STATS = {"duration": 42, "track_count": 2, "unique_artists": 1, "total_listening_time": 7}


def _metrics():
    keep = make_track("k", artists=("Band",), duration_ms=100_000)
    drop = make_track("d", artists=("Band",), duration_ms=100_000, name="Skipper")
    listens = [make_listen(keep, 95), make_listen(drop, 2)]
    return calculate_detailed_metrics([keep, drop], listens, None, None)


def test_without_url_nothing_is_sent() -> None:
    with patch("notifier.requests.post") as post:
        Notifier(None).send("ERROR", "t", "m")
    post.assert_not_called()


def test_below_min_level_is_dropped() -> None:
    with patch("notifier.requests.post") as post:
        Notifier("https://hook", min_level="WARNING").send("INFO", "t", "m")
    post.assert_not_called()


def test_plain_message_has_no_session_block() -> None:
    with patch("notifier.requests.post") as post:
        Notifier(" https://hook ", min_level="INFO", app_tag="Tag").session_started(30)

    post.assert_called_once_with(
        "https://hook",
        json={"level": "INFO", "title": "Tag: Session started", "message": "Polling Spotify every 30s."},
        timeout=5,
    )


def test_session_stopped_carries_session_fields() -> None:
    metrics = _metrics()

    with patch("notifier.requests.post") as post:
        Notifier("https://hook", min_level="INFO").session_stopped(STATS, metrics, ["line"])

    body = post.call_args.kwargs["json"]
    assert body["message"] == "2 tracks in 42 min, skip rate 50%, 1 to remove"
    assert body["session"] == {
        "duration_minutes": 42,
        "track_count": 2,
        "unique_artists": 1,
        "listening_minutes": 7,
        "skip_rate": 50,
        "top_artist": "Band",
        "songs_to_remove": [{"id": "d", "name": "Skipper", "reason": "Skipped within 10 seconds 1/1 times"}],
        "songs_to_keep": ["Song k"],
        "insights": ["line"],
    }


def test_session_payload_from_stats_only() -> None:
    assert session_payload(STATS) == {
        "duration_minutes": 42,
        "track_count": 2,
        "unique_artists": 1,
        "listening_minutes": 7,
    }


def test_send_failure_is_swallowed() -> None:
    with patch("notifier.requests.post", side_effect=requests.ConnectionError("down")):
        Notifier("https://hook").send("ERROR", "t", "m")


def test_from_env(monkeypatch) -> None:
    monkeypatch.setenv("NOTIFY_WEBHOOK_URL", "https://hook")
    monkeypatch.setenv("NOTIFY_MIN_LEVEL", "error")

    notifier = from_env()

    assert notifier.enabled_for("ERROR")
    assert not notifier.enabled_for("WARNING")
