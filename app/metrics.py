"""
Listening metrics.

Pure projection from a session's tracks and listen events to DetailedMetrics.
Everything here is deterministic except SimulatedMetrics, which stands in for data
the app does not have (timestamped history, audio features) and is only produced
when explicitly asked for.
"""

from __future__ import annotations
import logging
import math
import random
import time
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Sequence

from session_store import TrackListen
from spotify_client import Track

log = logging.getLogger("metrics")

TOP_TRACKS_LIMIT = 10
TOP_ARTISTS_LIMIT = 10
TOP_ALBUMS_LIMIT = 5
OVERPLAYED_MIN_PLAYS = 5
OVERPLAYED_LIMIT = 5

# Recommendation thresholds
REMOVE_EARLY_SKIP_RATIO = 0.5
REMOVE_MAX_COMPLETION = 30
KEEP_MIN_COMPLETION = 85

DAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")

def round_half_up(value: float) -> int:
    # Zero-duration tracks can push NaN/inf through completion rates
    if not math.isfinite(value):
        return 0
    return math.floor(value + 0.5)

@dataclass
class TrackCount:
    track: Track
    count: int

@dataclass
class ArtistCount:
    name: str
    count: int

@dataclass
class AlbumCount:
    album: str
    count: int
    album_art: str | None = None

@dataclass
class TrackRecommendation:
    track: Track
    reason: str
    action: str  # 'remove' | 'keep'
    early_skip_count: int
    total_plays: int
    average_completion: float

@dataclass
class SimulatedMetrics:
    """Random placeholder values. Not derived from real data; do not compare in tests."""
    listening_by_hour: Dict[int, int]
    listening_by_day: Dict[str, int]
    peak_listening_hour: int
    average_energy: float
    average_danceability: float
    average_valence: float

@dataclass
class DetailedMetrics:
    # Core listening
    total_listening_time: int
    top_artists: List[ArtistCount]
    top_tracks: List[TrackCount]
    top_albums: List[AlbumCount]
    unique_tracks: int
    unique_artists: int

    # Behavioral
    skip_rate: int
    completion_rate: int
    total_skips: int
    early_skips: int
    average_listen_duration: int

    # Recommendations
    overplayed_songs: List[Track]
    songs_to_remove: List[TrackRecommendation]
    songs_to_keep: List[TrackRecommendation]
    most_skipped_artist: str
    listening_diversity: int

    # Session
    session_duration: int
    track_count: int

    simulated: SimulatedMetrics | None = field(default=None)

def _ranked(counts: Iterable, limit: int) -> list:
    # sorted() is stable, so ties keep first-encounter order
    return sorted(counts, key=lambda c: c.count, reverse=True)[:limit]

def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0

def analyse_tracks(track_listens: Sequence[TrackListen]) -> tuple[list[TrackRecommendation], list[TrackRecommendation]]:
    """Split listened tracks into (songs to remove, songs to keep)."""
    groups: Dict[str, List[TrackListen]] = {}
    for listen in track_listens:
        groups.setdefault(listen.track.id, []).append(listen)

    to_remove: list[TrackRecommendation] = []
    to_keep: list[TrackRecommendation] = []
    for listens in groups.values():
        track = listens[0].track
        total_plays = len(listens)
        early_skips = sum(1 for l in listens if l.was_early_skip)
        average = _mean([l.completion_rate for l in listens])
        early_skip_ratio = early_skips / total_plays

        if early_skip_ratio > REMOVE_EARLY_SKIP_RATIO or average < REMOVE_MAX_COMPLETION:
            if early_skip_ratio > REMOVE_EARLY_SKIP_RATIO:
                reason = f"Skipped within 10 seconds {early_skips}/{total_plays} times"
            else:
                reason = f"Only {round_half_up(average)}% average completion"
            to_remove.append(TrackRecommendation(track, reason, "remove", early_skips, total_plays, average))
        elif average > KEEP_MIN_COMPLETION and early_skips == 0:
            reason = f"{round_half_up(average)}% average completion - you love this!"
            to_keep.append(TrackRecommendation(track, reason, "keep", early_skips, total_plays, average))

    return to_remove, to_keep

def simulate_placeholders(track_count: int, rng: random.Random | None = None,
                          now: float | None = None) -> SimulatedMetrics:
    """Plausible-looking time and vibe figures; random by nature."""
    rng = rng or random.Random()
    current_hour = time.localtime(now).tm_hour
    by_hour = {h: (rng.randint(0, track_count // 4) if 8 <= h <= 23 else 0) for h in range(24)}
    by_hour[current_hour] = track_count // 3
    by_day = {day: rng.randint(0, track_count // 3) for day in DAYS}
    peak = max(by_hour, key=lambda h: by_hour[h])
    return SimulatedMetrics(
        listening_by_hour=by_hour,
        listening_by_day=by_day,
        peak_listening_hour=peak,
        average_energy=0.5 + rng.random() * 0.4,
        average_danceability=0.4 + rng.random() * 0.5,
        average_valence=0.3 + rng.random() * 0.6,
    )

def calculate_detailed_metrics(
    tracks: Sequence[Track],
    track_listens: Sequence[TrackListen],
    session_start: float | None,
    session_end: float | None,
    *,
    include_simulated: bool = False,
    rng: random.Random | None = None,
) -> DetailedMetrics:
    log.debug("Calculating metrics for %s tracks / %s listen events", len(tracks), len(track_listens))

    # Core listening: each distinct track counted once at its catalog length
    total_minutes = sum(t.duration_ms / 1000 / 60 for t in tracks)
    unique_tracks = len({t.id for t in tracks})

    track_counts: Dict[str, TrackCount] = {}
    artist_counts: Dict[str, ArtistCount] = {}
    album_counts: Dict[str, AlbumCount] = {}
    for track in tracks:
        track_counts.setdefault(track.id, TrackCount(track, 0)).count += 1
        for name in track.artists:
            # Keyed by display name: different artists sharing a name collapse
            artist_counts.setdefault(name, ArtistCount(name, 0)).count += 1
        if track.album:
            album_counts.setdefault(track.album, AlbumCount(track.album, 0, track.album_art)).count += 1

    top_tracks = _ranked(track_counts.values(), TOP_TRACKS_LIMIT)
    top_artists = _ranked(artist_counts.values(), TOP_ARTISTS_LIMIT)
    top_albums = _ranked(album_counts.values(), TOP_ALBUMS_LIMIT)
    unique_artists = len(artist_counts)

    # Behavioral: only early skips (< 10s) count as skips
    early_skips = sum(1 for l in track_listens if l.was_early_skip)
    skip_rate = round_half_up(early_skips / len(track_listens) * 100) if track_listens else 0
    average_listen = round_half_up(_mean([l.completion_rate for l in track_listens])) if track_listens else 0

    songs_to_remove, songs_to_keep = analyse_tracks(track_listens)
    log.debug("%s songs to remove, %s songs to keep", len(songs_to_remove), len(songs_to_keep))

    overplayed = [c.track for c in top_tracks if c.count > OVERPLAYED_MIN_PLAYS][:OVERPLAYED_LIMIT]
    most_skipped_artist = top_artists[-1].name if len(top_artists) > 3 else "Unknown"
    diversity = round_half_up(unique_artists / len(tracks) * 100) if unique_artists > 0 else 0

    if session_start and session_end:
        session_duration = math.floor((session_end - session_start) / 60)
    else:
        session_duration = math.floor(total_minutes)

    return DetailedMetrics(
        total_listening_time=round_half_up(total_minutes),
        top_artists=top_artists,
        top_tracks=top_tracks,
        top_albums=top_albums,
        unique_tracks=unique_tracks,
        unique_artists=unique_artists,
        skip_rate=skip_rate,
        completion_rate=100 - skip_rate,
        total_skips=early_skips,
        early_skips=early_skips,
        average_listen_duration=average_listen,
        overplayed_songs=overplayed,
        songs_to_remove=songs_to_remove,
        songs_to_keep=songs_to_keep,
        most_skipped_artist=most_skipped_artist,
        listening_diversity=diversity,
        session_duration=session_duration,
        track_count=len(tracks),
        simulated=simulate_placeholders(len(tracks), rng) if include_simulated else None,
    )
