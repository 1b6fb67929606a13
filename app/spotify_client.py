from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Any

import requests

log = logging.getLogger("spotify")

# Custom error classes so callers can branch
class SpotifyAuthError(Exception): ...
class SpotifyRateLimitError(Exception): ...
class SpotifyNetworkError(Exception): ...
class SpotifyAPIError(Exception): ...

@dataclass(frozen=True)
class Track:
    id: str
    name: str
    artists: tuple[str, ...] = field(default_factory=tuple)
    album: str = ""
    album_art: str | None = None
    duration_ms: int = 0

    @classmethod
    def from_api(cls, item: dict[str, Any]) -> "Track":
        """Build a Track from a Spotify track object."""
        album = item.get("album") or {}
        images = album.get("images") or []
        return cls(
            id=str(item["id"]),
            name=item.get("name") or "",
            artists=tuple(a.get("name") or "" for a in item.get("artists") or []),
            album=album.get("name") or "",
            album_art=images[0].get("url") if images else None,
            duration_ms=int(item.get("duration_ms") or 0),
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Track":
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            artists=tuple(data.get("artists") or ()),
            album=data.get("album", ""),
            album_art=data.get("album_art"),
            duration_ms=int(data.get("duration_ms") or 0),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "artists": list(self.artists),
            "album": self.album,
            "album_art": self.album_art,
            "duration_ms": self.duration_ms,
        }

@dataclass
class PlaybackSnapshot:
    track: Track | None
    position_ms: int  # playback position at observation time

class SpotifyClient:
    """
    Minimal Spotify Web API client for the currently-playing endpoint.
    Maps HTTP failures onto the error classes above; 204 means nothing is playing.
    """
    def __init__(self, base_url: str = "https://api.spotify.com/v1", timeout: int = 10):
        self.base = base_url.rstrip("/")
        self.timeout = timeout

    def get_currently_playing(self, access_token: str) -> PlaybackSnapshot | None:
        try:
            resp = requests.get(
                f"{self.base}/me/player/currently-playing",
                headers={"Authorization": f"Bearer {access_token}"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise SpotifyNetworkError(str(e)) from e

        if resp.status_code == 204:
            log.debug("No track currently playing")
            return None
        if resp.status_code == 401:
            raise SpotifyAuthError("Access token rejected (401)")
        if resp.status_code == 429:
            raise SpotifyRateLimitError(f"Rate limited, retry after {resp.headers.get('Retry-After', '?')}s")
        if not resp.ok:
            raise SpotifyAPIError(f"Spotify API error {resp.status_code}: {resp.text[:200]}")

        try:
            data = resp.json()
        except ValueError as e:
            raise SpotifyAPIError(f"Invalid JSON from currently-playing: {e}") from e

        item = data.get("item") if isinstance(data, dict) else None
        # Podcast episodes and ads come back without a usable track id
        track = Track.from_api(item) if item and item.get("id") else None
        position = data.get("progress_ms") if isinstance(data, dict) else None
        snapshot = PlaybackSnapshot(track=track, position_ms=int(position or 0))
        log.debug("Currently playing: %s @ %sms",
                  track.name if track else "nothing", snapshot.position_ms)
        return snapshot
