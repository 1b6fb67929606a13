from __future__ import annotations
import json
import logging
import time
from dataclasses import asdict, dataclass
from typing import Callable

import requests

from spotify_client import SpotifyAuthError
from storage import JsonFileStorage

log = logging.getLogger("spotify.auth")

TOKENS_KEY = "spotify_tokens"

@dataclass
class SpotifyTokens:
    access_token: str
    refresh_token: str
    expires_at: float  # unix seconds

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at

class SpotifyAuth:
    """Keeps Spotify tokens in storage and refreshes them through the token backend."""

    def __init__(self, storage: JsonFileStorage, backend_url: str | None,
                 timeout: int = 10, clock: Callable[[], float] = time.time):
        self.storage = storage
        self.backend_url = backend_url.rstrip("/") if backend_url else None
        self.timeout = timeout
        self.clock = clock

    # -------- token storage --------
    def get_tokens(self) -> SpotifyTokens | None:
        try:
            raw = self.storage.get(TOKENS_KEY)
            if not raw:
                return None
            return SpotifyTokens(**json.loads(raw))
        except (OSError, ValueError, TypeError) as e:
            log.error("Error retrieving tokens: %s", e)
            return None

    def store_tokens(self, tokens: SpotifyTokens) -> None:
        self.storage.set(TOKENS_KEY, json.dumps(asdict(tokens)))

    def clear_tokens(self) -> None:
        self.storage.remove(TOKENS_KEY)

    def seed(self, *, access_token: str | None, refresh_token: str | None, expires_in: int = 3600) -> bool:
        """Store externally obtained tokens unless storage already holds the same grant.

        Without an access token the first call refreshes. Returns True when tokens were written.
        """
        stored = self.get_tokens()
        if stored is not None:
            if refresh_token and stored.refresh_token == refresh_token:
                return False
            if not refresh_token and access_token and stored.access_token == access_token:
                return False
        self.store_tokens(SpotifyTokens(
            access_token=access_token or "",
            refresh_token=refresh_token or "",
            expires_at=self.clock() + expires_in if access_token else 0,
        ))
        log.info("Stored tokens from environment")
        return True

    # -------- refresh --------
    def refresh_access_token(self, refresh_token: str) -> SpotifyTokens:
        """Exchange a refresh token for a new access token, keeping the refresh token."""
        if not self.backend_url:
            raise SpotifyAuthError("No token backend configured")
        try:
            resp = requests.post(
                f"{self.backend_url}/refresh.php",
                json={"refresh_token": refresh_token},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise SpotifyAuthError(f"Token refresh failed: {e}") from e
        if not resp.ok:
            raise SpotifyAuthError(f"Failed to refresh token: {resp.status_code}")
        try:
            data = resp.json()
            tokens = SpotifyTokens(
                access_token=data["access_token"],
                refresh_token=refresh_token,
                expires_at=self.clock() + int(data.get("expires_in", 3600)),
            )
        except (ValueError, KeyError, TypeError) as e:
            raise SpotifyAuthError(f"Malformed refresh response: {e}") from e
        self.store_tokens(tokens)
        log.info("New access token received")
        return tokens

    def invalidate(self) -> None:
        """Mark the cached access token expired so the next call refreshes it."""
        tokens = self.get_tokens()
        if tokens is not None:
            tokens.expires_at = 0
            self.store_tokens(tokens)

    def get_access_token(self) -> str | None:
        """Return a currently valid access token, or None when none can be had right now."""
        tokens = self.get_tokens()
        if tokens is None:
            return None
        if tokens.access_token and not tokens.is_expired(self.clock()):
            return tokens.access_token
        if not tokens.refresh_token:
            log.debug("Access token expired and no refresh token stored")
            return None
        log.info("Token expired, refreshing...")
        try:
            return self.refresh_access_token(tokens.refresh_token).access_token
        except SpotifyAuthError as e:
            log.warning("Token refresh failed: %s", e)
            return None
