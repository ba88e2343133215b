"""Access-token provider backed by Spotipy's OAuth manager.

The server keeps one token cache entry per browser session id; the CLI uses
Spotipy's file cache. Either way callers only see ``get_access_token``.
"""

import logging
import secrets
import threading
from abc import ABC, abstractmethod
from typing import Any

from spotipy.cache_handler import CacheHandler
from spotipy.oauth2 import SpotifyOAuth, SpotifyOauthError

from .errors import NotAuthenticatedError, RefreshFailedError

logger = logging.getLogger(__name__)

SESSION_COOKIE = "ct_session"
STATE_COOKIE = "spotify_oauth_state"


class AccessTokenProvider(ABC):
    @abstractmethod
    def get_access_token(self) -> str:
        """Current valid token, refreshed when expired."""


class SpotipyTokenProvider(AccessTokenProvider):
    def __init__(self, auth_manager: SpotifyOAuth) -> None:
        self.auth_manager = auth_manager

    def get_access_token(self) -> str:
        token_info = self.auth_manager.cache_handler.get_cached_token()
        if not token_info:
            raise NotAuthenticatedError()

        try:
            # validate_token refreshes through the cache handler when expired.
            token_info = self.auth_manager.validate_token(token_info)
        except SpotifyOauthError as exc:
            logger.warning("Spotify token refresh rejected: %s", exc)
            raise RefreshFailedError(f"Token refresh failed: {exc}") from exc

        if not token_info or not token_info.get("access_token"):
            raise NotAuthenticatedError()
        return token_info["access_token"]


class SessionTokenStore:
    """In-process token_info storage keyed by browser session id."""

    def __init__(self) -> None:
        self._tokens: dict[str, dict[str, Any]] = {}
        self._lock = threading.Lock()

    @staticmethod
    def new_session_id() -> str:
        return secrets.token_urlsafe(24)

    def get(self, session_id: str) -> dict[str, Any] | None:
        with self._lock:
            return self._tokens.get(session_id)

    def put(self, session_id: str, token_info: dict[str, Any]) -> None:
        with self._lock:
            self._tokens[session_id] = token_info

    def discard(self, session_id: str) -> None:
        with self._lock:
            self._tokens.pop(session_id, None)


class SessionCacheHandler(CacheHandler):
    """Spotipy cache handler scoped to one browser session."""

    def __init__(self, store: SessionTokenStore, session_id: str) -> None:
        self.store = store
        self.session_id = session_id

    def get_cached_token(self) -> dict[str, Any] | None:
        return self.store.get(self.session_id)

    def save_token_to_cache(self, token_info: dict[str, Any]) -> None:
        self.store.put(self.session_id, token_info)
