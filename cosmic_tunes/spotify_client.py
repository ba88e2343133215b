"""Spotipy client setup and cleanup helpers."""

import logging

import spotipy
from spotipy.cache_handler import CacheFileHandler, CacheHandler
from spotipy.oauth2 import SpotifyOAuth

from .config import SCOPE, TOKEN_CACHE_PATH
from .env import spotify_credentials


def configure_spotipy_logging() -> None:
    """Reduce Spotipy logger noise so CLI output stays readable."""
    for logger_name in ("spotipy", "spotipy.client", "spotipy.oauth2"):
        logger = logging.getLogger(logger_name)
        logger.setLevel(logging.CRITICAL)
        logger.propagate = False


# Apply logging policy at import so all consumers get consistent behavior.
configure_spotipy_logging()


def create_auth_manager(
    cache_handler: CacheHandler | None = None,
    redirect_uri: str | None = None,
    open_browser: bool = True,
) -> SpotifyOAuth:
    """Authorization-code manager; token refresh and caching are delegated to Spotipy."""
    credentials = spotify_credentials(require_redirect=redirect_uri is None)
    return SpotifyOAuth(
        client_id=credentials.client_id,
        client_secret=credentials.client_secret,
        redirect_uri=redirect_uri or credentials.redirect_uri,
        scope=SCOPE,
        cache_handler=cache_handler or CacheFileHandler(cache_path=str(TOKEN_CACHE_PATH)),
        open_browser=open_browser,
        show_dialog=False,
    )


def create_spotify_client(auth_manager: SpotifyOAuth | None = None) -> spotipy.Spotify:
    """Create an authenticated Spotipy client with retries and timeouts."""
    return spotipy.Spotify(
        auth_manager=auth_manager or create_auth_manager(),
        requests_timeout=10,
        retries=3,
        status_retries=3,
    )


def create_token_client(access_token: str) -> spotipy.Spotify:
    """Client bound to an already-validated access token."""
    return spotipy.Spotify(auth=access_token, requests_timeout=10, retries=3, status_retries=3)


def close_sessions(sp: spotipy.Spotify) -> None:
    """Close HTTP sessions held by Spotipy objects."""
    for obj in (sp, sp.auth_manager):
        # Spotipy exposes sessions on private attributes; close defensively.
        session = getattr(obj, "_session", None)
        close_fn = getattr(session, "close", None)
        if callable(close_fn):
            close_fn()
