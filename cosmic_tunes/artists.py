import json
import logging
from datetime import datetime, timezone
from typing import Any

import spotipy
from spotipy.exceptions import SpotifyException

from .config import ARTIST_CACHE_PATH, DEFAULT_TIME_RANGE, TIME_RANGES, TOP_ARTISTS_LIMIT
from .errors import UpstreamError
from .graph import ArtistRecord, dedupe_artists

logger = logging.getLogger(__name__)


def extract_image_url(raw_artist: dict[str, Any]) -> str | None:
    existing_image = raw_artist.get("image")
    if isinstance(existing_image, str) and existing_image:
        return existing_image

    images = raw_artist.get("images")
    if not isinstance(images, list):
        return None

    for image in images:
        if isinstance(image, dict):
            url = image.get("url")
            if isinstance(url, str) and url:
                return url

    return None


def normalize_artist(raw_artist: dict[str, Any] | None) -> ArtistRecord | None:
    if not isinstance(raw_artist, dict):
        return None

    artist_id = raw_artist.get("id")
    if not isinstance(artist_id, str) or not artist_id:
        return None

    popularity = raw_artist.get("popularity", 50)
    if isinstance(popularity, bool) or not isinstance(popularity, (int, float)):
        popularity = 50

    raw_genres = raw_artist.get("genres", [])
    genres: list[str] = []
    if isinstance(raw_genres, list):
        genres = [genre.strip() for genre in raw_genres if isinstance(genre, str) and genre.strip()]

    return ArtistRecord(
        id=artist_id,
        name=str(raw_artist.get("name") or "Unknown Artist"),
        popularity=max(0, min(100, int(popularity))),
        genres=tuple(genres),
        image=extract_image_url(raw_artist),
    )


def fetch_top_artists(
    sp: spotipy.Spotify,
    time_range: str = DEFAULT_TIME_RANGE,
    limit: int = TOP_ARTISTS_LIMIT,
) -> list[ArtistRecord]:
    if time_range not in TIME_RANGES:
        raise ValueError(f"Unknown time range: {time_range}")

    try:
        page = sp.current_user_top_artists(limit=limit, time_range=time_range)
    except SpotifyException as exc:
        raise UpstreamError(exc.http_status or 500, str(exc)) from exc

    items = page.get("items", []) if isinstance(page, dict) else []
    artists = [artist for artist in (normalize_artist(item) for item in items) if artist]
    return dedupe_artists(artists)


def load_top_artists(sp: spotipy.Spotify, time_range: str = DEFAULT_TIME_RANGE) -> list[ArtistRecord]:
    """Top artists, or an empty list when Spotify answers with an error."""
    try:
        return fetch_top_artists(sp, time_range)
    except UpstreamError as exc:
        logger.warning("Top artists request failed (%s): %s", exc.status, exc)
        return []


def load_artist_cache(time_range: str = DEFAULT_TIME_RANGE) -> list[ArtistRecord]:
    if not ARTIST_CACHE_PATH.exists():
        return []

    try:
        with ARTIST_CACHE_PATH.open("r", encoding="utf-8") as file:
            payload = json.load(file)
    except (json.JSONDecodeError, OSError):
        return []

    if not isinstance(payload, dict) or payload.get("time_range") != time_range:
        return []

    raw_artists = payload.get("artists", [])
    if not isinstance(raw_artists, list):
        return []

    return [artist for artist in (ArtistRecord.from_dict(entry) for entry in raw_artists) if artist]


def save_artist_cache(artists: list[ArtistRecord], time_range: str = DEFAULT_TIME_RANGE) -> None:
    payload = {
        "synced_at_utc": datetime.now(timezone.utc).isoformat(),
        "time_range": time_range,
        "artist_count": len(artists),
        "artists": [artist.to_dict() for artist in artists],
    }

    with ARTIST_CACHE_PATH.open("w", encoding="utf-8") as file:
        json.dump(payload, file)


def load_or_fetch_top_artists(
    sp: spotipy.Spotify,
    time_range: str = DEFAULT_TIME_RANGE,
    refresh: bool = False,
) -> list[ArtistRecord]:
    if not refresh:
        cached_artists = load_artist_cache(time_range)
        if cached_artists:
            print(f"Loaded {len(cached_artists)} artists from cache. Use --refresh to resync.")
            return cached_artists

    print(f"Fetching your top artists ({time_range}) from Spotify...")
    artists = load_top_artists(sp, time_range)
    if artists:
        save_artist_cache(artists, time_range)
        print(f"Saved {len(artists)} artists to {ARTIST_CACHE_PATH}.")
    return artists
