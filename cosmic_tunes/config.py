"""Shared configuration constants used across the application."""

from dataclasses import dataclass
from pathlib import Path

# Spotify OAuth scopes needed for reading top artists.
SCOPE = "user-top-read user-library-read playlist-read-private"

# Local file paths for auth token caching, artist cache, and device identity.
TOKEN_CACHE_PATH = Path(".spotifycache")
ARTIST_CACHE_PATH = Path("top_artists.json")
DEVICE_ID_PATH = Path(".cosmic_tunes_device.json")

# Upstream catalog.
TOP_ARTISTS_LIMIT = 30
DEFAULT_TIME_RANGE = "medium_term"
TIME_RANGES = ("short_term", "medium_term", "long_term")
SPOTIFY_ARTIST_URL = "https://open.spotify.com/artist/{artist_id}"

# Genre tag -> display color. First genre containing a key (case-insensitive) wins.
GENRE_COLORS: dict[str, int] = {
    "Pop": 0xFF69B4,
    "Electro": 0x00FFFF,
    "Rock": 0xFF4500,
    "Metal": 0x808080,
    "R&B": 0x9370DB,
    "Jazz": 0x8A2BE2,
    "Breakcore": 0x4682B4,
    "Shoegaze": 0x6A5ACD,
    "Trance": 0xADD8E6,
    "Soul": 0x90EE90,
    "House": 0xFFFF00,
    "Folk": 0xFFEFD5,
    "Thrash": 0xDAA520,
    "jazz rap": 0x98FF98,
    "jazz fusion": 0x3CB371,
    "japanese classical": 0xDA70D6,
    "anime": 0xFFB6C1,
    "Chillhop": 0x5F9EA0,
    "Hardcore": 0xFF0000,
    "Electronic": 0x00FF7F,
    "Dream Pop": 0x4169E1,
    "Hip Hop": 0xFF8C00,
    "Rap": 0x008000,
}
DEFAULT_NODE_COLOR = 0xFFFFFF
LEGEND_SIZE = 6

# Similarity graph.
EDGE_THRESHOLD = 0.1
INITIAL_SPREAD = 1000.0

# Force layout tuning (empirical, chosen for visual appeal).
LINK_DISTANCE = 150.0
LINK_STRENGTH_SCALE = 0.8
CHARGE_STRENGTH = -1500.0
CHARGE_DISTANCE_MAX = 800.0
CENTER_SPRING_STRENGTH = 0.05
DRAG_ALPHA_TARGET = 0.1
ALPHA_MIN = 0.001
VELOCITY_DECAY = 0.4

# Rendering.
BACKGROUND_COLOR = 0x0F0B1C
LINK_COLOR = 0x63D4F1
NEBULA_COLOR = 0x8B5CF6
NEBULA_BLUR = 30
NODE_MIN_RADIUS = 5.0
NODE_MAX_RADIUS = 25.0
STAR_COUNT = 600
SHOOTING_STAR_COOLDOWN = 1.5
SHOOTING_STAR_CHANCE = 0.008
SHOOTING_STAR_MARGIN = 100.0
STARFIELD_PARALLAX = 0.2
SHOOTING_STAR_PARALLAX = 0.35
FRAME_SECONDS = 1 / 60

# Camera.
ZOOM_STEP = 1.1
MIN_ZOOM = 0.2
MAX_ZOOM = 3.0

# Group rooms.
ROOM_TTL_SECONDS = 60 * 60 * 4
ROOM_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
ROOM_CODE_LENGTH = 6
ROOM_CREATE_ATTEMPTS = 8
MEMBER_ARTIST_CAP = 20
POLL_INTERVAL_SECONDS = 5.0
DEFAULT_SERVER_URL = "http://127.0.0.1:8000"

# Terminal output.
MAX_TERMINAL_WIDTH = 110


@dataclass(frozen=True)
class ForceSettings:
    """Force layout parameters; defaults are the tuned constants above."""

    link_distance: float = LINK_DISTANCE
    link_strength_scale: float = LINK_STRENGTH_SCALE
    charge_strength: float = CHARGE_STRENGTH
    charge_distance_max: float = CHARGE_DISTANCE_MAX
    center_strength: float = CENTER_SPRING_STRENGTH
    drag_alpha_target: float = DRAG_ALPHA_TARGET
    alpha_min: float = ALPHA_MIN
    velocity_decay: float = VELOCITY_DECAY


@dataclass(frozen=True)
class EffectSettings:
    """Background animation parameters."""

    star_count: int = STAR_COUNT
    shooting_star_cooldown: float = SHOOTING_STAR_COOLDOWN
    shooting_star_chance: float = SHOOTING_STAR_CHANCE
    shooting_star_margin: float = SHOOTING_STAR_MARGIN
    starfield_parallax: float = STARFIELD_PARALLAX
    shooting_star_parallax: float = SHOOTING_STAR_PARALLAX
    nebula_blur: int = NEBULA_BLUR
