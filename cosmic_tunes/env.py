"""Environment configuration: `.env` seeding and typed lookups."""

import os
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class SpotifyCredentials:
    client_id: str
    client_secret: str
    redirect_uri: str | None = None


def parse_env_line(raw_line: str) -> tuple[str, str] | None:
    """Split one KEY=VALUE row, or return None for comments and malformed rows."""
    line = raw_line.strip()
    if line.startswith("export "):
        line = line[len("export ") :].lstrip()
    if not line or line.startswith("#") or "=" not in line:
        return None

    key, value = line.split("=", 1)
    key = key.strip()
    if not key:
        return None
    return key, value.strip().strip("'\"")


def load_env_file(path: Path = Path(".env")) -> int:
    """Seed the process environment from a .env file and return how many keys were applied.

    Variables already exported by the shell are left alone.
    """
    if not path.exists():
        return 0

    applied = 0
    with path.open("r", encoding="utf-8") as env_file:
        for raw_line in env_file:
            pair = parse_env_line(raw_line)
            if pair is None or pair[0] in os.environ:
                continue
            os.environ[pair[0]] = pair[1]
            applied += 1
    return applied


def get_required_env(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise RuntimeError(f"Missing required environment variable: {name} (set it in the shell or in .env)")
    return value


def get_env(name: str, default: str) -> str:
    """Optional variable; blank counts as unset."""
    return os.getenv(name) or default


def spotify_credentials(require_redirect: bool = True) -> SpotifyCredentials:
    """App credentials for the Spotify authorization-code flow."""
    redirect_uri = get_required_env("SPOTIPY_REDIRECT_URI") if require_redirect else os.getenv("SPOTIPY_REDIRECT_URI")
    return SpotifyCredentials(
        client_id=get_required_env("SPOTIPY_CLIENT_ID"),
        client_secret=get_required_env("SPOTIPY_CLIENT_SECRET"),
        redirect_uri=redirect_uri or None,
    )
