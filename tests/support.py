"""Helpers shared by several test modules."""

from cosmic_tunes.graph import ArtistRecord


class FakeClock:
    """Manually advanced clock in seconds."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance_hours(self, hours: float) -> None:
        self.now += hours * 3600


def make_artist(artist_id: str, genres=(), popularity: int = 60, name: str | None = None) -> ArtistRecord:
    return ArtistRecord(id=artist_id, name=name or artist_id.upper(), popularity=popularity, genres=tuple(genres))
