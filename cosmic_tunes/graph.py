"""Artist similarity graph: records, nodes, edges, and the pairwise builder."""

import math
import random
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from .config import (
    DEFAULT_NODE_COLOR,
    EDGE_THRESHOLD,
    GENRE_COLORS,
    INITIAL_SPREAD,
    SPOTIFY_ARTIST_URL,
)


@dataclass(frozen=True)
class ArtistRecord:
    """One artist as returned by the catalog; never mutated after fetch."""

    id: str
    name: str
    popularity: int = 50
    genres: tuple[str, ...] = ()
    image: str | None = None

    @property
    def spotify_url(self) -> str:
        return SPOTIFY_ARTIST_URL.format(artist_id=self.id)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the shape shared members publish into a room."""
        return {
            "id": self.id,
            "name": self.name,
            "popularity": self.popularity,
            "image": self.image,
            "genres": list(self.genres),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "ArtistRecord | None":
        """Parse a room/cache entry, returning None for unusable rows."""
        if not isinstance(payload, dict):
            return None

        artist_id = payload.get("id")
        if not isinstance(artist_id, str) or not artist_id:
            return None

        popularity = payload.get("popularity")
        if isinstance(popularity, bool) or not isinstance(popularity, (int, float)):
            popularity = 50

        raw_genres = payload.get("genres") or []
        genres = tuple(genre for genre in raw_genres if isinstance(genre, str) and genre) if isinstance(raw_genres, list) else ()

        image = payload.get("image")
        return cls(
            id=artist_id,
            name=str(payload.get("name") or "Unknown Artist"),
            popularity=int(popularity),
            genres=genres,
            image=image if isinstance(image, str) and image else None,
        )


@dataclass
class Wobble:
    """Idle orbit used only at render time."""

    phase: float
    speed: float
    radius: float

    def offset(self, t: float) -> tuple[float, float]:
        angle = self.speed * t + self.phase
        return math.cos(angle) * self.radius, math.sin(angle) * self.radius


@dataclass(eq=False)
class GraphNode:
    artist: ArtistRecord
    color: int
    x: float = 0.0
    y: float = 0.0
    vx: float = 0.0
    vy: float = 0.0
    fx: float | None = None
    fy: float | None = None
    wobble: Wobble = field(default_factory=lambda: Wobble(0.0, 0.0, 0.0))

    @property
    def id(self) -> str:
        return self.artist.id

    @property
    def pinned(self) -> bool:
        return self.fx is not None and self.fy is not None

    def display_position(self, t: float) -> tuple[float, float]:
        dx, dy = self.wobble.offset(t)
        return self.x + dx, self.y + dy


@dataclass(frozen=True)
class GraphEdge:
    source: str
    target: str
    weight: float


@dataclass
class Graph:
    nodes: list[GraphNode]
    edges: list[GraphEdge]

    def degree(self) -> dict[str, int]:
        degrees = {node.id: 0 for node in self.nodes}
        for edge in self.edges:
            degrees[edge.source] = degrees.get(edge.source, 0) + 1
            degrees[edge.target] = degrees.get(edge.target, 0) + 1
        return degrees


def genre_color(genres: Iterable[str]) -> int:
    """Color of the first genre that contains a known genre key."""
    for genre in genres:
        lowered = genre.lower()
        for key, color in GENRE_COLORS.items():
            if key.lower() in lowered:
                return color
    return DEFAULT_NODE_COLOR


def similarity(genres_a: tuple[str, ...], genres_b: tuple[str, ...]) -> float:
    """Overlap ratio: shared tags over the smaller tag set (empty counts as 1)."""
    shared = len(set(genres_a) & set(genres_b))
    if shared == 0:
        return 0.0
    return shared / min(len(genres_a) or 1, len(genres_b) or 1)


def build_edges(artists: list[ArtistRecord], threshold: float = EDGE_THRESHOLD) -> list[GraphEdge]:
    edges: list[GraphEdge] = []
    for i, artist_a in enumerate(artists):
        for artist_b in artists[i + 1 :]:
            if artist_a.id == artist_b.id:
                continue
            weight = similarity(artist_a.genres, artist_b.genres)
            if weight > threshold:
                edges.append(GraphEdge(source=artist_a.id, target=artist_b.id, weight=weight))
    return edges


def dedupe_artists(artists: Iterable[ArtistRecord]) -> list[ArtistRecord]:
    """Drop repeated artist ids, keeping the first occurrence."""
    seen_ids: set[str] = set()
    unique: list[ArtistRecord] = []
    for artist in artists:
        if artist.id in seen_ids:
            continue
        seen_ids.add(artist.id)
        unique.append(artist)
    return unique


def build_graph(
    artists: Iterable[ArtistRecord],
    rng: random.Random | None = None,
    threshold: float = EDGE_THRESHOLD,
) -> Graph:
    """Turn artist records into colored, randomly placed nodes plus similarity edges."""
    rng = rng or random.Random()
    unique = dedupe_artists(artists)

    nodes = [
        GraphNode(
            artist=artist,
            color=genre_color(artist.genres),
            x=rng.random() * INITIAL_SPREAD,
            y=rng.random() * INITIAL_SPREAD,
            wobble=Wobble(
                phase=rng.random() * math.pi * 2,
                speed=0.4 + rng.random() * 0.6,
                radius=2 + rng.random() * 3,
            ),
        )
        for artist in unique
    ]
    return Graph(nodes=nodes, edges=build_edges(unique, threshold))
