import itertools
import random

import pytest

from cosmic_tunes.config import DEFAULT_NODE_COLOR, GENRE_COLORS
from cosmic_tunes.graph import ArtistRecord, build_graph, dedupe_artists, genre_color, similarity
from tests.support import make_artist


def test_edge_exists_iff_overlap_ratio_exceeds_threshold() -> None:
    artists = [
        make_artist("a", ["pop", "dance pop", "electropop"]),
        make_artist("b", ["pop"]),
        make_artist("c", ["rock"]),
        make_artist("d", ["pop", "rock", "x1", "x2", "x3", "x4", "x5", "x6", "x7", "x8", "x9"]),
        make_artist("e", []),
    ]
    graph = build_graph(artists, rng=random.Random(1))
    edges = {frozenset((edge.source, edge.target)): edge.weight for edge in graph.edges}

    for first, second in itertools.combinations(artists, 2):
        shared = len(set(first.genres) & set(second.genres))
        ratio = shared / min(len(first.genres) or 1, len(second.genres) or 1)
        key = frozenset((first.id, second.id))
        if shared >= 1 and ratio > 0.1:
            assert edges[key] == pytest.approx(ratio)
        else:
            assert key not in edges


def test_ratio_at_threshold_is_not_an_edge() -> None:
    ten_tags = [f"g{i}" for i in range(10)]
    artists = [make_artist("a", ten_tags), make_artist("b", ten_tags[:1] + [f"h{i}" for i in range(9)])]
    # 1 shared / min(10, 10) == 0.1 exactly.
    assert build_graph(artists).edges == []


def test_no_self_edges_even_with_duplicate_ids() -> None:
    artists = [make_artist("a", ["pop"]), make_artist("a", ["pop"], name="Other"), make_artist("b", ["pop"])]
    graph = build_graph(artists)

    assert [node.id for node in graph.nodes] == ["a", "b"]
    assert graph.nodes[0].artist.name == "A"
    assert all(edge.source != edge.target for edge in graph.edges)
    assert len(graph.edges) == 1


def test_artist_without_genres_gets_default_color_and_no_edges() -> None:
    graph = build_graph([make_artist("lonely", []), make_artist("b", ["pop"])])

    lonely = graph.nodes[0]
    assert lonely.color == DEFAULT_NODE_COLOR
    assert graph.edges == []
    assert graph.degree() == {"lonely": 0, "b": 0}


def test_similarity_uses_smaller_tag_set() -> None:
    assert similarity(("pop",), ("pop", "rock")) == 1.0
    assert similarity(("a", "b", "c", "d"), ("a", "x")) == 0.5
    assert similarity((), ("pop",)) == 0.0


def test_genre_color_matches_substring_case_insensitively() -> None:
    assert genre_color(["indie rock"]) == GENRE_COLORS["Rock"]
    assert genre_color(["unknown", "K-POP"]) == GENRE_COLORS["Pop"]
    assert genre_color(["vaporwave"]) == DEFAULT_NODE_COLOR


def test_nodes_get_wobble_and_initial_positions() -> None:
    graph = build_graph([make_artist("a", ["pop"]), make_artist("b", ["pop"])], rng=random.Random(7))

    for node in graph.nodes:
        assert 0 <= node.x < 1000 and 0 <= node.y < 1000
        assert 0.4 <= node.wobble.speed < 1.0
        assert 2 <= node.wobble.radius < 5
        assert node.fx is None and node.fy is None

    node = graph.nodes[0]
    dx, dy = node.wobble.offset(3.0)
    assert dx * dx + dy * dy == pytest.approx(node.wobble.radius**2)
    assert node.display_position(3.0) == pytest.approx((node.x + dx, node.y + dy))


def test_dedupe_keeps_first_occurrence() -> None:
    first = make_artist("x", ["pop"], name="First")
    second = make_artist("x", ["rock"], name="Second")

    assert dedupe_artists([first, make_artist("y"), second]) == [first, make_artist("y")]


def test_artist_record_from_dict_tolerates_partial_rows() -> None:
    record = ArtistRecord.from_dict({"id": "a1", "name": "Alpha", "genres": ["Pop", 3, ""], "popularity": "high"})

    assert record == ArtistRecord(id="a1", name="Alpha", popularity=50, genres=("Pop",), image=None)
    assert ArtistRecord.from_dict({"name": "no id"}) is None
    assert ArtistRecord.from_dict("garbage") is None
    assert record.spotify_url == "https://open.spotify.com/artist/a1"
    assert record.to_dict() == {"id": "a1", "name": "Alpha", "popularity": 50, "image": None, "genres": ["Pop"]}
