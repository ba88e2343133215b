import json
import random

import pytest

from cosmic_tunes.config import ROOM_CODE_ALPHABET
from cosmic_tunes.errors import RoomCapacityError
from cosmic_tunes.graph import build_graph
from cosmic_tunes.rooms import (
    Member,
    MemoryKeyValueStore,
    RoomStore,
    create_room,
    generate_code,
    merge_artists,
    parse_members,
    room_key,
)
from tests.support import FakeClock, make_artist


class FirstLetterRng:
    """Always picks the first alphabet entry, so every code collides."""

    def choice(self, seq):
        return seq[0]


class TestMemoryKeyValueStore:
    def test_keys_expire_after_ttl(self, clock: FakeClock) -> None:
        store = MemoryKeyValueStore(clock=clock)
        store.set("k", "v", ttl=10)

        clock.now += 9.5
        assert store.get("k") == "v"
        clock.now += 0.5
        assert store.get("k") is None

    def test_only_if_absent(self, clock: FakeClock) -> None:
        store = MemoryKeyValueStore(clock=clock)

        assert store.set("k", "first", ttl=10, only_if_absent=True)
        assert not store.set("k", "second", ttl=10, only_if_absent=True)
        assert store.get("k") == "first"

        clock.now += 11
        assert store.set("k", "third", ttl=10, only_if_absent=True)

    def test_expire_and_update_slide_the_ttl(self, clock: FakeClock) -> None:
        store = MemoryKeyValueStore(clock=clock)
        assert not store.expire("missing", 10)

        store.set("k", "1", ttl=10)
        clock.now += 8
        assert store.expire("k", 10)
        clock.now += 8
        assert store.update("k", lambda raw: raw + "2", ttl=10) == "12"
        clock.now += 8
        assert store.get("k") == "12"


class TestRoomStore:
    def test_sliding_ttl_from_last_write(self, rooms: RoomStore, clock: FakeClock) -> None:
        rooms.create_if_absent("AB12CD")
        rooms.upsert_member("AB12CD", Member("m1", "Ada"))

        clock.advance_hours(3)
        rooms.upsert_member("AB12CD", Member("m1", "Ada"))

        clock.advance_hours(3.9)
        assert [member.id for member in rooms.read_members("AB12CD")] == ["m1"]

        clock.advance_hours(0.1)
        assert rooms.read_members("AB12CD") == []

    def test_plain_reads_do_not_extend_ttl(self, rooms: RoomStore, clock: FakeClock) -> None:
        rooms.upsert_member("ROOM", Member("m1"))

        clock.advance_hours(3.5)
        assert rooms.read_members("ROOM") != []
        clock.advance_hours(0.5)
        assert rooms.read_members("ROOM") == []

    def test_touching_read_extends_ttl(self, rooms: RoomStore, clock: FakeClock) -> None:
        rooms.upsert_member("ROOM", Member("m1"))

        clock.advance_hours(3.5)
        rooms.read_members("ROOM", touch=True)
        clock.advance_hours(3.5)

        assert [member.id for member in rooms.read_members("ROOM")] == ["m1"]

    def test_create_on_existing_code_leaves_members(self, rooms: RoomStore) -> None:
        assert rooms.create_if_absent("QQQQQQ")
        rooms.upsert_member("QQQQQQ", Member("m1", "Ada", [make_artist("a")]))

        assert rooms.create_if_absent("QQQQQQ") is False
        assert [member.id for member in rooms.read_members("QQQQQQ")] == ["m1"]

    def test_upsert_keeps_arrival_order_and_replaces_by_id(self, rooms: RoomStore) -> None:
        rooms.upsert_member("ROOM", Member("m1", "Ada", [make_artist("a")]))
        rooms.upsert_member("ROOM", Member("m2", "Grace"))
        members = rooms.upsert_member("ROOM", Member("m1", "Ada L.", [make_artist("b")]))

        assert [(member.id, member.display_name) for member in members] == [("m1", "Ada L."), ("m2", "Grace")]
        assert [artist.id for artist in members[0].top_artists] == ["b"]
        assert rooms.read_members("ROOM") == members

    def test_codes_are_case_insensitive(self, rooms: RoomStore) -> None:
        rooms.upsert_member(" ab12cd ", Member("m1"))

        assert room_key("ab12cd") == "room:AB12CD"
        assert [member.id for member in rooms.read_members("AB12CD")] == ["m1"]

    def test_artists_are_capped_at_twenty(self, rooms: RoomStore) -> None:
        artists = [make_artist(f"a{i}") for i in range(25)]

        members = rooms.upsert_member("ROOM", Member("m1", top_artists=artists))

        assert len(members[0].top_artists) == 20

    def test_malformed_record_reads_as_empty_and_heals(self, rooms: RoomStore) -> None:
        rooms.store.set(room_key("BAD"), "{not json", ttl=100)
        assert rooms.read_members("BAD") == []

        members = rooms.upsert_member("BAD", Member("m1"))
        assert [member.id for member in members] == ["m1"]

    def test_missing_room_reads_as_empty(self, rooms: RoomStore) -> None:
        assert rooms.read_members("NOPE") == []


def test_parse_members_skips_bad_entries() -> None:
    raw = json.dumps([{"id": "m1", "topArtists": [{"id": "a"}, "junk"]}, {"displayName": "no id"}, 7])

    members = parse_members(raw)

    assert [member.id for member in members] == ["m1"]
    assert [artist.id for artist in members[0].top_artists] == ["a"]
    assert parse_members(json.dumps({"id": "m1"})) == []


class TestCodes:
    def test_generated_codes_use_unambiguous_alphabet(self) -> None:
        rng = random.Random(8)
        for _ in range(50):
            code = generate_code(rng)
            assert len(code) == 6
            assert set(code) <= set(ROOM_CODE_ALPHABET)
        assert not set("01IO") & set(ROOM_CODE_ALPHABET)

    def test_create_room_retries_then_gives_up(self, rooms: RoomStore) -> None:
        assert create_room(rooms, FirstLetterRng()) == "AAAAAA"

        with pytest.raises(RoomCapacityError):
            create_room(rooms, FirstLetterRng())

    def test_create_room_attempt_count(self) -> None:
        calls = []

        class FullRooms(RoomStore):
            def create_if_absent(self, code: str) -> bool:
                calls.append(code)
                return False

        with pytest.raises(RoomCapacityError):
            create_room(FullRooms(MemoryKeyValueStore()), random.Random(1))
        assert len(calls) == 8


class TestMerge:
    def test_first_occurrence_wins(self) -> None:
        members = [
            Member("m1", top_artists=[make_artist("x", name="First"), make_artist("y")]),
            Member("m2", top_artists=[make_artist("x", name="Second"), make_artist("z")]),
        ]

        merged = merge_artists(members)

        assert [artist.id for artist in merged] == ["x", "y", "z"]
        assert merged[0].name == "First"

    def test_group_scenario_merges_into_one_linked_pair(self, rooms: RoomStore) -> None:
        rooms.upsert_member("AB12CD", Member("m1", "One", [make_artist("a1", ["pop"])]))
        rooms.upsert_member("AB12CD", Member("m2", "Two", [make_artist("a1", ["pop"]), make_artist("a2", ["pop"])]))
        rooms.upsert_member("AB12CD", Member("m3", "Three", []))

        members = rooms.read_members("AB12CD")
        artists = merge_artists(members)
        graph = build_graph(artists)

        assert len(members) == 3
        assert [artist.id for artist in artists] == ["a1", "a2"]
        assert len(graph.edges) == 1
        assert graph.edges[0].weight == 1.0

    def test_member_wire_shape(self) -> None:
        member = Member("m1", "Ada", [make_artist("a", ["pop"])])

        assert member.to_dict() == {
            "id": "m1",
            "displayName": "Ada",
            "topArtists": [{"id": "a", "name": "A", "popularity": 60, "image": None, "genres": ["pop"]}],
        }
        assert Member.from_dict(member.to_dict()) == member
