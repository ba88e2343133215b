"""Group rooms: TTL key-value storage, member snapshots, code allocation, merge."""

import json
import logging
import random
import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from .config import (
    MEMBER_ARTIST_CAP,
    ROOM_CODE_ALPHABET,
    ROOM_CODE_LENGTH,
    ROOM_CREATE_ATTEMPTS,
    ROOM_TTL_SECONDS,
)
from .errors import RoomCapacityError
from .graph import ArtistRecord, dedupe_artists

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class KeyValueStore(ABC):
    """String key-value storage where every key carries an expiry."""

    @abstractmethod
    def get(self, key: str) -> str | None:
        ...

    @abstractmethod
    def set(self, key: str, value: str, ttl: float, only_if_absent: bool = False) -> bool:
        """Store ``value`` for ``ttl`` seconds; returns False when ``only_if_absent`` and the key is live."""

    @abstractmethod
    def expire(self, key: str, ttl: float) -> bool:
        """Reset a live key's expiry; returns False when the key is absent."""

    @abstractmethod
    def update(self, key: str, change: Callable[[str | None], str], ttl: float) -> str:
        """Atomically rewrite one key from its current value and reset its expiry."""


class MemoryKeyValueStore(KeyValueStore):
    """Process-local store; expired keys are dropped lazily on access."""

    def __init__(self, clock: Clock = time.monotonic) -> None:
        self.clock = clock
        self._items: dict[str, tuple[str, float]] = {}
        self._lock = threading.Lock()

    def _live(self, key: str) -> tuple[str, float] | None:
        item = self._items.get(key)
        if item is None:
            return None
        if item[1] <= self.clock():
            del self._items[key]
            return None
        return item

    def get(self, key: str) -> str | None:
        with self._lock:
            item = self._live(key)
            return item[0] if item else None

    def set(self, key: str, value: str, ttl: float, only_if_absent: bool = False) -> bool:
        with self._lock:
            if only_if_absent and self._live(key) is not None:
                return False
            self._items[key] = (value, self.clock() + ttl)
            return True

    def expire(self, key: str, ttl: float) -> bool:
        with self._lock:
            item = self._live(key)
            if item is None:
                return False
            self._items[key] = (item[0], self.clock() + ttl)
            return True

    def update(self, key: str, change: Callable[[str | None], str], ttl: float) -> str:
        with self._lock:
            item = self._live(key)
            value = change(item[0] if item else None)
            self._items[key] = (value, self.clock() + ttl)
            return value


@dataclass
class Member:
    id: str
    display_name: str | None = None
    top_artists: list[ArtistRecord] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "displayName": self.display_name,
            "topArtists": [artist.to_dict() for artist in self.top_artists],
        }

    @classmethod
    def from_dict(cls, payload: Any) -> "Member | None":
        if not isinstance(payload, dict):
            return None
        member_id = payload.get("id")
        if not isinstance(member_id, str) or not member_id:
            return None

        display_name = payload.get("displayName")
        raw_artists = payload.get("topArtists") or []
        artists: list[ArtistRecord] = []
        if isinstance(raw_artists, list):
            for entry in raw_artists:
                artist = ArtistRecord.from_dict(entry)
                if artist:
                    artists.append(artist)

        return cls(
            id=member_id,
            display_name=display_name if isinstance(display_name, str) and display_name else None,
            top_artists=artists[:MEMBER_ARTIST_CAP],
        )


def normalize_code(code: str) -> str:
    return code.strip().upper()


def room_key(code: str) -> str:
    return f"room:{normalize_code(code)}"


def parse_members(raw: str | None) -> list[Member]:
    """Decode a stored room record; anything unreadable counts as an empty room."""
    if not raw:
        return []
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Discarding malformed room record")
        return []
    if not isinstance(payload, list):
        logger.warning("Discarding room record with unexpected shape: %s", type(payload).__name__)
        return []

    members: list[Member] = []
    for entry in payload:
        member = Member.from_dict(entry)
        if member:
            members.append(member)
    return members


def dump_members(members: Iterable[Member]) -> str:
    return json.dumps([member.to_dict() for member in members])


class RoomStore:
    """Room operations on top of a key-value store with a sliding TTL."""

    def __init__(self, store: KeyValueStore, ttl: float = ROOM_TTL_SECONDS) -> None:
        self.store = store
        self.ttl = ttl

    def create_if_absent(self, code: str) -> bool:
        return self.store.set(room_key(code), "[]", self.ttl, only_if_absent=True)

    def upsert_member(self, code: str, member: Member) -> list[Member]:
        """Insert or replace ``member`` by id, keeping arrival order, and refresh the TTL."""
        member = Member(member.id, member.display_name, member.top_artists[:MEMBER_ARTIST_CAP])
        result: list[Member] = []

        def change(raw: str | None) -> str:
            members = parse_members(raw)
            for index, existing in enumerate(members):
                if existing.id == member.id:
                    members[index] = member
                    break
            else:
                members.append(member)
            result[:] = members
            return dump_members(members)

        self.store.update(room_key(code), change, self.ttl)
        return result

    def read_members(self, code: str, touch: bool = False) -> list[Member]:
        """Members of a live room, or [] when missing or expired."""
        key = room_key(code)
        members = parse_members(self.store.get(key))
        if touch:
            self.store.expire(key, self.ttl)
        return members


def generate_code(rng: random.Random | None = None, length: int = ROOM_CODE_LENGTH) -> str:
    rng = rng or random.SystemRandom()
    return "".join(rng.choice(ROOM_CODE_ALPHABET) for _ in range(length))


def create_room(
    rooms: RoomStore,
    rng: random.Random | None = None,
    attempts: int = ROOM_CREATE_ATTEMPTS,
) -> str:
    """Allocate a fresh code, retrying on collision a bounded number of times."""
    for attempt in range(attempts):
        code = generate_code(rng)
        if rooms.create_if_absent(code):
            return code
        logger.info("Room code collision on attempt %d", attempt + 1)
    raise RoomCapacityError("Unable to allocate a room code. Please try again.")


def merge_artists(members: Iterable[Member]) -> list[ArtistRecord]:
    """Union of every member's artists in read order, first occurrence of an id wins."""
    return dedupe_artists(artist for member in members for artist in member.top_artists)
