"""Group-mode client: room HTTP calls and the publish/read polling loop."""

import logging
import threading
from collections.abc import Callable
from typing import Any

import requests

from .config import MEMBER_ARTIST_CAP, POLL_INTERVAL_SECONDS
from .errors import RoomCapacityError
from .graph import ArtistRecord
from .rooms import Member, normalize_code

logger = logging.getLogger(__name__)


class HttpRoomClient:
    """Calls the group routes; ``session`` may be any requests-like client."""

    def __init__(self, base_url: str = "", session: Any = None, timeout: float | None = 10) -> None:
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def _options(self) -> dict[str, Any]:
        return {"timeout": self.timeout} if self.timeout is not None else {}

    def create(self) -> str:
        response = self.session.post(f"{self.base_url}/group/create", **self._options())
        if response.status_code == 503:
            raise RoomCapacityError("Unable to allocate a room code. Please try again.")
        response.raise_for_status()
        return response.json()["code"]

    def publish(self, code: str, member: Member) -> int:
        response = self.session.post(
            f"{self.base_url}/group/publish",
            json={"code": code, "member": member.to_dict()},
            **self._options(),
        )
        response.raise_for_status()
        return int(response.json().get("size", 0))

    def get(self, code: str, touch: bool = False) -> list[Member]:
        params = {"code": code}
        if touch:
            params["touch"] = "1"
        response = self.session.get(f"{self.base_url}/group/get", params=params, **self._options())
        response.raise_for_status()
        members = [Member.from_dict(entry) for entry in response.json().get("members", [])]
        return [member for member in members if member]


class GroupPoller:
    """Periodically publishes this device's top artists and reads the merged room.

    One iteration is fetch -> publish -> read, in that order. Failures are
    logged and the loop carries on at the next interval. After ``stop`` no
    further results reach ``on_members``.
    """

    def __init__(
        self,
        code: str,
        member_id: str,
        fetch_artists: Callable[[], list[ArtistRecord]],
        client: HttpRoomClient,
        on_members: Callable[[list[Member]], None],
        display_name: str | None = None,
        interval: float = POLL_INTERVAL_SECONDS,
    ) -> None:
        self.code = normalize_code(code)
        self.member_id = member_id
        self.display_name = display_name
        self.fetch_artists = fetch_artists
        self.client = client
        self.on_members = on_members
        self.interval = interval
        self.cancelled = False
        self.iterations = 0
        self.failures = 0
        self._wake = threading.Event()
        self._thread: threading.Thread | None = None

    def poll_once(self) -> list[Member] | None:
        if self.cancelled:
            return None
        self.iterations += 1
        try:
            artists = self.fetch_artists()[:MEMBER_ARTIST_CAP]
            member = Member(id=self.member_id, display_name=self.display_name, top_artists=artists)
            self.client.publish(self.code, member)
            members = self.client.get(self.code)
        except Exception:
            self.failures += 1
            logger.exception("Group poll failed for room %s", self.code)
            return None

        if self.cancelled:
            logger.debug("Dropping late room response after stop")
            return None
        self.on_members(members)
        return members

    def _run(self) -> None:
        while not self.cancelled:
            self.poll_once()
            self._wake.wait(self.interval)

    def start(self) -> None:
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, name=f"group-poller-{self.code}", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        self.cancelled = True
        self._wake.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
