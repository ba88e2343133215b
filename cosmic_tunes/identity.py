"""Stable per-device participant id for group sessions."""

import json
import logging
import uuid
from abc import ABC, abstractmethod
from pathlib import Path

from .config import DEVICE_ID_PATH

logger = logging.getLogger(__name__)

DEVICE_ID_KEY = "ct_client_id"


class IdentityStore(ABC):
    @abstractmethod
    def get(self, key: str) -> str | None:
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        ...


class MemoryIdentityStore(IdentityStore):
    def __init__(self) -> None:
        self._values: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value


class JsonFileIdentityStore(IdentityStore):
    """Small JSON object on disk, rewritten on every set."""

    def __init__(self, path: Path = DEVICE_ID_PATH) -> None:
        self.path = path

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as file:
                payload = json.load(file)
        except (json.JSONDecodeError, OSError):
            return {}
        return payload if isinstance(payload, dict) else {}

    def get(self, key: str) -> str | None:
        value = self._load().get(key)
        return value if isinstance(value, str) and value else None

    def set(self, key: str, value: str) -> None:
        payload = self._load()
        payload[key] = value
        with self.path.open("w", encoding="utf-8") as file:
            json.dump(payload, file)


def get_or_create_device_id(store: IdentityStore) -> str:
    """Return the stored device id, creating and persisting one on first use."""
    existing = store.get(DEVICE_ID_KEY)
    if existing:
        return existing

    device_id = str(uuid.uuid4())
    try:
        store.set(DEVICE_ID_KEY, device_id)
    except OSError:
        # Unwritable storage still yields a usable id for this run.
        logger.warning("Could not persist device id; using a temporary one")
    return device_id
