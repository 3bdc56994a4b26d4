import json
import logging
import os
import re
import threading
from typing import Any, Callable, Dict, List, Optional

from trivia_cms.core.config import device_data_dir
from trivia_cms.storage.json_store import atomic_write_json

logger = logging.getLogger(__name__)

_KEY_REGEX = re.compile(r"^[A-Za-z0-9_.-]+$")


class DeviceStore:
    """
    Device-local key -> JSON blob store, one file per key.

    Reads never fail: a missing key or an unreadable payload is reported as
    the empty value and logged. Writes go through an atomic replace and are
    serialized per key.
    """

    # PUBLIC_INTERFACE
    def __init__(self, directory: Optional[str] = None) -> None:
        self.directory = os.path.abspath(directory or device_data_dir())
        os.makedirs(self.directory, exist_ok=True)
        self._locks: Dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    def lock(self, key: str) -> threading.RLock:
        """Return the lock serializing writes to `key`."""
        with self._locks_guard:
            if key not in self._locks:
                self._locks[key] = threading.RLock()
            return self._locks[key]

    def _path(self, key: str) -> str:
        if not _KEY_REGEX.match(key):
            raise ValueError(f"Invalid store key: {key!r}")
        return os.path.join(self.directory, f"{key}.json")

    def _read(self, key: str) -> Any:
        path = self._path(key)
        if not os.path.exists(path):
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning("Failed to load %r from device store: %s", key, e)
            return None

    # PUBLIC_INTERFACE
    def get_all(self, key: str) -> List[Any]:
        """Return the list stored under `key`, or [] when missing or corrupt."""
        value = self._read(key)
        if value is None:
            return []
        if not isinstance(value, list):
            logger.warning("Device store key %r does not hold a list; treating as empty", key)
            return []
        return value

    # PUBLIC_INTERFACE
    def set_all(self, key: str, items: List[Any]) -> None:
        """Replace the list stored under `key`."""
        with self.lock(key):
            atomic_write_json(self._path(key), list(items))

    # PUBLIC_INTERFACE
    def update(self, key: str, fn: Callable[[List[Any]], List[Any]]) -> List[Any]:
        """
        Read-modify-write the list under `key` while holding its lock.

        Returns:
            list: The list before the update, for callers that need to undo it.
        """
        with self.lock(key):
            previous = self.get_all(key)
            self.set_all(key, fn(list(previous)))
            return previous

    # PUBLIC_INTERFACE
    def get_blob(self, key: str) -> Optional[Dict[str, Any]]:
        """Return the object stored under `key`, or None when missing or corrupt."""
        value = self._read(key)
        if value is not None and not isinstance(value, dict):
            logger.warning("Device store key %r does not hold an object; ignoring", key)
            return None
        return value

    # PUBLIC_INTERFACE
    def set_blob(self, key: str, value: Dict[str, Any]) -> None:
        with self.lock(key):
            atomic_write_json(self._path(key), value)

    # PUBLIC_INTERFACE
    def remove(self, key: str) -> None:
        """Delete the value stored under `key`, if any."""
        with self.lock(key):
            path = self._path(key)
            if os.path.exists(path):
                os.remove(path)
