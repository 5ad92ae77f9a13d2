from __future__ import annotations

import json
import logging
import os
import threading
from typing import Iterable, Mapping

from msal_extensions import FilePersistence, FilePersistenceWithDataProtection
from msal_extensions.persistence import PersistenceNotFound

logger = logging.getLogger(__name__)

TOKEN_KEY = "token"
USERNAME_KEY = "username"
USER_DATA_KEY = "userData"
EXPIRES_AT_KEY = "expiresAt"

SESSION_KEYS = (TOKEN_KEY, USERNAME_KEY, USER_DATA_KEY, EXPIRES_AT_KEY)


class StorageError(RuntimeError):
    pass


class MemoryStore:
    """Process-local key/value store with the same surface as SessionStore."""

    def __init__(self, initial: Mapping[str, str] | None = None):
        self._items: dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get_item(self, key: str) -> str | None:
        with self._lock:
            return self._items.get(key)

    def set_items(self, items: Mapping[str, str]) -> None:
        with self._lock:
            self._items.update(items)

    def remove_items(self, keys: Iterable[str]) -> None:
        with self._lock:
            for key in keys:
                self._items.pop(key, None)

    def snapshot(self) -> dict[str, str]:
        with self._lock:
            return dict(self._items)


class SessionStore:
    """Session keys persisted as one JSON document.

    The document is encrypted at rest where the platform supports it and kept
    as a plain file otherwise.
    """

    def __init__(self, path: str):
        self._persistence = self._build_persistence(path)
        self._lock = threading.Lock()

    @staticmethod
    def _build_persistence(path: str):
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        try:
            return FilePersistenceWithDataProtection(path)
        except Exception:
            return FilePersistence(path)

    @property
    def location(self) -> str:
        return self._persistence.get_location()

    def get_item(self, key: str) -> str | None:
        with self._lock:
            return self._read().get(key)

    def set_items(self, items: Mapping[str, str]) -> None:
        with self._lock:
            document = self._read()
            document.update(items)
            self._write(document)

    def remove_items(self, keys: Iterable[str]) -> None:
        with self._lock:
            document = self._read()
            for key in keys:
                document.pop(key, None)
            self._write(document)

    def snapshot(self) -> dict[str, str]:
        with self._lock:
            return self._read()

    def _read(self) -> dict[str, str]:
        try:
            raw = self._persistence.load()
        except PersistenceNotFound:
            return {}
        except OSError as exc:
            raise StorageError(f"Unable to read session store: {exc}") from exc

        if not raw:
            return {}
        try:
            document = json.loads(raw)
        except ValueError as exc:
            raise StorageError("Session store is corrupt") from exc
        if not isinstance(document, dict):
            raise StorageError("Session store is corrupt")
        return {str(key): str(value) for key, value in document.items() if value is not None}

    def _write(self, document: dict[str, str]) -> None:
        try:
            self._persistence.save(json.dumps(document))
        except OSError as exc:
            raise StorageError(f"Unable to write session store: {exc}") from exc
        logger.debug("Session store written to %s", self.location)
