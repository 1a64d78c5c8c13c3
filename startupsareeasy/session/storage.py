"""Persistent key-value storage for session tokens, synchronized across contexts."""

import json
import logging
import os
import tempfile
from collections import defaultdict
from collections.abc import Callable
from pathlib import Path
from typing import Protocol

from startupsareeasy.session.broadcast import BroadcastChannel, BroadcastHub, Message

logger = logging.getLogger(__name__)

CHANNEL_NAME = "storage"


class StorageKeys:
    ACCESS_TOKEN = "sb-access-token"
    REFRESH_TOKEN = "sb-refresh-token"
    USER_DATA = "sb-user"
    LOGIN_COMPLETE = "telegram-login-complete"
    AUTH_RELOAD_PENDING = "auth-reload-pending"
    LOGOUT_IN_PROGRESS = "logout-in-progress"
    PENDING_LOGIN_TOKEN = "pending_login_token"
    LOGIN_STARTED_AT = "login_started_at"


AUTH_KEYS = (
    StorageKeys.ACCESS_TOKEN,
    StorageKeys.REFRESH_TOKEN,
    StorageKeys.USER_DATA,
    StorageKeys.LOGIN_COMPLETE,
    StorageKeys.AUTH_RELOAD_PENDING,
    StorageKeys.LOGOUT_IN_PROGRESS,
    StorageKeys.PENDING_LOGIN_TOKEN,
    StorageKeys.LOGIN_STARTED_AT,
)

# Keys managed by the hosted platform's own client libraries
RESERVED_PREFIXES = ("supabase.", "sb-")


class StorageBackend(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...

    def keys(self) -> list[str]: ...


class MemoryBackend:
    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


class JsonFileBackend:
    """Stores all keys in a single JSON object on disk.

    The file is re-read on every access so that several processes sharing it
    see each other's writes; the last writer wins. Listeners only fire for
    changes made through a store on the same ``BroadcastHub``, so another
    process's writes are picked up on read, not pushed.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        with self.path.open("r", encoding="utf-8") as fh:
            data = json.load(fh)
        if not isinstance(data, dict):
            raise ValueError(f"Storage file {self.path} does not hold an object")
        return data

    def _dump(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".storage-")
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(data, fh)
        os.replace(tmp, self.path)

    def get(self, key: str) -> str | None:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._dump(data)

    def delete(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._dump(data)

    def keys(self) -> list[str]:
        return list(self._load())


class TokenStore:
    """Session storage for one context.

    Every mutation is broadcast to the other contexts on the same hub; their
    listeners for the key receive the new value (``None`` for a removal). The
    writing context's own listeners are not called for its own writes.
    Storage failures are logged and swallowed: a failed write leaves the
    session as if the value had never been stored.
    """

    def __init__(self, backend: StorageBackend | None = None, hub: BroadcastHub | None = None):
        self.backend = backend if backend is not None else MemoryBackend()
        self._listeners: dict[str, list[Callable[[str | None], None]]] = defaultdict(list)
        self._channel: BroadcastChannel | None = None
        if hub is not None:
            self._channel = hub.open(CHANNEL_NAME)
            self._channel.subscribe(self._on_message)

    def _on_message(self, message: Message) -> None:
        key = message.payload.get("key")
        if not key:
            return
        for callback in list(self._listeners.get(key, ())):
            try:
                callback(message.payload.get("value"))
            except Exception:
                logger.exception("Error in storage listener for %s", key)

    def _notify(self, key: str, value: str | None) -> None:
        if self._channel is not None:
            self._channel.post({"key": key, "value": value})

    def set_item(self, key: str, value: str) -> bool:
        try:
            self.backend.set(key, value)
        except Exception:
            logger.exception("Storage: failed to set %s", key)
            return False
        logger.debug("Storage: set %s", key)
        self._notify(key, value)
        return True

    def get_item(self, key: str) -> str | None:
        try:
            return self.backend.get(key)
        except Exception:
            logger.exception("Storage: failed to get %s", key)
            return None

    def remove_item(self, key: str) -> bool:
        try:
            self.backend.delete(key)
        except Exception:
            logger.exception("Storage: failed to remove %s", key)
            return False
        logger.debug("Storage: removed %s", key)
        self._notify(key, None)
        return True

    def add_listener(self, key: str, callback: Callable[[str | None], None]) -> Callable[[], None]:
        self._listeners[key].append(callback)

        def remove() -> None:
            listeners = self._listeners.get(key)
            if listeners and callback in listeners:
                listeners.remove(callback)

        return remove

    def clear_auth_storage(self) -> None:
        for key in AUTH_KEYS:
            self.remove_item(key)

        try:
            remaining = self.backend.keys()
        except Exception:
            logger.exception("Storage: failed to list keys")
            remaining = []
        for key in remaining:
            if key.startswith(RESERVED_PREFIXES):
                self.remove_item(key)

        logger.info("Storage: cleared all auth-related storage")

    def is_available(self) -> bool:
        probe = "__storage_test__"
        try:
            self.backend.set(probe, "test")
            self.backend.delete(probe)
            return True
        except Exception:
            return False

    def close(self) -> None:
        if self._channel is not None:
            self._channel.close()
            self._channel = None
