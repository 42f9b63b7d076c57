"""Persistent key-value storage backends for the local document cache.

A backend stores opaque strings under string keys.  It knows nothing about
documents or namespaces; serialization lives in the cache.  Backends let
their own errors propagate (``OSError``, ``LockTimeout``); the cache decides
how to degrade.
"""

from __future__ import annotations

import contextlib
import threading
from collections.abc import Generator
from pathlib import Path
from typing import ContextManager, Protocol
from urllib.parse import quote, unquote

from campussync.storage.fs import atomic_write
from campussync.storage.locks import storage_lock

_SUFFIX = ".json"


class StorageBackend(Protocol):
    """Minimal raw storage contract consumed by ``LocalDocumentCache``."""

    def read_raw(self, key: str) -> str | None: ...

    def write_raw(self, key: str, value: str) -> None: ...

    def delete_raw(self, key: str) -> None: ...

    def keys(self, prefix: str = "") -> list[str]: ...

    def lock(self, key: str) -> ContextManager[None]:
        """Serialize read-modify-write cycles on *key*."""
        ...


class MemoryStorage:
    """Dict-backed storage.  Thread-safe; nothing survives the process."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})
        self._mutex = threading.Lock()
        self._rmw = threading.RLock()

    def read_raw(self, key: str) -> str | None:
        with self._mutex:
            return self._data.get(key)

    def write_raw(self, key: str, value: str) -> None:
        with self._mutex:
            self._data[key] = value

    def delete_raw(self, key: str) -> None:
        with self._mutex:
            self._data.pop(key, None)

    def keys(self, prefix: str = "") -> list[str]:
        with self._mutex:
            return sorted(k for k in self._data if k.startswith(prefix))

    @contextlib.contextmanager
    def lock(self, key: str) -> Generator[None, None, None]:
        with self._rmw:
            yield


class FileStorage:
    """One file per key inside *directory*, written atomically.

    Keys are percent-encoded into file names, so any string is a valid key.
    Locks are ``filelock`` lock files in *locks_dir* (defaults to
    ``directory/.locks``) and therefore hold across processes.
    """

    def __init__(
        self,
        directory: Path,
        locks_dir: Path | None = None,
        lock_timeout: float = 10,
    ) -> None:
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self.locks_dir = Path(locks_dir) if locks_dir else self.directory / ".locks"
        self.locks_dir.mkdir(parents=True, exist_ok=True)
        self.lock_timeout = lock_timeout

    def read_raw(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def write_raw(self, key: str, value: str) -> None:
        atomic_write(self._path(key), value)

    def delete_raw(self, key: str) -> None:
        path = self._path(key)
        if path.exists():
            path.unlink()

    def keys(self, prefix: str = "") -> list[str]:
        found = []
        for path in self.directory.glob(f"*{_SUFFIX}"):
            key = unquote(path.name[: -len(_SUFFIX)])
            if key.startswith(prefix):
                found.append(key)
        return sorted(found)

    def lock(self, key: str) -> ContextManager[None]:
        return storage_lock(self.locks_dir, _encode(key), timeout=self.lock_timeout)

    def _path(self, key: str) -> Path:
        return self.directory / f"{_encode(key)}{_SUFFIX}"


def _encode(key: str) -> str:
    return quote(key, safe="")
