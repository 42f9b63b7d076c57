"""Remote document store contract and the two bundled implementations.

The sync engine only depends on ``RemoteDocumentStore``.  A production app
plugs in an adapter for its cloud database; ``FileRemoteStore`` shares a
directory between devices and ``MemoryRemoteStore`` backs tests and demos.
"""

from __future__ import annotations

import copy
import json
import threading
from collections.abc import Sequence
from pathlib import Path
from typing import NamedTuple, Protocol
from urllib.parse import quote, unquote

from campussync.remote.query import apply_constraints
from campussync.storage.fs import atomic_write
from campussync.storage.locks import LockTimeout, storage_lock


class RemoteDocument(NamedTuple):
    id: str
    fields: dict


class RemoteStoreError(Exception):
    """Transport or permission failure talking to the remote store.

    Always treated as retryable by the sync engine.
    """


class RemoteDocumentStore(Protocol):
    def get(self, collection: str, doc_id: str) -> dict | None: ...

    def set(self, collection: str, doc_id: str, fields: dict, *, merge: bool = True) -> None:
        """Write a document.  ``merge=True`` keeps fields not in *fields*."""
        ...

    def query(
        self, collection: str, constraints: Sequence[object] = ()
    ) -> list[RemoteDocument]: ...


class MemoryRemoteStore:
    """In-process remote store that records calls and can simulate faults.

    ``calls`` lists ``(operation, collection, doc_id)`` tuples in call order
    (``doc_id`` is ``None`` for queries).
    """

    def __init__(self, initial: dict[str, dict[str, dict]] | None = None) -> None:
        self._collections: dict[str, dict[str, dict]] = copy.deepcopy(initial or {})
        self._lock = threading.Lock()
        self.calls: list[tuple[str, str, str | None]] = []
        self.online = True
        self._failing_writes: set[tuple[str, str]] = set()
        self._failing_queries: set[str] = set()

    # -- fault injection ------------------------------------------------

    def fail_writes(self, collection: str, *doc_ids: str) -> None:
        """Make ``set`` raise for the given documents until ``heal()``."""
        self._failing_writes.update((collection, d) for d in doc_ids)

    def fail_queries(self, collection: str) -> None:
        """Make ``query`` raise for *collection* until ``heal()``."""
        self._failing_queries.add(collection)

    def heal(self) -> None:
        self._failing_writes.clear()
        self._failing_queries.clear()
        self.online = True

    # -- direct access (bypasses call recording) --------------------------

    def put(self, collection: str, doc_id: str, fields: dict) -> None:
        """Replace a document as another client would."""
        with self._lock:
            self._collections.setdefault(collection, {})[doc_id] = copy.deepcopy(fields)

    def documents(self, collection: str) -> dict[str, dict]:
        """Return a copy of every document in *collection*."""
        with self._lock:
            return copy.deepcopy(self._collections.get(collection, {}))

    # -- RemoteDocumentStore ----------------------------------------------

    def get(self, collection: str, doc_id: str) -> dict | None:
        self._record("get", collection, doc_id)
        self._check_online()
        with self._lock:
            fields = self._collections.get(collection, {}).get(doc_id)
            return copy.deepcopy(fields) if fields is not None else None

    def set(self, collection: str, doc_id: str, fields: dict, *, merge: bool = True) -> None:
        self._record("set", collection, doc_id)
        self._check_online()
        if (collection, doc_id) in self._failing_writes:
            raise RemoteStoreError(f"permission denied writing {collection}/{doc_id}")
        with self._lock:
            docs = self._collections.setdefault(collection, {})
            current = docs.get(doc_id, {}) if merge else {}
            docs[doc_id] = {**current, **copy.deepcopy(fields)}

    def query(
        self, collection: str, constraints: Sequence[object] = ()
    ) -> list[RemoteDocument]:
        self._record("query", collection, None)
        self._check_online()
        if collection in self._failing_queries:
            raise RemoteStoreError(f"query on {collection} failed")
        with self._lock:
            docs = [
                RemoteDocument(doc_id, copy.deepcopy(fields))
                for doc_id, fields in self._collections.get(collection, {}).items()
            ]
        return apply_constraints(docs, constraints)

    def _record(self, operation: str, collection: str, doc_id: str | None) -> None:
        with self._lock:
            self.calls.append((operation, collection, doc_id))

    def _check_online(self) -> None:
        if not self.online:
            raise RemoteStoreError("remote store unreachable")


class FileRemoteStore:
    """Remote store backed by a shared directory of JSON documents.

    Layout: ``<directory>/<collection>/<doc_id>.json`` with both names
    percent-encoded.  Writes are atomic and serialized per document with
    file locks, so several processes can share one directory.  Every I/O
    failure surfaces as ``RemoteStoreError``.
    """

    def __init__(self, directory: Path, lock_timeout: float = 10) -> None:
        self.directory = Path(directory)
        self.locks_dir = self.directory / ".locks"
        self.lock_timeout = lock_timeout

    def get(self, collection: str, doc_id: str) -> dict | None:
        path = self._doc_path(collection, doc_id)
        try:
            if not path.exists():
                return None
            return _read_fields(path)
        except (OSError, ValueError) as exc:
            raise RemoteStoreError(f"reading {collection}/{doc_id}: {exc}") from exc

    def set(self, collection: str, doc_id: str, fields: dict, *, merge: bool = True) -> None:
        path = self._doc_path(collection, doc_id)
        lock_key = f"{quote(collection, safe='')}+{quote(doc_id, safe='')}"
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            self.locks_dir.mkdir(parents=True, exist_ok=True)
            with storage_lock(self.locks_dir, lock_key, timeout=self.lock_timeout):
                current = _read_fields(path) if merge and path.exists() else {}
                current.update(fields)
                atomic_write(path, json.dumps(current, sort_keys=True, indent=2) + "\n")
        except (OSError, ValueError, TypeError, LockTimeout) as exc:
            raise RemoteStoreError(f"writing {collection}/{doc_id}: {exc}") from exc

    def query(
        self, collection: str, constraints: Sequence[object] = ()
    ) -> list[RemoteDocument]:
        collection_dir = self.directory / quote(collection, safe="")
        docs = []
        try:
            if collection_dir.is_dir():
                for path in sorted(collection_dir.glob("*.json")):
                    doc_id = unquote(path.name[: -len(".json")])
                    docs.append(RemoteDocument(doc_id, _read_fields(path)))
        except (OSError, ValueError) as exc:
            raise RemoteStoreError(f"querying {collection}: {exc}") from exc
        return apply_constraints(docs, constraints)

    def _doc_path(self, collection: str, doc_id: str) -> Path:
        return self.directory / quote(collection, safe="") / f"{quote(doc_id, safe='')}.json"


def _read_fields(path: Path) -> dict:
    fields = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(fields, dict):
        raise ValueError(f"{path.name} does not hold a JSON object")
    return fields
