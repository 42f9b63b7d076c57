"""Per-user, per-collection document cache on a pluggable storage backend.

Every document lives in a namespace identified by ``(user_id, collection)``.
Two storage layouts are supported:

``namespace``
    The whole namespace is one JSON object keyed by document id, stored
    under ``cache:{user}:{collection}``.  Every save rewrites the blob.

``indexed``
    One key per document (``cache:{user}:{collection}:doc:{id}``) plus an
    id list under ``cache:{user}:{collection}:index``.  A save touches at
    most two keys regardless of namespace size.

The cache never lets a storage fault escape: reads degrade to ``None`` or
``[]`` and writes degrade to a logged no-op.  Only invalid arguments raise
(``ContractError``).
"""

from __future__ import annotations

import contextlib
import copy
import json
import logging
import threading
from collections.abc import Callable, Generator
from urllib.parse import quote, unquote

from campussync.core.config import CACHE_LAYOUTS
from campussync.core.documents import CachedDocument, now_millis
from campussync.core.ids import ContractError, require_name, require_namespace
from campussync.storage.backends import StorageBackend
from campussync.storage.locks import LockTimeout

logger = logging.getLogger(__name__)

KEY_PREFIX = "cache"

# JSON decode errors are ValueErrors; malformed records raise KeyError/TypeError.
_STORAGE_FAULTS = (OSError, ValueError, TypeError, KeyError, LockTimeout)


def namespace_key(user_id: str, collection: str) -> str:
    """Deterministic storage key for a namespace.

    Both components are percent-encoded so ``("a:b", "c")`` and
    ``("a", "b:c")`` map to different keys.
    """
    return f"{KEY_PREFIX}:{quote(user_id, safe='')}:{quote(collection, safe='')}"


class LocalDocumentCache:
    """Namespace-scoped document store with a dirty flag per document."""

    def __init__(
        self,
        storage: StorageBackend,
        *,
        layout: str = "namespace",
        clock: Callable[[], int] | None = None,
    ) -> None:
        if layout not in CACHE_LAYOUTS:
            raise ContractError(f"Unknown cache layout: {layout!r}")
        self.storage = storage
        self.layout = layout
        self._clock = clock or now_millis
        self._mutex = threading.RLock()

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def save(
        self,
        user_id: str,
        collection: str,
        doc_id: str,
        fields: dict,
        synced: bool = False,
        *,
        merge: bool = False,
    ) -> CachedDocument | None:
        """Upsert a document and persist it.

        With ``merge=True`` the new fields are shallow-merged over the
        existing payload; otherwise the payload is replaced.  The document
        is stamped with the current time and marked dirty unless *synced*.

        Returns the stored document, or ``None`` if storage failed.
        """
        key = self._key(user_id, collection)
        require_name(doc_id, "doc_id")
        if not isinstance(fields, dict):
            raise ContractError(f"fields must be a dict, got {type(fields).__name__}")

        try:
            with self._guard(key):
                existing = self._read_doc(key, doc_id)
                payload: dict = {}
                if merge and existing is not None:
                    payload.update(existing.fields)
                payload.update(copy.deepcopy(fields))
                doc = CachedDocument(
                    id=doc_id,
                    fields=payload,
                    sync_state=bool(synced),
                    last_updated=self._stamp(existing),
                )
                self._write_doc(key, doc)
        except _STORAGE_FAULTS as exc:
            logger.warning("cache save failed for %s/%s: %s", collection, doc_id, exc)
            return None
        return doc

    def get(self, user_id: str, collection: str, doc_id: str) -> CachedDocument | None:
        """Return one document, or ``None`` if absent or unreadable."""
        key = self._key(user_id, collection)
        require_name(doc_id, "doc_id")
        try:
            return self._read_doc(key, doc_id)
        except _STORAGE_FAULTS as exc:
            logger.warning("cache read failed for %s/%s: %s", collection, doc_id, exc)
            return None

    def get_all(self, user_id: str, collection: str) -> list[CachedDocument]:
        """Return every document in the namespace (empty if none or unreadable)."""
        key = self._key(user_id, collection)
        try:
            return self._read_all(key)
        except _STORAGE_FAULTS as exc:
            logger.warning("cache read failed for %s: %s", collection, exc)
            return []

    def mark_synced(
        self,
        user_id: str,
        collection: str,
        doc_id: str,
        *,
        expected_last_updated: int | None = None,
    ) -> bool:
        """Flag a document as matching the remote store.

        Missing documents are ignored.  When *expected_last_updated* is
        given, a document written after that stamp stays dirty.

        Returns ``True`` if the flag was set.
        """
        key = self._key(user_id, collection)
        require_name(doc_id, "doc_id")
        try:
            with self._guard(key):
                doc = self._read_doc(key, doc_id)
                if doc is None:
                    return False
                if expected_last_updated is not None and doc.last_updated != expected_last_updated:
                    logger.debug(
                        "%s/%s changed locally during push; leaving it pending",
                        collection,
                        doc_id,
                    )
                    return False
                if not doc.sync_state:
                    doc.sync_state = True
                    self._write_doc(key, doc)
                return True
        except _STORAGE_FAULTS as exc:
            logger.warning("cache mark_synced failed for %s/%s: %s", collection, doc_id, exc)
            return False

    def get_pending_sync(self, user_id: str, collection: str) -> list[CachedDocument]:
        """Return the documents whose local changes are not yet pushed."""
        return [doc for doc in self.get_all(user_id, collection) if doc.sync_state is False]

    def clear(self, user_id: str, collection: str) -> None:
        """Delete the whole namespace."""
        key = self._key(user_id, collection)
        try:
            with self._guard(key):
                self._delete_namespace(key)
        except _STORAGE_FAULTS as exc:
            logger.warning("cache clear failed for %s: %s", collection, exc)

    def list_namespaces(self, user_id: str) -> list[str]:
        """Return the collection names holding cached data for *user_id*."""
        prefix = f"{KEY_PREFIX}:{quote(require_name(user_id, 'user_id'), safe='')}:"
        try:
            keys = self.storage.keys(prefix)
        except _STORAGE_FAULTS as exc:
            logger.warning("cache listing failed for user %s: %s", user_id, exc)
            return []
        names = {unquote(k[len(prefix):].split(":", 1)[0]) for k in keys}
        return sorted(names)

    # ------------------------------------------------------------------
    # Layout dispatch
    # ------------------------------------------------------------------

    def _key(self, user_id: str, collection: str) -> str:
        return namespace_key(*require_namespace(user_id, collection))

    def _stamp(self, existing: CachedDocument | None) -> int:
        # Strictly increasing per document, even within one clock tick.
        now = self._clock()
        if existing is not None and now <= existing.last_updated:
            return existing.last_updated + 1
        return now

    @contextlib.contextmanager
    def _guard(self, key: str) -> Generator[None, None, None]:
        # The mutex covers threads sharing this cache; the storage lock
        # covers other processes sharing the same storage.
        with self._mutex, self.storage.lock(key):
            yield

    def _read_doc(self, key: str, doc_id: str) -> CachedDocument | None:
        if self.layout == "indexed":
            raw = self.storage.read_raw(_doc_key(key, doc_id))
            return CachedDocument.from_record(json.loads(raw)) if raw else None
        record = self._load_blob(key).get(doc_id)
        return CachedDocument.from_record(record) if record is not None else None

    def _read_all(self, key: str) -> list[CachedDocument]:
        if self.layout == "indexed":
            docs = []
            for doc_id in self._load_index(key):
                raw = self.storage.read_raw(_doc_key(key, doc_id))
                if raw:
                    docs.append(CachedDocument.from_record(json.loads(raw)))
            return docs
        return [CachedDocument.from_record(r) for r in self._load_blob(key).values()]

    def _write_doc(self, key: str, doc: CachedDocument) -> None:
        if self.layout == "indexed":
            index = self._load_index(key)
            self.storage.write_raw(_doc_key(key, doc.id), json.dumps(doc.to_record()))
            if doc.id not in index:
                index.append(doc.id)
                self.storage.write_raw(_index_key(key), json.dumps(index))
            return
        blob = self._load_blob(key)
        blob[doc.id] = doc.to_record()
        self.storage.write_raw(key, json.dumps(blob))

    def _delete_namespace(self, key: str) -> None:
        if self.layout == "indexed":
            for doc_key in self.storage.keys(f"{key}:doc:"):
                self.storage.delete_raw(doc_key)
            self.storage.delete_raw(_index_key(key))
            return
        self.storage.delete_raw(key)

    def _load_blob(self, key: str) -> dict:
        raw = self.storage.read_raw(key)
        if not raw:
            return {}
        blob = json.loads(raw)
        if not isinstance(blob, dict):
            raise TypeError(f"namespace blob {key!r} is not an object")
        return blob

    def _load_index(self, key: str) -> list[str]:
        raw = self.storage.read_raw(_index_key(key))
        if not raw:
            return []
        index = json.loads(raw)
        if not isinstance(index, list):
            raise TypeError(f"namespace index {key!r} is not a list")
        return index


def _doc_key(key: str, doc_id: str) -> str:
    return f"{key}:doc:{quote(doc_id, safe='')}"


def _index_key(key: str) -> str:
    return f"{key}:index"
