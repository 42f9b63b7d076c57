"""Push/pull reconciliation between the local cache and a remote store.

Push sends dirty documents one at a time so a single rejected write never
blocks the rest; failed documents stay dirty and go out again on the next
push.  Pull overwrites local copies with whatever the remote returns
("server wins").  Remote writes are merge-upserts, so re-running either
phase after a partial failure or a cancellation is always safe.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping, Sequence

from campussync.core.config import PULL_POLICIES
from campussync.core.documents import CachedDocument, SyncResult, utc_now
from campussync.core.ids import ContractError, generate_temp_id, require_name, require_namespace
from campussync.remote.store import RemoteDocumentStore
from campussync.sync.cache import LocalDocumentCache
from campussync.sync.cancel import CancelToken

logger = logging.getLogger(__name__)

UPDATED_AT_FIELD = "updatedAt"


class SyncEngine:
    """Reconcile cache namespaces with a remote document store."""

    def __init__(
        self,
        cache: LocalDocumentCache,
        remote: RemoteDocumentStore,
        *,
        clock: Callable[[], str] | None = None,
        pull_policy: str = "server_wins",
    ) -> None:
        if pull_policy not in PULL_POLICIES:
            raise ContractError(f"Unknown pull policy: {pull_policy!r}")
        self.cache = cache
        self.remote = remote
        self.pull_policy = pull_policy
        self._clock = clock or utc_now

    def push_changes(
        self,
        user_id: str,
        collection: str,
        *,
        cancel: CancelToken | None = None,
    ) -> int:
        """Send every dirty document in the namespace to the remote store.

        Returns the number of documents the remote accepted.
        """
        require_namespace(user_id, collection)
        pending = self.cache.get_pending_sync(user_id, collection)
        if not pending:
            return 0

        logger.info("pushing %d %s document(s) for %s", len(pending), collection, user_id)
        pushed = 0
        for position, doc in enumerate(pending):
            if cancel is not None and cancel.cancelled:
                logger.info(
                    "push of %s stopped early; %d document(s) left pending",
                    collection,
                    len(pending) - position,
                )
                break
            payload = doc.payload()
            payload[UPDATED_AT_FIELD] = self._clock()
            try:
                self.remote.set(collection, doc.id, payload, merge=True)
            except Exception as exc:
                logger.error("failed to push %s/%s: %s", collection, doc.id, exc)
                continue
            # Guarded so an edit made while the write was in flight stays dirty.
            self.cache.mark_synced(
                user_id, collection, doc.id, expected_last_updated=doc.last_updated
            )
            pushed += 1
        return pushed

    def pull_changes(
        self,
        user_id: str,
        collection: str,
        constraints: Sequence[object] = (),
        *,
        cancel: CancelToken | None = None,
    ) -> int:
        """Copy remote documents into the namespace, marking them synced.

        *constraints* go to the remote query untouched.  With the default
        ``server_wins`` policy a pulled document replaces the local copy even
        if that copy holds unpushed edits.  Returns the number of documents
        written; a failed query logs and returns 0.
        """
        require_namespace(user_id, collection)
        try:
            # Streaming clients can fail mid-iteration; drain inside the guard.
            remote_docs = list(self.remote.query(collection, list(constraints)))
        except Exception as exc:
            logger.error("pull of %s failed: %s", collection, exc)
            return 0

        pulled = 0
        for remote_doc in remote_docs:
            if cancel is not None and cancel.cancelled:
                logger.info("pull of %s stopped early after %d document(s)", collection, pulled)
                break
            if self.pull_policy == "keep_pending":
                local = self.cache.get(user_id, collection, remote_doc.id)
                if local is not None and not local.sync_state:
                    logger.info(
                        "keeping unpushed local edit of %s/%s over remote copy",
                        collection,
                        remote_doc.id,
                    )
                    continue
            try:
                saved = self.cache.save(
                    user_id, collection, remote_doc.id, remote_doc.fields, synced=True
                )
            except ContractError as exc:
                logger.error("skipping malformed remote document in %s: %s", collection, exc)
                continue
            if saved is not None:
                pulled += 1

        logger.info("pulled %d %s document(s) for %s", pulled, collection, user_id)
        return pulled

    def run_full_sync(
        self,
        user_id: str,
        collections: Iterable[str],
        *,
        constraints: Mapping[str, Sequence[object]] | None = None,
        cancel: CancelToken | None = None,
    ) -> SyncResult:
        """Push then pull each collection, in order.

        *constraints* optionally maps a collection name to its pull
        constraints.  A phase that blows up is logged and counts zero; work
        already done in the other phase is kept and later collections still
        run.
        """
        require_name(user_id, "user_id")
        if isinstance(collections, str):
            raise ContractError("collections must be a list of names, not a single string")
        names = [require_name(name, "collection") for name in collections]
        constraints = constraints or {}

        result = SyncResult()
        for name in names:
            if cancel is not None and cancel.cancelled:
                break
            pushed = self._guarded(
                "push", user_id, name, lambda: self.push_changes(user_id, name, cancel=cancel)
            )
            pulled = self._guarded(
                "pull",
                user_id,
                name,
                lambda: self.pull_changes(
                    user_id, name, constraints.get(name, ()), cancel=cancel
                ),
            )
            result.record(name, pushed, pulled)

        result.cancelled = cancel is not None and cancel.cancelled
        logger.info(
            "full sync for %s: pushed %d, pulled %d%s",
            user_id,
            result.pushed_count,
            result.pulled_count,
            " (cancelled)" if result.cancelled else "",
        )
        return result

    def _guarded(
        self, phase: str, user_id: str, collection: str, run: Callable[[], int]
    ) -> int:
        try:
            return run()
        except Exception:
            logger.exception("sync of %s aborted for %s during %s", collection, user_id, phase)
            return 0

    def fetch_document(
        self, user_id: str, collection: str, doc_id: str
    ) -> CachedDocument | None:
        """Read through the cache: serve the local copy, else fetch and cache it."""
        cached = self.cache.get(user_id, collection, doc_id)
        if cached is not None:
            return cached
        try:
            fields = self.remote.get(collection, doc_id)
        except Exception as exc:
            logger.warning("could not fetch %s/%s: %s", collection, doc_id, exc)
            return None
        if fields is None:
            return None
        return self.cache.save(user_id, collection, doc_id, fields, synced=True)

    def queue_write(
        self,
        user_id: str,
        collection: str,
        fields: dict,
        *,
        prefix: str = "temp",
    ) -> CachedDocument | None:
        """Store a document created offline under a fresh temporary id."""
        return self.cache.save(user_id, collection, generate_temp_id(prefix), fields)
