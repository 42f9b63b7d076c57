"""Fire-and-forget background sync, started at login or app launch.

``SyncTrigger.start`` validates its arguments on the caller's thread, hands
the run to a single worker thread, and returns a ``Future`` immediately.
Callers that care about the outcome can wait on the future or register a
bus listener; everyone else just moves on.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from concurrent.futures import Executor, Future, ThreadPoolExecutor

from campussync.core.config import collections_for_role, default_config
from campussync.core.documents import SyncResult
from campussync.core.ids import ContractError, require_name
from campussync.storage.bus import notify
from campussync.sync.cancel import CancelToken
from campussync.sync.connectivity import probe_from_config
from campussync.sync.engine import SyncEngine

logger = logging.getLogger(__name__)


class SyncTrigger:
    """Start full syncs in the background and report how they ended."""

    def __init__(
        self,
        engine: SyncEngine,
        config: dict | None = None,
        *,
        is_online: Callable[[], bool] | None = None,
        executor: Executor | None = None,
    ) -> None:
        self.engine = engine
        self.config = config if config is not None else dict(default_config())
        self._is_online = is_online or probe_from_config(self.config)
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="campussync-sync"
        )

    def collections_for(self, role: str | None) -> list[str]:
        """Collections a user with *role* syncs at login."""
        return collections_for_role(self.config, role)

    def start(
        self,
        user_id: str,
        role: str | None = None,
        collections: Iterable[str] | None = None,
        *,
        timeout: float | None = None,
        cancel: CancelToken | None = None,
    ) -> Future:
        """Schedule a full sync and return its future without waiting.

        Explicit *collections* win over the role mapping.  *timeout*
        defaults to ``sync.timeout_seconds`` from the config and starts
        counting when the run begins, not while it waits for the worker.
        """
        require_name(user_id, "user_id")
        if collections is None:
            names = self.collections_for(role)
        elif isinstance(collections, str):
            raise ContractError("collections must be a list of names, not a single string")
        else:
            names = [require_name(c, "collection") for c in collections]

        if timeout is None:
            timeout = self.config.get("sync", {}).get("timeout_seconds")

        future = self._executor.submit(self._run, user_id, names, timeout, cancel)
        future.add_done_callback(lambda f: self._report(user_id, f))
        return future

    def shutdown(self, wait: bool = True) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=wait)

    def __enter__(self) -> SyncTrigger:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()

    def _run(
        self,
        user_id: str,
        collections: list[str],
        timeout: float | None,
        cancel: CancelToken | None,
    ) -> SyncResult:
        if cancel is None:
            cancel = CancelToken(timeout)
        try:
            online = self._is_online()
        except Exception as exc:
            logger.warning("connectivity check failed: %s", exc)
            online = False
        if online:
            result = self.engine.run_full_sync(user_id, collections, cancel=cancel)
        else:
            logger.info("offline; skipping sync for %s", user_id)
            result = SyncResult(skipped=True)
        # Listeners run before the future resolves, so waiters see their effects.
        notify(user_id, result)
        return result

    def _report(self, user_id: str, future: Future) -> None:
        if future.cancelled():
            logger.info("background sync for %s was cancelled before it started", user_id)
            return
        exc = future.exception()
        if exc is not None:
            logger.error(
                "background sync for %s crashed: %s", user_id, exc, exc_info=exc
            )
            return
        logger.debug("background sync for %s finished: %s", user_id, future.result().to_dict())
