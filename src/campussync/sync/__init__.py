"""Offline-first document cache and push/pull sync engine.

Typical wiring::

    cache = LocalDocumentCache(FileStorage(cache_dir))
    engine = SyncEngine(cache, remote_store)
    trigger = SyncTrigger(engine, config)
    trigger.start(user_id, role="Staff")
"""

from __future__ import annotations

from campussync.sync.cache import LocalDocumentCache
from campussync.sync.cancel import CancelToken
from campussync.sync.engine import SyncEngine
from campussync.sync.trigger import SyncTrigger

__all__ = [
    "CancelToken",
    "LocalDocumentCache",
    "SyncEngine",
    "SyncTrigger",
]
