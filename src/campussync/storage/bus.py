"""Lightweight in-process event bus for sync completion notifications.

Listeners are fire-and-forget: failures are logged but never raise
exceptions or interrupt the background sync worker.

Thread-safe: a lock protects the listener list so UI code can register
listeners while a background sync is notifying.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

Listener = Callable[[str, Any], None]

_lock = threading.Lock()
_listeners: list[Listener] = []


def register_listener(fn: Listener) -> None:
    """Register a callback invoked after every background sync finishes.

    The callback receives ``(user_id, result)`` where *result* is the
    ``SyncResult`` of the run.
    """
    with _lock:
        _listeners.append(fn)


def unregister_listener(fn: Listener) -> None:
    """Remove a previously registered listener."""
    with _lock:
        try:
            _listeners.remove(fn)
        except ValueError:
            pass


def notify(user_id: str, result: Any) -> None:
    """Fire all registered listeners.  Never raises."""
    with _lock:
        snapshot_listeners = list(_listeners)
    for fn in snapshot_listeners:
        try:
            fn(user_id, result)
        except Exception as exc:
            logger.warning("bus listener error: %s", exc)
