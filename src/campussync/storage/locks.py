"""Cross-process locks on storage keys, one lock file per key."""

from __future__ import annotations

import contextlib
from collections.abc import Generator
from pathlib import Path

from filelock import FileLock, Timeout


class LockTimeout(Exception):
    """The lock for a storage key stayed busy past the timeout."""


@contextlib.contextmanager
def storage_lock(
    locks_dir: Path,
    key: str,
    timeout: float = 10,
) -> Generator[None, None, None]:
    """Hold ``<locks_dir>/<key>.lock`` for the duration of the block.

    *key* becomes a file name verbatim, so callers encode it first.
    """
    lock = FileLock(locks_dir / f"{key}.lock")
    try:
        lock.acquire(timeout=timeout)
    except Timeout as exc:
        raise LockTimeout(f"storage key {key!r} still locked after {timeout}s") from exc
    try:
        yield
    finally:
        lock.release()
