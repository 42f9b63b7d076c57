"""On-disk helpers: crash-safe file replacement and project root lookup."""

from __future__ import annotations

import contextlib
import os
import tempfile
from pathlib import Path

CAMPUSSYNC_DIR = ".campussync"
CAMPUSSYNC_ROOT_ENV = "CAMPUSSYNC_ROOT"


class RootError(Exception):
    """``CAMPUSSYNC_ROOT`` names something that is not a campussync project."""


def atomic_write(path: Path, content: str | bytes) -> None:
    """Replace *path* with *content*; readers see the old file or the new one.

    The parent directory must already exist.
    """
    directory = path.parent
    if not directory.is_dir():
        raise FileNotFoundError(f"Parent directory does not exist: {directory}")
    if isinstance(content, str):
        content = content.encode("utf-8")

    fd, tmp_name = tempfile.mkstemp(dir=directory, prefix=".tmp.", suffix=".part")
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(content)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp_name)
        raise
    _sync_dir(directory)


def _sync_dir(directory: Path) -> None:
    # Persists the rename. Some filesystems refuse fsync on a directory.
    with contextlib.suppress(OSError):
        fd = os.open(directory, os.O_RDONLY)
        try:
            os.fsync(fd)
        finally:
            os.close(fd)


def ensure_campussync_dirs(root: Path) -> Path:
    """Create ``.campussync/`` with its cache, remote and locks folders."""
    base = root / CAMPUSSYNC_DIR
    for subdir in ("cache", "remote", "locks"):
        (base / subdir).mkdir(parents=True, exist_ok=True)
    return base


def find_root(start: Path | None = None) -> Path | None:
    """Locate the directory holding ``.campussync/``.

    A set ``CAMPUSSYNC_ROOT`` pins the root and must name an initialized
    project, otherwise ``RootError``.  Without it, *start* (the cwd by
    default) and its ancestors are searched; ``None`` if none qualifies.
    """
    pinned = os.environ.get(CAMPUSSYNC_ROOT_ENV)
    if pinned is not None:
        return _pinned_root(pinned)

    here = (start or Path.cwd()).resolve()
    for candidate in (here, *here.parents):
        if (candidate / CAMPUSSYNC_DIR).is_dir():
            return candidate
    return None


def _pinned_root(value: str) -> Path:
    if not value:
        raise RootError(f"{CAMPUSSYNC_ROOT_ENV} is set but empty")
    root = Path(value)
    if not root.is_dir():
        raise RootError(f"{CAMPUSSYNC_ROOT_ENV}={value} does not exist")
    if not (root / CAMPUSSYNC_DIR).is_dir():
        raise RootError(f"{CAMPUSSYNC_ROOT_ENV}={value} has no {CAMPUSSYNC_DIR}/ directory")
    return root
