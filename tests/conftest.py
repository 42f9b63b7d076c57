"""Shared test fixtures."""

from __future__ import annotations

import itertools
import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from campussync.remote.store import MemoryRemoteStore
from campussync.storage.backends import MemoryStorage
from campussync.sync.cache import LocalDocumentCache
from campussync.sync.engine import SyncEngine


@pytest.fixture()
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture()
def ticking_clock():
    """Return a millisecond clock that advances by one on every call."""
    counter = itertools.count(1_700_000_000_000)
    return lambda: next(counter)


@pytest.fixture(params=["namespace", "indexed"])
def cache(request, storage: MemoryStorage, ticking_clock) -> LocalDocumentCache:
    """A cache over in-memory storage, once per layout."""
    return LocalDocumentCache(storage, layout=request.param, clock=ticking_clock)


@pytest.fixture()
def remote() -> MemoryRemoteStore:
    return MemoryRemoteStore()


@pytest.fixture()
def engine(cache: LocalDocumentCache, remote: MemoryRemoteStore) -> SyncEngine:
    return SyncEngine(cache, remote, clock=lambda: "2026-01-01T00:00:00Z")


@pytest.fixture()
def project_root(tmp_path: Path) -> Path:
    """Return a temporary directory with .campussync/ already initialized."""
    from campussync.core.config import default_config, serialize_config
    from campussync.storage.fs import atomic_write, ensure_campussync_dirs

    base_dir = ensure_campussync_dirs(tmp_path)
    atomic_write(base_dir / "config.json", serialize_config(default_config()))
    return tmp_path


@pytest.fixture()
def cli_runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def cli_env(project_root: Path) -> dict[str, str]:
    """Return env dict with CAMPUSSYNC_ROOT pointing to project_root."""
    return {"CAMPUSSYNC_ROOT": str(project_root)}


@pytest.fixture()
def invoke(cli_runner: CliRunner, cli_env: dict[str, str]):
    """Return a helper that invokes CLI commands with the right environment.

    Usage::

        result = invoke("cache", "save", "u1", "attendance", "a1", '{"status": "Present"}')
    """
    from campussync.cli.main import cli

    def _invoke(*args: str, **kwargs):
        return cli_runner.invoke(cli, list(args), env=cli_env, **kwargs)

    return _invoke


@pytest.fixture()
def invoke_json(invoke):
    """Like invoke, but appends --json and parses the response.

    Returns (parsed_dict, exit_code) tuple.
    """

    def _invoke_json(*args: str) -> tuple[dict, int]:
        result = invoke(*args, "--json")
        parsed = json.loads(result.stdout)
        return parsed, result.exit_code

    return _invoke_json
