"""Shared CLI helpers and output utilities."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import NoReturn

import click

from campussync.core.config import load_config, validate_config
from campussync.core.documents import CachedDocument
from campussync.remote.store import FileRemoteStore
from campussync.storage.backends import FileStorage
from campussync.storage.fs import CAMPUSSYNC_DIR, RootError, find_root
from campussync.sync.cache import LocalDocumentCache
from campussync.sync.engine import SyncEngine


# ---------------------------------------------------------------------------
# Root & config
# ---------------------------------------------------------------------------


def require_root(is_json: bool = False) -> Path:
    """Find the .campussync/ directory or exit with error."""
    try:
        root = find_root()
    except RootError as e:
        output_error(str(e), "NOT_INITIALIZED", is_json)
    if root is None:
        output_error(
            "Not a campussync project (no .campussync/ found). Run 'campussync init' first.",
            "NOT_INITIALIZED",
            is_json,
        )
    return root / CAMPUSSYNC_DIR


def load_project_config(base_dir: Path, is_json: bool = False) -> dict:
    """Load, validate, and return config.json from the .campussync directory."""
    try:
        config = load_config((base_dir / "config.json").read_text())
    except (OSError, ValueError) as e:
        output_error(f"Cannot read config.json: {e}", "INVALID_CONFIG", is_json)
    problems = validate_config(config)
    if problems:
        output_error("; ".join(problems), "INVALID_CONFIG", is_json)
    return config


def open_engine(base_dir: Path, config: dict) -> SyncEngine:
    """Build a sync engine over the project's file cache and file remote."""
    _apply_log_level(config)
    storage = FileStorage(base_dir / "cache", locks_dir=base_dir / "locks")
    cache = LocalDocumentCache(storage, layout=config.get("cache", {}).get("layout", "namespace"))
    remote_path = Path(config.get("remote", {}).get("path", "remote"))
    if not remote_path.is_absolute():
        remote_path = base_dir / remote_path
    return SyncEngine(
        cache,
        FileRemoteStore(remote_path),
        pull_policy=config.get("sync", {}).get("pull_policy", "server_wins"),
    )


def _apply_log_level(config: dict) -> None:
    # An explicit -v on the command line beats the configured level.
    ctx = click.get_current_context(silent=True)
    verbosity = ctx.find_root().params.get("verbose", 0) if ctx else 0
    if not verbosity:
        logging.getLogger().setLevel(config.get("log_level", "WARNING"))


def parse_fields(raw: str, is_json: bool) -> dict:
    """Parse a JSON object argument or exit with error."""
    try:
        fields = json.loads(raw)
    except json.JSONDecodeError as e:
        output_error(f"FIELDS is not valid JSON: {e}", "INVALID_ARGUMENT", is_json)
    if not isinstance(fields, dict):
        output_error("FIELDS must be a JSON object.", "INVALID_ARGUMENT", is_json)
    return fields


def parse_value(raw: str) -> object:
    """Interpret a query value as JSON when possible, else as a plain string."""
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


# ---------------------------------------------------------------------------
# Output helpers
# ---------------------------------------------------------------------------


def json_envelope(ok: bool, *, data: object = None, error: object = None) -> str:
    """Build a structured JSON output envelope."""
    result: dict = {"ok": ok}
    if data is not None:
        result["data"] = data
    if error is not None:
        result["error"] = error
    return json.dumps(result, sort_keys=True, indent=2) + "\n"


def json_error_obj(code: str, message: str) -> dict:
    """Build an error object for the JSON envelope."""
    return {"code": code, "message": message}


def output_error(message: str, code: str, is_json: bool, exit_code: int = 1) -> NoReturn:
    """Print error and exit. JSON errors go to stdout; human errors to stderr."""
    if is_json:
        click.echo(json_envelope(False, error=json_error_obj(code, message)))
    else:
        click.echo(f"Error: {message}", err=True)
    raise SystemExit(exit_code)


def output_result(*, data: object, human_message: str, is_json: bool) -> None:
    """Print success result in the appropriate format."""
    if is_json:
        click.echo(json_envelope(True, data=data))
    else:
        click.echo(human_message)


def format_document(doc: CachedDocument) -> str:
    """One-line human rendering of a cached document."""
    state = "synced" if doc.sync_state else "pending"
    return f"{doc.id}  [{state}]  {json.dumps(doc.fields, sort_keys=True)}"
