"""CLI entry point and commands."""

from __future__ import annotations

import logging
from pathlib import Path

import click

from campussync.core.config import CACHE_LAYOUTS, default_config, serialize_config
from campussync.storage.fs import CAMPUSSYNC_DIR, atomic_write, ensure_campussync_dirs


@click.group()
@click.option("-v", "--verbose", count=True, help="Log progress (-v) or debug detail (-vv).")
def cli(verbose: int) -> None:
    """campussync: offline-first document cache with cloud sync."""
    level = {0: logging.WARNING, 1: logging.INFO}.get(verbose, logging.DEBUG)
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s", force=True)


@cli.command()
@click.option(
    "--path",
    "target_path",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    default=".",
    help="Directory to initialize campussync in (defaults to current directory).",
)
@click.option(
    "--layout",
    type=click.Choice(CACHE_LAYOUTS),
    default="namespace",
    show_default=True,
    help="Cache layout: one blob per namespace, or one key per document.",
)
@click.option(
    "--remote",
    "remote_path",
    default=None,
    help="Directory of the shared remote store (default: .campussync/remote).",
)
def init(target_path: str, layout: str, remote_path: str | None) -> None:
    """Initialize a new campussync project."""
    root = Path(target_path)
    base_dir = root / CAMPUSSYNC_DIR

    # Idempotency: if .campussync/ already exists as a directory, skip
    if base_dir.is_dir():
        click.echo(f"campussync already initialized in {CAMPUSSYNC_DIR}/")
        return

    if base_dir.exists():
        raise click.ClickException(
            f"Cannot initialize: '{CAMPUSSYNC_DIR}' exists but is not a directory. "
            "Remove it and try again."
        )

    try:
        ensure_campussync_dirs(root)
        config: dict = dict(default_config())
        config["cache"] = {"layout": layout}
        if remote_path:
            config["remote"] = {"path": str(Path(remote_path).resolve())}
        atomic_write(base_dir / "config.json", serialize_config(config))
    except PermissionError:
        raise click.ClickException(f"Permission denied: cannot create {CAMPUSSYNC_DIR}/ in {root}")
    except OSError as e:
        raise click.ClickException(f"Failed to initialize campussync: {e}")

    click.echo(f"campussync initialized in {CAMPUSSYNC_DIR}/ (cache layout: {layout})")


# ---------------------------------------------------------------------------
# Register command modules (must be after cli group is defined)
# ---------------------------------------------------------------------------
from campussync.cli import cache_cmds as _cache_cmds  # noqa: E402, F401
from campussync.cli import sync_cmds as _sync_cmds  # noqa: E402, F401

if __name__ == "__main__":
    cli()
