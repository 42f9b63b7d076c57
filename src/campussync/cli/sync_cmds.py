"""CLI commands for pushing, pulling, and running full syncs."""

from __future__ import annotations

import click

from campussync.cli.helpers import (
    load_project_config,
    open_engine,
    output_error,
    output_result,
    parse_value,
    require_root,
)
from campussync.cli.main import cli
from campussync.core.ids import ContractError
from campussync.remote.query import limit, order_by, where
from campussync.sync.trigger import SyncTrigger

_json_option = click.option("--json", "as_json", is_flag=True, help="Output as JSON.")


@cli.group()
def sync() -> None:
    """Reconcile the local cache with the remote store."""


@sync.command("push")
@click.argument("user_id")
@click.argument("collection")
@_json_option
def sync_push(user_id: str, collection: str, as_json: bool) -> None:
    """Send pending local changes to the remote store."""
    base_dir = require_root(as_json)
    engine = open_engine(base_dir, load_project_config(base_dir, as_json))
    try:
        pushed = engine.push_changes(user_id, collection)
        remaining = len(engine.cache.get_pending_sync(user_id, collection))
    except ContractError as e:
        output_error(str(e), "INVALID_ARGUMENT", as_json)
    output_result(
        data={"collection": collection, "pushed_count": pushed, "pending_count": remaining},
        human_message=f"Pushed {pushed} {collection} document(s); {remaining} still pending.",
        is_json=as_json,
    )


@sync.command("pull")
@click.argument("user_id")
@click.argument("collection")
@click.option(
    "--where",
    "filters",
    nargs=3,
    multiple=True,
    metavar="FIELD OP VALUE",
    help="Filter remote documents, e.g. --where year == 2. VALUE is parsed as JSON when possible.",
)
@click.option("--order-by", "order", default=None, help="Sort field, optionally FIELD:desc.")
@click.option("--limit", "max_docs", type=int, default=None, help="Pull at most N documents.")
@_json_option
def sync_pull(
    user_id: str,
    collection: str,
    filters: tuple[tuple[str, str, str], ...],
    order: str | None,
    max_docs: int | None,
    as_json: bool,
) -> None:
    """Overwrite cached documents with the remote copies."""
    base_dir = require_root(as_json)
    engine = open_engine(base_dir, load_project_config(base_dir, as_json))

    try:
        constraints: list[object] = [where(f, op, parse_value(v)) for f, op, v in filters]
        if order:
            field, _, direction = order.partition(":")
            constraints.append(order_by(field, direction or "asc"))
        if max_docs is not None:
            constraints.append(limit(max_docs))
    except ValueError as e:
        output_error(str(e), "INVALID_ARGUMENT", as_json)

    try:
        pulled = engine.pull_changes(user_id, collection, constraints)
    except ContractError as e:
        output_error(str(e), "INVALID_ARGUMENT", as_json)
    output_result(
        data={"collection": collection, "pulled_count": pulled},
        human_message=f"Pulled {pulled} {collection} document(s).",
        is_json=as_json,
    )


@sync.command("run")
@click.argument("user_id")
@click.option("--role", default=None, help="Pick collections from the role mapping in config.")
@click.option(
    "--collection",
    "collections",
    multiple=True,
    help="Collection to sync (repeatable; overrides --role).",
)
@click.option("--timeout", type=float, default=None, help="Stop starting new work after S seconds.")
@_json_option
def sync_run(
    user_id: str,
    role: str | None,
    collections: tuple[str, ...],
    timeout: float | None,
    as_json: bool,
) -> None:
    """Push then pull every collection for a user."""
    base_dir = require_root(as_json)
    config = load_project_config(base_dir, as_json)
    engine = open_engine(base_dir, config)

    with SyncTrigger(engine, config) as trigger:
        try:
            future = trigger.start(
                user_id, role, list(collections) or None, timeout=timeout
            )
        except ContractError as e:
            output_error(str(e), "INVALID_ARGUMENT", as_json)
        result = future.result()

    if result.skipped:
        output_error("Remote store unreachable; sync skipped.", "OFFLINE", as_json)

    if as_json:
        output_result(data=result.to_dict(), human_message="", is_json=True)
        return
    for name, counts in result.collections.items():
        click.echo(f"  {name}: pushed {counts['pushed']}, pulled {counts['pulled']}")
    suffix = " (stopped early)" if result.cancelled else ""
    click.echo(f"Pushed {result.pushed_count}, pulled {result.pulled_count}{suffix}.")


@sync.command("status")
@click.argument("user_id")
@_json_option
def sync_status(user_id: str, as_json: bool) -> None:
    """Show cached and pending document counts per collection."""
    base_dir = require_root(as_json)
    engine = open_engine(base_dir, load_project_config(base_dir, as_json))

    try:
        names = engine.cache.list_namespaces(user_id)
    except ContractError as e:
        output_error(str(e), "INVALID_ARGUMENT", as_json)

    rows = []
    for name in names:
        docs = engine.cache.get_all(user_id, name)
        rows.append(
            {
                "collection": name,
                "documents": len(docs),
                "pending": sum(1 for d in docs if not d.sync_state),
            }
        )

    if as_json:
        output_result(data={"user_id": user_id, "collections": rows}, human_message="", is_json=True)
        return
    if not rows:
        click.echo(f"Nothing cached for {user_id}.")
        return
    for row in rows:
        click.echo(f"  {row['collection']:<20s} {row['documents']:>4d} cached  {row['pending']:>4d} pending")
