"""CLI commands for inspecting and editing the local document cache."""

from __future__ import annotations

import click

from campussync.cli.helpers import (
    format_document,
    load_project_config,
    open_engine,
    output_error,
    output_result,
    parse_fields,
    require_root,
)
from campussync.cli.main import cli
from campussync.core.ids import ContractError

_json_option = click.option("--json", "as_json", is_flag=True, help="Output as JSON.")


def _engine(is_json: bool):
    base_dir = require_root(is_json)
    return open_engine(base_dir, load_project_config(base_dir, is_json))


@cli.group()
def cache() -> None:
    """Read and write the offline document cache."""


@cache.command("save")
@click.argument("user_id")
@click.argument("collection")
@click.argument("doc_id")
@click.argument("fields")
@click.option("--merge", is_flag=True, help="Merge FIELDS into the existing document.")
@click.option("--synced", is_flag=True, help="Store as already matching the remote store.")
@_json_option
def cache_save(
    user_id: str,
    collection: str,
    doc_id: str,
    fields: str,
    merge: bool,
    synced: bool,
    as_json: bool,
) -> None:
    """Save a document (FIELDS is a JSON object)."""
    engine = _engine(as_json)
    payload = parse_fields(fields, as_json)
    try:
        doc = engine.cache.save(user_id, collection, doc_id, payload, synced, merge=merge)
    except ContractError as e:
        output_error(str(e), "INVALID_ARGUMENT", as_json)
    if doc is None:
        output_error("Could not write to the local cache.", "STORAGE_ERROR", as_json)
    output_result(
        data=doc.to_record(),
        human_message=f"Saved {collection}/{doc.id} ({'synced' if doc.sync_state else 'pending'})",
        is_json=as_json,
    )


@cache.command("queue")
@click.argument("user_id")
@click.argument("collection")
@click.argument("fields")
@click.option("--prefix", default="temp", show_default=True, help="Temporary id prefix.")
@_json_option
def cache_queue(user_id: str, collection: str, fields: str, prefix: str, as_json: bool) -> None:
    """Queue a new document under a generated temporary id."""
    engine = _engine(as_json)
    payload = parse_fields(fields, as_json)
    try:
        doc = engine.queue_write(user_id, collection, payload, prefix=prefix)
    except ContractError as e:
        output_error(str(e), "INVALID_ARGUMENT", as_json)
    if doc is None:
        output_error("Could not write to the local cache.", "STORAGE_ERROR", as_json)
    output_result(data=doc.to_record(), human_message=f"Queued {collection}/{doc.id}", is_json=as_json)


@cache.command("get")
@click.argument("user_id")
@click.argument("collection")
@click.argument("doc_id")
@_json_option
def cache_get(user_id: str, collection: str, doc_id: str, as_json: bool) -> None:
    """Show one cached document."""
    engine = _engine(as_json)
    try:
        doc = engine.cache.get(user_id, collection, doc_id)
    except ContractError as e:
        output_error(str(e), "INVALID_ARGUMENT", as_json)
    if doc is None:
        output_error(f"No cached document {collection}/{doc_id}.", "NOT_FOUND", as_json)
    output_result(data=doc.to_record(), human_message=format_document(doc), is_json=as_json)


def _list_documents(user_id: str, collection: str, as_json: bool, *, pending: bool) -> None:
    engine = _engine(as_json)
    try:
        if pending:
            docs = engine.cache.get_pending_sync(user_id, collection)
        else:
            docs = engine.cache.get_all(user_id, collection)
    except ContractError as e:
        output_error(str(e), "INVALID_ARGUMENT", as_json)
    if as_json:
        output_result(data=[d.to_record() for d in docs], human_message="", is_json=True)
        return
    if not docs:
        click.echo("No pending documents." if pending else "No cached documents.")
        return
    for doc in docs:
        click.echo(format_document(doc))


@cache.command("list")
@click.argument("user_id")
@click.argument("collection")
@_json_option
def cache_list(user_id: str, collection: str, as_json: bool) -> None:
    """List every cached document in a collection."""
    _list_documents(user_id, collection, as_json, pending=False)


@cache.command("pending")
@click.argument("user_id")
@click.argument("collection")
@_json_option
def cache_pending(user_id: str, collection: str, as_json: bool) -> None:
    """List documents waiting to be pushed."""
    _list_documents(user_id, collection, as_json, pending=True)


@cache.command("clear")
@click.argument("user_id")
@click.argument("collection")
@_json_option
def cache_clear(user_id: str, collection: str, as_json: bool) -> None:
    """Delete a user's cached collection, including unpushed edits."""
    engine = _engine(as_json)
    try:
        engine.cache.clear(user_id, collection)
    except ContractError as e:
        output_error(str(e), "INVALID_ARGUMENT", as_json)
    output_result(
        data={"user_id": user_id, "collection": collection},
        human_message=f"Cleared {collection} for {user_id}",
        is_json=as_json,
    )
