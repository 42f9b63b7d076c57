"""Argument validation and temporary document id generation."""

from __future__ import annotations

import re

from ulid import ULID

_PREFIX_RE = re.compile(r"^[A-Za-z0-9_]{1,32}$")


class ContractError(ValueError):
    """Raised when a caller passes arguments that can never be valid.

    Transient faults (storage, network) are recovered internally; this is
    the one error the cache and sync engine let escape.
    """


def require_name(value: object, what: str) -> str:
    """Return *value* if it is a non-blank string, else raise ContractError."""
    if not isinstance(value, str) or not value.strip():
        raise ContractError(f"{what} must be a non-empty string, got {value!r}")
    return value


def require_namespace(user_id: object, collection: object) -> tuple[str, str]:
    """Validate a ``(user_id, collection)`` namespace pair."""
    return require_name(user_id, "user_id"), require_name(collection, "collection")


def validate_prefix(prefix: str) -> bool:
    """Return ``True`` if *prefix* is usable in a temporary id (e.g. ``temp_cr``)."""
    return bool(_PREFIX_RE.match(prefix))


def generate_temp_id(prefix: str = "temp") -> str:
    """Generate an id for a document created while offline.

    ULIDs sort by creation time, so queued writes keep their order.
    """
    if not validate_prefix(prefix):
        raise ContractError(f"Invalid temporary id prefix: {prefix!r}")
    return f"{prefix}_{ULID()}"
