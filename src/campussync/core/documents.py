"""Cached document records and sync run results."""

from __future__ import annotations

import copy
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone

# Keys owned by the cache.  They never travel to the remote store.
BOOKKEEPING_FIELDS: frozenset[str] = frozenset({"id", "sync_state", "last_updated"})


def now_millis() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def utc_now() -> str:
    """Return the current UTC time as an ISO 8601 string."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass
class CachedDocument:
    """One document inside a ``(user_id, collection)`` namespace.

    ``sync_state`` is ``False`` while the document carries local changes
    the remote store has not confirmed.  ``last_updated`` is the time of
    the last local write, kept for observability only.
    """

    id: str
    fields: dict
    sync_state: bool = False
    last_updated: int = 0

    def payload(self) -> dict:
        """Return a deep copy of ``fields`` without bookkeeping keys."""
        return {
            k: copy.deepcopy(v) for k, v in self.fields.items() if k not in BOOKKEEPING_FIELDS
        }

    def to_record(self) -> dict:
        """Serialize to the JSON record stored in a namespace blob."""
        return {
            "id": self.id,
            "fields": self.fields,
            "sync_state": self.sync_state,
            "last_updated": self.last_updated,
        }

    @classmethod
    def from_record(cls, record: dict) -> CachedDocument:
        """Build a document from a stored record.

        Raises ``KeyError``/``TypeError`` for malformed records; the cache
        treats those as storage faults.
        """
        fields = record["fields"]
        if not isinstance(fields, dict):
            raise TypeError(f"fields must be an object, got {type(fields).__name__}")
        return cls(
            id=str(record["id"]),
            fields=fields,
            sync_state=bool(record.get("sync_state", False)),
            last_updated=int(record.get("last_updated", 0)),
        )


@dataclass
class SyncResult:
    """Counts from one full sync run.  Never persisted."""

    pushed_count: int = 0
    pulled_count: int = 0
    collections: dict[str, dict[str, int]] = field(default_factory=dict)
    cancelled: bool = False
    skipped: bool = False

    def record(self, collection: str, pushed: int, pulled: int) -> None:
        """Add one collection's counts to the totals."""
        entry = self.collections.setdefault(collection, {"pushed": 0, "pulled": 0})
        entry["pushed"] += pushed
        entry["pulled"] += pulled
        self.pushed_count += pushed
        self.pulled_count += pulled

    def to_dict(self) -> dict:
        return {
            "pushed_count": self.pushed_count,
            "pulled_count": self.pulled_count,
            "collections": {name: dict(counts) for name, counts in self.collections.items()},
            "cancelled": self.cancelled,
            "skipped": self.skipped,
        }
