"""Default config generation and validation."""

from __future__ import annotations

import json
from typing import TypedDict


class CacheConfig(TypedDict, total=False):
    layout: str


class SyncConfig(TypedDict, total=False):
    pull_policy: str
    timeout_seconds: float | None
    collections: list[str]


class RemoteConfig(TypedDict, total=False):
    path: str


class ConnectivityConfig(TypedDict, total=False):
    host: str
    port: int
    timeout_seconds: float


class CampusSyncConfig(TypedDict, total=False):
    schema_version: int
    cache: CacheConfig
    sync: SyncConfig
    roles: dict[str, list[str]]
    remote: RemoteConfig
    connectivity: ConnectivityConfig
    log_level: str


CACHE_LAYOUTS: tuple[str, ...] = ("namespace", "indexed")
PULL_POLICIES: tuple[str, ...] = ("server_wins", "keep_pending")
LOG_LEVELS: tuple[str, ...] = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def default_config() -> CampusSyncConfig:
    """Return the default configuration.

    Role mappings mirror what each dashboard reads at login: everyone needs
    their own ``users`` record, staff and office also need the rosters.
    """
    return {
        "schema_version": 1,
        "cache": {"layout": "namespace"},
        "sync": {
            "pull_policy": "server_wins",
            "timeout_seconds": None,
            "collections": ["users"],
        },
        "roles": {
            "Student": ["users", "students"],
            "Staff": ["users", "staff", "students"],
            "Office": ["users", "staff", "students", "parents"],
            "Parent": ["users"],
            "CR": ["users"],
        },
        "remote": {"path": "remote"},
        "connectivity": {"host": "", "port": 443, "timeout_seconds": 3.0},
        "log_level": "WARNING",
    }


def serialize_config(config: CampusSyncConfig | dict[str, object]) -> str:
    """Serialize a config dict to the canonical JSON format."""
    return json.dumps(config, sort_keys=True, indent=2) + "\n"


def load_config(raw: str) -> dict:
    """Parse a JSON config string and return the config dict.

    This is a pure function (no I/O).  The CLI layer reads the file
    and passes the raw string here.
    """
    return json.loads(raw)


def validate_config(config: object) -> list[str]:
    """Return a list of problems with *config*; empty means valid."""
    if not isinstance(config, dict):
        return ["config must be a JSON object"]
    problems: list[str] = []
    for name in ("cache", "sync", "remote", "connectivity"):
        if not isinstance(config.get(name, {}), dict):
            problems.append(f"{name} must be an object")
    if problems:
        return problems

    layout = config.get("cache", {}).get("layout", "namespace")
    if layout not in CACHE_LAYOUTS:
        problems.append(f"cache.layout must be one of {', '.join(CACHE_LAYOUTS)}")

    sync = config.get("sync", {})
    if sync.get("pull_policy", "server_wins") not in PULL_POLICIES:
        problems.append(f"sync.pull_policy must be one of {', '.join(PULL_POLICIES)}")
    timeout = sync.get("timeout_seconds")
    if timeout is not None and (not isinstance(timeout, (int, float)) or timeout <= 0):
        problems.append("sync.timeout_seconds must be a positive number or null")
    if not _is_name_list(sync.get("collections", [])):
        problems.append("sync.collections must be a list of non-empty strings")

    roles = config.get("roles", {})
    if not isinstance(roles, dict):
        problems.append("roles must be an object mapping role names to collections")
    else:
        for role, collections in roles.items():
            if not _is_name_list(collections):
                problems.append(f"roles.{role} must be a list of non-empty strings")

    if not isinstance(config.get("remote", {}).get("path", "remote"), str):
        problems.append("remote.path must be a string")

    port = config.get("connectivity", {}).get("port", 443)
    if not isinstance(port, int) or not 0 < port < 65536:
        problems.append("connectivity.port must be an integer between 1 and 65535")

    if config.get("log_level", "WARNING") not in LOG_LEVELS:
        problems.append(f"log_level must be one of {', '.join(LOG_LEVELS)}")

    return problems


def collections_for_role(config: dict, role: str | None) -> list[str]:
    """Return the collections a user with *role* syncs at login.

    Unknown or missing roles fall back to ``sync.collections``.
    """
    default = list(config.get("sync", {}).get("collections", ["users"]))
    if role is None:
        return default
    roles = config.get("roles", {})
    if role in roles:
        return list(roles[role])
    return default


def _is_name_list(value: object) -> bool:
    return isinstance(value, list) and all(isinstance(v, str) and v for v in value)
