"""Reachability checks run before a background sync."""

from __future__ import annotations

import logging
import socket
from collections.abc import Callable

logger = logging.getLogger(__name__)


def tcp_probe(host: str, port: int = 443, timeout: float = 3.0) -> bool:
    """Return ``True`` if a TCP connection to *host*:*port* succeeds."""
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError as exc:
        logger.info("connectivity probe to %s:%s failed: %s", host, port, exc)
        return False


def probe_from_config(config: dict | None) -> Callable[[], bool]:
    """Build an ``is_online`` callable from the ``connectivity`` config section.

    No host configured means the device is assumed online.
    """
    section = (config or {}).get("connectivity", {})
    host = section.get("host") or ""
    if not host:
        return lambda: True
    port = int(section.get("port", 443))
    timeout = float(section.get("timeout_seconds", 3.0))
    return lambda: tcp_probe(host, port, timeout)
