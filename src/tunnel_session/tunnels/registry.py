"""Thread-safe cache of open tunnels, keyed by public URL."""

import threading
from collections.abc import Iterable

from ..common.logging import get_logger
from .models import Tunnel

logger = get_logger(__name__)


class TunnelCache:
    """In-memory view of the tunnels the agent has open.

    Safe to share between threads: every operation holds an internal lock for
    the duration of a dict mutation only, never across I/O. ``replace_all``
    swaps the whole content under a single lock hold, so readers never observe
    a mix of stale and freshly listed tunnels.
    """

    def __init__(self) -> None:
        self._tunnels: dict[str, Tunnel] = {}
        self._lock = threading.Lock()

    def add(self, tunnel: Tunnel) -> None:
        """Insert or overwrite the entry for ``tunnel.public_url``."""
        with self._lock:
            self._tunnels[tunnel.public_url] = tunnel
        logger.debug("Cached tunnel", public_url=tunnel.public_url, name=tunnel.name)

    def get(self, public_url: str) -> Tunnel | None:
        with self._lock:
            return self._tunnels.get(public_url)

    def replace_all(self, tunnels: Iterable[Tunnel]) -> list[Tunnel]:
        """Clear the cache and repopulate it from ``tunnels``.

        Returns:
            The cached tunnels, in listing order
        """
        fresh = {tunnel.public_url: tunnel for tunnel in tunnels}
        with self._lock:
            self._tunnels = fresh
        logger.debug("Replaced tunnel cache", count=len(fresh))
        return list(fresh.values())

    def clear(self) -> None:
        with self._lock:
            self._tunnels = {}

    def values(self) -> list[Tunnel]:
        """Snapshot of cached tunnels."""
        with self._lock:
            return list(self._tunnels.values())

    def public_urls(self) -> set[str]:
        """Snapshot of cached public URLs, for callers comparing against a listing.

        Entries only leave the cache through ``replace_all`` or ``clear``; a
        disconnected tunnel stays until the next listing.
        """
        with self._lock:
            return set(self._tunnels)

    def __contains__(self, public_url: object) -> bool:
        with self._lock:
            return public_url in self._tunnels

    def __len__(self) -> int:
        with self._lock:
            return len(self._tunnels)
