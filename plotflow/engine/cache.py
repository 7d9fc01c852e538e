"""Persistent per-node output cache.

Entries are keyed by node id and valid only for the combined hash they
were stored under, so a stale entry is simply a miss.  The cache also
memoizes decoded rasters, keyed by a digest of the image payload, so
editing a halftone's parameters does not decode its image again.

A cache belongs to one engine configuration: :meth:`FlowCache.bind`
clears it when the configuration fingerprint changes.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Iterable

from plotflow.geometry import ColoredPath
from plotflow.nodes.raster import Raster

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    """Output of one node for one combined hash."""

    hash: str
    paths: tuple[ColoredPath, ...]
    error: str | None = None


@dataclass(frozen=True)
class CacheStats:
    """Lookup counters since the cache was created or cleared."""

    hits: int
    misses: int
    size: int

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0

    def to_dict(self) -> dict:
        return {"hits": self.hits, "misses": self.misses, "hit_rate": self.hit_rate, "size": self.size}


class FlowCache:
    """Node outputs plus a bounded LRU of decoded rasters.

    Parameters
    ----------
    max_rasters : int
        Decoded images kept in memory, default 8.
    """

    def __init__(self, max_rasters: int = 8) -> None:
        if max_rasters < 1:
            raise ValueError(f"max_rasters must be >= 1, got {max_rasters}")
        self._entries: dict[str, CacheEntry] = {}
        self._rasters: OrderedDict[str, Raster] = OrderedDict()
        self._max_rasters = max_rasters
        self._fingerprint: str | None = None
        self._hits = 0
        self._misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"FlowCache(size={len(self._entries)}, rasters={len(self._rasters)})"

    # -- configuration ----------------------------------------------------------

    def bind(self, fingerprint: str) -> None:
        """Tie the cache to a configuration; a different one clears it."""
        if self._fingerprint is not None and self._fingerprint != fingerprint:
            logger.info("Engine configuration changed, clearing %d cached nodes", len(self._entries))
            self.clear()
        self._fingerprint = fingerprint

    # -- node outputs -----------------------------------------------------------

    def get(self, node_id: str, node_hash: str) -> CacheEntry | None:
        """Entry for ``node_id`` if it was stored under ``node_hash``."""
        entry = self._entries.get(node_id)
        if entry is not None and entry.hash == node_hash:
            self._hits += 1
            return entry
        self._misses += 1
        return None

    def contains(self, node_id: str, node_hash: str) -> bool:
        """Like :meth:`get` without touching the counters."""
        entry = self._entries.get(node_id)
        return entry is not None and entry.hash == node_hash

    def set(
        self,
        node_id: str,
        paths: Iterable[ColoredPath],
        node_hash: str,
        error: str | None = None,
    ) -> None:
        self._entries[node_id] = CacheEntry(node_hash, tuple(paths), error)

    def invalidate_nodes(self, node_ids: Iterable[str]) -> int:
        """Drop entries for ``node_ids``; returns how many existed."""
        dropped = 0
        for node_id in node_ids:
            if self._entries.pop(node_id, None) is not None:
                dropped += 1
        return dropped

    def prune(self, live_ids: Iterable[str]) -> int:
        """Drop entries of nodes no longer in the graph."""
        live = set(live_ids)
        dead = [node_id for node_id in self._entries if node_id not in live]
        for node_id in dead:
            del self._entries[node_id]
        if dead:
            logger.debug("Pruned %d cache entries of deleted nodes", len(dead))
        return len(dead)

    def clear(self) -> None:
        self._entries.clear()
        self._rasters.clear()
        self._hits = 0
        self._misses = 0

    @property
    def stats(self) -> CacheStats:
        return CacheStats(self._hits, self._misses, len(self._entries))

    # -- rasters ----------------------------------------------------------------

    def raster(self, key: str) -> Raster | None:
        raster = self._rasters.get(key)
        if raster is not None:
            self._rasters.move_to_end(key)
        return raster

    def set_raster(self, key: str, raster: Raster) -> None:
        self._rasters[key] = raster
        self._rasters.move_to_end(key)
        while len(self._rasters) > self._max_rasters:
            self._rasters.popitem(last=False)
