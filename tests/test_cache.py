"""Tests for the node output cache.

Tests for plotflow.engine.cache:
    - Entries valid only for the hash they were stored under
    - Hit / miss counters and hit rate
    - Invalidation, pruning of deleted nodes, clearing
    - Configuration binding
    - Raster LRU bound

Run:
    pytest tests/test_cache.py -v
"""

import numpy as np
import pytest

from plotflow.engine.cache import FlowCache
from plotflow.geometry import ColoredPath
from plotflow.nodes.raster import Raster


@pytest.fixture
def cache():
    return FlowCache()


@pytest.fixture
def paths():
    return [ColoredPath(((0.0, 0.0), (1.0, 1.0)))]


class TestEntries:
    """get / set / contains."""

    def test_hit_and_stale_hash(self, cache, paths):
        cache.set("a", paths, "h1")
        entry = cache.get("a", "h1")
        assert entry.paths == tuple(paths)
        assert entry.error is None
        assert cache.get("a", "h2") is None
        assert cache.get("missing", "h1") is None

    def test_counters(self, cache, paths):
        cache.set("a", paths, "h1")
        cache.get("a", "h1")
        cache.get("a", "h1")
        cache.get("b", "h1")
        stats = cache.stats
        assert (stats.hits, stats.misses, stats.size) == (2, 1, 1)
        assert stats.hit_rate == pytest.approx(2 / 3)
        assert stats.to_dict()["hits"] == 2

    def test_empty_hit_rate(self, cache):
        assert cache.stats.hit_rate == 0.0

    def test_contains_does_not_count(self, cache, paths):
        cache.set("a", paths, "h1")
        assert cache.contains("a", "h1")
        assert not cache.contains("a", "h2")
        assert cache.stats.hits == 0
        assert cache.stats.misses == 0

    def test_error_kept_with_entry(self, cache):
        cache.set("code", [], "h", error="SandboxRuntimeError: boom")
        assert cache.get("code", "h").error == "SandboxRuntimeError: boom"

    def test_stored_paths_are_a_snapshot(self, cache, paths):
        cache.set("a", paths, "h")
        paths.append(ColoredPath(((2.0, 2.0), (3.0, 3.0))))
        assert len(cache.get("a", "h").paths) == 1


class TestMaintenance:
    """invalidate_nodes / prune / clear / bind."""

    def test_invalidate(self, cache, paths):
        cache.set("a", paths, "h")
        cache.set("b", paths, "h")
        assert cache.invalidate_nodes(["a", "zzz"]) == 1
        assert len(cache) == 1
        assert cache.get("a", "h") is None

    def test_prune(self, cache, paths):
        for node_id in "abc":
            cache.set(node_id, paths, "h")
        assert cache.prune({"b"}) == 2
        assert len(cache) == 1
        assert cache.contains("b", "h")

    def test_clear_resets_everything(self, cache, paths):
        cache.set("a", paths, "h")
        cache.get("a", "h")
        cache.set_raster("k", Raster(np.ones((2, 2))))
        cache.clear()
        assert len(cache) == 0
        assert cache.stats.hits == 0
        assert cache.raster("k") is None

    def test_bind_same_fingerprint_keeps(self, cache, paths):
        cache.bind("cfg1")
        cache.set("a", paths, "h")
        cache.bind("cfg1")
        assert len(cache) == 1

    def test_bind_new_fingerprint_clears(self, cache, paths):
        cache.bind("cfg1")
        cache.set("a", paths, "h")
        cache.bind("cfg2")
        assert len(cache) == 0


class TestRasters:
    """raster / set_raster."""

    def test_lru_bound(self):
        cache = FlowCache(max_rasters=2)
        for key in ("a", "b"):
            cache.set_raster(key, Raster(np.ones((1, 1))))
        cache.raster("a")  # refresh a
        cache.set_raster("c", Raster(np.ones((1, 1))))
        assert cache.raster("b") is None
        assert cache.raster("a") is not None
        assert cache.raster("c") is not None

    def test_bad_bound(self):
        with pytest.raises(ValueError):
            FlowCache(max_rasters=0)
