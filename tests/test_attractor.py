"""Tests for the strange-attractor generator.

Tests for plotflow.nodes.attractor:
    - Divergence at iteration 42 stops the trace exactly there
    - Output chunked into sub-paths of at most chunk_size points
    - Consecutive chunks share their boundary point
    - Every variant yields finite points; unknown variant raises

Run:
    pytest tests/test_attractor.py -v
"""

import math

import pytest

from plotflow.configs.loader import AttractorLimits, Limits
from plotflow.graph import NodeKind, parse_params
from plotflow.nodes import NodeContext, attractor
from plotflow.nodes.attractor import chunk_points, generate_attractor, make_step, trace


def _diverging_step(warmup, diverge_at):
    """Step that walks along x and blows up on recorded iteration ``diverge_at``."""
    calls = {"n": 0}

    def step(x, y):
        calls["n"] += 1
        recorded = calls["n"] - warmup - 1
        if recorded == diverge_at:
            return 1e9, 1e9
        return float(calls["n"]), 0.0

    return step


class TestTrace:
    """Warm-up, iteration cap and divergence guard."""

    def test_divergence_at_42(self):
        limits = AttractorLimits()
        orbit = trace(_diverging_step(limits.warmup_steps, 42), 5000, limits)
        assert len(orbit) == 42
        # first recorded point is the first step after warm-up
        assert orbit[0] == (limits.warmup_steps + 1.0, 0.0)
        assert orbit[-1] == (limits.warmup_steps + 42.0, 0.0)

    def test_nan_stops_trace(self):
        orbit = trace(lambda x, y: (math.nan, 0.0), 100, AttractorLimits(warmup_steps=1))
        assert orbit == []

    def test_overflow_contained(self):
        orbit = trace(lambda x, y: (x * 1e200, y * 1e200), 100, AttractorLimits(warmup_steps=1))
        assert orbit == []

    def test_iteration_cap(self):
        orbit = trace(lambda x, y: (0.5, 0.5), 250, AttractorLimits())
        assert len(orbit) == 250


class TestChunking:
    """chunk_points."""

    def test_chunks_share_boundaries(self):
        points = [(float(i), 0.0) for i in range(1200)]
        chunks = chunk_points(points, 500)
        assert all(len(c) <= 500 for c in chunks)
        for a, b in zip(chunks, chunks[1:]):
            assert a[-1] == b[0]
        assert chunks[0][0] == points[0]
        assert chunks[-1][-1] == points[-1]

    def test_single_point_dropped(self):
        assert chunk_points([(0.0, 0.0)], 500) == []


class TestGenerateAttractor:
    """Node entry point."""

    def test_injected_divergence_through_node(self, monkeypatch):
        monkeypatch.setattr(
            attractor, "make_step", lambda *args: _diverging_step(100, 42)
        )
        params = parse_params(
            NodeKind.ATTRACTOR, {"iterations": 5000, "scale": 1, "centerX": 0, "centerY": 0}
        )
        paths = generate_attractor(params, [], NodeContext())
        assert len(paths) == 1
        assert len(paths[0].points) == 42
        assert paths[0].points[0] == (101.0, 0.0)
        assert paths[0].points[-1] == (142.0, 0.0)

    def test_chunks_at_most_500(self):
        params = parse_params(NodeKind.ATTRACTOR, {"iterations": 5000, "color": 3})
        paths = generate_attractor(params, [], NodeContext())
        assert len(paths) > 1
        assert all(len(p.points) <= 500 for p in paths)
        assert all(p.color == 3 for p in paths)

    def test_chunk_size_from_limits(self):
        limits = Limits(attractor=AttractorLimits(chunk_size=50))
        params = parse_params(NodeKind.ATTRACTOR, {"iterations": 1000})
        paths = generate_attractor(params, [], NodeContext(limits=limits))
        assert max(len(p.points) for p in paths) == 50

    @pytest.mark.parametrize("kind", ["clifford", "dejong", "bedhead", "tinkerbell", "gumowski"])
    def test_variants_finite(self, kind):
        step = make_step(kind, -1.4, 1.6, 1.0, 0.7)
        orbit = trace(step, 200, AttractorLimits())
        assert all(math.isfinite(x) and math.isfinite(y) for x, y in orbit)

    def test_unknown_variant(self):
        with pytest.raises(ValueError, match="Unknown attractor type"):
            make_step("lorenz", 1, 1, 1, 1)
