"""Pull-based flow evaluation.

One run:

1. Bind the cache to the configuration and prune entries of deleted
   nodes.
2. Find the ``output`` node; a flow without one evaluates to nothing.
3. Hash every node (:mod:`plotflow.engine.node_hash`).
4. Walk depth-first from the output to order every reachable node
   after its inputs.  Dependencies that close a cycle resolve to no
   paths.
5. Look every reachable node up in the cache by its combined hash.
6. Decode the images feeding raster kinds that missed.
7. Compute the misses in dependency order through
   :data:`plotflow.nodes.registry.HANDLERS` and store them in the cache.

Node failures are contained: the node contributes no paths, its message
lands in ``node_errors`` and the rest of the flow still renders.  A
failed node, and everything computed from its output, is left out of
the cache so the next run retries it.  Only an engine bug makes
:func:`execute_flow` report ``success=False``.

Usage::

    cache = FlowCache()
    result = execute_flow(graph, cache)
    result = execute_flow(graph.with_node(edited), cache)  # recomputes dependents only
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from functools import lru_cache

from plotflow.configs.loader import EngineConfig
from plotflow.engine.cache import CacheEntry, CacheStats, FlowCache
from plotflow.engine.node_hash import compute_hashes
from plotflow.engine.traversal import Dependency, input_dependencies, post_order
from plotflow.geometry import ColoredPath
from plotflow.graph import RASTER_KINDS, Graph, Node, NodeKind
from plotflow.nodes.batak import BatakScript, default_script
from plotflow.nodes.context import NodeContext
from plotflow.nodes.raster import Raster, RasterError, decode_data_url
from plotflow.nodes.registry import run_node
from plotflow.utils.hashing import sha256_string
from plotflow.utils.logging_config import pop_context, push_context
from plotflow.utils.profiler import TimerAccumulator, timer

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass
class RunStats:
    """Node ids by what happened to them in one run."""

    hits: list[str] = field(default_factory=list)
    misses: list[str] = field(default_factory=list)
    computed: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"hits": list(self.hits), "misses": list(self.misses), "computed": list(self.computed)}


@dataclass
class ExecutionResult:
    """Outcome of :func:`execute_flow`.

    Attributes
    ----------
    success : bool
        False only when evaluation itself crashed.
    paths : list[ColoredPath]
        Output of the ``output`` node.
    error : str | None
        Crash message when ``success`` is False.
    execution_time : float
        Wall-clock seconds.
    node_errors : dict[str, str]
        Node id -> message for nodes that failed and contributed nothing
        (or, for ``code`` nodes, whose program reported an error).
    cache_stats : CacheStats
        Cumulative counters of the cache used.
    stats : RunStats
        What this run hit, missed and computed.
    """

    success: bool
    paths: list[ColoredPath]
    error: str | None = None
    execution_time: float = 0.0
    node_errors: dict[str, str] = field(default_factory=dict)
    cache_stats: CacheStats = field(default_factory=lambda: CacheStats(0, 0, 0))
    stats: RunStats = field(default_factory=RunStats)

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "error": self.error,
            "execution_time": self.execution_time,
            "paths": [p.to_dict() for p in self.paths],
            "node_errors": dict(self.node_errors),
            "cache_stats": self.cache_stats.to_dict(),
            "stats": self.stats.to_dict(),
        }


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def find_image_data(graph: Graph, node_id: str) -> str | None:
    """Image payload of the nearest upstream node that carries one.

    Breadth-first over incoming edges in their sorted order.
    """
    queue = deque(edge.source for edge in graph.incoming(node_id))
    seen = {node_id}
    while queue:
        source = queue.popleft()
        if source in seen:
            continue
        seen.add(source)
        node = graph.node(source)
        data = getattr(node.params, "image_data", None) if node is not None else None
        if data:
            return data
        queue.extend(edge.source for edge in graph.incoming(source))
    return None


@lru_cache(maxsize=4)
def _load_script(glyph_table: str | None) -> BatakScript:
    return default_script(glyph_table)


class _Evaluation:
    """State of a single run."""

    def __init__(self, graph: Graph, cache: FlowCache, config: EngineConfig, stats: RunStats) -> None:
        self.graph = graph
        self.cache = cache
        self.config = config
        self.stats = stats
        self.node_errors: dict[str, str] = {}
        self.timings: dict[NodeKind, TimerAccumulator] = {}
        self._uncacheable: set[str] = set()

    def run(self, sink: Node) -> list[ColoredPath]:
        graph = self.graph
        for edge in graph.dangling_edges():
            logger.debug("Skipping dangling edge %s -> %s", edge.source, edge.target)

        hashes = compute_hashes(graph, self.config.limits.image.fingerprint_prefix)

        plans: dict[str, list[Dependency]] = {}

        def dependencies(node_id: str) -> list[Dependency]:
            plans[node_id] = input_dependencies(graph, node_id)
            return plans[node_id]

        order, back_edges = post_order([sink.id], dependencies)
        for node_id, index in sorted(back_edges):
            logger.warning(
                "Cycle: input %s of node %s is still being evaluated, using no paths",
                plans[node_id][index].source,
                node_id,
            )

        cached: dict[str, CacheEntry] = {}
        for node_id in order:
            entry = self.cache.get(node_id, hashes[node_id])
            if entry is not None:
                cached[node_id] = entry

        rasters = self._decode_rasters(
            [n for n in order if n not in cached and graph.node(n).kind in RASTER_KINDS]
        )

        outputs: dict[str, list[ColoredPath]] = {}
        for node_id in order:
            entry = cached.get(node_id)
            if entry is not None:
                self.stats.hits.append(node_id)
                outputs[node_id] = list(entry.paths)
                if entry.error is not None:
                    self.node_errors[node_id] = entry.error
                continue

            self.stats.misses.append(node_id)
            inputs: list[ColoredPath] = []
            for index, dep in enumerate(plans[node_id]):
                if (node_id, index) not in back_edges:
                    inputs.extend(outputs[dep.source])
                    if dep.source in self._uncacheable:
                        self._uncacheable.add(node_id)
            outputs[node_id] = self._compute(graph.node(node_id), inputs, hashes[node_id], rasters.get(node_id))

        for kind, acc in sorted(self.timings.items(), key=lambda item: -item[1].total_time):
            logger.debug("%s: %d nodes, %.4f s total", kind.value, acc.count, acc.total_time)
        return outputs[sink.id]

    def _decode_rasters(self, node_ids: list[str]) -> dict[str, Raster]:
        found: dict[str, Raster] = {}
        failures: dict[str, str] = {}
        for node_id in node_ids:
            data = find_image_data(self.graph, node_id)
            if data is None:
                continue
            key = sha256_string(data)
            if key in failures:
                self._fail(node_id, failures[key])
                continue
            raster = self.cache.raster(key)
            if raster is None:
                try:
                    raster = decode_data_url(data)
                except RasterError as exc:
                    failures[key] = str(exc)
                    self._fail(node_id, str(exc))
                    continue
                self.cache.set_raster(key, raster)
            found[node_id] = raster
        return found

    def _fail(self, node_id: str, message: str) -> None:
        logger.warning("Node %s failed: %s", node_id, message)
        self.node_errors[node_id] = message
        self._uncacheable.add(node_id)

    def _compute(
        self, node: Node, inputs: list[ColoredPath], node_hash: str, raster: Raster | None
    ) -> list[ColoredPath]:
        timing = self.timings.setdefault(node.kind, TimerAccumulator(node.kind.value))
        push_context(node=node.id)
        try:
            with timing.measure():
                script = _load_script(self.config.batak.glyph_table) if node.kind is NodeKind.BATAK else None
                ctx = NodeContext(node.id, self.config.limits, raster, script)
                out = run_node(node.kind, node.params, inputs, ctx)
        except Exception as exc:
            self._fail(node.id, f"{type(exc).__name__}: {exc}")
            return []
        finally:
            pop_context(["node"])

        self.stats.computed.append(node.id)
        logger.debug("Computed %s (%s): %d paths", node.id, node.kind.value, len(out.paths))
        if out.error is not None:
            logger.warning("Node %s (%s): %s", node.id, node.kind.value, out.error)
            self.node_errors[node.id] = out.error
        if node.id not in self._uncacheable:
            self.cache.set(node.id, out.paths, node_hash, out.error)
        return out.paths


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


def execute_flow(
    graph: Graph, cache: FlowCache | None = None, config: EngineConfig | None = None
) -> ExecutionResult:
    """Evaluate ``graph`` and report paths, node errors and statistics.

    Parameters
    ----------
    graph : Graph
        Flow snapshot.
    cache : FlowCache, optional
        Reused across calls for incremental re-evaluation; a throwaway
        cache is used when omitted.
    config : EngineConfig, optional
        Limits and resources; built-in defaults when omitted.

    Returns
    -------
    ExecutionResult
        Never raises; unexpected errors yield ``success=False``.
    """
    cache = cache if cache is not None else FlowCache()
    config = config if config is not None else EngineConfig()
    stats = RunStats()
    timings: dict[str, float] = {}
    evaluation = _Evaluation(graph, cache, config, stats)
    paths: list[ColoredPath] = []
    error: str | None = None

    sink = graph.output_node()
    push_context(flow=sink.id if sink is not None else "-")
    try:
        with timer("flow", sink=timings.__setitem__):
            cache.bind(config.fingerprint)
            cache.prune(graph.node_ids())
            if sink is None:
                logger.info("Flow has no output node, nothing to draw")
            else:
                paths = evaluation.run(sink)
        logger.info(
            "Evaluated %d nodes: %d paths, %d computed, %d cached, %d errors in %.3f s",
            len(graph),
            len(paths),
            len(stats.computed),
            len(stats.hits),
            len(evaluation.node_errors),
            timings["flow"],
        )
    except Exception as exc:
        logger.exception("Flow evaluation failed")
        error = f"{type(exc).__name__}: {exc}"
        paths = []
    finally:
        pop_context(["flow"])

    elapsed = timings.get("flow", 0.0)
    return ExecutionResult(
        success=error is None,
        paths=paths,
        error=error,
        execution_time=elapsed,
        node_errors=dict(evaluation.node_errors),
        cache_stats=cache.stats,
        stats=stats,
    )


def evaluate(
    graph: Graph, cache: FlowCache | None = None, config: EngineConfig | None = None
) -> list[ColoredPath]:
    """Paths of ``graph``'s output node; empty if evaluation failed."""
    return execute_flow(graph, cache, config).paths
