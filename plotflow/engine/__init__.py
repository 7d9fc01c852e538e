"""
Evaluation engine.

Content-addressed node hashing, the persistent :class:`FlowCache` and
the pull-based evaluator that turns a :class:`~plotflow.graph.Graph`
into plotter paths.
"""

from plotflow.engine.cache import CacheEntry, CacheStats, FlowCache
from plotflow.engine.evaluator import ExecutionResult, RunStats, evaluate, execute_flow
from plotflow.engine.node_hash import CYCLE_MARKER, compute_hashes, data_hash

__all__ = [
    "CYCLE_MARKER",
    "CacheEntry",
    "CacheStats",
    "ExecutionResult",
    "FlowCache",
    "RunStats",
    "compute_hashes",
    "data_hash",
    "evaluate",
    "execute_flow",
]
