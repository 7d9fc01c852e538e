"""Cross-cutting utilities (lowest dependency layer).

This package provides shared primitives for:
    - Atomic I/O and document loading (fs)
    - Hashing for cache keys (hashing)
    - Unified logging (logging_config)
    - Run and per-kind timing (profiler)

No module in utils/ may import from upper layers (graph, nodes, engine).

Convenience imports:
    from plotflow.utils import fs, hashing
    from plotflow.utils.logging_config import setup_logging, push_context
"""

from . import fs
from . import hashing
from . import logging_config
from . import profiler

from .logging_config import pop_context, push_context, setup_logging

__all__ = [
    # Modules
    'fs',
    'hashing',
    'logging_config',
    'profiler',
    # Direct exports
    'setup_logging',
    'push_context',
    'pop_context',
]
