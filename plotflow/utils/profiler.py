"""Wall-clock timers for evaluation runs.

Provides:
    - timer(): context manager reporting one elapsed time to a sink
    - TimerAccumulator: total and mean over repeated measurements

The evaluator times each run with :func:`timer` and each node kind with
a :class:`TimerAccumulator`, so the DEBUG log shows where a slow flow
spends its time.
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

logger = logging.getLogger(__name__)


@contextmanager
def timer(name: str, sink: Optional[Callable[[str, float], None]] = None) -> Iterator[None]:
    """Context manager for wall-clock timing.

    Parameters
    ----------
    name : str
        Label passed to the sink.
    sink : Optional[Callable[[str, float], None]]
        Called as ``sink(name, elapsed_seconds)``. If None, the time is
        logged at DEBUG.

    Examples
    --------
    >>> times = {}
    >>> with timer("run", sink=times.__setitem__):
    ...     result = expensive()
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        if sink is not None:
            sink(name, elapsed)
        else:
            logger.debug("%s: %.3f s", name, elapsed)


class TimerAccumulator:
    """Accumulate timing measurements for averaging.

    Examples
    --------
    >>> halftone = TimerAccumulator("halftone")
    >>> with halftone.measure():
    ...     paths = generate_halftone(params, [], ctx)
    >>> halftone.mean()
    """

    def __init__(self, name: str):
        self.name = name
        self.total_time = 0.0
        self.count = 0

    @contextmanager
    def measure(self) -> Iterator[None]:
        start = time.perf_counter()
        try:
            yield
        finally:
            self.total_time += time.perf_counter() - start
            self.count += 1

    def mean(self) -> float:
        """Mean seconds per measurement, 0.0 before the first one."""
        return self.total_time / self.count if self.count > 0 else 0.0

    def reset(self) -> None:
        self.total_time = 0.0
        self.count = 0

    def __repr__(self) -> str:
        return f"TimerAccumulator({self.name}, mean={self.mean():.4f}s, count={self.count})"
