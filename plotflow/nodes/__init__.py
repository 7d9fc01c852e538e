"""Node algorithm library: one function per node kind.

Each algorithm maps ``(params, inputs, ctx)`` to a list of
:class:`~plotflow.geometry.ColoredPath`; :mod:`plotflow.nodes.registry`
holds the dispatch table used by the evaluator.
"""

from plotflow.nodes.batak import BatakScript, default_script
from plotflow.nodes.code import SandboxResult, run_code_node
from plotflow.nodes.context import NodeContext
from plotflow.nodes.raster import Raster, RasterError, decode_data_url
from plotflow.nodes.registry import HANDLERS, NodeOutput, run_node
from plotflow.nodes.sandbox import (
    SandboxError,
    SandboxLimitError,
    SandboxOutputError,
    SandboxProgram,
    SandboxRuntimeError,
    SandboxSecurityError,
    SandboxSyntaxError,
)

__all__ = [
    "HANDLERS",
    "BatakScript",
    "NodeContext",
    "NodeOutput",
    "Raster",
    "RasterError",
    "SandboxError",
    "SandboxLimitError",
    "SandboxOutputError",
    "SandboxProgram",
    "SandboxResult",
    "SandboxRuntimeError",
    "SandboxSecurityError",
    "SandboxSyntaxError",
    "decode_data_url",
    "default_script",
    "run_code_node",
    "run_node",
]
