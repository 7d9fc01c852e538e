#!/usr/bin/env python3
"""Render a flow document to plotter paths.

Loads a flow (``.json`` or YAML), evaluates it and writes the output
node's paths together with per-node errors and run statistics.

Usage:
    python scripts/render_flow.py drawing.flow.json
    python scripts/render_flow.py drawing.flow.json --out paths.json --log-level DEBUG
    python scripts/render_flow.py drawing.flow.yaml --config my_engine.yaml --json-logs
"""
import argparse
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from plotflow.configs import ConfigError, load_config
from plotflow.engine import FlowCache, execute_flow
from plotflow.graph import FlowDocumentError, load_flow
from plotflow.utils import fs
from plotflow.utils.logging_config import install_excepthook, setup_logging

logger = logging.getLogger("render_flow")


def main() -> int:
    """CLI entrypoint for flow rendering."""
    parser = argparse.ArgumentParser(
        description="Evaluate a node-graph flow into plotter paths",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Output:
  {paths: [{color, points}], node_errors: {id: message}, stats: {...}}
  written as JSON when --out ends in .json, YAML otherwise.

Exit status:
  0 when the flow evaluated (node errors are reported, not fatal)
  1 when the document, the configuration or the evaluation failed
""",
    )
    parser.add_argument("flow", type=Path, help="Flow document (.json or .yaml)")
    parser.add_argument(
        "--out",
        type=Path,
        default=Path("paths.yaml"),
        help="Output file (default: paths.yaml)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Engine configuration YAML (default: shipped engine.yaml)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Console log level (default: from the configuration)",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Write the log file, if configured, as JSON lines",
    )

    args = parser.parse_args()

    try:
        config = load_config(args.config)
    except (ConfigError, FileNotFoundError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    setup_logging(
        log_level=args.log_level or config.logging.level,
        log_file=config.logging.file,
        json=args.json_logs or config.logging.json,
        color=config.logging.color,
    )
    install_excepthook()

    try:
        graph = load_flow(args.flow)
    except (FlowDocumentError, FileNotFoundError) as e:
        logger.error("Cannot load flow: %s", e)
        return 1

    result = execute_flow(graph, FlowCache(), config)
    if not result.success:
        logger.error("Evaluation failed: %s", result.error)
        return 1

    fs.dump_document(
        {
            "paths": [p.to_dict() for p in result.paths],
            "node_errors": result.node_errors,
            "stats": {
                "execution_time": result.execution_time,
                **result.stats.to_dict(),
                "cache": result.cache_stats.to_dict(),
            },
        },
        args.out,
    )

    points = sum(len(p.points) for p in result.paths)
    print(
        f"{args.flow.name}: {len(result.paths)} paths, {points} points, "
        f"{len(result.node_errors)} node errors, {result.execution_time:.3f} s -> {args.out}"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
