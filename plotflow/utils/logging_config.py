"""Logging setup for the engine and the command line.

Engine modules only ever call ``logging.getLogger(__name__)``; handlers
are attached once by the entry point through :func:`setup_logging`.

Every line carries the contextual fields pushed by the evaluator, so
node failures can be traced back to the flow and node that produced
them:

    2026-03-02T10:15:04.120Z | WARNING  | flow=out node=h | Node h failed: ...
    {"t": "2026-03-02T10:15:04.120000+00:00", "lvl": "WARNING", "flow": "out", "node": "h", ...}

Calling :func:`setup_logging` again swaps the handlers it installed
earlier; handlers installed by anything else (pytest's capture, for
instance) are left alone.
"""

import contextvars
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

_fields: contextvars.ContextVar = contextvars.ContextVar("plotflow_log_fields", default=None)

_installed: List[logging.Handler] = []

_LEVEL_COLORS = {
    logging.DEBUG: "\033[36m",
    logging.INFO: "\033[32m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[31m",
    logging.CRITICAL: "\033[35m",
}


def _active_fields() -> Dict[str, Any]:
    return _fields.get() or {}


class ContextFormatter(logging.Formatter):
    """Render records with the active context fields.

    Parameters
    ----------
    fmt_mode : str
        ``"human"`` for pipe-separated lines, ``"json"`` for one object
        per line.
    use_color : bool
        Colorize the level name; ignored unless stderr is a terminal.
    """

    def __init__(self, fmt_mode: str = "human", use_color: bool = True):
        super().__init__()
        if fmt_mode not in ("human", "json"):
            raise ValueError(f"fmt_mode must be 'human' or 'json', got {fmt_mode!r}")
        self.fmt_mode = fmt_mode
        self.use_color = use_color and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
        fields = _active_fields()
        text = self._json_line(record, stamp, fields) if self.fmt_mode == "json" else self._human_line(record, stamp, fields)
        if record.exc_info and self.fmt_mode == "human":
            text = f"{text}\n{self.formatException(record.exc_info)}"
        return text

    def _json_line(self, record: logging.LogRecord, stamp: datetime, fields: Dict[str, Any]) -> str:
        payload: Dict[str, Any] = {"t": stamp.isoformat(), "lvl": record.levelname, "name": record.name}
        payload.update(fields)
        payload["msg"] = record.getMessage()
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)

    def _human_line(self, record: logging.LogRecord, stamp: datetime, fields: Dict[str, Any]) -> str:
        level = f"{record.levelname:8s}"
        if self.use_color:
            level = f"{_LEVEL_COLORS.get(record.levelno, '')}{level}\033[0m"
        columns = [stamp.strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z", level]
        if fields:
            columns.append(" ".join(f"{key}={value}" for key, value in fields.items()))
        columns.append(record.getMessage())
        return " | ".join(columns)


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    *,
    json: bool = False,
    color: bool = True,
) -> List[logging.Handler]:
    """Attach a console handler and, optionally, a file handler to the root logger.

    Parameters
    ----------
    log_level : str
        Standard level name, case-insensitive.
    log_file : str, optional
        Also write to this file (parent directories are created).
    json : bool
        Write the file as JSON lines; the console stays human-readable.
    color : bool
        Colored level names on the console.

    Returns
    -------
    list[logging.Handler]
        The handlers now installed.

    Raises
    ------
    ValueError
        If ``log_level`` is not a level name.
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level!r}")

    root = logging.getLogger()
    while _installed:
        old = _installed.pop()
        root.removeHandler(old)
        old.close()

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(ContextFormatter("human", color))
    _installed.append(console)
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(ContextFormatter("json" if json else "human", use_color=False))
        _installed.append(file_handler)

    root.setLevel(level)
    for handler in _installed:
        root.addHandler(handler)
    logging.getLogger("PIL").setLevel(logging.WARNING)
    route_warnings()
    return list(_installed)


def push_context(**kwargs: Any) -> None:
    """Add fields to every following log line.

    Examples
    --------
    >>> push_context(flow="out-1")
    >>> logger.info("Evaluated")  # -> "... | flow=out-1 | Evaluated"
    """
    _fields.set({**_active_fields(), **kwargs})


def pop_context(keys: Optional[List[str]] = None) -> None:
    """Drop the named fields, or every field when ``keys`` is None."""
    if keys is None:
        _fields.set({})
    else:
        _fields.set({key: value for key, value in _active_fields().items() if key not in keys})


def install_excepthook() -> None:
    """Route uncaught exceptions, other than Ctrl+C, to the log."""
    previous = sys.excepthook

    def _log_uncaught(exc_type, exc_value, exc_traceback):
        if issubclass(exc_type, KeyboardInterrupt):
            previous(exc_type, exc_value, exc_traceback)
            return
        logging.getLogger("plotflow").critical("Uncaught exception", exc_info=(exc_type, exc_value, exc_traceback))

    sys.excepthook = _log_uncaught


def route_warnings() -> None:
    """Send ``warnings.warn`` output through the ``py.warnings`` logger."""
    logging.captureWarnings(True)
