"""Configuration loader for the flow engine.

Loads and validates ``engine.yaml`` into typed, frozen dataclasses. The
per-node safety limits (iteration caps, expansion ceilings, emitted
path ceilings) live here rather than in the node modules so a whole
run sees one consistent set.

Usage::

    from plotflow.configs import load_config
    cfg = load_config()                      # shipped defaults
    cfg = load_config("/custom/engine.yaml") # explicit path
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from plotflow.utils.fs import load_yaml
from plotflow.utils.hashing import hash_dict

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent / "engine.yaml"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(Exception):
    """Raised when configuration validation fails."""

    pass


# ---------------------------------------------------------------------------
# Dataclasses -- mirror the YAML structure
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AttractorLimits:
    """Iterated-map safety valves."""

    warmup_steps: int = 100
    chunk_size: int = 500
    divergence_bound: float = 1e6


@dataclass(frozen=True)
class LSystemLimits:
    """String-rewrite and turtle safety valves."""

    max_length: int = 50_000
    max_paths: int = 5_000


@dataclass(frozen=True)
class BytebeatLimits:
    max_count: int = 256


@dataclass(frozen=True)
class PathLayoutLimits:
    arclength_samples: int = 100


@dataclass(frozen=True)
class SandboxLimits:
    """Budget for one execution of user code.

    ``max_steps`` counts executed statements, loop iterations and
    function calls together, plus one step per item a builtin or helper
    consumes or builds.
    """

    max_steps: int = 200_000
    max_depth: int = 64
    max_sequence: int = 1_000_000


@dataclass(frozen=True)
class ImageLimits:
    fingerprint_prefix: int = 100


@dataclass(frozen=True)
class MaskLimits:
    densify_divisions: int = 400


@dataclass(frozen=True)
class Limits:
    """All per-node safety limits."""

    attractor: AttractorLimits = field(default_factory=AttractorLimits)
    lsystem: LSystemLimits = field(default_factory=LSystemLimits)
    bytebeat: BytebeatLimits = field(default_factory=BytebeatLimits)
    path_layout: PathLayoutLimits = field(default_factory=PathLayoutLimits)
    sandbox: SandboxLimits = field(default_factory=SandboxLimits)
    image: ImageLimits = field(default_factory=ImageLimits)
    mask: MaskLimits = field(default_factory=MaskLimits)


@dataclass(frozen=True)
class BatakConfig:
    """Batak renderer settings.  ``glyph_table`` None uses the shipped table."""

    glyph_table: str | None = None


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"
    file: str | None = None
    json: bool = False
    color: bool = True


@dataclass(frozen=True)
class EngineConfig:
    """Top-level engine configuration."""

    limits: Limits = field(default_factory=Limits)
    batak: BatakConfig = field(default_factory=BatakConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def fingerprint(self) -> str:
        """Digest of every setting that can change node output."""
        return hash_dict({"limits": asdict(self.limits), "batak": asdict(self.batak)})


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _section(data: dict[str, Any], key: str) -> dict[str, Any]:
    value = data.get(key) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"'{key}' must be a mapping, got {type(value).__name__}")
    return value


def _positive_int(section: str, data: dict[str, Any], key: str, default: int) -> int:
    raw = data.get(key, default)
    if isinstance(raw, bool) or not isinstance(raw, (int, float)) or int(raw) != raw:
        raise ConfigError(f"{section}.{key} must be an integer, got {raw!r}")
    if raw <= 0:
        raise ConfigError(f"{section}.{key} must be > 0, got {raw}")
    return int(raw)


def _parse_limits(data: dict[str, Any]) -> Limits:
    att = _section(data, "attractor")
    bound = att.get("divergence_bound", 1e6)
    if isinstance(bound, bool) or not isinstance(bound, (int, float)) or bound <= 0:
        raise ConfigError(f"attractor.divergence_bound must be a positive number, got {bound!r}")
    attractor = AttractorLimits(
        warmup_steps=_positive_int("attractor", att, "warmup_steps", 100),
        chunk_size=_positive_int("attractor", att, "chunk_size", 500),
        divergence_bound=float(bound),
    )
    if attractor.chunk_size < 2:
        raise ConfigError(f"attractor.chunk_size must be >= 2, got {attractor.chunk_size}")

    ls = _section(data, "lsystem")
    sb = _section(data, "sandbox")
    return Limits(
        attractor=attractor,
        lsystem=LSystemLimits(
            max_length=_positive_int("lsystem", ls, "max_length", 50_000),
            max_paths=_positive_int("lsystem", ls, "max_paths", 5_000),
        ),
        bytebeat=BytebeatLimits(
            max_count=_positive_int("bytebeat", _section(data, "bytebeat"), "max_count", 256),
        ),
        path_layout=PathLayoutLimits(
            arclength_samples=_positive_int(
                "path_layout", _section(data, "path_layout"), "arclength_samples", 100
            ),
        ),
        sandbox=SandboxLimits(
            max_steps=_positive_int("sandbox", sb, "max_steps", 200_000),
            max_depth=_positive_int("sandbox", sb, "max_depth", 64),
            max_sequence=_positive_int("sandbox", sb, "max_sequence", 1_000_000),
        ),
        image=ImageLimits(
            fingerprint_prefix=_positive_int("image", _section(data, "image"), "fingerprint_prefix", 100),
        ),
        mask=MaskLimits(
            densify_divisions=_positive_int("mask", _section(data, "mask"), "densify_divisions", 400),
        ),
    )


def _parse_logging(data: dict[str, Any]) -> LoggingConfig:
    level = str(data.get("level", "INFO")).upper()
    if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
        raise ConfigError(f"logging.level must be a standard level name, got {level!r}")
    log_file = data.get("file")
    return LoggingConfig(
        level=level,
        file=str(log_file) if log_file else None,
        json=bool(data.get("json", False)),
        color=bool(data.get("color", True)),
    )


def parse_config(data: dict[str, Any] | None) -> EngineConfig:
    """Build an :class:`EngineConfig` from an already-loaded mapping.

    Missing sections and keys take their defaults.

    Raises
    ------
    ConfigError
        If a value has the wrong type or is out of range.
    """
    if data is None:
        return EngineConfig()
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration root must be a mapping, got {type(data).__name__}")

    batak = _section(data, "batak")
    glyph_table = batak.get("glyph_table")
    return EngineConfig(
        limits=_parse_limits(_section(data, "limits")),
        batak=BatakConfig(glyph_table=str(glyph_table) if glyph_table else None),
        logging=_parse_logging(_section(data, "logging")),
    )


def load_config(path: str | Path | None = None) -> EngineConfig:
    """Load and validate engine configuration from YAML.

    Parameters
    ----------
    path : str | Path | None
        Path to ``engine.yaml``.  ``None`` loads the default shipped
        alongside this module.

    Returns
    -------
    EngineConfig
        Fully validated, frozen configuration object.

    Raises
    ------
    ConfigError
        If any field fails validation.
    FileNotFoundError
        If *path* does not exist.
    """
    path = DEFAULT_CONFIG_PATH if path is None else Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    logger.info("Loading configuration from %s", path)
    cfg = parse_config(load_yaml(path))
    logger.debug("Configuration fingerprint %s", cfg.fingerprint[:12])
    return cfg
