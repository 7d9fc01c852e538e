"""Engine configuration loading and validation."""

from plotflow.configs.loader import (
    ConfigError,
    EngineConfig,
    Limits,
    LoggingConfig,
    load_config,
    parse_config,
)

__all__ = [
    "ConfigError",
    "EngineConfig",
    "Limits",
    "LoggingConfig",
    "load_config",
    "parse_config",
]
