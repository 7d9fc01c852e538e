"""Tests for engine configuration loading.

Tests for plotflow.configs.loader:
    - Shipped engine.yaml matches the built-in defaults
    - Missing sections and keys take defaults
    - Type and range validation raises ConfigError
    - Fingerprint tracks output-affecting settings only

Run:
    pytest tests/test_config.py -v
"""

import pytest
import yaml

from plotflow.configs import ConfigError, EngineConfig, load_config, parse_config


class TestLoad:
    """load_config / parse_config."""

    def test_shipped_defaults(self):
        cfg = load_config()
        assert cfg.fingerprint == EngineConfig().fingerprint
        assert cfg.limits.sandbox.max_steps == 200_000
        assert cfg.limits.image.fingerprint_prefix == 100
        assert cfg.logging.level == "INFO"

    def test_empty_document(self):
        assert parse_config(None) == EngineConfig()
        assert parse_config({}) == EngineConfig()

    def test_partial_override(self, tmp_path):
        path = tmp_path / "engine.yaml"
        path.write_text(yaml.safe_dump({
            "limits": {"lsystem": {"max_paths": 10}},
            "logging": {"level": "debug", "json": True},
        }))
        cfg = load_config(path)
        assert cfg.limits.lsystem.max_paths == 10
        assert cfg.limits.lsystem.max_length == 50_000
        assert cfg.logging.level == "DEBUG"
        assert cfg.logging.json is True

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")

    def test_glyph_table_path(self):
        cfg = parse_config({"batak": {"glyph_table": "/tmp/glyphs.yaml"}})
        assert cfg.batak.glyph_table == "/tmp/glyphs.yaml"


class TestValidation:
    """ConfigError cases."""

    @pytest.mark.parametrize("data", [
        ["not", "a", "mapping"],
        {"limits": "nope"},
        {"limits": {"sandbox": {"max_steps": 0}}},
        {"limits": {"sandbox": {"max_steps": 1.5}}},
        {"limits": {"bytebeat": {"max_count": True}}},
        {"limits": {"attractor": {"divergence_bound": -1}}},
        {"limits": {"attractor": {"chunk_size": 1}}},
        {"logging": {"level": "LOUD"}},
    ])
    def test_rejected(self, data):
        with pytest.raises(ConfigError):
            parse_config(data)


class TestFingerprint:
    """EngineConfig.fingerprint."""

    def test_limits_change_fingerprint(self):
        a = parse_config({})
        b = parse_config({"limits": {"mask": {"densify_divisions": 100}}})
        assert a.fingerprint != b.fingerprint

    def test_glyph_table_changes_fingerprint(self):
        assert parse_config({"batak": {"glyph_table": "x.yaml"}}).fingerprint != EngineConfig().fingerprint

    def test_logging_does_not(self):
        noisy = parse_config({"logging": {"level": "DEBUG", "json": True}})
        assert noisy.fingerprint == EngineConfig().fingerprint
