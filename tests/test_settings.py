"""
Tests for engine configuration loading.
"""

import json

import pytest
import yaml
from pydantic import ValidationError

from idle_engine.providers import MockProvider
from idle_engine.settings import EngineConfig, build_providers, load_engine_config


class TestLoadEngineConfig:
    """Test cases for load_engine_config."""

    def test_defaults(self):
        config = load_engine_config()

        assert sorted(config.providers) == ["DirectorySync", "Identity"]
        assert "Standard" in config.execution_options.retry_profiles
        assert config.audit_dir is None

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "engine.yaml"
        path.write_text(yaml.safe_dump({
            "audit_dir": "logs",
            "execution_options": {"RetryProfiles": {"Fast": {"MaxAttempts": 1}}},
            "providers": {"Directory": {"type": "mock", "capabilities": ["IdLE.Identity.Disable"]}},
        }), encoding="utf-8")

        config = load_engine_config(path)
        assert config.audit_dir == "logs"
        assert config.execution_options.get_retry_profile("Fast").max_attempts == 1
        assert config.providers["Directory"].capabilities == ["IdLE.Identity.Disable"]

    def test_json_file(self, tmp_path):
        path = tmp_path / "engine.json"
        path.write_text(json.dumps({"working_directory": "/srv/idle"}), encoding="utf-8")
        assert load_engine_config(path).working_directory == "/srv/idle"

    def test_empty_file_uses_defaults(self, tmp_path):
        path = tmp_path / "engine.yaml"
        path.write_text("", encoding="utf-8")
        assert load_engine_config(path) == EngineConfig()

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_engine_config(tmp_path / "missing.yaml")

    def test_non_mapping_root(self, tmp_path):
        path = tmp_path / "engine.yaml"
        path.write_text("- a\n", encoding="utf-8")
        with pytest.raises(ValueError, match="must be a mapping"):
            load_engine_config(path)

    def test_retry_limits_enforced(self, tmp_path):
        path = tmp_path / "engine.yaml"
        path.write_text(yaml.safe_dump({
            "execution_options": {"RetryProfiles": {"Huge": {"MaxAttempts": 1000}}},
        }), encoding="utf-8")
        with pytest.raises(ValidationError):
            load_engine_config(path)


class TestBuildProviders:
    """Test cases for build_providers."""

    def test_mock_providers(self):
        providers = build_providers(load_engine_config())

        assert isinstance(providers["Identity"], MockProvider)
        assert providers["DirectorySync"].get_capabilities() == [
            "IdLE.DirectorySync.Trigger", "IdLE.DirectorySync.Status",
        ]

    def test_unsupported_type(self):
        config = EngineConfig(providers={"Directory": {"type": "ldap"}})
        with pytest.raises(ValueError, match="Unsupported provider type"):
            build_providers(config)
