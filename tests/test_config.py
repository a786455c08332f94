"""
Tests for configuration loading.
"""

import logging

import pytest
import yaml

from echoes.config import EchoesConfig, get_config_path, load_config
from echoes.config.config import CONFIG_FILE_NAME


@pytest.fixture
def config_dir(tmp_path):
    data = {
        "reporting": {"enabled": True, "privacyLevel": "detailed"},
        "dispatch": {"timeout_seconds": 2.5, "unknown_key": "ignored"},
        "logging": {"level": "debug"},
        "attribution": {"plugin_markers": ["modules", "systems"]},
        "endpoints": [
            {"name": "rayners", "url": "https://errors.rayners.dev/report/rayners", "author": "rayners", "enabled": True},
            {"url": "https://missing-name.example.com"},
        ],
        "host": {"version": "12.331", "modules": [{"id": "simple-weather", "version": "1.0.0"}]},
    }
    (tmp_path / CONFIG_FILE_NAME).write_text(yaml.safe_dump(data), encoding="utf-8")
    return tmp_path


class TestLoadConfig:
    """Tests for load_config."""

    def test_missing_file_gives_defaults(self, tmp_path):
        config = load_config(tmp_path)
        assert config == EchoesConfig()
        assert config.reporting.enabled is False
        assert config.reporting.privacy_level == "standard"

    def test_loads_sections(self, config_dir):
        config = load_config(config_dir)
        assert config.reporting.enabled is True
        assert config.reporting.privacy_level == "detailed"
        assert config.dispatch.timeout_seconds == 2.5
        assert config.logging.level == "debug"
        assert config.attribution.plugin_markers == ["modules", "systems"]
        assert config.attribution.core_markers == ["common", "client"]
        assert config.host["version"] == "12.331"

    def test_invalid_endpoint_dropped(self, config_dir, caplog):
        with caplog.at_level(logging.ERROR, logger="echoes.config.config"):
            config = load_config(config_dir)
        assert [e.name for e in config.endpoints] == ["rayners"]
        assert "Ignoring endpoint entry" in caplog.text

    def test_get_endpoint(self, config_dir):
        config = load_config(config_dir)
        assert config.get_endpoint("rayners").author == "rayners"
        assert config.get_endpoint("nobody") is None

    def test_invalid_yaml_gives_defaults(self, tmp_path):
        path = tmp_path / CONFIG_FILE_NAME
        path.write_text("reporting: [unclosed", encoding="utf-8")
        assert load_config(path) == EchoesConfig()

    def test_non_mapping_root_gives_defaults(self, tmp_path):
        path = tmp_path / CONFIG_FILE_NAME
        path.write_text("- just\n- a list\n", encoding="utf-8")
        assert load_config(path) == EchoesConfig()

    def test_explicit_file_path(self, config_dir):
        assert load_config(config_dir / CONFIG_FILE_NAME).reporting.enabled is True


class TestConfigDict:
    """Tests for dict conversion."""

    def test_round_trip(self, config_dir):
        config = load_config(config_dir)
        assert EchoesConfig.from_dict(config.to_dict()) == config

    def test_empty_dict(self):
        assert EchoesConfig.from_dict({}) == EchoesConfig()


def test_get_config_path(tmp_path):
    assert get_config_path(tmp_path) == tmp_path / CONFIG_FILE_NAME
    assert get_config_path(tmp_path / "custom.yaml") == tmp_path / "custom.yaml"
