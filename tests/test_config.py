"""Tests for settings loading, validation and the config holder."""

import sys

import pytest
import yaml
from pydantic import ValidationError

from pagerbridge.config import (
    ConfigHolder,
    Settings,
    load_settings,
    validate_settings,
)
from pagerbridge.errors import ConfigError
from pagerbridge.utils.platform import get_config_dir, get_data_dir


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    for name in ("PAGERBRIDGE_CONFIG", "PAGERBRIDGE_INCIDENTS__API_KEY", "PAGERBRIDGE_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("PAGERBRIDGE_CONFIG_DIR", str(tmp_path / "config"))


class TestSettings:
    def test_defaults(self):
        s = Settings()
        assert s.incidents.base_url == "https://api.pagerduty.com"
        assert s.incidents.timeout == 30.0
        assert s.webhook.path == "/webhook"
        assert s.webhook.enforce_signature is True
        assert s.server.bind == "0.0.0.0"
        assert s.server.port == 8420
        assert s.commands.token == ""

    def test_env_nested(self, monkeypatch):
        monkeypatch.setenv("PAGERBRIDGE_INCIDENTS__API_KEY", "from-env")
        assert Settings().incidents.api_key == "from-env"

    def test_frozen(self):
        s = Settings()
        with pytest.raises(ValidationError):
            s.log_level = "DEBUG"

    def test_data_dir_override(self, tmp_path):
        s = Settings(data_dir=str(tmp_path))
        assert s.get_data_dir() == tmp_path


class TestLoadSettings:
    def test_yaml_overlay(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({
            "incidents": {"api_key": "yaml-key"},
            "chat": {"default_channel": "ops"},
            "server": {"port": 9000},
        }))
        s = load_settings(path)
        assert s.incidents.api_key == "yaml-key"
        assert s.incidents.base_url == "https://api.pagerduty.com"
        assert s.chat.default_channel == "ops"
        assert s.server.port == 9000

    def test_overrides_win_over_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({"log_level": "INFO"}))
        assert load_settings(path, log_level="DEBUG").log_level == "DEBUG"

    def test_config_from_env_var(self, tmp_path, monkeypatch):
        path = tmp_path / "other.yaml"
        path.write_text(yaml.safe_dump({"commands": {"token": "slash"}}))
        monkeypatch.setenv("PAGERBRIDGE_CONFIG", str(path))
        assert load_settings().commands.token == "slash"

    def test_missing_file_uses_defaults(self, tmp_path):
        s = load_settings(tmp_path / "nope.yaml")
        assert s.webhook.path == "/webhook"

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert load_settings(path).server.port == 8420


class TestValidateSettings:
    def test_requires_api_key(self):
        with pytest.raises(ConfigError, match="api_key"):
            validate_settings(Settings(chat={"default_channel": "ops"}))

    def test_requires_default_channel(self):
        with pytest.raises(ConfigError, match="default_channel"):
            validate_settings(Settings(incidents={"api_key": "k"}))

    def test_valid(self):
        s = Settings(incidents={"api_key": "k"}, chat={"default_channel": "ops"})
        assert validate_settings(s) is s


class TestConfigHolder:
    def test_replace_swaps_snapshot(self):
        first = Settings(log_level="INFO")
        second = Settings(log_level="DEBUG")
        holder = ConfigHolder(first)
        snapshot = holder.get()

        assert holder.replace(second) is first
        assert holder.get() is second
        # Earlier readers keep their complete snapshot
        assert snapshot.log_level == "INFO"


class TestDirectories:
    def test_env_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("PAGERBRIDGE_DATA_DIR", str(tmp_path / "data"))
        assert get_data_dir() == tmp_path / "data"
        assert get_config_dir() == tmp_path / "config"

    def test_xdg_on_linux(self, monkeypatch, tmp_path):
        monkeypatch.delenv("PAGERBRIDGE_CONFIG_DIR", raising=False)
        monkeypatch.delenv("PAGERBRIDGE_DATA_DIR", raising=False)
        monkeypatch.setattr(sys, "platform", "linux")
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg-config"))
        monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "xdg-data"))
        assert get_config_dir() == tmp_path / "xdg-config" / "pagerbridge"
        assert get_data_dir() == tmp_path / "xdg-data" / "pagerbridge"
