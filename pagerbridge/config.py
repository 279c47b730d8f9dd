"""Configuration management with Pydantic Settings + optional YAML."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from pagerbridge.errors import ConfigError
from pagerbridge.utils.logging import get_logger
from pagerbridge.utils.platform import get_config_dir, get_data_dir

log = get_logger(__name__)


class IncidentAPIConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    api_key: str = ""
    base_url: str = "https://api.pagerduty.com"
    timeout: float = 30.0


class WebhookConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: str = "/webhook"
    secret: str = ""
    # False keeps the legacy behavior: log the failure and process anyway
    enforce_signature: bool = True


class ChatConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str = ""
    bot_token: str = ""
    default_channel: str = ""
    callback_base_url: str = ""
    # Shared secret carried in every action context; callbacks without it are rejected
    callback_token: str = ""


class ServerConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    bind: str = "0.0.0.0"
    port: int = 8420


class CommandsConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    token: str = ""


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="PAGERBRIDGE_",
        env_nested_delimiter="__",
        case_sensitive=False,
        frozen=True,
    )

    incidents: IncidentAPIConfig = Field(default_factory=IncidentAPIConfig)
    webhook: WebhookConfig = Field(default_factory=WebhookConfig)
    chat: ChatConfig = Field(default_factory=ChatConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    commands: CommandsConfig = Field(default_factory=CommandsConfig)
    data_dir: str = ""
    log_level: str = "INFO"
    log_json: bool = False

    def get_data_dir(self) -> Path:
        if self.data_dir:
            return Path(self.data_dir)
        return get_data_dir()


def validate_settings(settings: Settings) -> Settings:
    """Reject settings the incident client and correlator cannot run with."""
    if not settings.incidents.api_key:
        raise ConfigError("incidents.api_key is not configured")
    if not settings.chat.default_channel:
        raise ConfigError("chat.default_channel is not configured")
    return settings


class ConfigHolder:
    """Holds the active settings snapshot.

    Snapshots are frozen, and ``replace`` swaps the reference in one
    assignment, so a reader always sees one complete configuration.
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    def get(self) -> Settings:
        return self._settings

    def replace(self, settings: Settings) -> Settings:
        previous = self._settings
        self._settings = settings
        log.info("config_replaced")
        return previous


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_settings(config_path: str | Path | None = None, **overrides: Any) -> Settings:
    """Load settings from env vars, optionally overlaying a YAML config."""
    yaml_data: dict[str, Any] = {}

    if config_path is None:
        config_path = os.environ.get("PAGERBRIDGE_CONFIG")
    if config_path is None:
        default = get_config_dir() / "config.yaml"
        if default.exists():
            config_path = default

    if config_path is not None:
        path = Path(config_path)
        if path.exists():
            with open(path) as f:
                yaml_data = yaml.safe_load(f) or {}
        else:
            log.warning("config_file_missing", path=str(path))

    # YAML values and CLI overrides as init kwargs, env vars fill the rest
    return Settings(**_deep_merge(yaml_data, overrides))
