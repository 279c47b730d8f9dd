"""Where pagerbridge looks for its config file and keeps its database."""

from __future__ import annotations

import os
import sys
from pathlib import Path

APP_DIR = "pagerbridge"


def _base_dir(xdg_env: str, xdg_default: Path, windows_env: str) -> Path:
    if sys.platform == "win32":
        return Path(os.environ.get(windows_env, Path.home() / "AppData")) / APP_DIR
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / APP_DIR
    return Path(os.environ.get(xdg_env, xdg_default)) / APP_DIR


def get_config_dir() -> Path:
    """PAGERBRIDGE_CONFIG_DIR, else the platform config directory."""
    env = os.environ.get("PAGERBRIDGE_CONFIG_DIR")
    if env:
        return Path(env)
    return _base_dir("XDG_CONFIG_HOME", Path.home() / ".config", "APPDATA")


def get_data_dir() -> Path:
    """PAGERBRIDGE_DATA_DIR, else the platform data directory (holds the KV database)."""
    env = os.environ.get("PAGERBRIDGE_DATA_DIR")
    if env:
        return Path(env)
    return _base_dir(
        "XDG_DATA_HOME", Path.home() / ".local" / "share", "LOCALAPPDATA"
    )
