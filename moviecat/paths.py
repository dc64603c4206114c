"""Where moviecat keeps its config and local data.

Config lives under XDG_CONFIG_HOME and pending local writes under
XDG_STATE_HOME. Each location can be pinned with a MOVIECAT_* variable.
"""

from __future__ import annotations

import os
from pathlib import Path

APP_NAME = "moviecat"


def _env_path(name: str) -> Path | None:
    value = os.environ.get(name)
    return Path(value).expanduser() if value else None


def _xdg_base(env_key: str, fallback: str) -> Path:
    return _env_path(env_key) or Path(fallback).expanduser()


def config_dir() -> Path:
    return _xdg_base("XDG_CONFIG_HOME", "~/.config") / APP_NAME


def state_dir() -> Path:
    return _xdg_base("XDG_STATE_HOME", "~/.local/state") / APP_NAME


def store_dir() -> Path:
    return _env_path("MOVIECAT_STORE") or state_dir() / "store"


def config_path() -> Path:
    return _env_path("MOVIECAT_CONFIG") or config_dir() / "config.yaml"


def secrets_path() -> Path:
    return _env_path("MOVIECAT_SECRETS") or config_dir() / "secrets.yaml"


def ensure_dir(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path
