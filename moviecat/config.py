"""Config loading and defaults."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from .catalog import MERGE_POLICIES
from .models import MovieStatus, MovieType
from .paths import config_path, ensure_dir, secrets_path
from .providers import provider_choices
from .schema import validate_config_schema
from .util import deep_merge, is_http_url, resolve_env_values


def default_config() -> dict[str, Any]:
    return {
        "catalog": {
            "source": "data/movies.json",
            "cache_bust_param": "t",
            "timeout": 15,
            "merge_policy": "catalog_first",
        },
        "api": {
            "url": "",
            "timeout": 30,
            "upload_timeout": 3600,
            "headers": {},
        },
        "uploads": {
            "max_bytes": 2 * 1024 * 1024 * 1024,
            "field": "video",
        },
        "defaults": {
            "type": "movie",
            "status": "completed",
            "provider": "other",
            "quality": "720p",
        },
        "overlay": {
            "key": "movies",
            "path": None,
        },
        "logging": {
            "path": None,
        },
        "retries": {"retries": 1, "retry_backoff_seconds": 0.5, "max_backoff_seconds": 4.0},
    }


def load_config(path: Path | None = None) -> dict[str, Any]:
    cfg_path = path or config_path()
    if not cfg_path.exists():
        raise FileNotFoundError(f"Config not found at {cfg_path}")
    with cfg_path.open("r", encoding="utf-8") as handle:
        config = yaml.safe_load(handle) or {}
    secrets = {}
    secrets_file = secrets_path()
    if secrets_file.exists():
        with secrets_file.open("r", encoding="utf-8") as handle:
            secrets = yaml.safe_load(handle) or {}
    merged = deep_merge(default_config(), deep_merge(config, secrets))
    return resolve_env_values(merged)


def save_default_config(path: Path | None = None, overwrite: bool = False) -> Path:
    cfg_path = path or config_path()
    ensure_dir(cfg_path.parent)
    if cfg_path.exists() and not overwrite:
        return cfg_path
    with cfg_path.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(default_config(), handle, sort_keys=False)
    return cfg_path


def save_default_secrets(path: Path | None = None, overwrite: bool = False) -> Path:
    cfg_path = path or secrets_path()
    ensure_dir(cfg_path.parent)
    if cfg_path.exists() and not overwrite:
        return cfg_path
    with cfg_path.open("w", encoding="utf-8") as handle:
        yaml.safe_dump({}, handle, sort_keys=False)
    return cfg_path


def resolve_config_path(path_str: str | None) -> Path:
    if path_str:
        return Path(path_str).expanduser()
    return config_path()


def ensure_config_exists(path_str: str | None = None) -> Path:
    cfg_path = resolve_config_path(path_str)
    if not cfg_path.exists():
        cfg_path = save_default_config(cfg_path, overwrite=False)
    return cfg_path


def validate_config(config: dict[str, Any]) -> tuple[list[str], list[str]]:
    errors = validate_config_schema(config)
    warnings: list[str] = []

    catalog = config.get("catalog", {}) or {}
    if not catalog.get("source"):
        warnings.append("catalog.source is not set; only local data will be shown")
    policy = catalog.get("merge_policy")
    if policy and policy not in MERGE_POLICIES:
        errors.append(f"catalog.merge_policy must be one of: {', '.join(MERGE_POLICIES)}")

    api = config.get("api", {}) or {}
    url = api.get("url")
    if not url:
        warnings.append("api.url is not set; writes will be stored locally")
    elif not is_http_url(url):
        errors.append(f"api.url is not a valid http(s) URL: {url}")

    defaults = config.get("defaults", {}) or {}
    if defaults.get("type") and defaults["type"] not in {t.value for t in MovieType}:
        errors.append(f"defaults.type is not a known type: {defaults['type']}")
    if defaults.get("status") and defaults["status"] not in {s.value for s in MovieStatus}:
        errors.append(f"defaults.status is not a known status: {defaults['status']}")
    if defaults.get("provider") and defaults["provider"] not in provider_choices():
        warnings.append(f"defaults.provider is not a known provider: {defaults['provider']}")

    return errors, warnings
