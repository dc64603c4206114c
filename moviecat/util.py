"""Utility helpers."""

from __future__ import annotations

import json
import os
import random
import re
import sys
import time
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import requests

from .errors import CatalogError
from .paths import ensure_dir


def write_json(obj: Any) -> None:
    json.dump(obj, sys.stdout, indent=2, ensure_ascii=True, sort_keys=False)
    sys.stdout.write("\n")


def load_json_file(path: str | Path) -> Any:
    with Path(path).expanduser().open("r", encoding="utf-8") as handle:
        return json.load(handle)


def is_http_url(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    text = value.strip()
    if not text or " " in text:
        return False
    try:
        parsed = urlparse(text)
    except ValueError:
        return False
    return parsed.scheme.lower() in {"http", "https"} and bool(parsed.netloc)


def deep_merge(base: Any, overlay: Any) -> Any:
    if isinstance(base, dict) and isinstance(overlay, dict):
        merged = dict(base)
        for key, value in overlay.items():
            if key in merged:
                merged[key] = deep_merge(merged[key], value)
            else:
                merged[key] = value
        return merged
    return overlay


_ENV_PATTERN = re.compile(r"\$\{ENV:([A-Z0-9_]+)\}")


def resolve_env_values(value: Any) -> Any:
    if isinstance(value, dict):
        if set(value.keys()) == {"_env"}:
            name = str(value.get("_env", ""))
            return os.environ.get(name, "")
        return {k: resolve_env_values(v) for k, v in value.items()}
    if isinstance(value, list):
        return [resolve_env_values(v) for v in value]
    if isinstance(value, str):
        def _replace(match: re.Match[str]) -> str:
            name = match.group(1)
            return os.environ.get(name, "")

        return _ENV_PATTERN.sub(_replace, value)
    return value


def request_with_retry(
    method: str,
    url: str,
    *,
    retries: int = 0,
    backoff_seconds: float = 0.5,
    max_backoff_seconds: float = 8.0,
    jitter: float = 0.1,
    retry_statuses: list[int] | None = None,
    **kwargs: Any,
) -> requests.Response:
    if retry_statuses is None:
        retry_statuses = [429, 502, 503, 504]
    attempt = 0
    while True:
        try:
            response = requests.request(method, url, **kwargs)
        except requests.RequestException:
            if attempt >= retries:
                raise
            delay = min(max_backoff_seconds, backoff_seconds * (2 ** attempt))
            delay = delay + (random.random() * jitter)
            time.sleep(delay)
            attempt += 1
            continue
        if response.status_code in retry_statuses and attempt < retries:
            delay = min(max_backoff_seconds, backoff_seconds * (2 ** attempt))
            delay = delay + (random.random() * jitter)
            time.sleep(delay)
            attempt += 1
            continue
        return response


def retry_kwargs(config: dict[str, Any]) -> dict[str, Any]:
    retries_cfg = config.get("retries", {}) or {}
    return {
        "retries": int(retries_cfg.get("retries") or 0),
        "backoff_seconds": float(retries_cfg.get("retry_backoff_seconds") or 0.5),
        "max_backoff_seconds": float(retries_cfg.get("max_backoff_seconds") or 8.0),
    }


def classify_exception(exc: BaseException) -> tuple[str, str]:
    if isinstance(exc, CatalogError):
        return exc.code, exc.hint
    if isinstance(exc, requests.Timeout):
        return "TIMEOUT", "Increase the timeout or check the server."
    if isinstance(exc, requests.ConnectionError):
        return "NETWORK_ERROR", "Server unreachable; check the URL and network."
    if isinstance(exc, requests.HTTPError):
        status = getattr(exc.response, "status_code", None)
        if status in {401, 403}:
            return "AUTH_FAILED", "Check api.headers credentials."
        return "NETWORK_ERROR", "Server returned an error status."
    if isinstance(exc, json.JSONDecodeError):
        return "PARSE_ERROR", "Input is not valid JSON."
    if isinstance(exc, FileNotFoundError):
        return "NOT_FOUND", "Check the file path."
    if isinstance(exc, OSError):
        return "IO_ERROR", "Check file permissions and disk space."
    return "ERROR", ""


_SECRET_KEYS = {"api_key", "apikey", "token", "authorization", "password", "secret", "cookie"}
_SECRET_QUERY = re.compile(r"((?:api_?key|token|password|secret)=)[^&\s]+", re.IGNORECASE)


def redact_payload(value: Any) -> Any:
    if isinstance(value, dict):
        redacted: dict[str, Any] = {}
        for key, item in value.items():
            if str(key).lower() in _SECRET_KEYS:
                redacted[key] = "***"
            else:
                redacted[key] = redact_payload(item)
        return redacted
    if isinstance(value, list):
        return [redact_payload(item) for item in value]
    if isinstance(value, str):
        return _SECRET_QUERY.sub(r"\1***", value)
    return value


def append_log(config: dict[str, Any], entry: dict[str, Any]) -> None:
    log_cfg = config.get("logging", {}) or {}
    path = log_cfg.get("path")
    if not path:
        return
    try:
        log_path = ensure_dir(Path(path).expanduser().parent) / Path(path).name
        with log_path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(redact_payload(entry), ensure_ascii=True) + "\n")
    except OSError:
        return
