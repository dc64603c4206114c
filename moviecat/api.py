"""Client for the single-endpoint upload/management API."""

from __future__ import annotations

import threading
import uuid
from pathlib import Path
from typing import Any, BinaryIO, Callable

import requests

from .errors import NetworkError, UploadCancelled, ValidationError
from .util import redact_payload, request_with_retry

ACTIONS = ("add_movie", "add_source", "delete_movie", "upload", "upload_url")
DEFAULT_MAX_UPLOAD_BYTES = 2 * 1024 * 1024 * 1024

ProgressCallback = Callable[[int, int], None]


def _form_fields(action: str, fields: dict[str, Any]) -> dict[str, str]:
    form: dict[str, str] = {"action": action}
    for key, value in fields.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            value = ",".join(str(item) for item in value)
        form[key] = str(value)
    return form


class MultipartUpload:
    """Multipart body read lazily from disk.

    Exposes ``read`` and ``__len__`` so requests sends it with a Content-Length
    header instead of loading the file into memory. Each read checks the cancel
    event, which aborts the transfer on the request that owns this body.
    """

    def __init__(
        self,
        form: dict[str, str],
        field: str,
        filename: str,
        handle: BinaryIO,
        size: int,
        *,
        cancel: threading.Event | None = None,
        progress: ProgressCallback | None = None,
    ) -> None:
        self.boundary = uuid.uuid4().hex
        head = []
        for key, value in form.items():
            head.append(
                f"--{self.boundary}\r\n"
                f'Content-Disposition: form-data; name="{key}"\r\n\r\n'
                f"{value}\r\n"
            )
        safe_name = filename.replace('"', "_")
        head.append(
            f"--{self.boundary}\r\n"
            f'Content-Disposition: form-data; name="{field}"; filename="{safe_name}"\r\n'
            "Content-Type: application/octet-stream\r\n\r\n"
        )
        self._head = "".join(head).encode("utf-8")
        self._tail = f"\r\n--{self.boundary}--\r\n".encode("utf-8")
        self._handle = handle
        self._size = size
        self._sent = 0
        self._stage = 0
        self.cancel = cancel
        self.progress = progress

    @property
    def content_type(self) -> str:
        return f"multipart/form-data; boundary={self.boundary}"

    def __len__(self) -> int:
        return len(self._head) + self._size + len(self._tail)

    def read(self, size: int = -1) -> bytes:
        if self.cancel is not None and self.cancel.is_set():
            raise UploadCancelled("upload cancelled")
        if self._stage == 0:
            self._stage = 1
            return self._head
        if self._stage == 1:
            chunk = self._handle.read(size if size and size > 0 else 1024 * 1024)
            if chunk:
                self._sent += len(chunk)
                if self.progress:
                    self.progress(self._sent, self._size)
                return chunk
            self._stage = 2
            return self._tail
        return b""


class RemoteApi:
    def __init__(self, config: dict[str, Any]) -> None:
        self.config = config
        api_cfg = config.get("api", {}) or {}
        uploads_cfg = config.get("uploads", {}) or {}
        self.url = str(api_cfg.get("url") or "")
        self.timeout = float(api_cfg.get("timeout") or 30)
        self.upload_timeout = float(api_cfg.get("upload_timeout") or 3600)
        self.headers = dict(api_cfg.get("headers") or {})
        self.max_upload_bytes = int(uploads_cfg.get("max_bytes") or DEFAULT_MAX_UPLOAD_BYTES)
        self.file_field = str(uploads_cfg.get("field") or "video")

    @property
    def configured(self) -> bool:
        return bool(self.url)

    def _require_url(self) -> str:
        if not self.url:
            raise NetworkError("remote API not configured", hint="Set api.url to enable remote writes.")
        return self.url

    def _parse(self, action: str, response: requests.Response) -> dict[str, Any]:
        if not response.ok:
            raise NetworkError(f"{action} failed with HTTP {response.status_code}")
        try:
            payload = response.json()
        except ValueError as exc:
            raise NetworkError(f"{action} returned invalid JSON") from exc
        if not isinstance(payload, dict) or not payload.get("success"):
            message = payload.get("error") if isinstance(payload, dict) else None
            raise NetworkError(
                str(message or f"{action} was rejected by the server"),
                code="REMOTE_REJECTED",
                hint="The server refused the request; see the message.",
            )
        return payload

    def call(self, action: str, fields: dict[str, Any] | None = None) -> dict[str, Any]:
        if action not in ACTIONS:
            raise ValueError(f"unknown API action: {action}")
        url = self._require_url()
        form = _form_fields(action, fields or {})
        # (None, value) tuples make requests encode plain multipart fields.
        # Every action writes, so requests are sent once with no retries.
        parts = {key: (None, value) for key, value in form.items()}
        try:
            response = request_with_retry(
                "POST",
                url,
                files=parts,
                headers=self.headers or None,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise NetworkError(f"{action} request failed: {redact_payload(str(exc))}") from exc
        return self._parse(action, response)

    def upload_video(
        self,
        movie_id: str,
        path: str | Path,
        *,
        provider: str,
        quality: str,
        cancel: threading.Event | None = None,
        progress: ProgressCallback | None = None,
    ) -> dict[str, Any]:
        file_path = Path(path).expanduser()
        if not file_path.is_file():
            raise ValidationError(f"video file not found: {file_path}")
        size = file_path.stat().st_size
        if size > self.max_upload_bytes:
            limit_gb = self.max_upload_bytes / (1024 ** 3)
            raise ValidationError(f"file too large ({size} bytes); maximum is {limit_gb:g} GB")
        url = self._require_url()
        form = _form_fields("upload", {"movie_id": movie_id, "provider": provider, "quality": quality})
        with file_path.open("rb") as handle:
            body = MultipartUpload(
                form,
                self.file_field,
                file_path.name,
                handle,
                size,
                cancel=cancel,
                progress=progress,
            )
            headers = dict(self.headers)
            headers["Content-Type"] = body.content_type
            try:
                response = request_with_retry(
                    "POST",
                    url,
                    data=body,
                    headers=headers,
                    timeout=self.upload_timeout,
                )
            except requests.RequestException as exc:
                if cancel is not None and cancel.is_set():
                    raise UploadCancelled("upload cancelled") from exc
                raise NetworkError(f"upload request failed: {redact_payload(str(exc))}") from exc
        return self._parse("upload", response)

    def upload_url(self, movie_id: str, url: str, *, provider: str, quality: str) -> dict[str, Any]:
        return self.call("upload_url", {"movie_id": movie_id, "url": url, "provider": provider, "quality": quality})
