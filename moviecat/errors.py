"""Error types shared by the catalog, overlay and command layers."""

from __future__ import annotations


class CatalogError(RuntimeError):
    default_code = "CATALOG_ERROR"
    default_hint = ""

    def __init__(self, message: str, *, code: str | None = None, hint: str | None = None) -> None:
        super().__init__(message)
        self.code = code or self.default_code
        self.hint = hint if hint is not None else self.default_hint


class NetworkError(CatalogError):
    """Remote API or catalog unreachable, non-2xx, or rejected the request."""

    default_code = "NETWORK_ERROR"
    default_hint = "Check api.url and that the backend is running."


class UploadCancelled(NetworkError):
    default_code = "CANCELLED"
    default_hint = "Upload was cancelled before it completed."


class ValidationError(CatalogError):
    default_code = "VALIDATION_ERROR"
    default_hint = "Fix the input and retry."


class NotFoundError(CatalogError):
    default_code = "NOT_FOUND"
    default_hint = "Check the id with `moviecat list`."
