"""Command handlers for the admin and browse surfaces.

Each handler takes a request dict and a Context and returns a result dict with
``status`` (``ok``, ``local`` or ``error``) and a ``notice`` for the user.
Writes the remote API supports go to the API first and fall back to the local
overlay when the API is unreachable or refuses the request.
"""

from __future__ import annotations

import json
import random
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

from .api import RemoteApi
from .catalog import CatalogResolver, featured, filter_by_type, search, teaser
from .errors import NetworkError, NotFoundError, ValidationError
from .models import (
    MOVIE_FIELDS,
    MovieRecord,
    MovieStatus,
    MovieType,
    SourceRecord,
    new_movie_id,
    now_iso,
    parse_genres,
)
from .overlay import Overlay
from .providers import Provider, display_name, icon
from .schema import validate_catalog_document
from .storage import FileStore, KeyValueStore
from .util import append_log, classify_exception, is_http_url, load_json_file, redact_payload

EXPORT_HINT = "Saved locally. Run `moviecat export` and publish movies.json to update the site."


@dataclass
class Context:
    config: dict[str, Any]
    overlay: Overlay
    resolver: CatalogResolver
    api: RemoteApi
    rng: random.Random = field(default_factory=random.Random)


Handler = Callable[[dict[str, Any], Context], dict[str, Any]]


def build_context(config: dict[str, Any], store: KeyValueStore | None = None) -> Context:
    overlay_cfg = config.get("overlay", {}) or {}
    if store is None:
        path = overlay_cfg.get("path")
        store = FileStore(Path(path).expanduser() if path else None)
    overlay = Overlay(store, str(overlay_cfg.get("key") or "movies"))
    return Context(
        config=config,
        overlay=overlay,
        resolver=CatalogResolver(config, overlay),
        api=RemoteApi(config),
    )


def _notice(message: str, kind: str = "success") -> dict[str, str]:
    return {"type": kind, "message": message}


def _ok(message: str, **payload: Any) -> dict[str, Any]:
    return {"status": "ok", "notice": _notice(message), **payload}


def _local(message: str, exc: NetworkError, **payload: Any) -> dict[str, Any]:
    return {
        "status": "local",
        "notice": _notice(message),
        "remote": {"code": exc.code, "message": str(redact_payload(str(exc)))},
        "hint": EXPORT_HINT,
        **payload,
    }


def _text(request: dict[str, Any], key: str) -> str:
    value = request.get(key)
    if value is None:
        return ""
    return str(value).strip()


def _defaults(context: Context) -> dict[str, str]:
    return context.config.get("defaults", {}) or {}


def _require(value: str, message: str) -> str:
    if not value:
        raise ValidationError(message)
    return value


def _check_url(value: str, label: str) -> None:
    if value and not is_http_url(value):
        raise ValidationError(f"{label} is not a valid URL: {value}")


def _choice(enum_cls: Any, value: str, label: str) -> Any:
    try:
        return enum_cls(value)
    except ValueError as exc:
        allowed = ", ".join(item.value for item in enum_cls)
        raise ValidationError(f"{label} must be one of: {allowed}") from exc


def source_view(index: int, source: SourceRecord) -> dict[str, Any]:
    return {
        "index": index,
        "provider": source.provider.value,
        "provider_name": display_name(source.provider),
        "icon": icon(source.provider),
        "quality": source.quality,
        "embed_url": source.embed_url,
        "download_link": source.download_link,
    }


def _find_or_raise(context: Context, movie_id: str) -> MovieRecord:
    movie = context.resolver.find(movie_id)
    if movie is None:
        raise NotFoundError(f"movie not found: {movie_id}")
    return movie


# Admin: writes


def add_movie(request: dict[str, Any], context: Context) -> dict[str, Any]:
    defaults = _defaults(context)
    values = {name: _text(request, name) for name in MOVIE_FIELDS}
    _require(values["title"], "title is required")
    _require(values["poster"], "poster URL is required")
    _check_url(values["poster"], "poster URL")
    _check_url(values["backdrop"], "backdrop URL")
    movie_id = _text(request, "id") or new_movie_id()
    if context.resolver.find(movie_id) is not None:
        raise ValidationError(f"movie id already exists: {movie_id}")
    stamp = now_iso()
    movie = MovieRecord(
        id=movie_id,
        genres=parse_genres(request.get("genres")),
        type=_choice(MovieType, _text(request, "type") or defaults.get("type") or "movie", "type"),
        status=_choice(MovieStatus, _text(request, "status") or defaults.get("status") or "completed", "status"),
        created_at=stamp,
        updated_at=stamp,
        **values,
    )
    fields = movie.to_dict()
    fields.pop("sources")
    try:
        context.api.call("add_movie", fields)
    except NetworkError as exc:
        context.overlay.create(movie)
        return _local("Movie added", exc, movie=movie.to_dict())
    return _ok("Movie added", movie=movie.to_dict())


def edit_movie(request: dict[str, Any], context: Context) -> dict[str, Any]:
    movie_id = _require(_text(request, "id"), "movie id is required")
    # Start from the local copy so earlier edits and offline sources survive.
    movie = context.overlay.get(movie_id) or _find_or_raise(context, movie_id)
    for name in MOVIE_FIELDS:
        if request.get(name) is not None:
            setattr(movie, name, _text(request, name))
    if request.get("genres") is not None:
        movie.genres = parse_genres(request.get("genres"))
    if request.get("type") is not None:
        movie.type = _choice(MovieType, _text(request, "type"), "type")
    if request.get("status") is not None:
        movie.status = _choice(MovieStatus, _text(request, "status"), "status")
    _require(movie.title, "title is required")
    _require(movie.poster, "poster URL is required")
    _check_url(movie.poster, "poster URL")
    _check_url(movie.backdrop, "backdrop URL")
    movie.touch()
    context.overlay.upsert(movie)
    return {
        "status": "local",
        "notice": _notice("Movie updated"),
        "hint": EXPORT_HINT,
        "movie": movie.to_dict(),
    }


def add_source(request: dict[str, Any], context: Context) -> dict[str, Any]:
    defaults = _defaults(context)
    movie_id = _require(_text(request, "movie_id"), "select a movie first")
    embed_url = _require(_text(request, "embed_url"), "embed URL is required")
    _check_url(embed_url, "embed URL")
    download_url = _text(request, "download_url")
    _check_url(download_url, "download URL")
    source = SourceRecord(
        embed_url=embed_url,
        provider=Provider.parse(_text(request, "provider") or defaults.get("provider")),
        download_url=download_url,
        quality=_text(request, "quality") or defaults.get("quality") or "720p",
    )
    visible = context.resolver.find(movie_id)
    if visible is not None and visible.has_embed_url(embed_url):
        raise ValidationError(f"source with this embed URL already exists: {embed_url}")
    try:
        context.api.call("add_source", {"movie_id": movie_id, **source.to_dict()})
    except NetworkError as exc:
        movie = context.overlay.add_source(movie_id, source)
        return _local(
            "Source added",
            exc,
            movie_id=movie_id,
            source=source_view(len(movie.sources) - 1, source),
        )
    index = len(visible.sources) if visible is not None else 0
    return _ok("Source added", movie_id=movie_id, source=source_view(index, source))


def delete_source(request: dict[str, Any], context: Context) -> dict[str, Any]:
    movie_id = _require(_text(request, "movie_id"), "movie id is required")
    try:
        index = int(request.get("index"))
    except (TypeError, ValueError) as exc:
        raise ValidationError("source index must be an integer") from exc
    removed = context.overlay.remove_source(movie_id, index)
    return {
        "status": "local",
        "notice": _notice("Source deleted"),
        "hint": EXPORT_HINT,
        "movie_id": movie_id,
        "source": removed.to_dict(),
    }


def delete_movie(request: dict[str, Any], context: Context) -> dict[str, Any]:
    movie_id = _require(_text(request, "id"), "movie id is required")
    try:
        context.api.call("delete_movie", {"id": movie_id})
    except NetworkError as exc:
        published = {movie.id for movie in context.resolver.fetch_authoritative()}
        if movie_id in published:
            raise NotFoundError(
                f"movie {movie_id} is in the published catalog",
                hint="Published movies can only be deleted through the remote API.",
            ) from exc
        if context.overlay.get(movie_id) is None:
            raise NotFoundError(f"movie not found: {movie_id}") from exc
        context.overlay.remove(movie_id)
        return _local("Movie deleted", exc, id=movie_id)
    return _ok("Movie deleted", id=movie_id)


def upload_video(request: dict[str, Any], context: Context) -> dict[str, Any]:
    defaults = _defaults(context)
    movie_id = _require(_text(request, "movie_id"), "select a movie first")
    path = _require(_text(request, "path"), "select a video file first")
    payload = context.api.upload_video(
        movie_id,
        path,
        provider=Provider.parse(_text(request, "provider") or defaults.get("provider")).value,
        quality=_text(request, "quality") or defaults.get("quality") or "720p",
        cancel=request.get("cancel"),
        progress=request.get("progress"),
    )
    return _ok("Video uploaded", movie_id=movie_id, response=payload)


def upload_url(request: dict[str, Any], context: Context) -> dict[str, Any]:
    defaults = _defaults(context)
    movie_id = _require(_text(request, "movie_id"), "select a movie first")
    url = _require(_text(request, "url"), "video URL is required")
    _check_url(url, "video URL")
    payload = context.api.upload_url(
        movie_id,
        url,
        provider=Provider.parse(_text(request, "provider") or defaults.get("provider")).value,
        quality=_text(request, "quality") or "720p",
    )
    return _ok(
        "Remote upload queued; check the provider dashboard for status",
        movie_id=movie_id,
        response=payload,
    )


# Admin: local data management


def import_catalog(request: dict[str, Any], context: Context) -> dict[str, Any]:
    document = request.get("document")
    if document is None:
        path = _require(_text(request, "path"), "import file is required")
        try:
            document = load_json_file(path)
        except json.JSONDecodeError as exc:
            raise ValidationError(f"import file is not valid JSON: {exc}") from exc
    result = context.overlay.import_document(document)
    warnings = validate_catalog_document(document)
    return _ok(
        f"{len(result.imported)} movies imported",
        result=result.to_dict(),
        warnings=warnings,
    )


def export_catalog(request: dict[str, Any], context: Context) -> dict[str, Any]:
    document = context.resolver.merged_document()
    count = len(document["movies"])
    if count == 0:
        raise ValidationError("nothing to export")
    output = _text(request, "output")
    if not output:
        return _ok(f"{count} movies exported", count=count, document=document)
    path = Path(output).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(document, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    return _ok(f"{count} movies exported", count=count, path=str(path))


def clear_overlay(request: dict[str, Any], context: Context) -> dict[str, Any]:
    context.overlay.clear()
    return _ok("Local data cleared")


# Browse


def list_movies(request: dict[str, Any], context: Context) -> dict[str, Any]:
    movies = filter_by_type(context.resolver.resolve(), _text(request, "type") or "all")
    return _ok(
        f"{len(movies)} movies" if movies else "No movies yet",
        count=len(movies),
        movies=[movie.to_dict() for movie in movies],
    )


def search_movies(request: dict[str, Any], context: Context) -> dict[str, Any]:
    query = _text(request, "query")
    movies = filter_by_type(context.resolver.resolve(), _text(request, "type") or "all")
    matches = search(movies, query)
    message = f"{len(matches)} results" if matches else f'No results for "{query}"'
    return _ok(message, query=query, count=len(matches), movies=[movie.to_dict() for movie in matches])


def show_movie(request: dict[str, Any], context: Context) -> dict[str, Any]:
    movie_id = _require(_text(request, "id"), "movie id is required")
    movie = _find_or_raise(context, movie_id)
    return _ok(
        movie.title,
        movie=movie.to_dict(),
        sources=[source_view(idx, source) for idx, source in enumerate(movie.sources)],
    )


def list_sources(request: dict[str, Any], context: Context) -> dict[str, Any]:
    movie_id = _require(_text(request, "id"), "movie id is required")
    movie = _find_or_raise(context, movie_id)
    views = [source_view(idx, source) for idx, source in enumerate(movie.sources)]
    message = f"{len(views)} sources" if views else "No sources for this movie yet"
    return _ok(message, movie_id=movie_id, title=movie.title, sources=views)


def featured_movie(request: dict[str, Any], context: Context) -> dict[str, Any]:
    seed = request.get("seed")
    rng = random.Random(seed) if seed is not None else context.rng
    movie = featured(context.resolver.resolve(), rng)
    if movie is None:
        return _ok("No movies yet", movie=None)
    return _ok(movie.title, movie=movie.to_dict(), teaser=teaser(movie))


HANDLERS: dict[str, Handler] = {
    "add_movie": add_movie,
    "edit_movie": edit_movie,
    "add_source": add_source,
    "delete_source": delete_source,
    "delete_movie": delete_movie,
    "upload_video": upload_video,
    "upload_url": upload_url,
    "import_catalog": import_catalog,
    "export_catalog": export_catalog,
    "clear_overlay": clear_overlay,
    "list_movies": list_movies,
    "search": search_movies,
    "show_movie": show_movie,
    "sources": list_sources,
    "featured": featured_movie,
}


def dispatch(name: str, request: dict[str, Any], context: Context) -> dict[str, Any]:
    handler = HANDLERS.get(name)
    if handler is None:
        raise KeyError(f"unknown command: {name}")
    start = time.monotonic()
    try:
        result = handler(request, context)
    except Exception as exc:
        code, hint = classify_exception(exc)
        message = str(redact_payload(str(exc)))
        result = {
            "status": "error",
            "notice": _notice(message, "error"),
            "error": {
                "message": message,
                "type": exc.__class__.__name__,
                "code": code,
                "hint": hint,
            },
        }
    entry: dict[str, Any] = {
        "ts": time.time(),
        "command": name,
        "status": result.get("status"),
        "duration_s": time.monotonic() - start,
    }
    if result.get("error"):
        entry["error"] = {"code": result["error"]["code"], "message": result["error"]["message"]}
    append_log(context.config, entry)
    return result
