"""Catalog source resolver: authoritative JSON catalog merged with the overlay."""

from __future__ import annotations

import json
import random
import time
from pathlib import Path
from typing import Any

import requests

from .models import MovieRecord, MovieType, sort_newest_first
from .overlay import Overlay
from .util import append_log, is_http_url, redact_payload, request_with_retry, retry_kwargs

MERGE_POLICIES = ("catalog_first", "overlay_first")
FEATURED_POOL = 5
DEFAULT_TEASER = "Watch now on our site"


def _records(document: Any) -> list[MovieRecord]:
    if not isinstance(document, dict):
        return []
    movies = document.get("movies") or []
    if not isinstance(movies, list):
        return []
    return [MovieRecord.from_dict(item) for item in movies if isinstance(item, dict)]


def merge_records(
    authoritative: list[MovieRecord],
    overlay: list[MovieRecord],
    *,
    overlay_wins: bool,
) -> list[MovieRecord]:
    merged = list(authoritative)
    positions = {movie.id: idx for idx, movie in enumerate(merged)}
    for movie in overlay:
        idx = positions.get(movie.id)
        if idx is None:
            positions[movie.id] = len(merged)
            merged.append(movie)
        elif overlay_wins:
            merged[idx] = movie
    return merged


class CatalogResolver:
    def __init__(self, config: dict[str, Any], overlay: Overlay) -> None:
        self.config = config
        self.overlay = overlay
        catalog_cfg = config.get("catalog", {}) or {}
        self.source = str(catalog_cfg.get("source") or "")
        self.cache_bust_param = str(catalog_cfg.get("cache_bust_param") or "t")
        self.timeout = float(catalog_cfg.get("timeout") or 15)
        policy = catalog_cfg.get("merge_policy") or "catalog_first"
        self.merge_policy = policy if policy in MERGE_POLICIES else "catalog_first"

    def _log_failure(self, exc: Exception) -> None:
        append_log(
            self.config,
            {
                "ts": time.time(),
                "command": "catalog_fetch",
                "status": "degraded",
                "source": redact_payload(self.source),
                "error": {"type": exc.__class__.__name__, "message": str(redact_payload(str(exc)))},
            },
        )

    def fetch_document(self) -> Any:
        if is_http_url(self.source):
            response = request_with_retry(
                "GET",
                self.source,
                params={self.cache_bust_param: int(time.time() * 1000)},
                timeout=self.timeout,
                **retry_kwargs(self.config),
            )
            response.raise_for_status()
            return response.json()
        path = Path(self.source).expanduser()
        with path.open("r", encoding="utf-8") as handle:
            return json.load(handle)

    def fetch_authoritative(self) -> list[MovieRecord]:
        if not self.source:
            return []
        try:
            document = self.fetch_document()
        except (requests.RequestException, ValueError, OSError) as exc:
            self._log_failure(exc)
            return []
        return _records(document)

    def resolve(self) -> list[MovieRecord]:
        merged = merge_records(
            self.fetch_authoritative(),
            self.overlay.load(),
            overlay_wins=self.merge_policy == "overlay_first",
        )
        return sort_newest_first(merged)

    def merged_document(self) -> dict[str, Any]:
        merged = merge_records(self.fetch_authoritative(), self.overlay.load(), overlay_wins=True)
        return {"movies": [movie.to_dict() for movie in sort_newest_first(merged)]}

    def find(self, movie_id: str, movies: list[MovieRecord] | None = None) -> MovieRecord | None:
        for movie in movies if movies is not None else self.resolve():
            if movie.id == movie_id:
                return movie
        return None


def filter_by_type(movies: list[MovieRecord], kind: str | None) -> list[MovieRecord]:
    if not kind or kind == "all":
        return list(movies)
    try:
        wanted = MovieType(kind)
    except ValueError:
        return []
    return [movie for movie in movies if movie.type == wanted]


def search(movies: list[MovieRecord], query: str) -> list[MovieRecord]:
    query = (query or "").strip()
    if not query:
        return list(movies)
    lowered = query.lower()
    matches = []
    for movie in movies:
        if lowered in movie.title.lower():
            matches.append(movie)
        elif movie.alternative_title and lowered in movie.alternative_title.lower():
            matches.append(movie)
        elif any(lowered in genre.lower() for genre in movie.genres):
            matches.append(movie)
        elif movie.year and query in movie.year:
            matches.append(movie)
    return matches


def featured(movies: list[MovieRecord], rng: random.Random | None = None) -> MovieRecord | None:
    if not movies:
        return None
    rng = rng or random.Random()
    pool = movies[: min(len(movies), FEATURED_POOL)]
    return pool[rng.randrange(len(pool))]


def teaser(movie: MovieRecord, limit: int = 150) -> str:
    if not movie.description:
        return DEFAULT_TEASER
    return movie.description[:limit] + "..."
