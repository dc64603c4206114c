"""Pending-write overlay: locally persisted movie records awaiting sync."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Callable

from .errors import CatalogError, NotFoundError, ValidationError
from .models import MovieRecord, SourceRecord
from .storage import KeyValueStore

DEFAULT_KEY = "movies"


@dataclass
class ImportResult:
    imported: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    invalid: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "imported": len(self.imported),
            "skipped": len(self.skipped),
            "invalid": self.invalid,
            "ids": list(self.imported),
        }


def _index_of(movies: list[MovieRecord], movie_id: str) -> int:
    for idx, movie in enumerate(movies):
        if movie.id == movie_id:
            return idx
    return -1


class Overlay:
    """Read-modify-write list of MovieRecords stored under a single key.

    Every mutation loads the full list, applies the change to the in-memory
    copy and persists the whole list. If the change raises, nothing is written.
    """

    def __init__(self, store: KeyValueStore, key: str = DEFAULT_KEY) -> None:
        self.store = store
        self.key = key

    def load(self) -> list[MovieRecord]:
        raw = self.store.get(self.key)
        if not raw:
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise CatalogError(
                f"overlay store {self.key!r} is not valid JSON: {exc}",
                code="PARSE_ERROR",
                hint="Export what you can, then run `moviecat clear`.",
            ) from exc
        if not isinstance(data, list):
            raise CatalogError(
                f"overlay store {self.key!r} does not hold a list",
                code="PARSE_ERROR",
                hint="Run `moviecat clear` to reset local data.",
            )
        return [MovieRecord.from_dict(item) for item in data if isinstance(item, dict)]

    def save(self, movies: list[MovieRecord]) -> None:
        payload = [movie.to_dict() for movie in movies]
        self.store.set(self.key, json.dumps(payload, ensure_ascii=False))

    def _mutate(self, change: Callable[[list[MovieRecord]], Any]) -> Any:
        movies = self.load()
        result = change(movies)
        self.save(movies)
        return result

    def get(self, movie_id: str) -> MovieRecord | None:
        for movie in self.load():
            if movie.id == movie_id:
                return movie
        return None

    def create(self, movie: MovieRecord) -> MovieRecord:
        def change(movies: list[MovieRecord]) -> MovieRecord:
            if _index_of(movies, movie.id) != -1:
                raise ValidationError(f"movie id already exists: {movie.id}")
            movies.insert(0, movie)
            return movie

        return self._mutate(change)

    def update(self, movie: MovieRecord) -> MovieRecord:
        def change(movies: list[MovieRecord]) -> MovieRecord:
            idx = _index_of(movies, movie.id)
            if idx == -1:
                raise NotFoundError(f"movie not found: {movie.id}")
            movies[idx] = movie
            return movie

        return self._mutate(change)

    def upsert(self, movie: MovieRecord) -> MovieRecord:
        def change(movies: list[MovieRecord]) -> MovieRecord:
            idx = _index_of(movies, movie.id)
            if idx == -1:
                movies.append(movie)
            else:
                movies[idx] = movie
            return movie

        return self._mutate(change)

    def add_source(self, movie_id: str, source: SourceRecord) -> MovieRecord:
        def change(movies: list[MovieRecord]) -> MovieRecord:
            idx = _index_of(movies, movie_id)
            if idx == -1:
                raise NotFoundError(f"movie not found: {movie_id}")
            movie = movies[idx]
            if movie.has_embed_url(source.embed_url):
                raise ValidationError(f"source with this embed URL already exists: {source.embed_url}")
            movie.sources.append(source)
            movie.touch()
            return movie

        return self._mutate(change)

    def remove(self, movie_id: str) -> MovieRecord:
        def change(movies: list[MovieRecord]) -> MovieRecord:
            idx = _index_of(movies, movie_id)
            if idx == -1:
                raise NotFoundError(f"movie not found: {movie_id}")
            return movies.pop(idx)

        return self._mutate(change)

    def remove_source(self, movie_id: str, index: int) -> SourceRecord:
        def change(movies: list[MovieRecord]) -> SourceRecord:
            idx = _index_of(movies, movie_id)
            if idx == -1:
                raise NotFoundError(f"movie not found: {movie_id}")
            movie = movies[idx]
            if index < 0 or index >= len(movie.sources):
                raise NotFoundError(f"source not found: {movie_id}[{index}]")
            removed = movie.sources.pop(index)
            movie.touch()
            return removed

        return self._mutate(change)

    def import_document(self, document: Any) -> ImportResult:
        if not isinstance(document, dict) or not isinstance(document.get("movies"), list):
            raise ValidationError('invalid catalog document: expected a top-level "movies" array')

        def change(movies: list[MovieRecord]) -> ImportResult:
            result = ImportResult()
            existing = {movie.id for movie in movies}
            for item in document["movies"]:
                if not isinstance(item, dict) or not item.get("id"):
                    result.invalid += 1
                    continue
                movie = MovieRecord.from_dict(item)
                if movie.id in existing:
                    result.skipped.append(movie.id)
                    continue
                movies.append(movie)
                existing.add(movie.id)
                result.imported.append(movie.id)
            return result

        return self._mutate(change)

    def clear(self) -> None:
        self.store.remove(self.key)
