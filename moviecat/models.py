"""Movie and source records with provenance timestamps."""

from __future__ import annotations

import random
import string
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from .providers import Provider

_ID_ALPHABET = string.digits + string.ascii_lowercase

MOVIE_FIELDS = (
    "title",
    "alternative_title",
    "description",
    "poster",
    "backdrop",
    "year",
    "duration",
    "rating",
)


class MovieType(str, Enum):
    MOVIE = "movie"
    SERIES = "series"


class MovieStatus(str, Enum):
    COMPLETED = "completed"
    ONGOING = "ongoing"


def _parse_enum(enum_cls: type[Enum], value: Any, default: Enum) -> Any:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value or "").strip().lower())
    except ValueError:
        return default


def now_iso() -> str:
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def parse_timestamp(value: Any) -> float:
    if not isinstance(value, str) or not value.strip():
        return 0.0
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return 0.0
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()


def new_movie_id() -> str:
    suffix = "".join(random.choice(_ID_ALPHABET) for _ in range(9))
    return f"mov_{int(time.time() * 1000)}_{suffix}"


def parse_genres(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple)):
        items = [str(item) for item in value if item is not None]
    else:
        return []
    return [item.strip() for item in items if item.strip()]


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


@dataclass
class SourceRecord:
    embed_url: str
    provider: Provider = Provider.OTHER
    download_url: str = ""
    quality: str = "720p"
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def download_link(self) -> str:
        return self.download_url or self.embed_url

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SourceRecord":
        known = {"provider", "embed_url", "download_url", "quality"}
        return cls(
            embed_url=_text(data.get("embed_url")),
            provider=Provider.parse(data.get("provider")),
            download_url=_text(data.get("download_url")),
            quality=_text(data.get("quality")) or "720p",
            extra={k: v for k, v in data.items() if k not in known},
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "provider": self.provider.value,
            "embed_url": self.embed_url,
            "download_url": self.download_url,
            "quality": self.quality,
        }
        out.update(self.extra)
        return out


@dataclass
class MovieRecord:
    id: str
    title: str = ""
    alternative_title: str = ""
    description: str = ""
    poster: str = ""
    backdrop: str = ""
    year: str = ""
    duration: str = ""
    rating: str = ""
    genres: list[str] = field(default_factory=list)
    type: MovieType = MovieType.MOVIE
    status: MovieStatus = MovieStatus.COMPLETED
    sources: list[SourceRecord] = field(default_factory=list)
    created_at: str = ""
    updated_at: str = ""
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MovieRecord":
        known = set(MOVIE_FIELDS) | {
            "id",
            "genres",
            "type",
            "status",
            "sources",
            "created_at",
            "updated_at",
        }
        sources = data.get("sources") or []
        return cls(
            id=_text(data.get("id")),
            genres=parse_genres(data.get("genres")),
            type=_parse_enum(MovieType, data.get("type"), MovieType.MOVIE),
            status=_parse_enum(MovieStatus, data.get("status"), MovieStatus.COMPLETED),
            sources=[SourceRecord.from_dict(s) for s in sources if isinstance(s, dict)],
            created_at=_text(data.get("created_at")),
            updated_at=_text(data.get("updated_at")),
            extra={k: v for k, v in data.items() if k not in known},
            **{name: _text(data.get(name)) for name in MOVIE_FIELDS},
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"id": self.id}
        for name in MOVIE_FIELDS:
            out[name] = getattr(self, name)
        out["genres"] = list(self.genres)
        out["type"] = self.type.value
        out["status"] = self.status.value
        out["sources"] = [source.to_dict() for source in self.sources]
        out["created_at"] = self.created_at
        out["updated_at"] = self.updated_at
        out.update(self.extra)
        return out

    def touch(self) -> None:
        self.updated_at = now_iso()

    def has_embed_url(self, embed_url: str) -> bool:
        return any(source.embed_url == embed_url for source in self.sources)

    @property
    def created_ts(self) -> float:
        return parse_timestamp(self.created_at)


def sort_newest_first(movies: list[MovieRecord]) -> list[MovieRecord]:
    return sorted(movies, key=lambda movie: movie.created_ts, reverse=True)
