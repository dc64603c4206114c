"""Plain-text rendering of command results."""

from __future__ import annotations

from typing import Any

from .providers import display_name


def _dash(value: Any) -> str:
    return str(value) if value else "-"


def _kind_label(movie: dict[str, Any]) -> str:
    return "Series" if movie.get("type") == "series" else "Movie"


def _status_label(movie: dict[str, Any]) -> str:
    return "Ongoing" if movie.get("status") == "ongoing" else "Completed"


def render_movie_table(movies: list[dict[str, Any]]) -> str:
    if not movies:
        return "No movies yet."
    rows = [("ID", "TITLE", "YEAR", "TYPE", "STATUS", "SERVERS")]
    for movie in movies:
        title = movie.get("title") or ""
        alt = movie.get("alternative_title")
        if alt:
            title = f"{title} / {alt}"
        rows.append(
            (
                str(movie.get("id") or ""),
                title,
                _dash(movie.get("year")),
                _kind_label(movie),
                _status_label(movie),
                str(len(movie.get("sources") or [])),
            )
        )
    widths = [max(len(row[col]) for row in rows) for col in range(len(rows[0]))]
    lines = []
    for row in rows:
        lines.append("  ".join(cell.ljust(widths[idx]) for idx, cell in enumerate(row)).rstrip())
    return "\n".join(lines)


def render_sources(sources: list[dict[str, Any]]) -> str:
    if not sources:
        return "No video available yet."
    lines = []
    for source in sources:
        name = source.get("provider_name") or display_name(source.get("provider") or "other")
        lines.append(f"[{source.get('index')}] {name} {source.get('quality') or ''}".rstrip())
        lines.append(f"    play:     {source.get('embed_url')}")
        lines.append(f"    download: {source.get('download_link') or source.get('embed_url')}")
    return "\n".join(lines)


def render_movie_detail(movie: dict[str, Any], sources: list[dict[str, Any]]) -> str:
    lines = []
    lines.append(f"# {movie.get('title')}")
    if movie.get("alternative_title"):
        lines.append(movie["alternative_title"])
    lines.append("")
    lines.append(f"- id: {movie.get('id')}")
    lines.append(f"- year: {_dash(movie.get('year'))}")
    lines.append(f"- duration: {_dash(movie.get('duration'))}")
    lines.append(f"- rating: {_dash(movie.get('rating'))}")
    lines.append(f"- type: {_kind_label(movie)}")
    lines.append(f"- status: {_status_label(movie)}")
    genres = movie.get("genres") or []
    if genres:
        lines.append(f"- genres: {', '.join(genres)}")
    lines.append("")
    lines.append(movie.get("description") or "No description.")
    lines.append("")
    lines.append("## Servers")
    lines.append(render_sources(sources))
    return "\n".join(lines)
