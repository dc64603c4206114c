"""CLI entrypoint for moviecat."""

from __future__ import annotations

import argparse
import signal
import sys
import threading
from pathlib import Path
from typing import Any

import requests

from .commands import Context, build_context, dispatch
from .config import (
    ensure_config_exists,
    load_config,
    save_default_config,
    save_default_secrets,
    validate_config,
)
from .errors import UploadCancelled
from .providers import provider_choices
from .report import render_movie_detail, render_movie_table, render_sources
from .util import is_http_url, redact_payload, write_json

MOVIE_FIELD_ARGS = (
    ("title", "--title", "Movie title"),
    ("alternative_title", "--alt-title", "Alternative title"),
    ("description", "--description", "Synopsis"),
    ("poster", "--poster", "Poster image URL"),
    ("backdrop", "--backdrop", "Backdrop image URL"),
    ("year", "--year", "Release year"),
    ("duration", "--duration", "Duration, e.g. 2h 10m"),
    ("rating", "--rating", "Rating, e.g. 8.1"),
    ("genres", "--genres", "Comma-separated genres"),
)


def _load_context(args: argparse.Namespace) -> Context:
    config = load_config(ensure_config_exists(args.config))
    return build_context(config)


def _print_notice(result: dict[str, Any], args: argparse.Namespace) -> None:
    if getattr(args, "quiet", False) and result.get("status") != "error":
        return
    notice = result.get("notice") or {}
    message = notice.get("message")
    if not message:
        return
    if result.get("status") == "error":
        sys.stderr.write(f"error: {message}\n")
        hint = (result.get("error") or {}).get("hint")
        if hint:
            sys.stderr.write(f"hint: {hint}\n")
        return
    sys.stderr.write(f"{message}\n")
    if result.get("status") == "local":
        remote = result.get("remote") or {}
        if remote.get("message"):
            sys.stderr.write(f"remote API unavailable ({remote['message']}); saved locally\n")
        if result.get("hint"):
            sys.stderr.write(f"{result['hint']}\n")


def _emit(result: dict[str, Any], args: argparse.Namespace, render: Any = None) -> int:
    _print_notice(result, args)
    if args.json:
        write_json(result)
    elif render is not None and result.get("status") != "error":
        text = render(result)
        if text:
            sys.stdout.write(text + "\n")
    return 1 if result.get("status") == "error" else 0


def _confirm(prompt: str, args: argparse.Namespace) -> bool:
    if getattr(args, "yes", False):
        return True
    if not sys.stdin.isatty():
        sys.stderr.write(f"{prompt} (rerun with --yes to confirm)\n")
        return False
    try:
        answer = input(f"{prompt} [y/N] ").strip().lower()
    except EOFError:
        return False
    return answer in {"y", "yes"}


def _movie_fields(args: argparse.Namespace) -> dict[str, Any]:
    request: dict[str, Any] = {}
    for dest, _flag, _help in MOVIE_FIELD_ARGS:
        value = getattr(args, dest, None)
        if value is not None:
            request[dest] = value
    for dest in ("type", "status"):
        value = getattr(args, dest, None)
        if value is not None:
            request[dest] = value
    return request


def cmd_init(args: argparse.Namespace) -> int:
    cfg_path = save_default_config(path=Path(args.config).expanduser() if args.config else None, overwrite=args.force)
    save_default_secrets(overwrite=False)
    sys.stdout.write(f"Initialized config at {cfg_path}\n")
    return 0


def cmd_list(args: argparse.Namespace) -> int:
    result = dispatch("list_movies", {"type": args.type}, _load_context(args))
    return _emit(result, args, lambda r: render_movie_table(r.get("movies") or []))


def cmd_search(args: argparse.Namespace) -> int:
    result = dispatch("search", {"query": args.query, "type": args.type}, _load_context(args))
    return _emit(result, args, lambda r: render_movie_table(r.get("movies") or []))


def cmd_show(args: argparse.Namespace) -> int:
    result = dispatch("show_movie", {"id": args.id}, _load_context(args))
    return _emit(result, args, lambda r: render_movie_detail(r["movie"], r.get("sources") or []))


def cmd_sources(args: argparse.Namespace) -> int:
    result = dispatch("sources", {"id": args.id}, _load_context(args))
    return _emit(result, args, lambda r: render_sources(r.get("sources") or []))


def cmd_featured(args: argparse.Namespace) -> int:
    result = dispatch("featured", {"seed": args.seed}, _load_context(args))

    def render(r: dict[str, Any]) -> str:
        movie = r.get("movie")
        if not movie:
            return ""
        return f"{movie.get('title')} ({movie.get('id')})\n{r.get('teaser')}"

    return _emit(result, args, render)


def cmd_add_movie(args: argparse.Namespace) -> int:
    request = _movie_fields(args)
    if args.id:
        request["id"] = args.id
    result = dispatch("add_movie", request, _load_context(args))
    return _emit(result, args, lambda r: str(r["movie"]["id"]))


def cmd_edit_movie(args: argparse.Namespace) -> int:
    request = _movie_fields(args)
    request["id"] = args.id
    result = dispatch("edit_movie", request, _load_context(args))
    return _emit(result, args)


def cmd_add_source(args: argparse.Namespace) -> int:
    request = {
        "movie_id": args.movie_id,
        "embed_url": args.embed_url,
        "download_url": args.download_url,
        "provider": args.provider,
        "quality": args.quality,
    }
    result = dispatch("add_source", request, _load_context(args))
    return _emit(result, args)


def cmd_delete_source(args: argparse.Namespace) -> int:
    if not _confirm(f"Delete source {args.index} of {args.movie_id}?", args):
        return 1
    result = dispatch("delete_source", {"movie_id": args.movie_id, "index": args.index}, _load_context(args))
    return _emit(result, args)


def cmd_delete_movie(args: argparse.Namespace) -> int:
    if not _confirm(f"Delete movie {args.id} and all of its sources?", args):
        return 1
    result = dispatch("delete_movie", {"id": args.id}, _load_context(args))
    return _emit(result, args)


def cmd_upload(args: argparse.Namespace) -> int:
    context = _load_context(args)
    cancel = threading.Event()
    show_progress = sys.stderr.isatty() and not args.quiet

    def _progress(sent: int, total: int) -> None:
        if not show_progress or total <= 0:
            return
        percent = round(sent * 100 / total)
        sys.stderr.write(f"\rUploading... {percent}%")
        if sent >= total:
            sys.stderr.write("\n")

    def _on_interrupt(signum: int, frame: Any) -> None:
        # Raising here also interrupts a blocked wait for the server response.
        cancel.set()
        raise UploadCancelled("upload cancelled")

    previous = signal.signal(signal.SIGINT, _on_interrupt)
    try:
        result = dispatch(
            "upload_video",
            {
                "movie_id": args.movie_id,
                "path": args.file,
                "provider": args.provider,
                "quality": args.quality,
                "cancel": cancel,
                "progress": _progress,
            },
            context,
        )
    finally:
        signal.signal(signal.SIGINT, previous)
    return _emit(result, args)


def cmd_upload_url(args: argparse.Namespace) -> int:
    request = {
        "movie_id": args.movie_id,
        "url": args.url,
        "provider": args.provider,
        "quality": args.quality,
    }
    result = dispatch("upload_url", request, _load_context(args))
    return _emit(result, args)


def cmd_import(args: argparse.Namespace) -> int:
    result = dispatch("import_catalog", {"path": args.file}, _load_context(args))

    def render(r: dict[str, Any]) -> str:
        summary = r.get("result") or {}
        lines = [f"imported: {summary.get('imported', 0)}, skipped: {summary.get('skipped', 0)}, invalid: {summary.get('invalid', 0)}"]
        for warning in (r.get("warnings") or [])[:5]:
            lines.append(f"warning: {warning}")
        return "\n".join(lines)

    return _emit(result, args, render)


def cmd_export(args: argparse.Namespace) -> int:
    output = None if args.stdout else args.output
    result = dispatch("export_catalog", {"output": output}, _load_context(args))
    if args.stdout and result.get("status") != "error":
        _print_notice(result, args)
        write_json(result["document"])
        return 0
    return _emit(result, args, lambda r: str(r.get("path") or ""))


def cmd_clear(args: argparse.Namespace) -> int:
    if not _confirm("Delete all local data? The published movies.json is not affected.", args):
        return 1
    result = dispatch("clear_overlay", {}, _load_context(args))
    return _emit(result, args)


def cmd_validate(args: argparse.Namespace) -> int:
    config = load_config(ensure_config_exists(args.config))
    errors, warnings = validate_config(config)
    for warning in warnings:
        sys.stderr.write(f"warning: {warning}\n")
    for error in errors:
        sys.stderr.write(f"error: {error}\n")
    return 1 if errors else 0


def _check_endpoint(name: str, url: str, headers: dict[str, str] | None, timeout: float = 5.0) -> tuple[bool, str]:
    try:
        response = requests.get(url, headers=headers, timeout=timeout)
    except requests.RequestException as exc:
        return False, f"{name} error: {redact_payload(str(exc))}"
    if response.status_code in {401, 403}:
        return False, f"{name} auth failed ({response.status_code})"
    if response.status_code >= 500:
        return False, f"{name} server error ({response.status_code})"
    return True, f"{name} reachable"


def cmd_doctor(args: argparse.Namespace) -> int:
    context = _load_context(args)
    errors, warnings = validate_config(context.config)
    failed = False
    for warning in warnings:
        sys.stderr.write(f"warning: {warning}\n")
    for error in errors:
        sys.stderr.write(f"error: {error}\n")
        failed = True

    resolver = context.resolver
    if resolver.source:
        try:
            document = resolver.fetch_document()
        except (requests.RequestException, ValueError, OSError) as exc:
            sys.stderr.write(f"catalog error: {redact_payload(str(exc))}\n")
            failed = True
        else:
            movies = document.get("movies") if isinstance(document, dict) else None
            if isinstance(movies, list):
                sys.stderr.write(f"catalog ok ({len(movies)} movies)\n")
            else:
                sys.stderr.write('catalog error: missing "movies" array\n')
                failed = True

    try:
        local = context.overlay.load()
    except Exception as exc:
        sys.stderr.write(f"local data error: {exc}\n")
        failed = True
    else:
        sys.stderr.write(f"local data ok ({len(local)} pending movies)\n")

    api = context.api
    if api.configured and is_http_url(api.url):
        ok, msg = _check_endpoint("api", api.url, api.headers or None)
        sys.stderr.write(msg + "\n")
        failed = failed or not ok

    return 1 if failed else 0


def cmd_help(args: argparse.Namespace) -> int:
    topic = (args.topic or "overview").lower()
    docs = {
        "overview": (
            "moviecat quick help\n"
            "\n"
            "Install + init:\n"
            "  pip install .\n"
            "  moviecat init\n"
            "\n"
            "Browse:\n"
            "  moviecat list [--type movie|series]\n"
            "  moviecat search \"query\"\n"
            "  moviecat show <id>\n"
            "\n"
            "Admin:\n"
            "  moviecat add-movie --title \"...\" --poster https://...\n"
            "  moviecat add-source <id> --embed-url https://... --provider doodstream\n"
            "  moviecat upload <id> video.mp4\n"
            "  moviecat export --output movies.json\n"
            "\n"
            "More:\n"
            "  moviecat help config   # config keys\n"
            "  moviecat help sync     # remote API vs local data\n"
            "  moviecat help errors   # error codes\n"
        ),
        "config": (
            "Config locations:\n"
            "  ~/.config/moviecat/config.yaml (override with MOVIECAT_CONFIG)\n"
            "  ~/.config/moviecat/secrets.yaml (override with MOVIECAT_SECRETS)\n"
            "  local data: ~/.local/state/moviecat/store (override with MOVIECAT_STORE or overlay.path)\n"
            "\n"
            "Keys:\n"
            "  catalog.source        path or URL of the published movies.json\n"
            "  catalog.merge_policy  catalog_first | overlay_first\n"
            "  api.url               upload/management endpoint (empty = local only)\n"
            "  uploads.max_bytes     upload size limit (default 2 GB)\n"
            "  logging.path          JSONL operation log (optional)\n"
        ),
        "sync": (
            "Writes (add-movie, add-source, delete-movie) try the remote API first.\n"
            "If it is unreachable or refuses the request, the change is saved locally.\n"
            "edit-movie and delete-source are always local.\n"
            "Local data is shown merged with the published catalog.\n"
            "Publish local changes with `moviecat export` and upload movies.json.\n"
        ),
        "errors": (
            "Common error codes:\n"
            "  VALIDATION_ERROR  Missing field, bad URL, duplicate source or id, file too large\n"
            "  NOT_FOUND         Movie or source does not exist\n"
            "  NETWORK_ERROR     Remote API unreachable (writes fall back to local data)\n"
            "  REMOTE_REJECTED   Remote API answered success=false\n"
            "  CANCELLED         Upload cancelled\n"
            "  PARSE_ERROR       Invalid JSON in local data or import file\n"
        ),
    }
    if topic not in docs:
        sys.stderr.write(f"unknown help topic: {topic}\n")
        sys.stderr.write("available: overview, config, sync, errors\n")
        return 1
    sys.stdout.write(docs[topic])
    return 0


def _add_movie_field_args(parser: argparse.ArgumentParser) -> None:
    for dest, flag, help_text in MOVIE_FIELD_ARGS:
        parser.add_argument(flag, dest=dest, help=help_text)
    parser.add_argument("--type", choices=["movie", "series"], help="Movie or series")
    parser.add_argument("--status", choices=["completed", "ongoing"], help="Completed or ongoing")


def build_parser() -> argparse.ArgumentParser:
    epilog = (
        "Examples:\n"
        "  moviecat init\n"
        "  moviecat list --type series\n"
        "  moviecat add-movie --title \"Test\" --poster http://x/p.jpg\n"
        "  moviecat add-source mov_1 --embed-url https://dood.example/e/abc --provider doodstream\n"
        "  moviecat export --output data/movies.json\n"
        "\n"
        "More help:\n"
        "  moviecat help [overview|config|sync|errors]\n"
    )
    parser = argparse.ArgumentParser(
        prog="moviecat",
        description="Movie catalog admin and browser",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=epilog,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", help="Path to config file (or set MOVIECAT_CONFIG)")
    common.add_argument("--quiet", action="store_true", help="Suppress success notices")
    common.add_argument("--json", action="store_true", help="Print the full JSON result")

    confirm = argparse.ArgumentParser(add_help=False)
    confirm.add_argument("--yes", action="store_true", help="Do not ask for confirmation")

    source_opts = argparse.ArgumentParser(add_help=False)
    source_opts.add_argument("--provider", choices=provider_choices(), help="Video host (default: config defaults.provider)")
    source_opts.add_argument("--quality", help="Quality label (default: 720p)")

    init_cmd = sub.add_parser("init", parents=[common], help="Initialize default config")
    init_cmd.add_argument("--force", action="store_true", help="Overwrite config if it exists")
    init_cmd.set_defaults(func=cmd_init)

    list_cmd = sub.add_parser("list", parents=[common], help="List movies, newest first")
    list_cmd.add_argument("--type", choices=["all", "movie", "series"], default="all")
    list_cmd.set_defaults(func=cmd_list)

    search_cmd = sub.add_parser("search", parents=[common], help="Search title, genres and year")
    search_cmd.add_argument("query")
    search_cmd.add_argument("--type", choices=["all", "movie", "series"], default="all")
    search_cmd.set_defaults(func=cmd_search)

    show_cmd = sub.add_parser("show", parents=[common], help="Show one movie with its servers")
    show_cmd.add_argument("id")
    show_cmd.set_defaults(func=cmd_show)

    sources_cmd = sub.add_parser("sources", parents=[common], help="List a movie's sources")
    sources_cmd.add_argument("id")
    sources_cmd.set_defaults(func=cmd_sources)

    featured_cmd = sub.add_parser("featured", parents=[common], help="Pick a featured movie")
    featured_cmd.add_argument("--seed", type=int, help="Random seed")
    featured_cmd.set_defaults(func=cmd_featured)

    add_cmd = sub.add_parser("add-movie", parents=[common], help="Add a movie")
    add_cmd.add_argument("--id", help="Movie id (generated when omitted)")
    _add_movie_field_args(add_cmd)
    add_cmd.set_defaults(func=cmd_add_movie)

    edit_cmd = sub.add_parser("edit-movie", parents=[common], help="Edit a movie (saved locally)")
    edit_cmd.add_argument("id")
    _add_movie_field_args(edit_cmd)
    edit_cmd.set_defaults(func=cmd_edit_movie)

    add_source_cmd = sub.add_parser("add-source", parents=[common, source_opts], help="Add a video source")
    add_source_cmd.add_argument("movie_id")
    add_source_cmd.add_argument("--embed-url", required=True, help="Player embed URL")
    add_source_cmd.add_argument("--download-url", help="Direct download URL")
    add_source_cmd.set_defaults(func=cmd_add_source)

    delete_source_cmd = sub.add_parser(
        "delete-source", parents=[common, confirm], help="Delete a source by index (local data)"
    )
    delete_source_cmd.add_argument("movie_id")
    delete_source_cmd.add_argument("index", type=int)
    delete_source_cmd.set_defaults(func=cmd_delete_source)

    delete_cmd = sub.add_parser("delete-movie", parents=[common, confirm], help="Delete a movie")
    delete_cmd.add_argument("id")
    delete_cmd.set_defaults(func=cmd_delete_movie)

    upload_cmd = sub.add_parser("upload", parents=[common, source_opts], help="Upload a video file")
    upload_cmd.add_argument("movie_id")
    upload_cmd.add_argument("file")
    upload_cmd.set_defaults(func=cmd_upload)

    upload_url_cmd = sub.add_parser("upload-url", parents=[common, source_opts], help="Remote upload from a URL")
    upload_url_cmd.add_argument("movie_id")
    upload_url_cmd.add_argument("url")
    upload_url_cmd.set_defaults(func=cmd_upload_url)

    import_cmd = sub.add_parser("import", parents=[common], help="Import a movies.json into local data")
    import_cmd.add_argument("file")
    import_cmd.set_defaults(func=cmd_import)

    export_cmd = sub.add_parser("export", parents=[common], help="Export the merged catalog")
    export_cmd.add_argument("--output", default="movies.json", help="Output path (default: movies.json)")
    export_cmd.add_argument("--stdout", action="store_true", help="Print the document instead of writing a file")
    export_cmd.set_defaults(func=cmd_export)

    clear_cmd = sub.add_parser("clear", parents=[common, confirm], help="Delete all local data")
    clear_cmd.set_defaults(func=cmd_clear)

    validate_cmd = sub.add_parser("validate", parents=[common], help="Validate config")
    validate_cmd.set_defaults(func=cmd_validate)

    doctor_cmd = sub.add_parser("doctor", parents=[common], help="Check config, catalog and API")
    doctor_cmd.set_defaults(func=cmd_doctor)

    help_cmd = sub.add_parser("help", help="Show extended help topics")
    help_cmd.add_argument("topic", nargs="?", help="overview|config|sync|errors")
    help_cmd.set_defaults(func=cmd_help)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
