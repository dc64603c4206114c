import json
import tempfile
from pathlib import Path
from unittest import TestCase
from unittest.mock import MagicMock, patch

from moviecat.commands import build_context, dispatch
from moviecat.config import default_config
from moviecat.storage import MemoryStore
from moviecat.util import deep_merge

FIXTURE = Path(__file__).parent / "fixtures" / "movies.json"


def _context(**overrides):
    base = {"catalog": {"source": str(FIXTURE)}, "retries": {"retries": 0}}
    return build_context(deep_merge(default_config(), deep_merge(base, overrides)), store=MemoryStore())


def _ids(context) -> list:
    return [movie["id"] for movie in dispatch("list_movies", {}, context)["movies"]]


class AddMovieTests(TestCase):
    def test_create_then_resolve_puts_new_movie_first(self) -> None:
        context = _context()
        result = dispatch("add_movie", {"id": "mov_1", "title": "Test", "poster": "http://x/p.jpg"}, context)
        self.assertEqual(result["status"], "local")
        self.assertEqual(result["notice"], {"type": "success", "message": "Movie added"})
        ids = _ids(context)
        self.assertEqual(ids[0], "mov_1")
        self.assertEqual(ids.count("mov_1"), 1)

    def test_generated_id_and_defaults(self) -> None:
        context = _context()
        result = dispatch("add_movie", {"title": "Test", "poster": "http://x/p.jpg", "genres": "A, B"}, context)
        movie = result["movie"]
        self.assertTrue(movie["id"].startswith("mov_"))
        self.assertEqual(movie["genres"], ["A", "B"])
        self.assertEqual(movie["type"], "movie")
        self.assertEqual(movie["status"], "completed")
        self.assertEqual(movie["sources"], [])
        self.assertEqual(movie["created_at"], movie["updated_at"])

    def test_validation_errors_leave_no_trace(self) -> None:
        context = _context()
        cases = [
            {"title": "", "poster": "http://x/p.jpg"},
            {"title": "Test"},
            {"title": "Test", "poster": "not a url"},
            {"title": "Test", "poster": "http://x/p.jpg", "type": "anime"},
            {"id": "mov_old", "title": "Test", "poster": "http://x/p.jpg"},
        ]
        for request in cases:
            result = dispatch("add_movie", request, context)
            self.assertEqual(result["status"], "error", request)
            self.assertEqual(result["error"]["code"], "VALIDATION_ERROR")
        self.assertEqual(context.overlay.load(), [])

    def test_remote_success_skips_overlay(self) -> None:
        context = _context(api={"url": "https://backend.example/api.php"})
        response = MagicMock(status_code=200, ok=True)
        response.json.return_value = {"success": True}
        with patch("requests.request", return_value=response) as mocked:
            result = dispatch("add_movie", {"id": "mov_r", "title": "R", "poster": "http://x/p.jpg"}, context)
        self.assertEqual(result["status"], "ok")
        self.assertEqual(context.overlay.load(), [])
        files = mocked.call_args.kwargs["files"]
        self.assertEqual(files["action"], (None, "add_movie"))
        self.assertNotIn("sources", files)

    def test_remote_add_source_returns_source_view(self) -> None:
        context = _context(api={"url": "https://backend.example/api.php"})
        response = MagicMock(status_code=200, ok=True)
        response.json.return_value = {"success": True}
        with patch("requests.request", return_value=response):
            result = dispatch(
                "add_source", {"movie_id": "mov_old", "embed_url": "https://h.example/e/3", "provider": "mega"}, context
            )
        self.assertEqual(result["status"], "ok")
        self.assertEqual(result["source"]["index"], 2)
        self.assertEqual(result["source"]["provider_name"], "Mega")
        self.assertEqual(result["source"]["icon"], "fas fa-cloud")

    def test_remote_rejection_falls_back_to_overlay(self) -> None:
        context = _context(api={"url": "https://backend.example/api.php"})
        response = MagicMock(status_code=200, ok=True)
        response.json.return_value = {"success": False, "error": "database locked"}
        with patch("requests.request", return_value=response):
            result = dispatch("add_movie", {"id": "mov_r", "title": "R", "poster": "http://x/p.jpg"}, context)
        self.assertEqual(result["status"], "local")
        self.assertEqual(result["remote"]["message"], "database locked")
        self.assertIsNotNone(context.overlay.get("mov_r"))


class SourceTests(TestCase):
    def setUp(self) -> None:
        self.context = _context()
        dispatch("add_movie", {"id": "mov_1", "title": "Test", "poster": "http://x/p.jpg"}, self.context)

    def test_add_source_defaults(self) -> None:
        result = dispatch("add_source", {"movie_id": "mov_1", "embed_url": "https://h.example/e/1"}, self.context)
        self.assertEqual(result["status"], "local")
        self.assertEqual(result["source"]["provider"], "other")
        self.assertEqual(result["source"]["quality"], "720p")
        self.assertEqual(result["source"]["index"], 0)

    def test_duplicate_embed_url_rejected(self) -> None:
        request = {"movie_id": "mov_1", "embed_url": "https://h.example/e/1", "provider": "mega"}
        dispatch("add_source", request, self.context)
        result = dispatch("add_source", request, self.context)
        self.assertEqual(result["error"]["code"], "VALIDATION_ERROR")
        self.assertEqual(len(self.context.overlay.get("mov_1").sources), 1)

    def test_duplicate_against_published_sources(self) -> None:
        result = dispatch(
            "add_source", {"movie_id": "mov_old", "embed_url": "https://dood.example/e/harbor"}, self.context
        )
        self.assertEqual(result["error"]["code"], "VALIDATION_ERROR")

    def test_offline_source_for_published_movie_is_not_found(self) -> None:
        result = dispatch("add_source", {"movie_id": "mov_old", "embed_url": "https://h.example/e/9"}, self.context)
        self.assertEqual(result["error"]["code"], "NOT_FOUND")

    def test_missing_movie_id_or_bad_url(self) -> None:
        result = dispatch("add_source", {"embed_url": "https://h.example/e/1"}, self.context)
        self.assertEqual(result["notice"]["message"], "select a movie first")
        result = dispatch("add_source", {"movie_id": "mov_1", "embed_url": "ftp://h/e"}, self.context)
        self.assertEqual(result["error"]["code"], "VALIDATION_ERROR")

    def test_delete_source_by_index(self) -> None:
        dispatch("add_source", {"movie_id": "mov_1", "embed_url": "https://h.example/e/1"}, self.context)
        dispatch("add_source", {"movie_id": "mov_1", "embed_url": "https://h.example/e/2"}, self.context)
        result = dispatch("delete_source", {"movie_id": "mov_1", "index": 0}, self.context)
        self.assertEqual(result["source"]["embed_url"], "https://h.example/e/1")
        remaining = dispatch("sources", {"id": "mov_1"}, self.context)["sources"]
        self.assertEqual([s["embed_url"] for s in remaining], ["https://h.example/e/2"])
        result = dispatch("delete_source", {"movie_id": "mov_1", "index": "x"}, self.context)
        self.assertEqual(result["error"]["code"], "VALIDATION_ERROR")

    def test_sources_view(self) -> None:
        result = dispatch("sources", {"id": "mov_old"}, self.context)
        first, second = result["sources"]
        self.assertEqual(first["provider_name"], "Doodstream")
        self.assertEqual(first["download_link"], "https://dood.example/d/harbor")
        self.assertEqual(second["provider_name"], "Server")
        self.assertEqual(second["icon"], "fas fa-server")
        self.assertEqual(second["download_link"], second["embed_url"])


class DeleteAndEditTests(TestCase):
    def setUp(self) -> None:
        self.context = _context()
        dispatch("add_movie", {"id": "mov_1", "title": "Test", "poster": "http://x/p.jpg"}, self.context)
        dispatch("add_source", {"movie_id": "mov_1", "embed_url": "https://h.example/e/1"}, self.context)

    def test_delete_movie_removes_it_and_sources(self) -> None:
        result = dispatch("delete_movie", {"id": "mov_1"}, self.context)
        self.assertEqual(result["status"], "local")
        self.assertNotIn("mov_1", _ids(self.context))
        self.assertEqual(dispatch("sources", {"id": "mov_1"}, self.context)["error"]["code"], "NOT_FOUND")

    def test_delete_published_movie_offline(self) -> None:
        result = dispatch("delete_movie", {"id": "mov_old"}, self.context)
        self.assertEqual(result["error"]["code"], "NOT_FOUND")
        self.assertIn("remote API", result["error"]["hint"])
        self.assertIn("mov_old", _ids(self.context))

    def test_delete_unknown_movie(self) -> None:
        result = dispatch("delete_movie", {"id": "nope"}, self.context)
        self.assertEqual(result["error"]["code"], "NOT_FOUND")

    def test_edit_local_movie(self) -> None:
        result = dispatch("edit_movie", {"id": "mov_1", "title": "Renamed", "genres": ["Drama"]}, self.context)
        self.assertEqual(result["status"], "local")
        shown = dispatch("show_movie", {"id": "mov_1"}, self.context)["movie"]
        self.assertEqual(shown["title"], "Renamed")
        self.assertEqual(shown["genres"], ["Drama"])
        self.assertEqual(len(shown["sources"]), 1)

    def test_edit_published_movie_lands_in_export(self) -> None:
        dispatch("edit_movie", {"id": "mov_old", "rating": "9.0"}, self.context)
        document = dispatch("export_catalog", {}, self.context)["document"]
        edited = [m for m in document["movies"] if m["id"] == "mov_old"][0]
        self.assertEqual(edited["rating"], "9.0")
        self.assertEqual(edited["title"], "The Quiet Harbor")

    def test_repeated_edits_of_published_movie_keep_local_changes(self) -> None:
        dispatch("edit_movie", {"id": "mov_old", "title": "Renamed"}, self.context)
        added = dispatch("add_source", {"movie_id": "mov_old", "embed_url": "https://h.example/e/new"}, self.context)
        self.assertEqual(added["status"], "local")
        dispatch("edit_movie", {"id": "mov_old", "rating": "9.0"}, self.context)
        local = self.context.overlay.get("mov_old")
        self.assertEqual(local.title, "Renamed")
        self.assertEqual(local.rating, "9.0")
        self.assertEqual(
            [s.embed_url for s in local.sources],
            ["https://dood.example/e/harbor", "https://other.example/embed/harbor", "https://h.example/e/new"],
        )

    def test_offline_delete_of_edited_published_movie_is_refused(self) -> None:
        dispatch("edit_movie", {"id": "mov_old", "title": "Renamed"}, self.context)
        result = dispatch("delete_movie", {"id": "mov_old"}, self.context)
        self.assertEqual(result["status"], "error")
        self.assertEqual(result["error"]["code"], "NOT_FOUND")
        self.assertIsNotNone(self.context.overlay.get("mov_old"))
        self.assertIn("mov_old", _ids(self.context))

    def test_edit_rejects_clearing_title(self) -> None:
        result = dispatch("edit_movie", {"id": "mov_1", "title": " "}, self.context)
        self.assertEqual(result["error"]["code"], "VALIDATION_ERROR")
        self.assertEqual(self.context.overlay.get("mov_1").title, "Test")


class UploadCommandTests(TestCase):
    def test_upload_without_api_is_error(self) -> None:
        context = _context()
        with tempfile.TemporaryDirectory() as tmp:
            video = Path(tmp) / "clip.mp4"
            video.write_bytes(b"data")
            result = dispatch("upload_video", {"movie_id": "mov_old", "path": str(video)}, context)
        self.assertEqual(result["status"], "error")
        self.assertEqual(result["error"]["code"], "NETWORK_ERROR")
        self.assertEqual(context.overlay.load(), [])

    def test_upload_requires_movie_and_file(self) -> None:
        context = _context()
        self.assertEqual(dispatch("upload_video", {"path": "x.mp4"}, context)["notice"]["message"], "select a movie first")
        self.assertEqual(
            dispatch("upload_video", {"movie_id": "mov_old"}, context)["notice"]["message"], "select a video file first"
        )

    def test_upload_url_validates_url(self) -> None:
        context = _context(api={"url": "https://backend.example/api.php"})
        result = dispatch("upload_url", {"movie_id": "mov_old", "url": "not a url"}, context)
        self.assertEqual(result["error"]["code"], "VALIDATION_ERROR")


class ImportExportTests(TestCase):
    def test_import_does_not_overwrite_existing(self) -> None:
        context = _context(catalog={"source": ""})
        dispatch("add_movie", {"id": "mov_1", "title": "Mine", "poster": "http://x/p.jpg"}, context)
        document = {"movies": [{"id": "mov_1", "title": "Theirs"}, {"id": "mov_2", "title": "New"}]}
        result = dispatch("import_catalog", {"document": document}, context)
        self.assertEqual(result["result"]["imported"], 1)
        self.assertEqual(result["result"]["skipped"], 1)
        movies = context.overlay.load()
        self.assertEqual(sorted(m.id for m in movies), ["mov_1", "mov_2"])
        self.assertEqual(context.overlay.get("mov_1").title, "Mine")

    def test_import_from_file_reports_schema_warnings(self) -> None:
        context = _context(catalog={"source": ""})
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "in.json"
            path.write_text(json.dumps({"movies": [{"id": "a"}]}), encoding="utf-8")
            result = dispatch("import_catalog", {"path": str(path)}, context)
            bad = Path(tmp) / "bad.json"
            bad.write_text("{oops", encoding="utf-8")
            failed = dispatch("import_catalog", {"path": str(bad)}, context)
        self.assertEqual(result["status"], "ok")
        self.assertTrue(any("title" in warning for warning in result["warnings"]))
        self.assertEqual(failed["error"]["code"], "VALIDATION_ERROR")

    def test_export_writes_merged_document(self) -> None:
        context = _context()
        dispatch("add_movie", {"id": "mov_1", "title": "Test", "poster": "http://x/p.jpg"}, context)
        with tempfile.TemporaryDirectory() as tmp:
            output = Path(tmp) / "out" / "movies.json"
            result = dispatch("export_catalog", {"output": str(output)}, context)
            document = json.loads(output.read_text(encoding="utf-8"))
            self.assertTrue(output.read_text(encoding="utf-8").startswith('{\n  "movies"'))
        self.assertEqual(result["count"], 3)
        self.assertEqual(document["movies"][0]["id"], "mov_1")

    def test_export_nothing(self) -> None:
        context = _context(catalog={"source": ""})
        result = dispatch("export_catalog", {}, context)
        self.assertEqual(result["error"]["code"], "VALIDATION_ERROR")

    def test_clear_overlay_keeps_catalog(self) -> None:
        context = _context()
        dispatch("add_movie", {"id": "mov_1", "title": "Test", "poster": "http://x/p.jpg"}, context)
        dispatch("clear_overlay", {}, context)
        self.assertEqual(_ids(context), ["mov_new", "mov_old"])


class BrowseCommandTests(TestCase):
    def test_list_filter_and_search(self) -> None:
        context = _context()
        series = dispatch("list_movies", {"type": "series"}, context)
        self.assertEqual([m["id"] for m in series["movies"]], ["mov_new"])
        found = dispatch("search", {"query": "harbor"}, context)
        self.assertEqual(found["count"], 1)
        empty = dispatch("search", {"query": "zzz"}, context)
        self.assertEqual(empty["notice"]["message"], 'No results for "zzz"')

    def test_show_unknown(self) -> None:
        result = dispatch("show_movie", {"id": "missing"}, _context())
        self.assertEqual(result["error"]["code"], "NOT_FOUND")

    def test_featured_is_seeded(self) -> None:
        context = _context()
        first = dispatch("featured", {"seed": 7}, context)
        second = dispatch("featured", {"seed": 7}, context)
        self.assertEqual(first["movie"]["id"], second["movie"]["id"])
        self.assertIn("teaser", first)

    def test_featured_empty(self) -> None:
        result = dispatch("featured", {}, _context(catalog={"source": ""}))
        self.assertIsNone(result["movie"])

    def test_dispatch_logs_each_command(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            log_path = Path(tmp) / "ops.jsonl"
            context = _context(logging={"path": str(log_path)})
            dispatch("list_movies", {}, context)
            dispatch("show_movie", {"id": "missing"}, context)
            entries = [json.loads(line) for line in log_path.read_text(encoding="utf-8").splitlines()]
        self.assertEqual([e["command"] for e in entries], ["list_movies", "show_movie"])
        self.assertEqual(entries[1]["status"], "error")
        self.assertEqual(entries[1]["error"]["code"], "NOT_FOUND")

    def test_unknown_command(self) -> None:
        with self.assertRaises(KeyError):
            dispatch("rename_movie", {}, _context())
