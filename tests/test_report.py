from unittest import TestCase

from moviecat.report import render_movie_detail, render_movie_table, render_sources


class ReportTests(TestCase):
    def test_empty_states(self) -> None:
        self.assertEqual(render_movie_table([]), "No movies yet.")
        self.assertEqual(render_sources([]), "No video available yet.")

    def test_table_shows_alt_title_and_server_count(self) -> None:
        text = render_movie_table(
            [
                {
                    "id": "mov_1",
                    "title": "Harbor",
                    "alternative_title": "Pelabuhan",
                    "year": "2019",
                    "type": "series",
                    "status": "ongoing",
                    "sources": [{}, {}],
                }
            ]
        )
        header, row = text.splitlines()
        self.assertTrue(header.startswith("ID"))
        self.assertIn("Harbor / Pelabuhan", row)
        self.assertIn("Series", row)
        self.assertIn("Ongoing", row)
        self.assertTrue(row.endswith("2"))

    def test_detail_lists_servers(self) -> None:
        sources = [
            {
                "index": 0,
                "provider": "mixdrop",
                "provider_name": "Mixdrop",
                "quality": "1080p",
                "embed_url": "https://m.example/e/1",
                "download_link": "https://m.example/d/1",
            }
        ]
        text = render_movie_detail({"id": "mov_1", "title": "Harbor", "genres": ["Drama"]}, sources)
        self.assertIn("# Harbor", text)
        self.assertIn("- year: -", text)
        self.assertIn("- genres: Drama", text)
        self.assertIn("No description.", text)
        self.assertIn("[0] Mixdrop 1080p", text)
        self.assertIn("download: https://m.example/d/1", text)
