import os
from pathlib import Path
from unittest import TestCase
from unittest.mock import patch

from moviecat.paths import config_path, secrets_path, store_dir


class PathTests(TestCase):
    def test_xdg_locations(self) -> None:
        env = {"XDG_CONFIG_HOME": "/cfg", "XDG_STATE_HOME": "/state"}
        with patch.dict(os.environ, env):
            for name in ("MOVIECAT_CONFIG", "MOVIECAT_SECRETS", "MOVIECAT_STORE"):
                os.environ.pop(name, None)
            self.assertEqual(config_path(), Path("/cfg/moviecat/config.yaml"))
            self.assertEqual(secrets_path(), Path("/cfg/moviecat/secrets.yaml"))
            self.assertEqual(store_dir(), Path("/state/moviecat/store"))

    def test_overrides_win(self) -> None:
        env = {"MOVIECAT_CONFIG": "/tmp/c.yaml", "MOVIECAT_STORE": "/tmp/store", "XDG_STATE_HOME": "/state"}
        with patch.dict(os.environ, env):
            self.assertEqual(config_path(), Path("/tmp/c.yaml"))
            self.assertEqual(store_dir(), Path("/tmp/store"))
