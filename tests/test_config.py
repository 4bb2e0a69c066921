"""Tests for path settings and lazy directory creation."""

import importlib
import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

import support  # noqa: F401 - sets sys.path

from mailsync import config
from mailsync.db import dispose_db, init_db


class TestPaths(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.home = Path(self._tmp.name) / "mailsync-home"

    def tearDown(self):
        importlib.reload(config)
        self._tmp.cleanup()

    def test_home_from_env_and_nothing_created_at_import(self):
        env = {k: v for k, v in os.environ.items() if k != "DATABASE_URL"}
        env["MAILSYNC_HOME"] = str(self.home)
        with mock.patch.dict(os.environ, env, clear=True):
            importlib.reload(config)
        self.assertEqual(config.MAILSYNC_HOME, self.home)
        self.assertEqual(config.DATABASE_URL, f"sqlite:///{self.home / 'data' / 'mailsync.sqlite'}")
        self.assertEqual(config.LOG_FILE, self.home / "output" / "logs" / "mailsync.jsonl")
        self.assertFalse(self.home.exists())

    def test_home_defaults_to_working_directory(self):
        env = {k: v for k, v in os.environ.items() if k != "MAILSYNC_HOME"}
        with mock.patch.dict(os.environ, env, clear=True):
            importlib.reload(config)
        self.assertEqual(config.MAILSYNC_HOME, Path.cwd())


class TestSqliteDirectory(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()

    def tearDown(self):
        dispose_db()
        self._tmp.cleanup()

    def test_init_db_creates_database_directory(self):
        db_path = Path(self._tmp.name) / "nested" / "data" / "mailsync.sqlite"
        init_db(f"sqlite:///{db_path}")
        self.assertTrue(db_path.parent.is_dir())
        self.assertTrue(db_path.exists())


if __name__ == "__main__":
    unittest.main()
