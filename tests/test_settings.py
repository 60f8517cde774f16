import os
import sys
import tempfile
import unittest
from pathlib import Path
from unittest import mock


ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from app import settings


class TestEnvFile(unittest.TestCase):
    def test_loads_without_overriding(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / ".env"
            path.write_text(
                "# comment\nAIACT_TEST_NEW='from file'\nAIACT_TEST_SET=from file\nnot a pair\n",
                encoding="utf-8",
            )
            with mock.patch.dict(os.environ, {"AIACT_TEST_SET": "from env"}, clear=False):
                settings._load_env_file(path)
                self.assertEqual(os.environ["AIACT_TEST_NEW"], "from file")
                self.assertEqual(os.environ["AIACT_TEST_SET"], "from env")
            os.environ.pop("AIACT_TEST_NEW", None)

    def test_missing_file_is_ignored(self) -> None:
        settings._load_env_file(Path("/nonexistent/.env"))

    def test_db_url_required(self) -> None:
        with mock.patch.dict(os.environ, {}, clear=True):
            with self.assertRaises(RuntimeError):
                settings.get_db_url()
        with mock.patch.dict(os.environ, {"DATABASE_URL": "postgresql://x"}, clear=True):
            self.assertEqual(settings.get_db_url(), "postgresql://x")

    def test_numeric_parsing_falls_back(self) -> None:
        with mock.patch.dict(os.environ, {"AIACT_TEST_FLOAT": "abc"}):
            self.assertEqual(settings._float("AIACT_TEST_FLOAT", 1.5), 1.5)
        with mock.patch.dict(os.environ, {"AIACT_TEST_FLOAT": "0.7"}):
            self.assertEqual(settings._float("AIACT_TEST_FLOAT", 1.5), 0.7)
        with mock.patch.dict(os.environ, {"AIACT_TEST_FLAG": "yes"}):
            self.assertTrue(settings._flag("AIACT_TEST_FLAG"))


if __name__ == "__main__":
    unittest.main()
