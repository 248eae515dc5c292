import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from errors import PathNotFoundError
from path_utils import resolve_path


class ResolvePathTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name).resolve()
        self._cwd = os.getcwd()
        os.chdir(self.root)

    def tearDown(self):
        os.chdir(self._cwd)
        self._tmp.cleanup()

    def test_existing_relative_path_is_canonical(self):
        (self.root / "models").mkdir()
        self.assertEqual(resolve_path("./models/../models"), self.root / "models")

    def test_expands_environment_variables_and_home(self):
        (self.root / "data").mkdir()
        with patch.dict(os.environ, {"DATA_ROOT": str(self.root), "HOME": str(self.root)}):
            self.assertEqual(resolve_path("$DATA_ROOT/data"), self.root / "data")
            self.assertEqual(resolve_path("~/data"), self.root / "data")

    def test_missing_path_fails_with_computed_path(self):
        with self.assertRaises(PathNotFoundError) as ctx:
            resolve_path("nope.txt", name="Input text")
        self.assertEqual(ctx.exception.path, self.root / "nope.txt")
        self.assertIn("Input text not found", str(ctx.exception))
        self.assertEqual(ctx.exception.exit_code, 1)

    def test_allow_missing_returns_absolute(self):
        self.assertEqual(resolve_path("later/out.wav", allow_missing=True), self.root / "later" / "out.wav")
        self.assertFalse((self.root / "later").exists())

    def test_create_dir(self):
        path = resolve_path("outputs/run1", create_dir=True)
        self.assertEqual(path, self.root / "outputs" / "run1")
        self.assertTrue(path.is_dir())

    def test_empty_is_rejected(self):
        with self.assertRaises(PathNotFoundError):
            resolve_path("", allow_missing=True)


if __name__ == "__main__":
    unittest.main()
