import tempfile
import unittest
from pathlib import Path

from src.utils.path_utils import ensure_dirs_exist, safe_file_name


class TestPathUtils(unittest.TestCase):
    def test_ensure_dirs_exist(self):
        with tempfile.TemporaryDirectory() as tmp_dir:
            paths = [Path(tmp_dir) / "logs", Path(tmp_dir) / "output" / "maps"]

            ensure_dirs_exist(paths)
            ensure_dirs_exist(paths)

            for path in paths:
                self.assertTrue(path.is_dir())

    def test_safe_file_name(self):
        self.assertEqual(safe_file_name("Culver City"), "culver_city")
        self.assertEqual(safe_file_name("  St. Louis, MO "), "st_louis_mo")
        self.assertEqual(safe_file_name(""), "output")
        self.assertEqual(safe_file_name("!!!"), "output")


if __name__ == "__main__":
    unittest.main()
