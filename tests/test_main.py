"""
Tests for the command-line interface.
"""

import io
import os
import shutil
import tempfile
import unittest
from unittest.mock import patch

from snapsync.config import Settings
from snapsync.main import main
from tests.test_archive import make_archive


@patch("snapsync.main.load_settings", return_value=Settings())
class TestMain(unittest.TestCase):
    """Tests for the main function."""

    def setUp(self):
        """Set up test fixtures."""
        self.temp_dir = tempfile.mkdtemp()

    def tearDown(self):
        """Clean up after tests."""
        shutil.rmtree(self.temp_dir)

    def write(self, name, data):
        path = os.path.join(self.temp_dir, name)
        with open(path, "wb") as f:
            f.write(data)
        return path

    def run_main(self, argv, stdin=""):
        with patch("sys.stdout", new_callable=io.StringIO) as stdout, \
                patch("sys.stdin", io.StringIO(stdin)):
            code = main(argv)
        return code, stdout.getvalue()

    def test_hash(self, mock_settings):
        """Test hashing a file."""
        path = self.write("hello.txt", b"hello world\n")

        code, output = self.run_main(["--hash", path])

        self.assertEqual(code, 0)
        self.assertEqual(output, f"3b18e512dba79e4c8300dd08aeb37f8e728b8dad  {path}\n")

    def test_hash_normalized(self, mock_settings):
        """Test hashing the normalized form of a file."""
        path = self.write("crlf.txt", b"hello world  \r\n\r\n")

        _, raw = self.run_main(["--hash", path])
        _, normalized = self.run_main(["--hash", path, "--normalize"])

        self.assertNotIn("3b18e512dba79e4c8300dd08aeb37f8e728b8dad", raw)
        self.assertIn("3b18e512dba79e4c8300dd08aeb37f8e728b8dad", normalized)

    def test_archive(self, mock_settings):
        """Test listing an archive with ignore rules."""
        path = self.write("project.zip", make_archive({
            "project/.gitignore": b"*.log\n",
            "project/README.md": b"hello world\n",
            "project/debug.log": b"noise",
        }))

        code, output = self.run_main(["--archive", path])

        self.assertEqual(code, 0)
        self.assertIn("3b18e512dba79e4c8300dd08aeb37f8e728b8dad  README.md", output)
        self.assertNotIn("debug.log", output)
        self.assertIn("2 of 3 files after ignore rules", output)

    def test_archive_without_filter(self, mock_settings):
        """Test listing an archive without ignore rules."""
        path = self.write("project.zip", make_archive({
            "project/.gitignore": b"*.log\n",
            "project/debug.log": b"noise",
        }))

        _, output = self.run_main(["--archive", path, "--no-filter"])

        self.assertIn("debug.log", output)

    def test_corrupt_archive(self, mock_settings):
        """Test that an unreadable archive is reported as an error."""
        path = self.write("broken.zip", b"not a zip")

        code, output = self.run_main(["--archive", path])

        self.assertEqual(code, 1)
        self.assertIn("Error: Failed to process ZIP file", output)

    def test_decode(self, mock_settings):
        """Test decoding base64 from standard input."""
        code, output = self.run_main(["--decode"], stdin="aGVsbG8gd29ybGQK\n")

        self.assertEqual(code, 0)
        self.assertEqual(output, "hello world\n")

    def test_decode_invalid(self, mock_settings):
        """Test that invalid base64 is reported as an error."""
        code, output = self.run_main(["--decode"], stdin="***")

        self.assertEqual(code, 1)
        self.assertIn("Error:", output)

    def test_show_config(self, mock_settings):
        """Test printing the effective settings."""
        _, output = self.run_main(["--show-config"])

        self.assertIn("cache_max_age_ms = 300000", output)

    def test_no_arguments(self, mock_settings):
        """Test that running without arguments prints help."""
        code, output = self.run_main([])

        self.assertEqual(code, 1)
        self.assertIn("usage:", output)


if __name__ == "__main__":
    unittest.main()
