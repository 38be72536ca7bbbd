import io
import logging
import os
import shutil
import tempfile
import unittest
from contextlib import redirect_stdout
from unittest.mock import MagicMock, patch

import yaml
from PIL import Image

from photostream.__main__ import confirm_batch, main, set_console_level


class TestCLI(unittest.TestCase):
    """Test cases for the command-line entry point."""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.assets_dir = os.path.join(self.temp_dir, "assets")
        self.content_dir = os.path.join(self.temp_dir, "content")
        os.makedirs(self.assets_dir)

        self.config_path = os.path.join(self.temp_dir, "photostream.yaml")
        with open(self.config_path, "w", encoding="utf-8") as f:
            yaml.safe_dump({
                "ai": {"enabled": False},
                "geolocation": {"enabled": False},
                "logging": {"file": ""},
            }, f)

        Image.new("RGB", (20, 20), color="red").save(os.path.join(self.assets_dir, "IMG_0001.jpg"))

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def run_main(self, *args):
        argv = ["--config", self.config_path, "--assets", self.assets_dir,
                "--content", self.content_dir, "--quiet"] + list(args)
        with redirect_stdout(io.StringIO()):
            return main(argv)

    def test_generate(self):
        self.assertEqual(self.run_main("--force"), 0)
        self.assertEqual(len(os.listdir(self.content_dir)), 1)

    def test_declined_prompt(self):
        with patch("builtins.input", return_value="n"):
            self.assertEqual(self.run_main(), 0)
        self.assertEqual(os.listdir(self.content_dir), [])

    def test_update_exif(self):
        os.makedirs(self.content_dir)
        self.assertEqual(self.run_main("--update-exif"), 0)
        self.assertEqual(os.listdir(self.content_dir), [])

    def test_update_without_content_directory(self):
        self.assertEqual(self.run_main("--update-locations"), 1)

    def test_missing_assets_directory(self):
        shutil.rmtree(self.assets_dir)
        self.assertEqual(self.run_main("--force"), 1)

    def test_configuration_error(self):
        with open(self.config_path, "w", encoding="utf-8") as f:
            f.write("ai: {temperature: 9}\n")
        self.assertEqual(self.run_main("--force"), 2)

    def test_interrupt(self):
        with patch(
            "photostream.__main__.MetadataGenerator.generate",
            side_effect=KeyboardInterrupt
        ):
            self.assertEqual(self.run_main("--force"), 130)

    def test_modes_are_exclusive(self):
        with self.assertRaises(SystemExit):
            with patch("sys.stderr", io.StringIO()):
                self.run_main("--update-exif", "--update-locations")

    def test_init_config(self):
        target = os.path.join(self.temp_dir, "new.yaml")

        with redirect_stdout(io.StringIO()):
            self.assertEqual(main(["--init-config", target, "--quiet"]), 0)
            self.assertEqual(main(["--init-config", target, "--quiet"]), 2)

        with open(target, encoding="utf-8") as f:
            self.assertIn("ai", yaml.safe_load(f))

    def test_console_level_from_config(self):
        with open(self.config_path, "w", encoding="utf-8") as f:
            yaml.safe_dump({
                "ai": {"enabled": False},
                "geolocation": {"enabled": False},
                "logging": {"file": "", "level": "WARNING"},
            }, f)
        handler = MagicMock()
        argv = ["--config", self.config_path, "--assets", self.assets_dir,
                "--content", self.content_dir, "--force"]

        with patch("photostream.__main__.setup_logging", return_value=handler), \
                patch("photostream.__main__.set_console_level") as mock_level, \
                redirect_stdout(io.StringIO()):
            self.assertEqual(main(argv), 0)
            mock_level.assert_called_once_with(handler, "WARNING")

            mock_level.reset_mock()
            self.assertEqual(main(argv + ["--verbose"]), 0)
            mock_level.assert_not_called()

    def test_set_console_level(self):
        root = logging.getLogger()
        original = root.level
        handler = logging.StreamHandler(io.StringIO())
        try:
            root.setLevel(logging.INFO)
            set_console_level(handler, "warning")
            self.assertEqual(handler.level, logging.WARNING)
            self.assertEqual(root.level, logging.INFO)

            set_console_level(handler, "DEBUG")
            self.assertEqual(handler.level, logging.DEBUG)
            self.assertEqual(root.level, logging.DEBUG)
        finally:
            root.setLevel(original)

    def test_confirm_batch(self):
        with patch("builtins.input", return_value=" Y "):
            self.assertTrue(confirm_batch(3))
        with patch("builtins.input", return_value=""):
            self.assertFalse(confirm_batch(3))
        with patch("builtins.input", side_effect=EOFError):
            self.assertFalse(confirm_batch(3))


if __name__ == "__main__":
    unittest.main()
