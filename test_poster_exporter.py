import os
import tempfile
import unittest

# Ensure local imports work when running this file directly.
THIS_DIR = os.path.dirname(os.path.abspath(__file__))
if THIS_DIR not in os.sys.path:
    os.sys.path.insert(0, THIS_DIR)

from PIL import Image

from poster.exporter import DEFAULT_FILENAME, export_poster, sanitize_filename
from poster.surface import FillRect, PillowSurface, rgba


class TestSanitizeFilename(unittest.TestCase):
    def test_runs_collapse_to_single_underscore(self):
        self.assertEqual(sanitize_filename("Bohème! (Live)"), "Boh_me_Live")
        self.assertEqual(sanitize_filename("Song Name - Remastered 2011"), "Song_Name_Remastered_2011")

    def test_nothing_left_uses_default(self):
        self.assertEqual(sanitize_filename("!!!"), DEFAULT_FILENAME)
        self.assertEqual(sanitize_filename(""), "spotify_poster")
        self.assertEqual(sanitize_filename(None), "spotify_poster")


class TestExportPoster(unittest.TestCase):
    def test_writes_png_at_device_resolution(self):
        surface = PillowSurface(20, 10, scale=2)
        surface.paint([FillRect(0, 0, 20, 10, rgba(29, 185, 84))])

        with tempfile.TemporaryDirectory() as td:
            out_dir = os.path.join(td, "posters")
            path = export_poster(surface, "Bohème! (Live)", out_dir)

            self.assertEqual(os.path.basename(path), "Boh_me_Live.png")
            with Image.open(path) as img:
                self.assertEqual(img.format, "PNG")
                self.assertEqual(img.size, (40, 20))
                self.assertEqual(img.convert("RGBA").getpixel((5, 5)), (29, 185, 84, 255))


if __name__ == "__main__":
    unittest.main()
