import os
import unittest

# Ensure local imports work when running this file directly.
THIS_DIR = os.path.dirname(os.path.abspath(__file__))
if THIS_DIR not in os.sys.path:
    os.sys.path.insert(0, THIS_DIR)

from PIL import Image

from poster.assets import AssetLoadFailed
from poster.colors import DEFAULT_PALETTE, ColorExtractor, Palette, derive_secondary, extract_palette


def solid(rgba, size=(10, 10)):
    return Image.new("RGBA", size, rgba)


class TestExtractPalette(unittest.TestCase):
    def test_solid_red(self):
        palette = extract_palette(solid((255, 0, 0, 255)))
        self.assertEqual(palette.primary, (255, 0, 0))
        self.assertEqual(palette.secondary, (38, 16, 16))
        self.assertEqual(palette.primary_hex, "#ff0000")

    def test_gray_falls_back_to_default(self):
        self.assertEqual(extract_palette(solid((128, 128, 128, 255))), DEFAULT_PALETTE)

    def test_transparent_falls_back_to_default(self):
        self.assertEqual(extract_palette(solid((255, 0, 0, 0))), DEFAULT_PALETTE)

    def test_near_black_and_near_white_are_ignored(self):
        self.assertEqual(extract_palette(solid((10, 0, 0, 255))), DEFAULT_PALETTE)
        self.assertEqual(extract_palette(solid((255, 245, 245, 255))), DEFAULT_PALETTE)

    def test_midtones_beat_a_larger_light_area(self):
        # 64x64 is sampled as-is; 29 rows of red against 35 rows of light pink.
        img = Image.new("RGBA", (64, 64), (255, 180, 180, 255))
        img.paste((255, 0, 0, 255), (0, 0, 64, 29))
        self.assertEqual(extract_palette(img).primary, (255, 0, 0))

    def test_derive_secondary_floor(self):
        self.assertEqual(derive_secondary((40, 200, 100)), (16, 30, 16))


class TestColorExtractor(unittest.IsolatedAsyncioTestCase):
    async def test_caches_last_url(self):
        calls = []

        async def loader(url, http):
            calls.append(url)
            return solid((0, 0, 255, 255))

        extractor = ColorExtractor(loader=loader)
        first = await extractor.extract("https://img/1")
        second = await extractor.extract("https://img/1")

        self.assertEqual(first, Palette((0, 0, 255), (16, 16, 38)))
        self.assertEqual(second, first)
        self.assertEqual(calls, ["https://img/1"])

        await extractor.extract("https://img/2")
        self.assertEqual(calls, ["https://img/1", "https://img/2"])

    async def test_load_failure_gives_default(self):
        async def loader(url, http):
            raise AssetLoadFailed(url, "boom")

        extractor = ColorExtractor(loader=loader)
        with self.assertLogs("poster.colors", level="WARNING"):
            self.assertEqual(await extractor.extract("https://img/broken"), DEFAULT_PALETTE)

    async def test_unexpected_failure_gives_default(self):
        async def loader(url, http):
            return "not an image"

        extractor = ColorExtractor(loader=loader)
        with self.assertLogs("poster.colors", level="WARNING"):
            self.assertEqual(await extractor.extract("https://img/odd"), DEFAULT_PALETTE)

    async def test_no_url_gives_default(self):
        self.assertEqual(await ColorExtractor().extract(None), DEFAULT_PALETTE)

    async def test_extract_from_loaded_image_skips_loader(self):
        calls = []

        async def loader(url, http):
            calls.append(url)
            return solid((255, 0, 0, 255))

        extractor = ColorExtractor(loader=loader)
        palette = await extractor.extract_from_image("https://img/1", solid((0, 0, 255, 255)))
        self.assertEqual(palette, Palette((0, 0, 255), (16, 16, 38)))
        self.assertEqual(await extractor.extract("https://img/1"), palette)
        self.assertEqual(calls, [])

        self.assertEqual(await extractor.extract_from_image("https://img/2", None), DEFAULT_PALETTE)


if __name__ == "__main__":
    unittest.main()
