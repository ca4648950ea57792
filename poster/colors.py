import asyncio
import colorsys
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional, Tuple

import httpx
from PIL import Image

from .assets import AssetLoadFailed, load_image

logger = logging.getLogger(__name__)

RGB = Tuple[int, int, int]

# Artwork is shrunk to this many pixels per side before sampling.
DOWNSAMPLE_SIZE = 64

MIN_ALPHA = 128
MIN_LIGHTNESS = 0.1
MAX_LIGHTNESS = 0.9
MIN_SATURATION = 0.3
BUCKET_STEP = 10
MIDTONE_RANGE = (0.3, 0.7)
MIDTONE_BONUS = 1.5
SECONDARY_FACTOR = 0.15
SECONDARY_FLOOR = 16


@dataclass(frozen=True)
class Palette:
    primary: RGB
    secondary: RGB

    @property
    def primary_hex(self) -> str:
        return "#%02x%02x%02x" % self.primary

    @property
    def secondary_hex(self) -> str:
        return "#%02x%02x%02x" % self.secondary


DEFAULT_PALETTE = Palette(primary=(83, 83, 83), secondary=(18, 18, 18))


@dataclass
class _Bucket:
    count: int
    rgb: RGB
    saturation: float
    lightness: float

    @property
    def score(self) -> float:
        low, high = MIDTONE_RANGE
        bonus = MIDTONE_BONUS if low <= self.lightness <= high else 1.0
        return self.count * self.saturation * bonus


def _bucket_key(r: int, g: int, b: int) -> RGB:
    # Round half up to the nearest multiple of BUCKET_STEP.
    return tuple(int(c / BUCKET_STEP + 0.5) * BUCKET_STEP for c in (r, g, b))


def derive_secondary(primary: RGB) -> RGB:
    """Darken the primary colour for the bottom of the gradient, never to pure black."""
    return tuple(max(SECONDARY_FLOOR, int(c * SECONDARY_FACTOR)) for c in primary)


def extract_palette(image: Image.Image) -> Palette:
    """Derive a two-colour gradient palette from album art.

    Pixels are filtered to vivid, non-extreme colours, bucketed, and scored by
    frequency x saturation with a bonus for mid-tones. Falls back to
    DEFAULT_PALETTE when nothing survives the filters.
    """
    small = image.convert("RGBA").resize((DOWNSAMPLE_SIZE, DOWNSAMPLE_SIZE), Image.BILINEAR)
    data = small.tobytes()

    buckets: Dict[RGB, _Bucket] = {}
    for i in range(0, len(data), 4):
        r, g, b, a = data[i], data[i + 1], data[i + 2], data[i + 3]
        if a <= MIN_ALPHA:
            continue

        _h, lightness, saturation = colorsys.rgb_to_hls(r / 255.0, g / 255.0, b / 255.0)
        if lightness <= MIN_LIGHTNESS or lightness >= MAX_LIGHTNESS or saturation <= MIN_SATURATION:
            continue

        key = _bucket_key(r, g, b)
        bucket = buckets.get(key)
        if bucket is None:
            buckets[key] = _Bucket(count=1, rgb=(r, g, b), saturation=saturation, lightness=lightness)
        else:
            bucket.count += 1

    best: Optional[_Bucket] = None
    for bucket in buckets.values():
        if best is None or bucket.score > best.score:
            best = bucket

    if best is None:
        return DEFAULT_PALETTE

    return Palette(primary=best.rgb, secondary=derive_secondary(best.rgb))


ImageLoader = Callable[[str, Optional[httpx.AsyncClient]], Awaitable[Image.Image]]


class ColorExtractor:
    """Async palette extraction with a cache for the current album-art URL.

    ``extract`` never raises; any failure yields DEFAULT_PALETTE.
    """

    def __init__(self, http: Optional[httpx.AsyncClient] = None, *, loader: ImageLoader = load_image):
        self.http = http
        self.loader = loader
        self._cached_url: Optional[str] = None
        self._cached_palette: Optional[Palette] = None

    async def extract(self, image_url: Optional[str]) -> Palette:
        if not image_url:
            return DEFAULT_PALETTE

        if image_url == self._cached_url and self._cached_palette is not None:
            return self._cached_palette

        try:
            image = await self.loader(image_url, self.http)
        except AssetLoadFailed as e:
            logger.warning("Album art could not be loaded, using default palette: %s", e)
            return DEFAULT_PALETTE
        except Exception as e:
            logger.warning("Color extraction failed, using default palette: %s", e)
            return DEFAULT_PALETTE

        return await self.extract_from_image(image_url, image)

    async def extract_from_image(self, image_url: Optional[str], image: Optional[Image.Image]) -> Palette:
        """Like ``extract`` for artwork the caller already loaded."""
        if image is None:
            return DEFAULT_PALETTE

        if image_url and image_url == self._cached_url and self._cached_palette is not None:
            return self._cached_palette

        try:
            loop = asyncio.get_running_loop()
            palette = await loop.run_in_executor(None, extract_palette, image)
        except Exception as e:
            logger.warning("Color extraction failed, using default palette: %s", e)
            return DEFAULT_PALETTE

        if image_url:
            self._cached_url = image_url
            self._cached_palette = palette
        return palette
