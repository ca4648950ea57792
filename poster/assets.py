import base64
import logging
import os
import urllib.parse
from io import BytesIO
from typing import Dict, Optional, Tuple

import httpx
from PIL import Image, ImageFont

logger = logging.getLogger(__name__)

FALLBACK_REGULAR_FONTS = ("Inter-Regular.ttf", "DejaVuSans.ttf", "Arial.ttf")
FALLBACK_BOLD_FONTS = ("Inter-SemiBold.ttf", "DejaVuSans-Bold.ttf", "Arial Bold.ttf")


class RenderError(Exception):
    """Raised for a single poster element; the renderer recovers from it locally."""


class AssetLoadFailed(RenderError):
    def __init__(self, asset: str, reason: str = ""):
        self.asset = asset
        self.reason = reason
        super().__init__(f"Failed to load asset {asset!r}: {reason}" if reason else f"Failed to load asset {asset!r}")


def _decode_data_url(url: str) -> bytes:
    header, sep, payload = url.partition(",")
    if not sep:
        raise ValueError("malformed data URL")
    if header.endswith(";base64"):
        return base64.b64decode(payload)
    return urllib.parse.unquote_to_bytes(payload)


async def load_image(source: str, http: Optional[httpx.AsyncClient] = None) -> Image.Image:
    """Load an image from an http(s) URL, a data: URL or a local path as RGBA.

    Raises AssetLoadFailed for anything that does not produce a decodable bitmap.
    """
    if not source:
        raise AssetLoadFailed(str(source), "empty source")

    try:
        if source.startswith(("http://", "https://")):
            if http is None:
                raise AssetLoadFailed(source, "no HTTP client available")
            resp = await http.get(source, follow_redirects=True)
            resp.raise_for_status()
            raw = resp.content
        elif source.startswith("data:"):
            raw = _decode_data_url(source)
        else:
            with open(source, "rb") as f:
                raw = f.read()

        img = Image.open(BytesIO(raw))
        img.load()
        return img.convert("RGBA")
    except AssetLoadFailed:
        raise
    except (httpx.HTTPError, OSError, ValueError, Image.DecompressionBombError) as e:
        raise AssetLoadFailed(source[:80], str(e)) from e


class FontBook:
    """Resolves Pillow fonts per (weight, pixel size), cached."""

    def __init__(self, regular_path: Optional[str] = None, bold_path: Optional[str] = None):
        self.regular_path = regular_path or ""
        self.bold_path = bold_path or ""
        self._cache: Dict[Tuple[bool, int], ImageFont.ImageFont] = {}

    def get(self, size_px: int, *, bold: bool = False) -> ImageFont.ImageFont:
        size_px = max(1, int(round(size_px)))
        key = (bold, size_px)
        font = self._cache.get(key)
        if font is None:
            font = self._resolve(size_px, bold)
            self._cache[key] = font
        return font

    def _resolve(self, size_px: int, bold: bool) -> ImageFont.ImageFont:
        configured = self.bold_path if bold else self.regular_path
        candidates = ([configured] if configured else []) + list(FALLBACK_BOLD_FONTS if bold else FALLBACK_REGULAR_FONTS)

        for candidate in candidates:
            try:
                return ImageFont.truetype(candidate, size_px)
            except OSError:
                if candidate == configured:
                    logger.warning("Font %s could not be loaded, falling back", os.path.basename(candidate))

        logger.debug("No TrueType font found, using Pillow's built-in font")
        return ImageFont.load_default(size=size_px)
