import asyncio
import logging
from typing import Callable, Dict, Optional

import httpx
from PIL import Image

from spotify_api.data_loader import Track

from .assets import AssetLoadFailed, FontBook, load_image
from .colors import ColorExtractor, Palette
from .icons import ICON_NAMES, load_icon
from .layout import LAYOUTS, Template, build_poster
from .surface import PillowSurface, Surface

logger = logging.getLogger(__name__)

# Icons are rasterized once at this logical size and scaled down per element.
ICON_SOURCE_SIZE = 24


class PosterRenderer:
    """Paints a Track onto a fresh surface for the chosen template.

    Each render is a full clear + redraw, so overlapping renders can finish in
    any order without leaving a mixed picture behind.
    """

    def __init__(
        self,
        *,
        http: Optional[httpx.AsyncClient] = None,
        color_extractor: Optional[ColorExtractor] = None,
        fonts: Optional[FontBook] = None,
        device_scale: float = 2.0,
        icon_dir: Optional[str] = None,
        image_loader=load_image,
        surface_factory: Optional[Callable[[float, float, float], Surface]] = None,
    ):
        self.http = http
        self.color_extractor = color_extractor or ColorExtractor(http)
        self.fonts = fonts or FontBook()
        self.device_scale = float(device_scale)
        self.icon_dir = icon_dir
        self.image_loader = image_loader
        self.surface_factory = surface_factory or self._pillow_surface

    def _pillow_surface(self, width: float, height: float, scale: float) -> Surface:
        return PillowSurface(width, height, scale, fonts=self.fonts)

    async def _load_artwork(self, url: Optional[str]) -> Optional[Image.Image]:
        if not url:
            return None
        try:
            return await self.image_loader(url, self.http)
        except AssetLoadFailed as e:
            logger.warning("Failed to load album image, drawing placeholder: %s", e)
            return None

    async def _load_icon(self, name: str, size_px: int) -> Optional[Image.Image]:
        try:
            return await load_icon(name, size_px, icon_dir=self.icon_dir)
        except AssetLoadFailed as e:
            logger.warning("Failed to load icon %s, omitting it: %s", name, e)
            return None

    async def render(
        self,
        track: Track,
        position_ms: int,
        template=Template.MOBILE_PLAYER,
        palette: Optional[Palette] = None,
    ) -> Surface:
        if track is None:
            raise ValueError("render() requires a track")

        template = Template.from_value(template)
        layout = LAYOUTS[template]

        icon_px = max(1, int(round(ICON_SOURCE_SIZE * self.device_scale)))
        artwork_task = asyncio.create_task(self._load_artwork(track.album_image_url))
        icon_tasks = {name: asyncio.create_task(self._load_icon(name, icon_px)) for name in ICON_NAMES}

        artwork = await artwork_task
        if layout.background == "palette" and palette is None:
            # Palette comes from the artwork already loaded above.
            palette = await self.color_extractor.extract_from_image(track.album_image_url, artwork)

        icons: Dict[str, Image.Image] = {}
        for name, task in icon_tasks.items():
            img = await task
            if img is not None:
                icons[name] = img

        surface = self.surface_factory(layout.width, layout.height, self.device_scale)
        commands = build_poster(
            track,
            position_ms,
            layout,
            measure=surface.measure_text,
            palette=palette,
            artwork=artwork,
            icons=icons,
        )
        surface.paint(commands)
        surface.palette = palette
        logger.debug("Rendered %s poster for %s (%d commands)", template.value, track.id, len(commands))
        return surface


class PosterView:
    """Holds the surface of the most recently requested render.

    A render that finishes after a newer one was requested is discarded.
    """

    def __init__(self, renderer: PosterRenderer):
        self.renderer = renderer
        self.surface: Optional[Surface] = None
        self._generation = 0

    async def update(self, track: Track, position_ms: int, template=Template.MOBILE_PLAYER, palette: Optional[Palette] = None) -> bool:
        self._generation += 1
        generation = self._generation

        surface = await self.renderer.render(track, position_ms, template, palette)
        if generation != self._generation:
            logger.debug("Discarding stale render %d (latest is %d)", generation, self._generation)
            return False

        self.surface = surface
        return True
