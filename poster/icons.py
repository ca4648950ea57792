import os
from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple

from PIL import Image, ImageDraw

from .assets import AssetLoadFailed

Point = Tuple[float, float]

WHITE = (255, 255, 255, 255)
MUTED = (0xB3, 0xB3, 0xB3, 255)

# Glyphs are drawn this many times larger, then downsampled for smooth edges.
SUPERSAMPLE = 4


@dataclass(frozen=True)
class Stroke:
    points: Tuple[Point, ...]
    width: float


@dataclass(frozen=True)
class Fill:
    points: Tuple[Point, ...]


@dataclass(frozen=True)
class Dot:
    cx: float
    cy: float
    r: float


@dataclass(frozen=True)
class Frame:
    x0: float
    y0: float
    x1: float
    y1: float
    radius: float
    width: float


@dataclass(frozen=True)
class Glyph:
    viewbox: float
    color: Tuple[int, int, int, int]
    parts: Sequence


GLYPHS: Dict[str, Glyph] = {
    "down_arrow": Glyph(24, WHITE, (Stroke(((7, 10), (12, 15), (17, 10)), 2),)),
    "kebab": Glyph(24, WHITE, (Dot(12, 5, 1.5), Dot(12, 12, 1.5), Dot(12, 19, 1.5))),
    "shuffle": Glyph(
        20,
        MUTED,
        (
            Stroke(((3, 6), (7, 6), (13, 14), (17, 14)), 1.5),
            Stroke(((3, 14), (7, 14), (13, 6), (17, 6)), 1.5),
            Stroke(((15, 4), (17, 6), (15, 8)), 1.5),
            Stroke(((15, 12), (17, 14), (15, 16)), 1.5),
        ),
    ),
    "previous": Glyph(20, MUTED, (Fill(((15, 5), (10, 10), (15, 15))), Fill(((5, 5), (7, 5), (7, 15), (5, 15))))),
    "next": Glyph(20, MUTED, (Fill(((5, 5), (10, 10), (5, 15))), Fill(((13, 5), (15, 5), (15, 15), (13, 15))))),
    "devices": Glyph(
        20,
        MUTED,
        (
            Frame(2, 3, 14, 11, 1, 1.5),
            Stroke(((6, 15), (10, 15)), 1.5),
            Stroke(((8, 11), (8, 15)), 1.5),
            Frame(15, 6, 18, 11, 0.5, 1.5),
        ),
    ),
    "share": Glyph(
        20,
        MUTED,
        (
            Stroke(((4, 12), (4, 16), (5, 17), (15, 17), (16, 16), (16, 12)), 1.5),
            Stroke(((8, 6), (10, 4), (12, 6)), 1.5),
            Stroke(((10, 4), (10, 12)), 1.5),
        ),
    ),
    "check": Glyph(16, WHITE, (Stroke(((13.5, 4.5), (6, 12), (2.5, 8.5)), 2),)),
}

ICON_NAMES = tuple(GLYPHS)


def render_glyph(glyph: Glyph, size_px: int) -> Image.Image:
    """Rasterize a vector glyph into a transparent ``size_px`` square."""
    canvas_px = max(1, int(size_px)) * SUPERSAMPLE
    k = canvas_px / float(glyph.viewbox)
    img = Image.new("RGBA", (canvas_px, canvas_px), (0, 0, 0, 0))
    draw = ImageDraw.Draw(img)

    for part in glyph.parts:
        if isinstance(part, Stroke):
            width = max(1, int(round(part.width * k)))
            pts = [(x * k, y * k) for x, y in part.points]
            draw.line(pts, fill=glyph.color, width=width, joint="curve")
            # round caps
            r = width / 2.0
            for x, y in (pts[0], pts[-1]):
                draw.ellipse([x - r, y - r, x + r, y + r], fill=glyph.color)
        elif isinstance(part, Fill):
            draw.polygon([(x * k, y * k) for x, y in part.points], fill=glyph.color)
        elif isinstance(part, Dot):
            draw.ellipse(
                [(part.cx - part.r) * k, (part.cy - part.r) * k, (part.cx + part.r) * k, (part.cy + part.r) * k],
                fill=glyph.color,
            )
        elif isinstance(part, Frame):
            draw.rounded_rectangle(
                [part.x0 * k, part.y0 * k, part.x1 * k, part.y1 * k],
                radius=part.radius * k,
                outline=glyph.color,
                width=max(1, int(round(part.width * k))),
            )

    return img.resize((int(size_px), int(size_px)), Image.LANCZOS)


async def load_icon(name: str, size_px: int, *, icon_dir: Optional[str] = None) -> Image.Image:
    """Resolve an icon: ``<icon_dir>/<name>.png`` when present, else the built-in glyph."""
    if icon_dir:
        path = os.path.join(icon_dir, f"{name}.png")
        if os.path.exists(path):
            try:
                with Image.open(path) as img:
                    return img.convert("RGBA").resize((int(size_px), int(size_px)), Image.LANCZOS)
            except (OSError, ValueError, Image.DecompressionBombError) as e:
                raise AssetLoadFailed(path, str(e)) from e

    glyph = GLYPHS.get(name)
    if glyph is None:
        raise AssetLoadFailed(name, "unknown icon")
    return render_glyph(glyph, size_px)
