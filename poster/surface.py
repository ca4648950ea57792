"""Declarative draw commands and the surfaces that execute them.

Every coordinate in a command is in logical units. A surface owns the device
scale factor and applies it when it rasterizes, so layout code never sees
physical pixels.
"""

from dataclasses import dataclass, field
from io import BytesIO
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

from PIL import Image, ImageChops, ImageDraw

from .assets import FontBook

Color = Tuple[int, int, int, int]


def rgba(r: int, g: int, b: int, a: float = 1.0) -> Color:
    return (int(r), int(g), int(b), int(round(a * 255)))


def hex_color(value: str, alpha: float = 1.0) -> Color:
    value = value.lstrip("#")
    return rgba(int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16), alpha)


@dataclass(frozen=True)
class FillRect:
    x: float
    y: float
    width: float
    height: float
    color: Color
    tag: str = ""


@dataclass(frozen=True)
class FillRoundedRect:
    x: float
    y: float
    width: float
    height: float
    radius: float
    color: Color
    tag: str = ""


@dataclass(frozen=True)
class FillCircle:
    cx: float
    cy: float
    radius: float
    color: Color
    tag: str = ""


@dataclass(frozen=True)
class FillPolygon:
    points: Tuple[Tuple[float, float], ...]
    color: Color
    tag: str = ""


@dataclass(frozen=True)
class LinearGradient:
    """Vertical gradient from ``top`` to ``bottom`` over the given box."""

    x: float
    y: float
    width: float
    height: float
    top: Color
    bottom: Color
    tag: str = ""


@dataclass(frozen=True)
class DrawText:
    """Text anchored at its baseline; ``align`` is left, center or right."""

    x: float
    y: float
    text: str
    size: float
    color: Color
    bold: bool = False
    align: str = "left"
    tag: str = ""


@dataclass(frozen=True)
class DrawImage:
    """Image scaled into the box, clipped to a rounded rectangle when ``clip_radius`` > 0."""

    image: Image.Image = field(compare=False, repr=False)
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0
    clip_radius: float = 0.0
    tag: str = ""


DrawCommand = Union[FillRect, FillRoundedRect, FillCircle, FillPolygon, LinearGradient, DrawText, DrawImage]

_ANCHORS = {"left": "ls", "center": "ms", "right": "rs"}


class Surface:
    """Target of draw commands, sized in logical units."""

    def __init__(self, width: float, height: float, scale: float = 1.0):
        self.width = width
        self.height = height
        self.scale = float(scale)
        # Palette the poster was painted with (set by the renderer).
        self.palette = None
        self._handlers: Dict[type, Callable] = {
            FillRect: self.fill_rect,
            FillRoundedRect: self.fill_rounded_rect,
            FillCircle: self.fill_circle,
            FillPolygon: self.fill_polygon,
            LinearGradient: self.linear_gradient,
            DrawText: self.draw_text,
            DrawImage: self.draw_image,
        }

    def apply(self, command) -> None:
        handler = self._handlers.get(type(command))
        if handler is None:
            raise TypeError(f"Unsupported draw command: {type(command).__name__}")
        handler(command)

    def paint(self, commands: Sequence) -> None:
        """Full clear followed by every command in order."""
        self.clear()
        for command in commands:
            self.apply(command)

    def measure_text(self, text: str, size: float, *, bold: bool = False) -> float:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError

    def fill_rect(self, cmd: FillRect) -> None:
        raise NotImplementedError

    def fill_rounded_rect(self, cmd: FillRoundedRect) -> None:
        raise NotImplementedError

    def fill_circle(self, cmd: FillCircle) -> None:
        raise NotImplementedError

    def fill_polygon(self, cmd: FillPolygon) -> None:
        raise NotImplementedError

    def linear_gradient(self, cmd: LinearGradient) -> None:
        raise NotImplementedError

    def draw_text(self, cmd: DrawText) -> None:
        raise NotImplementedError

    def draw_image(self, cmd: DrawImage) -> None:
        raise NotImplementedError


class RecordingSurface(Surface):
    """Keeps the command list instead of pixels; text width is approximated."""

    CHAR_WIDTH = 0.55

    def __init__(self, width: float, height: float, scale: float = 1.0):
        super().__init__(width, height, scale)
        self.commands: List = []

    def measure_text(self, text: str, size: float, *, bold: bool = False) -> float:
        return len(text or "") * size * self.CHAR_WIDTH

    def clear(self) -> None:
        self.commands = []

    def apply(self, command) -> None:
        if type(command) not in self._handlers:
            raise TypeError(f"Unsupported draw command: {type(command).__name__}")
        self.commands.append(command)

    def find(self, tag: str) -> List:
        return [c for c in self.commands if getattr(c, "tag", "") == tag]


class PillowSurface(Surface):
    """Software rasterizer: an RGBA Pillow image of ``logical size x scale`` pixels."""

    def __init__(self, width: float, height: float, scale: float = 1.0, *, fonts: Optional[FontBook] = None):
        super().__init__(width, height, scale)
        self.fonts = fonts or FontBook()
        self.image = Image.new("RGBA", (self._px(width), self._px(height)), (0, 0, 0, 0))

    @property
    def pixel_size(self) -> Tuple[int, int]:
        return self.image.size

    def _px(self, value: float) -> int:
        return int(round(value * self.scale))

    def _box(self, x: float, y: float, w: float, h: float) -> List[int]:
        x0, y0 = self._px(x), self._px(y)
        return [x0, y0, max(x0, self._px(x + w) - 1), max(y0, self._px(y + h) - 1)]

    def _paint(self, color: Color, paint: Callable[[ImageDraw.ImageDraw], None]) -> None:
        # ImageDraw replaces pixels, so translucent fills go through an overlay.
        if color[3] >= 255:
            paint(ImageDraw.Draw(self.image))
            return
        overlay = Image.new("RGBA", self.image.size, (0, 0, 0, 0))
        paint(ImageDraw.Draw(overlay))
        self.image.alpha_composite(overlay)

    def measure_text(self, text: str, size: float, *, bold: bool = False) -> float:
        font = self.fonts.get(size * self.scale, bold=bold)
        return font.getlength(text or "") / self.scale

    def clear(self) -> None:
        self.image.paste((0, 0, 0, 0), (0, 0, self.image.width, self.image.height))

    def fill_rect(self, cmd: FillRect) -> None:
        if cmd.width <= 0 or cmd.height <= 0:
            return
        box = self._box(cmd.x, cmd.y, cmd.width, cmd.height)
        self._paint(cmd.color, lambda d: d.rectangle(box, fill=cmd.color))

    def fill_rounded_rect(self, cmd: FillRoundedRect) -> None:
        if cmd.width <= 0 or cmd.height <= 0:
            return
        box = self._box(cmd.x, cmd.y, cmd.width, cmd.height)
        radius = min(self._px(cmd.radius), (box[2] - box[0]) // 2, (box[3] - box[1]) // 2)
        self._paint(cmd.color, lambda d: d.rounded_rectangle(box, radius=max(0, radius), fill=cmd.color))

    def fill_circle(self, cmd: FillCircle) -> None:
        box = self._box(cmd.cx - cmd.radius, cmd.cy - cmd.radius, cmd.radius * 2, cmd.radius * 2)
        self._paint(cmd.color, lambda d: d.ellipse(box, fill=cmd.color))

    def fill_polygon(self, cmd: FillPolygon) -> None:
        points = [(x * self.scale, y * self.scale) for x, y in cmd.points]
        self._paint(cmd.color, lambda d: d.polygon(points, fill=cmd.color))

    def linear_gradient(self, cmd: LinearGradient) -> None:
        box = self._box(cmd.x, cmd.y, cmd.width, cmd.height)
        w, h = box[2] - box[0] + 1, box[3] - box[1] + 1
        if w <= 0 or h <= 0:
            return

        column = Image.new("RGBA", (1, h))
        for row in range(h):
            t = row / (h - 1) if h > 1 else 0.0
            column.putpixel((0, row), tuple(int(round(a + (b - a) * t)) for a, b in zip(cmd.top, cmd.bottom)))
        self.image.alpha_composite(column.resize((w, h), Image.NEAREST), dest=(box[0], box[1]))

    def draw_text(self, cmd: DrawText) -> None:
        if not cmd.text:
            return
        font = self.fonts.get(cmd.size * self.scale, bold=cmd.bold)
        anchor = _ANCHORS.get(cmd.align, "ls")
        xy = (cmd.x * self.scale, cmd.y * self.scale)
        self._paint(cmd.color, lambda d: d.text(xy, cmd.text, font=font, fill=cmd.color, anchor=anchor))

    def draw_image(self, cmd: DrawImage) -> None:
        box = self._box(cmd.x, cmd.y, cmd.width, cmd.height)
        w, h = box[2] - box[0] + 1, box[3] - box[1] + 1
        if w <= 0 or h <= 0:
            return

        img = cmd.image.convert("RGBA")
        if img.size != (w, h):
            img = img.resize((w, h), Image.LANCZOS)

        if cmd.clip_radius > 0:
            mask = Image.new("L", (w, h), 0)
            ImageDraw.Draw(mask).rounded_rectangle([0, 0, w - 1, h - 1], radius=self._px(cmd.clip_radius), fill=255)
            img.putalpha(ImageChops.multiply(img.getchannel("A"), mask))

        self.image.alpha_composite(img, dest=(box[0], box[1]))

    def to_png(self) -> bytes:
        buf = BytesIO()
        self.image.save(buf, format="PNG")
        return buf.getvalue()
