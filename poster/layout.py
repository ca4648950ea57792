import enum
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from PIL import Image

from spotify_api.data_loader import Track, format_duration

from .colors import Palette
from .surface import (
    DrawImage,
    DrawText,
    FillCircle,
    FillPolygon,
    FillRect,
    FillRoundedRect,
    LinearGradient,
    hex_color,
    rgba,
)

SPOTIFY_GREEN = hex_color("#1DB954")
WHITE = rgba(255, 255, 255)
BLACK = rgba(0, 0, 0)
PLACEHOLDER = hex_color("#f0f0f0")

Measure = Callable[..., float]


class Template(enum.Enum):
    MOBILE_PLAYER = "mobile"
    POLAROID = "polaroid"
    SPOTIFY_CODE = "spotify_code"

    @classmethod
    def from_value(cls, value) -> "Template":
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower()
        for template in cls:
            if text in (template.value, template.name.lower()):
                return template
        raise ValueError(f"Unknown template: {value!r}. Available: {[t.value for t in cls]}")


@dataclass(frozen=True)
class PosterLayout:
    """Canvas size and spacing constants for one template, in logical units."""

    width: int
    height: int
    background: str = "dark"  # "dark" or "palette"

    header_height: float = 80
    header_label_y: float = 25
    header_title_y: float = 45
    header_icon_top: float = 18
    header_icon_inset: float = 16
    header_icon_size: float = 20

    margin: float = 30
    album_gap: float = 30
    card_padding: float = 12
    card_radius: float = 12
    art_radius: float = 8

    title_gap: float = 40
    title_size: float = 24
    badge_gap: float = 16
    badge_radius: float = 10
    artist_gap: float = 32
    artist_size: float = 16

    progress_from_bottom: float = 280
    progress_height: float = 4
    time_label_gap: float = 22
    time_label_size: float = 12

    controls_gap: float = 60
    control_spacing: float = 60
    control_icon_size: float = 20
    play_radius: float = 28

    bottom_icons_from_bottom: float = 120
    bottom_icon_size: float = 18

    lyrics_from_bottom: float = 60
    lyrics_width: float = 80
    lyrics_height: float = 32

    @property
    def card_size(self) -> float:
        return self.width - 2 * self.margin

    @property
    def card_top(self) -> float:
        return self.header_height + self.album_gap

    @property
    def track_width(self) -> float:
        return self.width - 2 * self.margin

    @property
    def progress_y(self) -> float:
        return self.height - self.progress_from_bottom


LAYOUTS: Dict[Template, PosterLayout] = {
    Template.MOBILE_PLAYER: PosterLayout(width=390, height=844),
    Template.POLAROID: PosterLayout(
        width=440,
        height=920,
        header_height=72,
        header_label_y=23,
        header_title_y=41,
        header_icon_top=16,
        margin=40,
        album_gap=28,
        card_padding=22,
        card_radius=6,
        art_radius=3,
        title_gap=44,
        progress_from_bottom=290,
        controls_gap=62,
        control_spacing=66,
        bottom_icons_from_bottom=120,
    ),
    Template.SPOTIFY_CODE: PosterLayout(width=390, height=844, background="palette"),
}


def progress_fraction(position_ms: float, duration_ms: float) -> float:
    """Elapsed share of the track, clamped to [0, 1]."""
    if not duration_ms or duration_ms <= 0:
        return 0.0
    return min(1.0, max(0.0, float(position_ms) / float(duration_ms)))


def ellipsize(text: str, measure: Measure, size: float, max_width: float, *, bold: bool = False) -> str:
    text = " ".join((text or "").split())
    if measure(text, size, bold=bold) <= max_width:
        return text
    ell = "…"
    if measure(ell, size, bold=bold) >= max_width:
        return ell

    lo, hi = 0, len(text)
    best = ell
    while lo <= hi:
        mid = (lo + hi) // 2
        candidate = text[:mid].rstrip() + ell
        if measure(candidate, size, bold=bold) <= max_width:
            best = candidate
            lo = mid + 1
        else:
            hi = mid - 1
    return best


def build_poster(
    track: Track,
    position_ms: int,
    layout: PosterLayout,
    *,
    measure: Measure,
    palette: Optional[Palette] = None,
    artwork: Optional[Image.Image] = None,
    icons: Optional[Dict[str, Image.Image]] = None,
) -> List:
    """Lay out one poster as a list of draw commands.

    Pure: the same inputs give the same commands. Icons missing from ``icons``
    are left out; missing artwork becomes a placeholder panel.
    """
    icons = icons or {}
    W, H = layout.width, layout.height
    cx = W / 2
    commands: List = []

    def icon(name: str, x: float, y: float, size: float, tag: str = "") -> None:
        img = icons.get(name)
        if img is not None:
            commands.append(DrawImage(img, x, y, size, size, tag=tag or name))

    # ---------- background ----------
    if layout.background == "palette" and palette is not None:
        top, bottom = rgba(*palette.primary), rgba(*palette.secondary)
    else:
        top, bottom = hex_color("#1a1a1a"), hex_color("#121212")
    commands.append(LinearGradient(0, 0, W, H, top, bottom, tag="background"))

    # ---------- header ----------
    commands.append(FillRect(0, 0, W, layout.header_height, rgba(0, 0, 0, 0.4), tag="header"))
    commands.append(
        DrawText(cx, layout.header_label_y, "PLAYING FROM ALBUM", 11, rgba(255, 255, 255, 0.6), align="center", tag="header_label")
    )
    album_name = ellipsize(track.album_name, measure, 14, W - 2 * (layout.header_icon_inset + layout.header_icon_size + 20), bold=True)
    commands.append(DrawText(cx, layout.header_title_y, album_name, 14, WHITE, bold=True, align="center", tag="header_title"))

    size = layout.header_icon_size
    icon("down_arrow", layout.header_icon_inset, layout.header_icon_top, size, tag="header_back")
    icon("kebab", W - layout.header_icon_inset - size, layout.header_icon_top, size, tag="header_menu")

    # ---------- album card ----------
    card_x = (W - layout.card_size) / 2
    card_y = layout.card_top
    commands.append(FillRoundedRect(card_x, card_y, layout.card_size, layout.card_size, layout.card_radius, WHITE, tag="album_card"))

    art_size = layout.card_size - 2 * layout.card_padding
    art_x, art_y = card_x + layout.card_padding, card_y + layout.card_padding
    if artwork is not None:
        commands.append(DrawImage(artwork, art_x, art_y, art_size, art_size, clip_radius=layout.art_radius, tag="artwork"))
    else:
        commands.append(FillRoundedRect(art_x, art_y, art_size, art_size, layout.art_radius, PLACEHOLDER, tag="artwork_placeholder"))

    # ---------- title + verified badge ----------
    title_x = layout.margin
    title_y = card_y + layout.card_size + layout.title_gap
    badge_room = layout.badge_gap + layout.badge_radius
    title = ellipsize(track.name, measure, layout.title_size, layout.track_width - badge_room, bold=True)
    title_width = measure(title, layout.title_size, bold=True)
    commands.append(DrawText(title_x, title_y, title, layout.title_size, WHITE, bold=True, tag="title"))

    badge_x = title_x + title_width + layout.badge_gap
    badge_y = title_y - layout.title_size * 2 / 3
    commands.append(FillCircle(badge_x, badge_y, layout.badge_radius, SPOTIFY_GREEN, tag="badge"))
    check = layout.badge_radius * 1.2
    icon("check", badge_x - check / 2, badge_y - check / 2, check, tag="badge_check")

    artist_line = ellipsize(track.artist_line, measure, layout.artist_size, layout.track_width)
    commands.append(
        DrawText(title_x, title_y + layout.artist_gap, artist_line, layout.artist_size, rgba(255, 255, 255, 0.7), tag="artists")
    )

    # ---------- progress ----------
    bar_x, bar_y, bar_w, bar_h = layout.margin, layout.progress_y, layout.track_width, layout.progress_height
    fraction = progress_fraction(position_ms, track.duration_ms)
    commands.append(FillRoundedRect(bar_x, bar_y, bar_w, bar_h, bar_h / 2, rgba(255, 255, 255, 0.2), tag="progress_track"))
    commands.append(FillRoundedRect(bar_x, bar_y, bar_w * fraction, bar_h, bar_h / 2, SPOTIFY_GREEN, tag="progress_fill"))

    elapsed_ms = int(round(fraction * track.duration_ms))
    label_y = bar_y + layout.time_label_gap
    label_color = rgba(255, 255, 255, 0.7)
    commands.append(DrawText(bar_x, label_y, format_duration(elapsed_ms), layout.time_label_size, label_color, tag="elapsed"))
    commands.append(
        DrawText(bar_x + bar_w, label_y, format_duration(track.duration_ms), layout.time_label_size, label_color, align="right", tag="total")
    )

    # ---------- transport controls ----------
    controls_y = bar_y + layout.controls_gap
    size = layout.control_icon_size
    for name, slot in (("shuffle", -2), ("previous", -1), ("next", 1), ("devices", 2)):
        icon(name, cx + slot * layout.control_spacing - size / 2, controls_y - size / 2, size)

    r = layout.play_radius
    commands.append(FillCircle(cx, controls_y, r, WHITE, tag="play_button"))
    k = r / 28.0
    commands.append(
        FillPolygon(
            ((cx - 6 * k, controls_y - 10 * k), (cx - 6 * k, controls_y + 10 * k), (cx + 10 * k, controls_y)),
            BLACK,
            tag="play_triangle",
        )
    )

    # ---------- share / more ----------
    bottom_y = H - layout.bottom_icons_from_bottom
    size = layout.bottom_icon_size
    icon("share", W - 80, bottom_y, size)
    icon("kebab", W - 50, bottom_y, size, tag="more")

    # ---------- lyrics pill ----------
    lyrics_x = (W - layout.lyrics_width) / 2
    lyrics_y = H - layout.lyrics_from_bottom
    commands.append(
        FillRoundedRect(lyrics_x, lyrics_y, layout.lyrics_width, layout.lyrics_height, layout.lyrics_height / 2, rgba(40, 40, 40, 0.9), tag="lyrics_tab")
    )
    commands.append(DrawText(cx, lyrics_y + 20, "Lyrics", 12, WHITE, align="center", tag="lyrics_label"))

    return commands
