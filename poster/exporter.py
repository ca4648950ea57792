import logging
import re
from pathlib import Path
from typing import Union

from .surface import PillowSurface

logger = logging.getLogger(__name__)

DEFAULT_FILENAME = "spotify_poster"

_NON_ALNUM_RE = re.compile(r"[^A-Za-z0-9]+")


def sanitize_filename(name: str) -> str:
    """Collapse every run of non-alphanumerics to '_' and trim the ends."""
    cleaned = _NON_ALNUM_RE.sub("_", name or "").strip("_")
    return cleaned or DEFAULT_FILENAME


def surface_to_png(surface: PillowSurface) -> bytes:
    return surface.to_png()


def export_poster(surface: PillowSurface, suggested_name: str, output_dir: Union[str, Path] = ".") -> Path:
    """Write the surface as ``<sanitized name>.png`` into output_dir and return the path."""
    out_dir = Path(output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    out_path = out_dir / f"{sanitize_filename(suggested_name)}.png"
    out_path.write_bytes(surface_to_png(surface))
    logger.info("Wrote poster %s", out_path)
    return out_path
