import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

# Album art at least this wide is sharp enough for the poster's artwork slot.
MIN_ALBUM_IMAGE_WIDTH = 512

TRACK_ID_RE = re.compile(r"^[a-zA-Z0-9]{22}$")
TRACK_URI_RE = re.compile(r"spotify:track:([a-zA-Z0-9]{22})")
TRACK_URL_RE = re.compile(r"open\.spotify\.com/(?:intl-[a-z]{2}/)?track/([a-zA-Z0-9]{22})")


@dataclass(frozen=True)
class Track:
    """Normalized track record consumed by the poster renderer."""

    id: str
    name: str
    artists: Tuple[str, ...]
    album_name: str
    album_image_url: Optional[str]
    duration_ms: int

    @property
    def artist_line(self) -> str:
        return ", ".join(self.artists)


def parse_track_id(value: str) -> Optional[str]:
    """
    Accepts:
      - <22-char base62 id>
      - spotify:track:<id>
      - https://open.spotify.com/track/<id>[?si=...]
    Returns the track id, or None when nothing matches.
    """
    if not value or not isinstance(value, str):
        return None

    s = value.strip()

    if TRACK_ID_RE.match(s):
        return s

    m = TRACK_URI_RE.search(s)
    if m:
        return m.group(1)

    m = TRACK_URL_RE.search(s)
    if m:
        return m.group(1)

    return None


def format_duration(duration_ms: int) -> str:
    total_seconds = max(0, int(duration_ms)) // 1000
    minutes, seconds = divmod(total_seconds, 60)
    return f"{minutes}:{seconds:02d}"


def select_album_image(images: Optional[List[Dict[str, Any]]]) -> Optional[str]:
    """Pick the first image at least MIN_ALBUM_IMAGE_WIDTH wide, else the first one.

    Spotify lists album images largest first, so the first entry is the best
    fallback.
    """
    candidates = [img for img in (images or []) if isinstance(img, dict)]
    if not candidates:
        return None

    best = None
    for img in candidates:
        try:
            width = int(img.get("width") or 0)
        except (TypeError, ValueError):
            width = 0
        if width >= MIN_ALBUM_IMAGE_WIDTH:
            best = img
            break

    if best is None:
        best = candidates[0]

    url = str(best.get("url") or "").strip()
    return url or None


def normalize_track(track_obj: Dict[str, Any]) -> Track:
    """Map a Spotify ``/v1/tracks/{id}`` response onto a Track."""

    album = track_obj.get("album") or {}
    artists = track_obj.get("artists") or []
    names = tuple(
        str(a.get("name")).strip()
        for a in artists
        if isinstance(a, dict) and str(a.get("name") or "").strip()
    )

    try:
        duration_ms = max(0, int(track_obj.get("duration_ms") or 0))
    except (TypeError, ValueError):
        duration_ms = 0

    return Track(
        id=str(track_obj.get("id") or ""),
        name=str(track_obj.get("name") or "").strip(),
        artists=names,
        album_name=str(album.get("name") or "").strip(),
        album_image_url=select_album_image(album.get("images")),
        duration_ms=duration_ms,
    )
