import re
from typing import Optional

import questionary

from poster.exporter import export_poster
from poster.layout import Template
from spotify_api.data_loader import format_duration, parse_track_id
from spotify_api.errors import FetchError, SessionExpired
from utils.logger import log_debug, log_error, log_info, log_success, log_warning

_POSITION_RE = re.compile(r"^(?:(\d+):)?(\d+(?:\.\d+)?)$")


def parse_position(text: str, duration_ms: int) -> Optional[int]:
    """Parse "m:ss" or plain seconds into milliseconds, clamped to the track.

    Returns None when the text is not a position.
    """
    m = _POSITION_RE.match((text or "").strip())
    if not m:
        return None
    minutes, seconds = m.group(1), m.group(2)
    if minutes is not None and float(seconds) >= 60:
        return None
    total = int(minutes or 0) * 60_000 + int(round(float(seconds) * 1000))
    return max(0, min(total, max(0, int(duration_ms or 0))))


def track_summary(session) -> str:
    track = session.track
    if track is None:
        return "No track loaded."
    return (
        f"{track.name} — {track.artist_line}\n"
        f"  Album:    {track.album_name}\n"
        f"  Duration: {format_duration(track.duration_ms)}\n"
        f"  Position: {format_duration(session.position_ms)}\n"
        f"  Template: {session.template.value}\n"
        f"  Artwork:  {track.album_image_url or '(none)'}"
    )


async def fetch_track_menu(session) -> None:
    raw = await questionary.text("Enter a Spotify track URL, URI or ID:").ask_async()
    raw = (raw or "").strip()
    if not raw:
        return

    track_id = parse_track_id(raw)
    if not track_id:
        log_error("That does not look like a Spotify track link or ID.")
        return

    try:
        track = await session.client.fetch_track(track_id)
    except SessionExpired as e:
        session.auth.logout()
        session.forget_track()
        log_warning(e.user_message)
        return
    except FetchError as e:
        log_error(e.user_message)
        return

    session.set_track(track)
    log_success(f"Loaded: {track.name} — {track.artist_line} ({format_duration(track.duration_ms)})")


async def set_position_menu(session) -> None:
    if session.track is None:
        log_warning("Fetch a track first.")
        return

    total = format_duration(session.track.duration_ms)
    text = await questionary.text(
        f"Playback position (m:ss or seconds, track length {total}):",
        default=format_duration(session.position_ms),
    ).ask_async()
    if text is None:
        return

    position = parse_position(text, session.track.duration_ms)
    if position is None:
        log_error(f"Invalid position: {text!r}")
        return

    session.position_ms = position
    log_info(f"Position set to {format_duration(position)} / {total}")


async def choose_template_menu(session) -> None:
    value = await questionary.select(
        "Choose a poster template:",
        choices=[t.value for t in Template],
        default=session.template.value,
    ).ask_async()
    if value is None:
        return
    template = Template.from_value(value)
    session.template = template
    log_info(f"Template set to {template.value}")


async def render_poster_menu(session) -> None:
    if session.track is None:
        log_warning("Fetch a track first.")
        return

    track = session.track
    log_info(f"Rendering {session.template.value} poster for {track.name}...")
    updated = await session.view.update(track, session.position_ms, session.template, session.palette)
    if not updated or session.view.surface is None:
        log_warning("A newer render replaced this one; nothing exported.")
        return

    if session.view.surface.palette is not None:
        session.palette = session.view.surface.palette
        log_debug(f"Poster palette {session.palette.primary_hex} -> {session.palette.secondary_hex}")

    try:
        path = export_poster(session.view.surface, track.name, session.config.get("output_dir") or ".")
    except OSError as e:
        log_error(f"Failed to save poster: {e}")
        return

    log_success(f"Saved poster to {path}")


async def poster_menu(session) -> None:
    while True:
        log_info("\n" + track_summary(session))
        choice = await questionary.select(
            "🖼️ Poster Menu — What would you like to do?",
            choices=[
                "Fetch track",
                "Set playback position",
                "Choose template",
                "Render & export poster",
                "Back",
            ],
        ).ask_async()

        if choice == "Fetch track":
            await fetch_track_menu(session)
        elif choice == "Set playback position":
            await set_position_menu(session)
        elif choice == "Choose template":
            await choose_template_menu(session)
        elif choice == "Render & export poster":
            await render_poster_menu(session)
        else:
            break

        if not session.auth.is_authenticated():
            break
