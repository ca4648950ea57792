import webbrowser
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

import httpx

from poster.assets import FontBook
from poster.colors import ColorExtractor, Palette
from poster.layout import Template
from poster.renderer import PosterRenderer, PosterView
from spotify_api.auth import CallbackHandler, SpotifyPKCEAuth
from spotify_api.client import SpotifyClient
from spotify_api.data_loader import Track
from spotify_api.token_manager import FileTokenStore, MemoryTokenStore
from utils.logger import log_info, log_warning


def open_authorize_url(url: str) -> None:
    log_info("\n" + "=" * 72)
    log_info("SPOTIFY AUTHENTICATION")
    log_info("=" * 72)
    log_info("1) A browser login will open (or you can copy/paste the URL).")
    log_info("2) After approving, Spotify will redirect you to your redirect_uri.")
    log_info("3) Copy the FULL redirect URL from the browser and paste it back here.")
    log_info("")
    log_info(f"Authorize URL:\n{url}")
    log_info("=" * 72)
    try:
        webbrowser.open(url)
    except webbrowser.Error as e:
        log_warning(f"Could not open a browser: {e}")


@dataclass
class AppSession:
    """Everything one run of the program shares between menus."""

    config: Dict[str, Any]
    http: httpx.AsyncClient
    auth: SpotifyPKCEAuth
    callbacks: CallbackHandler
    client: SpotifyClient
    colors: ColorExtractor
    view: PosterView
    track: Optional[Track] = None
    position_ms: int = 0
    template: Template = Template.MOBILE_PLAYER
    palette: Optional[Palette] = field(default=None, repr=False)

    @classmethod
    def create(
        cls,
        config: Dict[str, Any],
        http: httpx.AsyncClient,
        *,
        navigate: Callable[[str], Any] = open_authorize_url,
    ) -> "AppSession":
        auth = SpotifyPKCEAuth(
            config,
            token_store=FileTokenStore(config.get("token_store_path") or "data/spotify_tokens.json"),
            http=http,
            navigate=navigate,
        )
        colors = ColorExtractor(http)
        renderer = PosterRenderer(
            http=http,
            color_extractor=colors,
            fonts=FontBook(config.get("font_regular"), config.get("font_bold")),
            device_scale=float(config.get("device_scale") or 2),
            icon_dir=config.get("icon_dir") or None,
        )
        return cls(
            config=config,
            http=http,
            auth=auth,
            # The processed-code marker must not outlive this run.
            callbacks=CallbackHandler(auth, MemoryTokenStore()),
            client=SpotifyClient(auth, http=http),
            colors=colors,
            view=PosterView(renderer),
            template=Template.from_value(config.get("default_template") or "mobile"),
        )

    def set_track(self, track: Track) -> None:
        self.track = track
        self.position_ms = 0
        self.palette = None

    def forget_track(self) -> None:
        self.track = None
        self.position_ms = 0
        self.palette = None
