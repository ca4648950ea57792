"""Spotify Web API integration (OAuth PKCE + track lookup)."""

from .auth import CallbackHandler, SpotifyPKCEAuth
from .client import SpotifyClient
from .data_loader import Track, format_duration, parse_track_id
from .token_manager import Credential, FileTokenStore, MemoryTokenStore, TokenStore

__all__ = [
    "CallbackHandler",
    "Credential",
    "FileTokenStore",
    "MemoryTokenStore",
    "SpotifyClient",
    "SpotifyPKCEAuth",
    "TokenStore",
    "Track",
    "format_duration",
    "parse_track_id",
]
