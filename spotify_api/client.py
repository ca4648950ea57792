import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from .auth import SpotifyPKCEAuth
from .data_loader import Track, normalize_track
from .errors import NotAuthenticated, RateLimited, SessionExpired, TrackNotFound, UpstreamError

logger = logging.getLogger(__name__)

SPOTIFY_API_BASE_URL = "https://api.spotify.com/v1"


class SpotifyClient:
    """Thin Spotify Web API client for single-track lookups.

    Requests are serialized through one in-flight lock so a token refresh
    triggered by one lookup cannot race another.
    """

    def __init__(self, auth: SpotifyPKCEAuth, *, http: Optional[httpx.AsyncClient] = None):
        self.auth = auth
        self.http = http or auth.http
        self._in_flight = asyncio.Lock()

    async def request_json(self, method: str, path: str, *, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Make an authenticated Spotify Web API request and return parsed JSON.

        Status mapping:
        - 401: SessionExpired (caller should force a logout)
        - 404: TrackNotFound
        - 429: RateLimited (Retry-After seconds when given)
        - other non-2xx: UpstreamError(status)
        """

        token = await self.auth.get_valid_token()
        if not token:
            raise NotAuthenticated()

        try:
            resp = await self.http.request(
                method.upper(),
                f"{SPOTIFY_API_BASE_URL}{path}",
                params={k: str(v) for k, v in (params or {}).items() if v is not None} or None,
                headers={"Authorization": f"Bearer {token}", "Accept": "application/json"},
            )
        except httpx.HTTPError as e:
            raise UpstreamError(None, str(e)) from e

        status = resp.status_code
        if status == 401:
            raise SessionExpired()
        if status == 404:
            raise TrackNotFound()
        if status == 429:
            raise RateLimited(_retry_after(resp))
        if status < 200 or status >= 300:
            raise UpstreamError(status, resp.text)

        try:
            payload = resp.json()
        except ValueError as e:
            raise UpstreamError(None, f"Spotify API response was not JSON (status {status})") from e

        if not isinstance(payload, dict):
            raise UpstreamError(None, "Spotify API response was not an object")
        return payload

    async def fetch_track(self, track_id: str) -> Track:
        async with self._in_flight:
            payload = await self.request_json("GET", f"/tracks/{track_id}")
        track = normalize_track(payload)
        logger.debug("Fetched track %s (%s)", track.id, track.name)
        return track


def _retry_after(resp: httpx.Response) -> Optional[float]:
    value = resp.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None
