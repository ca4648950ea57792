import os
import unittest

# Ensure local imports work when running this file directly.
THIS_DIR = os.path.dirname(os.path.abspath(__file__))
if THIS_DIR not in os.sys.path:
    os.sys.path.insert(0, THIS_DIR)

import httpx

from spotify_api.auth import SpotifyPKCEAuth
from spotify_api.client import SpotifyClient
from spotify_api.data_loader import format_duration, normalize_track, parse_track_id, select_album_image
from spotify_api.errors import NotAuthenticated, RateLimited, SessionExpired, TrackNotFound, UpstreamError
from spotify_api.token_manager import Credential, MemoryTokenStore, save_credential

NOW = 1_700_000_000_000
TRACK_ID = "4uLU6hMCjMI75M1A2tKUQC"

SAMPLE_TRACK = {
    "id": TRACK_ID,
    "name": "Never Gonna Give You Up",
    "artists": [{"name": "Rick Astley"}, {"name": "Guest"}],
    "album": {
        "name": "Whenever You Need Somebody",
        "images": [
            {"url": "https://i.scdn.co/image/64", "width": 64, "height": 64},
            {"url": "https://i.scdn.co/image/640", "width": 640, "height": 640},
            {"url": "https://i.scdn.co/image/300", "width": 300, "height": 300},
        ],
    },
    "duration_ms": 213573,
}


class TestTrackNormalization(unittest.TestCase):
    def test_normalize_track_shape(self):
        track = normalize_track(SAMPLE_TRACK)
        self.assertEqual(track.id, TRACK_ID)
        self.assertEqual(track.name, "Never Gonna Give You Up")
        self.assertEqual(track.artists, ("Rick Astley", "Guest"))
        self.assertEqual(track.artist_line, "Rick Astley, Guest")
        self.assertEqual(track.album_name, "Whenever You Need Somebody")
        self.assertEqual(track.album_image_url, "https://i.scdn.co/image/640")
        self.assertEqual(track.duration_ms, 213573)

    def test_select_album_image(self):
        self.assertEqual(select_album_image(SAMPLE_TRACK["album"]["images"]), "https://i.scdn.co/image/640")
        small = [{"url": "a", "width": 300}, {"url": "b", "width": 64}]
        self.assertEqual(select_album_image(small), "a")
        self.assertIsNone(select_album_image([]))
        self.assertIsNone(select_album_image(None))

    def test_parse_track_id(self):
        self.assertEqual(parse_track_id(TRACK_ID), TRACK_ID)
        self.assertEqual(parse_track_id(f"spotify:track:{TRACK_ID}"), TRACK_ID)
        self.assertEqual(parse_track_id(f"https://open.spotify.com/track/{TRACK_ID}?si=abc"), TRACK_ID)
        self.assertEqual(parse_track_id(f"https://open.spotify.com/intl-de/track/{TRACK_ID}"), TRACK_ID)
        self.assertIsNone(parse_track_id("https://open.spotify.com/album/xyz"))
        self.assertIsNone(parse_track_id(""))

    def test_format_duration(self):
        self.assertEqual(format_duration(213573), "3:33")
        self.assertEqual(format_duration(59999), "0:59")
        self.assertEqual(format_duration(0), "0:00")
        self.assertEqual(format_duration(-5), "0:00")


class TestSpotifyClient(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.requests = []
        self.status = 200
        self.body = SAMPLE_TRACK
        self.headers = {}
        self.store = MemoryTokenStore()
        save_credential(self.store, Credential("valid-at", NOW + 3600 * 1000, "rt"))

    async def asyncSetUp(self):
        self.http = httpx.AsyncClient(transport=httpx.MockTransport(self._handler))
        auth = SpotifyPKCEAuth(
            {"spotify_client_id": "cid", "spotify_redirect_uri": "http://127.0.0.1:8888/callback"},
            token_store=self.store,
            http=self.http,
            clock_ms=lambda: NOW,
            navigate=lambda url: None,
        )
        self.client = SpotifyClient(auth)

    async def asyncTearDown(self):
        await self.http.aclose()

    def _handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status, json=self.body, headers=self.headers)

    async def test_fetch_track(self):
        track = await self.client.fetch_track(TRACK_ID)

        self.assertEqual(track.artists, ("Rick Astley", "Guest"))
        self.assertEqual(format_duration(track.duration_ms), "3:33")
        request = self.requests[0]
        self.assertEqual(request.url.path, f"/v1/tracks/{TRACK_ID}")
        self.assertEqual(request.headers["Authorization"], "Bearer valid-at")

    async def test_unauthorized_is_session_expired(self):
        self.status, self.body = 401, {"error": {"status": 401}}
        with self.assertRaises(SessionExpired):
            await self.client.fetch_track(TRACK_ID)

    async def test_not_found(self):
        self.status, self.body = 404, {"error": {"status": 404}}
        with self.assertRaises(TrackNotFound):
            await self.client.fetch_track(TRACK_ID)

    async def test_rate_limited_carries_retry_after(self):
        self.status, self.body, self.headers = 429, {}, {"Retry-After": "7"}
        with self.assertRaises(RateLimited) as ctx:
            await self.client.fetch_track(TRACK_ID)
        self.assertEqual(ctx.exception.retry_after, 7.0)

    async def test_other_status_is_upstream_error(self):
        self.status, self.body = 503, {}
        with self.assertRaises(UpstreamError) as ctx:
            await self.client.fetch_track(TRACK_ID)
        self.assertEqual(ctx.exception.status, 503)
        self.assertIn("503", ctx.exception.user_message)

    async def test_no_credential_is_not_authenticated(self):
        self.store.delete("spotify_access_token")
        with self.assertRaises(NotAuthenticated):
            await self.client.fetch_track(TRACK_ID)
        self.assertEqual(self.requests, [])


if __name__ == "__main__":
    unittest.main()
