import asyncio
import base64
import hashlib
import json
import logging
import os
import secrets
import urllib.parse
import webbrowser
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Optional

import httpx

from .errors import (
    AuthError,
    CodeAlreadyUsed,
    MissingVerifier,
    NoRefreshToken,
    RefreshFailed,
    TokenExchangeFailed,
)
from .token_manager import (
    CODE_VERIFIER_KEY,
    PROCESSED_CODE_KEY,
    PROCESSED_CODE_STATUS_KEY,
    REFRESH_TOKEN_KEY,
    Credential,
    TokenStore,
    clear_credential,
    is_expired,
    load_credential,
    now_ms,
    save_credential,
)

logger = logging.getLogger(__name__)

SPOTIFY_ACCOUNTS_BASE_URL = "https://accounts.spotify.com"
SPOTIFY_AUTHORIZE_URL = f"{SPOTIFY_ACCOUNTS_BASE_URL}/authorize"
SPOTIFY_TOKEN_URL = f"{SPOTIFY_ACCOUNTS_BASE_URL}/api/token"

DEFAULT_REDIRECT_URI = "http://127.0.0.1:8888/callback"

# Tokens expiring within this window are refreshed before use.
TOKEN_EXPIRY_SKEW_MS = 5 * 60 * 1000

# 64 random bytes -> 86 base64url chars, well inside RFC 7636's 43..128.
VERIFIER_RANDOM_BYTES = 64


def _base64url_no_pad(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("utf-8").rstrip("=")


def _sha256(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def code_challenge_from_verifier(verifier: str, *, sha256: Callable[[bytes], bytes] = _sha256) -> str:
    """Compute PKCE S256 code_challenge from code_verifier."""

    return _base64url_no_pad(sha256((verifier or "").encode("utf-8")))


def get_effective_spotify_client_id(config: dict) -> str:
    """Return the Spotify Client ID (SPOTIFY_CLIENT_ID env var wins over config)."""

    env_value = os.environ.get("SPOTIFY_CLIENT_ID", "").strip()
    if env_value:
        return env_value
    return str((config or {}).get("spotify_client_id", "")).strip()


def get_effective_redirect_uri(config: dict) -> str:
    env_value = os.environ.get("SPOTIFY_REDIRECT_URI", "").strip()
    if env_value:
        return env_value
    return str((config or {}).get("spotify_redirect_uri", "")).strip()


def check_spotify_credentials(config: Dict[str, Any]) -> Dict[str, Any]:
    """Validate Spotify OAuth config fields and return a structured status dict."""

    config = config or {}
    client_id = get_effective_spotify_client_id(config)
    redirect_uri = get_effective_redirect_uri(config)
    scopes = list(config.get("spotify_scopes", []) or [])

    status = {
        "ok": False,
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "scopes": scopes,
    }

    if not client_id:
        status["message"] = (
            "Missing spotify_client_id in config.json (or the SPOTIFY_CLIENT_ID environment variable).\n"
            "Create a Spotify app and copy its Client ID (see spotify_app_setup_instructions())."
        )
        return status

    if not redirect_uri:
        status["message"] = (
            "Missing spotify_redirect_uri in config.json.\n"
            f"Recommended default: {DEFAULT_REDIRECT_URI}"
        )
        return status

    status["ok"] = True
    status["message"] = "Spotify credentials look OK."
    return status


def spotify_app_setup_instructions(*, redirect_uri: str = DEFAULT_REDIRECT_URI) -> str:
    """Return user-facing setup instructions for creating a Spotify Developer app."""

    redirect_uri = str(redirect_uri or "").strip() or DEFAULT_REDIRECT_URI
    return (
        "Spotify app setup:\n"
        "1) Go to https://developer.spotify.com/dashboard\n"
        "2) Create an app (or select an existing app)\n"
        f"3) Add this Redirect URI in the app settings: {redirect_uri}\n"
        "4) Copy the Client ID into config.json as spotify_client_id\n\n"
        "Notes:\n"
        "- This tool uses Authorization Code + PKCE (no client secret required).\n"
        "- No scopes are requested; reading track metadata needs none.\n"
        "- Redirect URI must match *exactly* what you configure in the Spotify dashboard.\n"
    )


def extract_code_from_redirect_url(redirect_url: str) -> Dict[str, str]:
    """Parse a redirect URL and return {"code": ..., "state": ..., "error": ...} (missing keys omitted)."""

    parsed = urllib.parse.urlparse(str(redirect_url or "").strip())
    qs = urllib.parse.parse_qs(parsed.query)
    out: Dict[str, str] = {}
    if qs.get("code"):
        out["code"] = str(qs["code"][0])
    if qs.get("state"):
        out["state"] = str(qs["state"][0])
    if qs.get("error"):
        out["error"] = str(qs["error"][0])
    return out


@dataclass(frozen=True)
class PKCEPair:
    code_verifier: str
    code_challenge: str


class SpotifyPKCEAuth:
    """Spotify OAuth (Authorization Code + PKCE) token lifecycle.

    Credentials and the in-flight verifier live in ``token_store``. Randomness,
    hashing, the clock and browser navigation are injectable so tests can run
    the whole flow deterministically.
    """

    def __init__(
        self,
        config: Dict[str, Any],
        *,
        token_store: TokenStore,
        http: httpx.AsyncClient,
        random_bytes: Callable[[int], bytes] = secrets.token_bytes,
        sha256: Callable[[bytes], bytes] = _sha256,
        clock_ms: Callable[[], int] = now_ms,
        navigate: Callable[[str], Any] = webbrowser.open,
    ):
        self.config = config or {}
        self.token_store = token_store
        self.http = http
        self.random_bytes = random_bytes
        self.sha256 = sha256
        self.clock_ms = clock_ms
        self.navigate = navigate
        self._refresh_lock = asyncio.Lock()

    # -----------------
    # PKCE
    # -----------------

    def generate_pkce_pair(self) -> PKCEPair:
        """Generate a PKCE verifier + challenge."""

        # RFC 7636: verifier length 43-128 chars, characters from ALPHA / DIGIT / "-" / "." / "_" / "~"
        verifier = _base64url_no_pad(self.random_bytes(VERIFIER_RANDOM_BYTES))[:128]
        challenge = code_challenge_from_verifier(verifier, sha256=self.sha256)
        return PKCEPair(code_verifier=verifier, code_challenge=challenge)

    def get_authorize_url(self, *, code_challenge: str, scopes: Optional[Iterable[str]] = None) -> str:
        client_id = get_effective_spotify_client_id(self.config)
        redirect_uri = get_effective_redirect_uri(self.config)
        if not redirect_uri:
            raise ValueError("Missing config.spotify_redirect_uri")

        scope_list = list(scopes if scopes is not None else self.config.get("spotify_scopes", []) or [])
        scope_str = " ".join([str(s).strip() for s in scope_list if str(s).strip()])

        params: Dict[str, str] = {
            "client_id": client_id,
            "response_type": "code",
            "redirect_uri": redirect_uri,
            "code_challenge_method": "S256",
            "code_challenge": str(code_challenge),
            "scope": scope_str,
        }
        return f"{SPOTIFY_AUTHORIZE_URL}?{urllib.parse.urlencode(params)}"

    def begin_login(self) -> None:
        """Start a login attempt: store a fresh verifier and navigate to Spotify."""

        pkce = self.generate_pkce_pair()
        self.token_store.set(CODE_VERIFIER_KEY, pkce.code_verifier)
        url = self.get_authorize_url(code_challenge=pkce.code_challenge)
        logger.debug("Redirecting to Spotify authorize endpoint")
        self.navigate(url)

    # -----------------
    # Token endpoint
    # -----------------

    async def complete_login(self, code: str) -> Credential:
        """Exchange an authorization code for a Credential (single use of the stored verifier)."""

        code_verifier = self.token_store.get(CODE_VERIFIER_KEY)
        if not code_verifier:
            raise MissingVerifier("Code verifier not found")

        try:
            resp = await self._post_form(
                {
                    "client_id": get_effective_spotify_client_id(self.config),
                    "grant_type": "authorization_code",
                    "code": code,
                    "redirect_uri": get_effective_redirect_uri(self.config),
                    "code_verifier": code_verifier,
                }
            )
        except httpx.HTTPError as e:
            raise TokenExchangeFailed(None, str(e)) from e

        if resp.status_code >= 400:
            if resp.status_code == 400 and _error_code(resp) == "invalid_grant":
                raise CodeAlreadyUsed(f"Authorization code rejected: {resp.text}")
            raise TokenExchangeFailed(resp.status_code, resp.text)

        payload = _json_object(resp)
        if payload is None or not payload.get("access_token"):
            raise TokenExchangeFailed(resp.status_code, resp.text)

        credential = Credential.from_spotify_token_response(payload, now=self.clock_ms())
        save_credential(self.token_store, credential)
        self.token_store.delete(CODE_VERIFIER_KEY)
        logger.info("Spotify login completed")
        return credential

    async def refresh(self) -> Credential:
        """Exchange the stored refresh token for a new access token."""

        refresh_token = self.token_store.get(REFRESH_TOKEN_KEY)
        if not refresh_token:
            raise NoRefreshToken("No refresh token available")

        try:
            resp = await self._post_form(
                {
                    "client_id": get_effective_spotify_client_id(self.config),
                    "grant_type": "refresh_token",
                    "refresh_token": refresh_token,
                }
            )
        except httpx.HTTPError as e:
            raise RefreshFailed() from e

        if resp.status_code >= 400:
            raise RefreshFailed(resp.status_code)

        payload = _json_object(resp)
        if payload is None or not payload.get("access_token"):
            raise RefreshFailed(resp.status_code)

        credential = Credential.from_spotify_token_response(payload, now=self.clock_ms())

        # Spotify may omit refresh_token on refresh; keep existing.
        if not credential.refresh_token:
            credential = Credential(
                access_token=credential.access_token,
                expires_at_ms=credential.expires_at_ms,
                refresh_token=refresh_token,
            )

        save_credential(self.token_store, credential)
        logger.info("Spotify access token refreshed")
        return credential

    async def get_valid_token(self) -> Optional[str]:
        """Return a usable access token, refreshing it when close to expiry.

        Returns None when there is no credential, or when refreshing failed (the
        stored credentials are cleared in that case).
        """

        async with self._refresh_lock:
            credential = load_credential(self.token_store)
            if credential is None:
                return None

            if not is_expired(credential, now=self.clock_ms(), skew_ms=TOKEN_EXPIRY_SKEW_MS):
                return credential.access_token

            try:
                refreshed = await self.refresh()
            except (NoRefreshToken, RefreshFailed) as e:
                logger.warning("Token refresh failed, clearing stored credentials: %s", e)
                self.clear_tokens()
                return None
            return refreshed.access_token

    def clear_tokens(self) -> None:
        clear_credential(self.token_store)

    def logout(self) -> None:
        self.clear_tokens()
        self.token_store.delete(CODE_VERIFIER_KEY)
        logger.info("Logged out of Spotify")

    def is_authenticated(self) -> bool:
        return load_credential(self.token_store) is not None

    async def _post_form(self, form: Dict[str, Any]) -> httpx.Response:
        data = {k: str(v) for k, v in (form or {}).items() if v is not None}
        return await self.http.post(
            SPOTIFY_TOKEN_URL,
            data=data,
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )


def _json_object(resp: httpx.Response) -> Optional[Dict[str, Any]]:
    try:
        payload = resp.json()
    except (json.JSONDecodeError, ValueError):
        return None
    return payload if isinstance(payload, dict) else None


def _error_code(resp: httpx.Response) -> str:
    payload = _json_object(resp) or {}
    return str(payload.get("error") or "")


# -----------------
# Callback handling
# -----------------


@dataclass(frozen=True)
class CallbackResult:
    status: str
    message: str = ""

    @property
    def logged_in(self) -> bool:
        return self.status == "logged_in"


class CallbackHandler:
    """Process an OAuth redirect at most once per authorization code.

    The processed-code marker lives in ``session_store`` (one program run), while
    credentials live in the auth flow's durable store.
    """

    def __init__(self, auth: SpotifyPKCEAuth, session_store: TokenStore):
        self.auth = auth
        self.session_store = session_store

    async def handle(self, redirect_url: str) -> CallbackResult:
        text = str(redirect_url or "").strip()
        if "://" in text or text.startswith("?"):
            parsed = extract_code_from_redirect_url(text if "://" in text else f"http://callback/{text}")
        else:
            # Assume the user pasted the raw code.
            parsed = {"code": text} if text else {}

        if parsed.get("error"):
            return CallbackResult("denied", "Authentication failed. Please try again.")

        code = parsed.get("code", "")
        if not code:
            return CallbackResult("no_code", "Could not find an authorization code in the redirect URL.")

        if self.session_store.get(PROCESSED_CODE_KEY) == code:
            logger.debug("Authorization code already processed, skipping exchange")
            if self.session_store.get(PROCESSED_CODE_STATUS_KEY) == "logged_in":
                return CallbackResult("already_processed", "This login was already completed.")
            return CallbackResult("code_already_used", "This authorization code was already used. Please connect again.")

        # Marked before the exchange: a code is sent to Spotify at most once.
        self.session_store.set(PROCESSED_CODE_KEY, code)
        self.session_store.set(PROCESSED_CODE_STATUS_KEY, "pending")

        try:
            await self.auth.complete_login(code)
        except MissingVerifier as e:
            self.session_store.set(PROCESSED_CODE_STATUS_KEY, "failed")
            return CallbackResult("missing_verifier", e.user_message)
        except CodeAlreadyUsed as e:
            self.session_store.set(PROCESSED_CODE_STATUS_KEY, "failed")
            return CallbackResult("code_already_used", e.user_message)
        except AuthError as e:
            self.session_store.set(PROCESSED_CODE_STATUS_KEY, "failed")
            logger.error("Auth callback error: %s", e)
            return CallbackResult("failed", e.user_message)

        self.session_store.set(PROCESSED_CODE_STATUS_KEY, "logged_in")
        return CallbackResult("logged_in", "Spotify authentication successful.")
