import json
import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_STORE_PATH = os.path.join("data", "spotify_tokens.json")

TOKEN_KEY = "spotify_access_token"
REFRESH_TOKEN_KEY = "spotify_refresh_token"
TOKEN_EXPIRY_KEY = "spotify_token_expiry"
CODE_VERIFIER_KEY = "code_verifier"
PROCESSED_CODE_KEY = "processed_auth_code"
PROCESSED_CODE_STATUS_KEY = "processed_auth_code_status"


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class Credential:
    """Access/refresh token pair as persisted in a TokenStore."""

    access_token: str
    expires_at_ms: int
    refresh_token: Optional[str] = None

    @staticmethod
    def from_spotify_token_response(payload: Dict[str, Any], *, now: Optional[int] = None) -> "Credential":
        """Convert Spotify token response JSON into a Credential.

        Spotify returns:
        - access_token
        - expires_in (seconds)
        - refresh_token (optional, may be omitted on refresh)
        """

        now_value = now_ms() if now is None else int(now)
        expires_in = float(payload.get("expires_in") or 0)
        refresh_token = payload.get("refresh_token") or None

        return Credential(
            access_token=str(payload.get("access_token") or ""),
            expires_at_ms=now_value + int(expires_in * 1000),
            refresh_token=str(refresh_token) if refresh_token else None,
        )


class TokenStore:
    """Minimal string key-value store used for credentials and the PKCE verifier."""

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError


class MemoryTokenStore(TokenStore):
    """Lives only as long as the process; used as the session-scoped store."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = str(value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class FileTokenStore(TokenStore):
    """Durable store backed by a JSON file, survives restarts."""

    def __init__(self, path: str = DEFAULT_TOKEN_STORE_PATH):
        self.path = path

    def ensure_store_dir(self) -> None:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)

    def _read(self) -> Dict[str, str]:
        if not os.path.exists(self.path):
            return {}

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Token store %s is unreadable, ignoring it: %s", self.path, e)
            return {}

        if not isinstance(data, dict):
            return {}
        return {str(k): str(v) for k, v in data.items() if v is not None}

    def _write(self, data: Dict[str, str]) -> None:
        self.ensure_store_dir()
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)

    def get(self, key: str) -> Optional[str]:
        return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = str(value)
        self._write(data)

    def delete(self, key: str) -> None:
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)


def load_credential(store: TokenStore) -> Optional[Credential]:
    """Read the stored credential, or None when there is no usable one."""
    access_token = store.get(TOKEN_KEY)
    if not access_token:
        return None

    expiry = store.get(TOKEN_EXPIRY_KEY)
    try:
        expires_at_ms = int(float(expiry)) if expiry is not None else None
    except ValueError:
        expires_at_ms = None

    if expires_at_ms is None:
        logger.warning("Stored access token has no expiry; treating it as absent")
        return None

    return Credential(
        access_token=access_token,
        expires_at_ms=expires_at_ms,
        refresh_token=store.get(REFRESH_TOKEN_KEY) or None,
    )


def save_credential(store: TokenStore, credential: Credential) -> None:
    """Persist a credential. An absent refresh token leaves the stored one in place."""
    store.set(TOKEN_KEY, credential.access_token)
    store.set(TOKEN_EXPIRY_KEY, str(int(credential.expires_at_ms)))
    if credential.refresh_token:
        store.set(REFRESH_TOKEN_KEY, credential.refresh_token)


def clear_credential(store: TokenStore) -> None:
    store.delete(TOKEN_KEY)
    store.delete(REFRESH_TOKEN_KEY)
    store.delete(TOKEN_EXPIRY_KEY)


def is_expired(credential: Credential, *, now: Optional[int] = None, skew_ms: int = 5 * 60 * 1000) -> bool:
    now_value = now_ms() if now is None else int(now)
    return now_value >= int(credential.expires_at_ms) - int(skew_ms)
