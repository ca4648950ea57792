from typing import Optional


class SpotifyPosterError(Exception):
    """Base error. ``user_message`` is what the menus show to the user."""

    user_message = "Something went wrong."

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.user_message)


# -----------------
# Auth errors
# -----------------


class AuthError(SpotifyPosterError):
    user_message = "Failed to complete authentication. Please try again."


class MissingVerifier(AuthError):
    user_message = "Login session expired before it could be completed. Please connect again."


class TokenExchangeFailed(AuthError):
    def __init__(self, status: Optional[int], detail: str = ""):
        self.status = status
        self.detail = detail
        suffix = f"HTTP {status}" if status is not None else "no response"
        super().__init__(f"Failed to exchange code for token: {suffix}")


class CodeAlreadyUsed(AuthError):
    user_message = "This login link was already used. Please connect again."


class NoRefreshToken(AuthError):
    user_message = "No refresh token available. Please log in again."


class RefreshFailed(AuthError):
    user_message = "Your Spotify session could not be renewed. Please log in again."

    def __init__(self, status: Optional[int] = None):
        self.status = status
        super().__init__(f"Failed to refresh token (HTTP {status})" if status is not None else None)


# -----------------
# Fetch errors
# -----------------


class FetchError(SpotifyPosterError):
    user_message = "Failed to fetch track data."


class NotAuthenticated(FetchError):
    user_message = "No valid access token available. Please log in again."


class SessionExpired(FetchError):
    user_message = "Authentication expired. Please log in again."


class TrackNotFound(FetchError):
    user_message = "Track not found. Please check the track ID."


class RateLimited(FetchError):
    user_message = "Rate limit exceeded. Please try again later."

    def __init__(self, retry_after: Optional[float] = None):
        self.retry_after = retry_after
        super().__init__()


class UpstreamError(FetchError):
    def __init__(self, status: Optional[int], detail: str = ""):
        self.status = status
        self.detail = detail
        self.user_message = (
            f"Failed to fetch track data: {status}" if status is not None else "Failed to reach Spotify."
        )
        super().__init__(self.user_message)
