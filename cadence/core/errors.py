"""Error taxonomy for the session and playback layer.

RemoteControlFacade is the only place raw transport errors (spotipy / requests)
are translated into these. Each error carries a user-facing message and, for
actionable ones, a follow-up action hint.
"""
from typing import Optional


class CadenceError(Exception):
    """Base class. `action` is a short follow-up hint for the UI, or None."""

    action: Optional[str] = None

    def __init__(self, message: str = "", *, action: Optional[str] = None) -> None:
        super().__init__(message or self.__class__.__doc__ or self.__class__.__name__)
        if action is not None:
            self.action = action

    @property
    def message(self) -> str:
        return str(self)


class NotConfigured(CadenceError):
    """Spotify client ID and secret are not configured."""

    action = "Set SPOTIFY_CLIENT_ID and SPOTIFY_CLIENT_SECRET"


class NotAuthenticated(CadenceError):
    """Not connected to Spotify."""

    action = "Connect to Spotify"


class AuthExchangeFailed(CadenceError):
    """Could not exchange the authorization code for tokens."""

    action = "Try connecting again"


class RefreshFailed(CadenceError):
    """Spotify session expired and could not be refreshed."""

    action = "Connect to Spotify"


class NoDeviceFound(CadenceError):
    """No Spotify device available."""

    action = "Open the Spotify app on a device"


class PremiumRequired(CadenceError):
    """Spotify Premium is required for playback control."""


class RateLimited(CadenceError):
    """Spotify rate limit reached."""

    def __init__(self, retry_after: float, message: str = "") -> None:
        super().__init__(message or f"Rate limited by Spotify, retry in {retry_after:.0f}s")
        self.retry_after = retry_after


class NetworkError(CadenceError):
    """Spotify request failed."""


class RemoteRequestFailed(NetworkError):
    """Spotify returned an unexpected HTTP error."""

    def __init__(self, status: int, message: str = "") -> None:
        super().__init__(message or f"Spotify request failed ({status})")
        self.status = status


class TrackNotPlayable(CadenceError):
    """Track has no playable URI."""
