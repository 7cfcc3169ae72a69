"""Spotipy construction helpers: OAuth manager and per-token API clients."""
import logging
from typing import Callable

import requests
import spotipy
from spotipy.cache_handler import MemoryCacheHandler
from spotipy.oauth2 import SpotifyOAuth

from cadence.config import (
    REQUESTS_TIMEOUT_SEC,
    SPOTIFY_CLIENT_ID,
    SPOTIFY_CLIENT_SECRET,
    SPOTIFY_REDIRECT_URI,
    SPOTIFY_SCOPES,
)

ClientFactory = Callable[[str], spotipy.Spotify]


def configure_spotipy_logging() -> None:
    """Keep spotipy's own error logging out of our logs; we log translated errors ourselves."""
    for logger_name in ("spotipy", "spotipy.client", "spotipy.oauth2"):
        logging.getLogger(logger_name).setLevel(logging.CRITICAL)


configure_spotipy_logging()

# One pooled HTTP session for all API clients. A plain requests.Session has no
# retry adapter, so 429 responses reach us with their Retry-After header.
_http_session = requests.Session()


def build_oauth(
    client_id: str = SPOTIFY_CLIENT_ID,
    client_secret: str = SPOTIFY_CLIENT_SECRET,
    redirect_uri: str = SPOTIFY_REDIRECT_URI,
) -> SpotifyOAuth:
    """OAuth manager for the authorization-code flow. Tokens are persisted by SessionManager."""
    return SpotifyOAuth(
        client_id=client_id,
        client_secret=client_secret,
        redirect_uri=redirect_uri,
        scope=SPOTIFY_SCOPES,
        cache_handler=MemoryCacheHandler(),
        open_browser=False,
        requests_timeout=REQUESTS_TIMEOUT_SEC,
    )


def make_spotify_client(access_token: str) -> spotipy.Spotify:
    """API client bound to one access token (no auth manager, so no silent refresh)."""
    return spotipy.Spotify(
        auth=access_token,
        requests_session=_http_session,
        requests_timeout=REQUESTS_TIMEOUT_SEC,
    )
