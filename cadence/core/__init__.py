"""Core services: auth, token refresh, remote control, polling, playback context."""
from cadence.core.auth_session import AuthSession
from cadence.core.controller import MusicController
from cadence.core.playback_context import PlaybackContext
from cadence.core.playback_poller import PlaybackPoller
from cadence.core.spotify_client import RemoteControlFacade
from cadence.core.token_guardian import TokenGuardian

__all__ = [
    "AuthSession",
    "MusicController",
    "PlaybackContext",
    "PlaybackPoller",
    "RemoteControlFacade",
    "TokenGuardian",
]
