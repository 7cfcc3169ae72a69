"""Data models for tracks, collections, playback, session and browsing views."""
from cadence.models.navigation import (
    BrowsingView,
    CategoryView,
    LibraryView,
    PlaylistSongsView,
    PlaylistsView,
)
from cadence.models.playback import ActivePlaybackSource, Device, PlaybackState
from cadence.models.session import Session, UserProfile
from cadence.models.track import Collection, CollectionKind, Library, Track

__all__ = [
    "ActivePlaybackSource",
    "BrowsingView",
    "CategoryView",
    "Collection",
    "CollectionKind",
    "Device",
    "Library",
    "LibraryView",
    "PlaybackState",
    "PlaylistSongsView",
    "PlaylistsView",
    "Session",
    "Track",
    "UserProfile",
]
