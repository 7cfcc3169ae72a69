"""Browsing views: what the user is looking at, independent of what is playing."""
from dataclasses import dataclass
from typing import Union

from cadence.models.track import CollectionKind


@dataclass(frozen=True)
class LibraryView:
    name = "library"


@dataclass(frozen=True)
class CategoryView:
    kind: CollectionKind
    name = "category"


@dataclass(frozen=True)
class PlaylistsView:
    name = "playlists"


@dataclass(frozen=True)
class PlaylistSongsView:
    playlist_id: str
    name = "playlist-songs"


BrowsingView = Union[LibraryView, CategoryView, PlaylistsView, PlaylistSongsView]


def parent_view(view: BrowsingView) -> BrowsingView:
    """One level up: Category and Playlists go to Library, PlaylistSongs goes to Playlists."""
    if isinstance(view, PlaylistSongsView):
        return PlaylistsView()
    return LibraryView()
