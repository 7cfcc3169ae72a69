"""Tracks and browsable collections."""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class Track:
    """A single playable item from the remote library."""
    id: str
    name: str
    artist: str
    album: str
    duration_ms: int
    uri: str
    image_url: Optional[str] = None

    @property
    def is_playable(self) -> bool:
        return bool(self.uri)


class CollectionKind(str, Enum):
    LIKED_SONGS = "liked-songs"
    RECENTLY_PLAYED = "recently-played"
    TOP_TRACKS = "top-tracks"
    PLAYLIST = "playlist"


CATEGORY_TITLES = {
    CollectionKind.LIKED_SONGS: "Liked Songs",
    CollectionKind.RECENTLY_PLAYED: "Recently Played",
    CollectionKind.TOP_TRACKS: "Top Tracks",
}


@dataclass(frozen=True, eq=False)
class Collection:
    """Ordered, named list of tracks. Identity is (kind, playlist_id), not content."""
    kind: CollectionKind
    name: str
    tracks: Tuple[Track, ...] = ()
    playlist_id: Optional[str] = None
    image_url: Optional[str] = None
    owner: str = ""

    @property
    def key(self) -> Tuple[CollectionKind, Optional[str]]:
        return (self.kind, self.playlist_id)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Collection):
            return NotImplemented
        return self.key == other.key

    def __hash__(self) -> int:
        return hash(self.key)

    def __len__(self) -> int:
        return len(self.tracks)

    @classmethod
    def category(cls, kind: CollectionKind, tracks: List[Track]) -> "Collection":
        if kind is CollectionKind.PLAYLIST:
            raise ValueError("playlists are built with Collection.playlist()")
        return cls(kind=kind, name=CATEGORY_TITLES[kind], tracks=tuple(tracks))

    @classmethod
    def playlist(
        cls,
        playlist_id: str,
        name: str,
        tracks: List[Track],
        *,
        image_url: Optional[str] = None,
        owner: str = "",
    ) -> "Collection":
        return cls(
            kind=CollectionKind.PLAYLIST,
            name=name,
            tracks=tuple(tracks),
            playlist_id=playlist_id,
            image_url=image_url,
            owner=owner,
        )


@dataclass
class Library:
    """Everything the user can browse: three categories plus their playlists."""
    liked_songs: Collection = field(
        default_factory=lambda: Collection.category(CollectionKind.LIKED_SONGS, [])
    )
    recently_played: Collection = field(
        default_factory=lambda: Collection.category(CollectionKind.RECENTLY_PLAYED, [])
    )
    top_tracks: Collection = field(
        default_factory=lambda: Collection.category(CollectionKind.TOP_TRACKS, [])
    )
    playlists: List[Collection] = field(default_factory=list)

    def category(self, kind: CollectionKind) -> Collection:
        if kind is CollectionKind.LIKED_SONGS:
            return self.liked_songs
        if kind is CollectionKind.RECENTLY_PLAYED:
            return self.recently_played
        if kind is CollectionKind.TOP_TRACKS:
            return self.top_tracks
        raise ValueError(f"{kind.value} is not a category")

    def playlist(self, playlist_id: str) -> Optional[Collection]:
        for p in self.playlists:
            if p.playlist_id == playlist_id:
                return p
        return None

    def counts(self) -> dict:
        return {
            CollectionKind.LIKED_SONGS.value: len(self.liked_songs),
            CollectionKind.RECENTLY_PLAYED.value: len(self.recently_played),
            CollectionKind.TOP_TRACKS.value: len(self.top_tracks),
            "playlists": len(self.playlists),
        }
