"""Load the browsable library: liked songs, recently played, top tracks, playlists."""
import logging
from typing import Iterable, List

from cadence.config import LIBRARY_MAX_OFFSET, LIBRARY_PAGE_SIZE, PLAYLIST_TRACK_LIMIT
from cadence.core.errors import CadenceError, NotAuthenticated, RefreshFailed
from cadence.core.spotify_client import RemoteControlFacade, track_from_api
from cadence.models.track import Collection, CollectionKind, Library, Track

logger = logging.getLogger(__name__)


def dedupe_tracks(tracks: Iterable[Track]) -> List[Track]:
    """Keep the first occurrence of each track id, preserving order."""
    seen = set()
    out = []
    for t in tracks:
        if t.id in seen:
            continue
        seen.add(t.id)
        out.append(t)
    return out


def _tracks_from_items(items: Iterable[dict]) -> List[Track]:
    out = []
    for entry in items:
        track = track_from_api((entry or {}).get("track"))
        if track is not None:
            out.append(track)
    return out


class LibraryLoader:
    """Each section loads independently; a failing section is logged and left empty.

    Session-level failures (not authenticated, refresh failed) are not swallowed.
    """

    def __init__(
        self,
        remote: RemoteControlFacade,
        *,
        page_size: int = LIBRARY_PAGE_SIZE,
        max_offset: int = LIBRARY_MAX_OFFSET,
        playlist_track_limit: int = PLAYLIST_TRACK_LIMIT,
    ) -> None:
        self._remote = remote
        self._page_size = page_size
        self._max_offset = max_offset
        self._playlist_track_limit = playlist_track_limit

    async def load(self) -> Library:
        liked = await self._section(self.liked_songs, "liked songs")
        recent = await self._section(self.recently_played, "recently played")
        top = await self._section(self.top_tracks, "top tracks")
        library = Library(
            liked_songs=Collection.category(CollectionKind.LIKED_SONGS, liked),
            recently_played=Collection.category(CollectionKind.RECENTLY_PLAYED, recent),
            top_tracks=Collection.category(CollectionKind.TOP_TRACKS, top),
            playlists=await self._section(self.playlists, "playlists"),
        )
        logger.info(
            "Loaded %d liked songs, %d recent tracks, %d top tracks, %d playlists",
            len(library.liked_songs),
            len(library.recently_played),
            len(library.top_tracks),
            len(library.playlists),
        )
        return library

    async def _section(self, loader, label: str) -> list:
        try:
            return await loader()
        except (NotAuthenticated, RefreshFailed):
            raise
        except CadenceError as e:
            logger.warning("Failed to load %s: %s", label, e)
            return []

    async def liked_songs(self) -> List[Track]:
        tracks: List[Track] = []
        offset = 0
        while True:
            page = await self._remote.get_saved_tracks(limit=self._page_size, offset=offset)
            items = (page or {}).get("items") or []
            tracks.extend(_tracks_from_items(items))
            if len(items) < self._page_size:
                break
            offset += self._page_size
            if offset > self._max_offset:
                break
        return dedupe_tracks(tracks)

    async def recently_played(self) -> List[Track]:
        page = await self._remote.get_recently_played(limit=self._page_size)
        return dedupe_tracks(_tracks_from_items((page or {}).get("items") or []))

    async def top_tracks(self) -> List[Track]:
        page = await self._remote.get_top_tracks(limit=self._page_size, time_range="medium_term")
        tracks = [track_from_api(item) for item in (page or {}).get("items") or []]
        return [t for t in tracks if t is not None]

    async def playlists(self) -> List[Collection]:
        page = await self._remote.get_playlists(limit=self._page_size)
        out = []
        for p in (page or {}).get("items") or []:
            if not p or int((p.get("tracks") or {}).get("total") or 0) <= 0:
                continue
            try:
                tracks_page = await self._remote.get_playlist_tracks(p["id"], limit=self._playlist_track_limit)
            except (NotAuthenticated, RefreshFailed):
                raise
            except CadenceError as e:
                logger.warning("Failed to load tracks for playlist %s: %s", p.get("id"), e)
                continue
            images = p.get("images") or []
            owner = p.get("owner") or {}
            out.append(
                Collection.playlist(
                    p["id"],
                    p.get("name", ""),
                    _tracks_from_items((tracks_page or {}).get("items") or []),
                    image_url=images[0]["url"] if images else None,
                    owner=owner.get("display_name") or owner.get("id") or "",
                )
            )
        return out
