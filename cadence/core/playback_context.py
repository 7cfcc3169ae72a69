"""What the user is browsing, and what is driving next/previous.

The two layers are independent. Browsing (navigate / select / go_back) never
touches the active playback source; only play_at sets it. next/previous move
within the active source and hand over to the remote queue (skip next/previous)
when there is no source or the move would leave the collection.
"""
import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from cadence.config import TRACK_END_MARGIN_MS
from cadence.core.errors import NoDeviceFound, TrackNotPlayable
from cadence.core.events import EventBus, PlaybackStateUpdate, TrackChanged
from cadence.core.spotify_client import RemoteControlFacade
from cadence.core.track_end_timer import TrackEndTimer
from cadence.models.navigation import (
    BrowsingView,
    CategoryView,
    LibraryView,
    PlaylistSongsView,
    PlaylistsView,
    parent_view,
)
from cadence.models.playback import ActivePlaybackSource, PlaybackState
from cadence.models.track import Collection, CollectionKind, Library, Track

logger = logging.getLogger(__name__)


class PlaybackContext:
    def __init__(
        self,
        remote: RemoteControlFacade,
        events: EventBus,
        *,
        end_margin_ms: int = TRACK_END_MARGIN_MS,
    ) -> None:
        self._remote = remote
        self._events = events
        self.library = Library()
        self._view: BrowsingView = LibraryView()
        self._source: Optional[ActivePlaybackSource] = None
        self._current_track: Optional[Track] = None
        self._is_playing = False
        self._progress_ms = 0
        self._volume_percent: Optional[int] = None
        # Bumped on every local playback mutation; polls issued before a bump are stale.
        self._epoch = 0
        self._requests_in_flight = 0
        self._ended_uri: Optional[str] = None
        self.end_timer = TrackEndTimer(self.handle_track_end, end_margin_ms)

    @property
    def view(self) -> BrowsingView:
        return self._view

    @property
    def source(self) -> Optional[ActivePlaybackSource]:
        return self._source

    @property
    def current_track(self) -> Optional[Track]:
        return self._current_track

    @property
    def is_playing(self) -> bool:
        return self._is_playing

    @property
    def progress_ms(self) -> int:
        return self._progress_ms

    @property
    def volume_percent(self) -> Optional[int]:
        return self._volume_percent

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def mutating(self) -> bool:
        """A local playback request is still waiting on Spotify."""
        return self._requests_in_flight > 0

    @contextmanager
    def _remote_mutation(self) -> Iterator[None]:
        # Polls sampled while the request was out describe the state before it.
        self._requests_in_flight += 1
        try:
            yield
        finally:
            self._requests_in_flight -= 1
            self._epoch += 1

    def snapshot(self) -> PlaybackStateUpdate:
        track = self._current_track
        return PlaybackStateUpdate(
            is_playing=self._is_playing,
            progress_ms=self._progress_ms,
            duration_ms=track.duration_ms if track else 0,
            track=track,
            volume_percent=self._volume_percent,
        )

    def _emit_state(self) -> None:
        self._events.emit(self.snapshot())

    # Browsing

    def set_library(self, library: Library) -> None:
        self.library = library
        if isinstance(self._view, PlaylistSongsView) and library.playlist(self._view.playlist_id) is None:
            self._view = PlaylistsView()

    def navigate(self, view: BrowsingView) -> None:
        if isinstance(view, CategoryView) and view.kind is CollectionKind.PLAYLIST:
            view = PlaylistsView()
        if isinstance(view, PlaylistSongsView) and self.library.playlist(view.playlist_id) is None:
            raise KeyError(f"Unknown playlist {view.playlist_id}")
        self._view = view

    def select_category(self, kind: CollectionKind) -> None:
        self.navigate(CategoryView(kind))

    def select_playlist(self, playlist_id: str) -> None:
        self.navigate(PlaylistSongsView(playlist_id))

    def go_back(self) -> None:
        self._view = parent_view(self._view)

    def reset_view(self) -> None:
        self._view = LibraryView()

    def visible_collection(self) -> Optional[Collection]:
        """Collection shown by the current view, if it shows tracks."""
        if isinstance(self._view, CategoryView):
            return self.library.category(self._view.kind)
        if isinstance(self._view, PlaylistSongsView):
            return self.library.playlist(self._view.playlist_id)
        return None

    # Playback

    async def play_at(self, collection: Collection, index: int) -> None:
        source = ActivePlaybackSource(collection, index)
        track = source.track
        if not track.is_playable:
            raise TrackNotPlayable(f"{track.name} has no playable URI")

        self._source = source
        self._current_track = track
        self._is_playing = True
        self._progress_ms = 0
        self._ended_uri = None
        self._epoch += 1
        self.end_timer.cancel()
        self._events.emit(TrackChanged(track))
        self._emit_state()

        logger.info("Playing %s (%d/%d in %s)", track.name, index + 1, len(collection), collection.name)
        with self._remote_mutation():
            await self._remote.play_track(track.uri)
        if self._source is source and self._is_playing:
            self.end_timer.schedule(track.uri, track.duration_ms, 0)

    async def play_track_at_index(self, index: int) -> None:
        collection = self.visible_collection()
        if collection is None:
            raise LookupError("No track list is open")
        await self.play_at(collection, index)

    async def advance(self, direction: int) -> None:
        source = self._source
        if source is not None:
            target = source.index + direction
            if 0 <= target < len(source.collection.tracks):
                await self.play_at(source.collection, target)
                return
        # No local source, or at its edge: the remote may have its own queue.
        logger.info("Delegating %s to Spotify queue", "next" if direction > 0 else "previous")
        if direction > 0:
            await self._remote.skip_next()
        else:
            await self._remote.skip_previous()

    async def next_track(self) -> None:
        await self.advance(+1)

    async def previous_track(self) -> None:
        await self.advance(-1)

    async def handle_track_end(self, track_uri: str) -> bool:
        """Auto-advance after `track_uri` finished. Fires at most once per ended track."""
        if self._ended_uri == track_uri:
            return False
        if self._source is not None and self._source.track.uri != track_uri:
            logger.debug("Ignoring end of %s, no longer the active track", track_uri)
            return False
        self._ended_uri = track_uri
        logger.info("Track %s ended, advancing", track_uri)
        await self.advance(+1)
        return True

    async def toggle_playback(self) -> None:
        if self._is_playing:
            with self._remote_mutation():
                await self._remote.pause()
            self._is_playing = False
            self.end_timer.cancel()
        else:
            with self._remote_mutation():
                try:
                    await self._remote.resume()
                except NoDeviceFound:
                    if self._current_track is None or not self._current_track.is_playable:
                        raise
                    await self._remote.play_track(self._current_track.uri)
            self._is_playing = True
            if self._current_track is not None:
                self.end_timer.schedule(
                    self._current_track.uri, self._current_track.duration_ms, self._progress_ms
                )
        self._emit_state()

    async def seek_to_position(self, percent: float) -> None:
        track = self._current_track
        if track is None or track.duration_ms <= 0:
            raise LookupError("Nothing is playing")
        percent = max(0.0, min(100.0, float(percent)))
        position_ms = int(track.duration_ms * percent / 100)
        with self._remote_mutation():
            await self._remote.seek(position_ms)
        self._progress_ms = position_ms
        if self._is_playing:
            self.end_timer.schedule(track.uri, track.duration_ms, position_ms)
        self._emit_state()

    async def set_volume(self, percent: int) -> None:
        percent = max(0, min(100, int(percent)))
        await self._remote.set_volume(percent)
        self._volume_percent = percent
        self._emit_state()

    def observe(self, state: PlaybackState) -> None:
        """Take on remote state from a poll that is newer than any local change."""
        track = state.track
        if track is not None and (self._current_track is None or track.uri != self._current_track.uri):
            self._current_track = track
            self._sync_source_index(track)
            self._events.emit(TrackChanged(track))
        self._is_playing = state.is_playing
        self._progress_ms = state.progress_ms
        if state.volume_percent is not None:
            self._volume_percent = state.volume_percent

    def _sync_source_index(self, track: Track) -> None:
        # Remote moved within our collection (e.g. skipped on the phone): follow it.
        source = self._source
        if source is None:
            return
        for i, t in enumerate(source.collection.tracks):
            if t.uri == track.uri:
                if i != source.index:
                    self._source = ActivePlaybackSource(source.collection, i)
                return

    def reset(self) -> None:
        """Forget everything (disconnect). Idempotent."""
        self.end_timer.cancel()
        self.library = Library()
        self._view = LibraryView()
        self._source = None
        self._current_track = None
        self._is_playing = False
        self._progress_ms = 0
        self._ended_uri = None
        self._epoch += 1
