"""PlaybackContext: browsing vs. active source, next/previous resolution, track-end timer."""
import asyncio

import pytest

from cadence.core.errors import NoDeviceFound, TrackNotPlayable
from cadence.core.events import EventBus, PlaybackStateUpdate, TrackChanged
from cadence.core.playback_context import PlaybackContext
from cadence.models.navigation import CategoryView, LibraryView, PlaylistSongsView, PlaylistsView
from cadence.models.playback import PlaybackState
from cadence.models.track import Collection, CollectionKind, Library
from tests.fakes import FakeRemote, make_collection, make_track


def _run(coro):
    return asyncio.run(coro)


def _context(margin_ms: int = 2000):
    remote = FakeRemote()
    events = EventBus()
    received = []
    events.subscribe(received.append)
    return PlaybackContext(remote, events, end_margin_ms=margin_ms), remote, received


def _library() -> Library:
    return Library(
        liked_songs=make_collection(3),
        top_tracks=Collection.category(CollectionKind.TOP_TRACKS, [make_track(10), make_track(11)]),
        playlists=[make_collection(4, kind=CollectionKind.PLAYLIST)],
    )


@pytest.mark.parametrize("start,steps", [(0, 1), (0, 4), (2, 3), (5, 0)])
def test_advance_moves_through_collection(start, steps) -> None:
    context, remote, _ = _context()
    liked = make_collection(6)

    async def run():
        await context.play_at(liked, start)
        for _ in range(steps):
            await context.advance(+1)
        context.end_timer.cancel()

    _run(run())
    assert context.source.index == start + steps
    assert remote.played()[-1] == liked.tracks[start + steps].uri
    assert "skip_next" not in remote.names()


def test_previous_at_first_track_delegates_once() -> None:
    context, remote, _ = _context()
    liked = make_collection(3)

    async def run():
        await context.play_at(liked, 0)
        await context.advance(-1)
        context.end_timer.cancel()

    _run(run())
    assert remote.names().count("skip_previous") == 1
    assert remote.played() == [liked.tracks[0].uri]
    assert context.source.index == 0


def test_next_past_last_track_delegates_to_skip_next() -> None:
    context, remote, _ = _context()
    liked = make_collection(3)

    async def run():
        await context.play_at(liked, 0)
        await context.next_track()
        await context.next_track()
        assert context.source.index == 2
        await context.next_track()
        context.end_timer.cancel()

    _run(run())
    assert remote.played() == [t.uri for t in liked.tracks]
    assert remote.names().count("skip_next") == 1


def test_without_source_next_and_previous_use_remote_queue() -> None:
    context, remote, _ = _context()
    _run(context.next_track())
    _run(context.previous_track())
    assert remote.names() == ["skip_next", "skip_previous"]


def test_browsing_does_not_change_active_source() -> None:
    context, remote, _ = _context()
    context.set_library(_library())

    async def run():
        context.select_category(CollectionKind.LIKED_SONGS)
        await context.play_track_at_index(0)
        context.select_category(CollectionKind.TOP_TRACKS)
        context.go_back()
        context.navigate(PlaylistsView())
        await context.next_track()
        context.end_timer.cancel()

    _run(run())
    assert context.source.collection.kind is CollectionKind.LIKED_SONGS
    assert remote.played() == ["spotify:track:t0", "spotify:track:t1"]


def test_navigation_tree() -> None:
    context, _, _ = _context()
    context.set_library(_library())

    context.select_category(CollectionKind.TOP_TRACKS)
    assert context.view == CategoryView(CollectionKind.TOP_TRACKS)
    assert len(context.visible_collection()) == 2
    context.go_back()
    assert context.view == LibraryView()

    context.select_category(CollectionKind.PLAYLIST)
    assert context.view == PlaylistsView()
    assert context.visible_collection() is None
    context.select_playlist("pl1")
    assert context.view == PlaylistSongsView("pl1")
    assert context.visible_collection().name == "Road Trip"
    context.go_back()
    assert context.view == PlaylistsView()
    context.go_back()
    assert context.view == LibraryView()
    context.go_back()
    assert context.view == LibraryView()


def test_unknown_playlist_is_rejected() -> None:
    context, _, _ = _context()
    context.set_library(_library())
    with pytest.raises(KeyError):
        context.select_playlist("missing")
    assert context.view == LibraryView()


def test_play_track_at_index_needs_open_list() -> None:
    context, remote, _ = _context()
    context.set_library(_library())
    with pytest.raises(LookupError):
        _run(context.play_track_at_index(0))
    context.select_category(CollectionKind.LIKED_SONGS)
    with pytest.raises(IndexError):
        _run(context.play_track_at_index(3))
    assert context.source is None
    assert remote.calls == []


def test_track_without_uri_is_not_playable() -> None:
    context, remote, _ = _context()
    broken = Collection.category(CollectionKind.LIKED_SONGS, [make_track(0, uri="")])
    with pytest.raises(TrackNotPlayable):
        _run(context.play_at(broken, 0))
    assert remote.calls == []


def test_play_at_is_optimistic_and_emits() -> None:
    context, remote, received = _context()
    liked = make_collection(2)
    remote.failures["play_track"] = NoDeviceFound()

    with pytest.raises(NoDeviceFound):
        _run(context.play_at(liked, 1))
    assert context.is_playing
    assert context.current_track == liked.tracks[1]
    assert context.source.index == 1
    assert isinstance(received[0], TrackChanged)
    assert isinstance(received[1], PlaybackStateUpdate) and received[1].is_playing
    assert not context.end_timer.pending


def test_two_quick_plays_leave_one_end_timer() -> None:
    context, remote, _ = _context(margin_ms=2000)
    short = Collection.category(
        CollectionKind.LIKED_SONGS, [make_track(0, duration_ms=2050), make_track(1, duration_ms=600_000)]
    )

    async def run():
        await context.play_at(short, 0)
        first_uri = context.end_timer.track_uri
        await context.play_at(short, 1)
        assert context.end_timer.pending
        assert context.end_timer.track_uri != first_uri
        await asyncio.sleep(0.15)
        context.end_timer.cancel()

    _run(run())
    assert remote.played() == ["spotify:track:t0", "spotify:track:t1"]


def test_end_timer_auto_advances() -> None:
    context, remote, _ = _context(margin_ms=2000)
    short = Collection.category(
        CollectionKind.LIKED_SONGS, [make_track(0, duration_ms=2030), make_track(1, duration_ms=600_000)]
    )

    async def run():
        await context.play_at(short, 0)
        await asyncio.sleep(0.2)
        context.end_timer.cancel()

    _run(run())
    assert remote.played() == ["spotify:track:t0", "spotify:track:t1"]
    assert context.source.index == 1


def test_track_end_fires_once_per_track() -> None:
    context, remote, _ = _context()
    liked = make_collection(3)

    async def run():
        await context.play_at(liked, 0)
        first = await context.handle_track_end(liked.tracks[0].uri)
        second = await context.handle_track_end(liked.tracks[0].uri)
        context.end_timer.cancel()
        return first, second

    assert _run(run()) == (True, False)
    assert remote.played() == [liked.tracks[0].uri, liked.tracks[1].uri]


def test_toggle_pauses_and_resumes() -> None:
    context, remote, _ = _context()
    liked = make_collection(2)

    async def run():
        await context.play_at(liked, 0)
        await context.toggle_playback()
        assert not context.is_playing
        assert not context.end_timer.pending
        await context.toggle_playback()
        assert context.is_playing
        assert context.end_timer.pending
        context.end_timer.cancel()

    _run(run())
    assert remote.names() == ["play_track", "pause", "resume"]


def test_resume_without_device_replays_current_track() -> None:
    context, remote, _ = _context()
    liked = make_collection(2)

    async def run():
        await context.play_at(liked, 1)
        await context.toggle_playback()
        remote.failures["resume"] = NoDeviceFound()
        await context.toggle_playback()
        context.end_timer.cancel()

    _run(run())
    assert remote.names() == ["play_track", "pause", "resume", "play_track"]
    assert remote.played()[-1] == liked.tracks[1].uri


def test_seek_to_percent() -> None:
    context, remote, _ = _context()
    liked = make_collection(1, duration_ms=200_000)

    async def run():
        await context.play_at(liked, 0)
        await context.seek_to_position(25)
        context.end_timer.cancel()

    _run(run())
    assert remote.calls[-1] == ("seek", 50_000)
    assert context.progress_ms == 50_000


def test_seek_without_track() -> None:
    context, _, _ = _context()
    with pytest.raises(LookupError):
        _run(context.seek_to_position(50))


def test_observe_follows_remote_within_source() -> None:
    context, _, received = _context()
    liked = make_collection(4)

    async def run():
        await context.play_at(liked, 0)
        context.end_timer.cancel()

    _run(run())
    context.observe(PlaybackState(is_playing=True, progress_ms=1000, volume_percent=40, track=liked.tracks[2]))
    assert context.source.index == 2
    assert context.current_track == liked.tracks[2]
    assert context.volume_percent == 40
    assert received[-1] == TrackChanged(liked.tracks[2])


def test_reset_forgets_everything() -> None:
    context, _, _ = _context()
    context.set_library(_library())
    context.select_category(CollectionKind.LIKED_SONGS)

    async def run():
        await context.play_track_at_index(1)
        context.reset()
        assert not context.end_timer.pending

    _run(run())
    assert context.source is None
    assert context.current_track is None
    assert context.view == LibraryView()
    assert context.library.counts()["playlists"] == 0
