"""Periodic sync of local playback state with Spotify, with track-end detection."""
import asyncio
import logging
from typing import Callable, Optional

from cadence.config import POLL_INTERVAL_SEC, SEEK_JUMP_MS, TRACK_END_MARGIN_MS
from cadence.core.errors import CadenceError, NotAuthenticated, RefreshFailed
from cadence.core.events import EventBus
from cadence.core.playback_context import PlaybackContext
from cadence.core.rate_limit import RateLimitState
from cadence.core.spotify_client import RemoteControlFacade
from cadence.models.playback import PlaybackState

logger = logging.getLogger(__name__)


class PlaybackPoller:
    """Stopped until start(); one repeating task while running.

    Each tick samples the remote state once, unless rate-limited or the previous
    tick is still waiting on Spotify. Errors are logged and never stop the loop,
    except losing the session, which halts polling and calls on_session_lost.
    """

    def __init__(
        self,
        remote: RemoteControlFacade,
        context: PlaybackContext,
        rate_limit: RateLimitState,
        events: EventBus,
        *,
        interval_sec: float = POLL_INTERVAL_SEC,
        end_margin_ms: int = TRACK_END_MARGIN_MS,
        seek_jump_ms: int = SEEK_JUMP_MS,
    ) -> None:
        self._remote = remote
        self._context = context
        self._rate_limit = rate_limit
        self._events = events
        self._interval_sec = interval_sec
        self._end_margin_ms = end_margin_ms
        self._seek_jump_ms = seek_jump_ms
        self._loop_task: Optional[asyncio.Task] = None
        self._tick_task: Optional[asyncio.Task] = None
        self._busy = False
        self._last_volume: Optional[int] = None
        self._last_is_playing: Optional[bool] = None
        self._last_progress_ms: Optional[int] = None
        self.on_session_lost: Optional[Callable[[], None]] = None

    @property
    def running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    @property
    def busy(self) -> bool:
        return self._busy

    def start(self) -> None:
        if self.running:
            return
        self._last_volume = None
        self._last_is_playing = None
        self._last_progress_ms = None
        self._loop_task = asyncio.create_task(self._run())
        logger.info("Playback poller started (interval %.1fs)", self._interval_sec)

    async def stop(self) -> None:
        """Cancel the repeating task and any in-flight tick. Idempotent."""
        tasks = [t for t in (self._loop_task, self._tick_task) if t is not None and not t.done()]
        self._loop_task = None
        self._tick_task = None
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._busy = False
        if tasks:
            logger.info("Playback poller stopped")

    def _halt(self) -> None:
        if self._loop_task is not None:
            self._loop_task.cancel()
            self._loop_task = None
        if self.on_session_lost is not None:
            self.on_session_lost()

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval_sec)
            if self._busy:
                logger.debug("Poll skipped: previous tick still in flight")
                continue
            self._tick_task = asyncio.create_task(self.tick())

    async def tick(self) -> None:
        if self._rate_limit.is_limited():
            logger.debug("Poll skipped: rate limited for %.1fs", self._rate_limit.remaining())
            return
        if self._busy:
            return
        self._busy = True
        epoch = self._context.epoch
        try:
            state = await self._remote.get_current_state()
        except (NotAuthenticated, RefreshFailed) as e:
            logger.warning("Spotify session lost, stopping poller: %s", e)
            self._halt()
            return
        except CadenceError as e:
            logger.warning("Poll failed: %s", e)
            return
        except Exception:
            logger.exception("Poll failed unexpectedly")
            return
        finally:
            self._busy = False
        if state is None:
            return
        if epoch != self._context.epoch or self._context.mutating:
            # A local play/pause overlapped this request; its optimistic state wins.
            logger.debug("Poll result discarded: local playback changed meanwhile")
            return
        try:
            await self._reconcile(state)
        except CadenceError as e:
            logger.warning("Auto-advance failed: %s", e)
        except Exception:
            logger.exception("Reconciling playback state failed")

    async def _reconcile(self, state: PlaybackState) -> None:
        changed = (
            state.volume_percent != self._last_volume
            or state.is_playing != self._last_is_playing
        )
        self._last_volume = state.volume_percent
        self._last_is_playing = state.is_playing
        last_progress = self._last_progress_ms
        self._last_progress_ms = state.progress_ms

        track = state.track
        local = self._context.current_track
        # Only the track we believe is playing can end; a lagging report of the previous one cannot.
        was_playing_track = (
            track is not None
            and local is not None
            and local.uri == track.uri
            and self._context.is_playing
        )
        self._context.observe(state)
        if changed:
            self._events.emit(self._context.snapshot())

        # Stopped at the tail of a track we were playing: it ended on its own, not a user pause.
        if (
            was_playing_track
            and not state.is_playing
            and track.duration_ms > 0
            and state.progress_ms >= track.duration_ms - self._end_margin_ms
        ):
            await self._context.handle_track_end(track.uri)
            return

        timer = self._context.end_timer
        source = self._context.source
        if not state.is_playing:
            timer.cancel()
        elif track is not None and source is not None and source.track.uri == track.uri:
            jumped = (
                last_progress is not None
                and abs(state.progress_ms - last_progress) > self._seek_jump_ms + self._interval_sec * 1000
            )
            if timer.track_uri != track.uri or jumped:
                timer.schedule(track.uri, track.duration_ms, state.progress_ms)
