"""One-shot timer that fires shortly before the current track ends."""
import asyncio
import logging
from typing import Awaitable, Callable, Optional

from cadence.config import TRACK_END_MARGIN_MS

logger = logging.getLogger(__name__)

EndCallback = Callable[[str], Awaitable[None]]


class TrackEndTimer:
    """At most one pending timer. Scheduling always cancels the previous one first."""

    def __init__(self, on_end: EndCallback, margin_ms: int = TRACK_END_MARGIN_MS) -> None:
        self._on_end = on_end
        self._margin_ms = margin_ms
        self._handle: Optional[asyncio.TimerHandle] = None
        self._task: Optional[asyncio.Task] = None
        self._track_uri: Optional[str] = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    @property
    def track_uri(self) -> Optional[str]:
        return self._track_uri

    def schedule(self, track_uri: str, duration_ms: int, progress_ms: int = 0) -> bool:
        """Fire `on_end(track_uri)` after duration - progress - margin. Returns False if not scheduled."""
        self.cancel()
        if duration_ms <= 0:
            return False
        remaining_ms = duration_ms - progress_ms - self._margin_ms
        if remaining_ms <= 0:
            return False
        loop = asyncio.get_running_loop()
        self._track_uri = track_uri
        self._handle = loop.call_later(remaining_ms / 1000.0, self._fire, track_uri)
        logger.debug("Track end timer set for %s in %dms", track_uri, remaining_ms)
        return True

    def cancel(self) -> None:
        """Idempotent."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._track_uri = None

    def _fire(self, track_uri: str) -> None:
        self._handle = None
        self._track_uri = None
        self._task = asyncio.ensure_future(self._run(track_uri))

    async def _run(self, track_uri: str) -> None:
        try:
            await self._on_end(track_uri)
        except Exception as e:
            logger.warning("Auto-advance after %s failed: %s", track_uri, e)
