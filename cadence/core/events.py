"""Outbound change events consumed by the UI layer."""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Union

from cadence.models.track import Track

logger = logging.getLogger(__name__)


class ConnectionStatus(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


@dataclass(frozen=True)
class PlaybackStateUpdate:
    is_playing: bool
    progress_ms: int
    duration_ms: int
    track: Optional[Track]
    volume_percent: Optional[int] = None
    type = "playbackStateUpdate"


@dataclass(frozen=True)
class TrackChanged:
    track: Track
    type = "trackChanged"


@dataclass(frozen=True)
class ConnectionStatusChanged:
    status: ConnectionStatus
    type = "connectionStatus"


Event = Union[PlaybackStateUpdate, TrackChanged, ConnectionStatusChanged]
Listener = Callable[[Event], None]


class EventBus:
    def __init__(self) -> None:
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, event: Event) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                # A broken UI listener must not stop the poller or a play action.
                logger.exception("Event listener failed on %s", event.type)
