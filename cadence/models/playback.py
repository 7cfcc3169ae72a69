"""Playback state, devices and the active playback source."""
from dataclasses import dataclass
from typing import Optional

from cadence.models.track import Collection, Track


@dataclass
class PlaybackState:
    """Current playback state from Spotify API."""
    is_playing: bool
    progress_ms: int
    volume_percent: Optional[int] = None
    track: Optional[Track] = None
    device_name: Optional[str] = None

    @property
    def duration_ms(self) -> int:
        return self.track.duration_ms if self.track else 0


@dataclass
class Device:
    """A Spotify Connect device."""
    id: str
    name: str
    type: str
    is_active: bool
    is_restricted: bool
    volume_percent: Optional[int] = None


@dataclass(frozen=True)
class ActivePlaybackSource:
    """The (collection, index) pair that drives next/previous."""
    collection: Collection
    index: int

    def __post_init__(self) -> None:
        if not 0 <= self.index < len(self.collection.tracks):
            raise IndexError(
                f"index {self.index} out of range for {self.collection.name} "
                f"({len(self.collection.tracks)} tracks)"
            )

    @property
    def track(self) -> Track:
        return self.collection.tracks[self.index]
