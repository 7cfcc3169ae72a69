"""Typed Spotify remote control: playback, devices, state and library reads.

This is the only place where spotipy / requests errors become CadenceError
subclasses. Every call checks the shared rate-limit cool-down first and does no
network I/O while it is active.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, List, Optional

import requests
from spotipy.exceptions import SpotifyException

from cadence.config import DEVICE_SETTLE_DELAY_SEC
from cadence.core.errors import (
    CadenceError,
    NetworkError,
    NoDeviceFound,
    PremiumRequired,
    RateLimited,
    RemoteRequestFailed,
)
from cadence.core.rate_limit import RateLimitState, parse_retry_after
from cadence.core.token_guardian import TokenGuardian
from cadence.models.playback import Device, PlaybackState
from cadence.models.track import Track

logger = logging.getLogger(__name__)


def track_from_api(item: Optional[dict]) -> Optional[Track]:
    """Map a Spotify track object to Track, or None for non-track items (episodes, local gaps)."""
    if not item or item.get("type", "track") != "track":
        return None
    album = item.get("album") or {}
    images = album.get("images") or []
    artists = item.get("artists") or []
    return Track(
        id=item.get("id") or item.get("uri") or "",
        name=item.get("name", ""),
        artist=", ".join(a.get("name", "") for a in artists),
        album=album.get("name", ""),
        duration_ms=int(item.get("duration_ms") or 0),
        uri=item.get("uri") or "",
        image_url=images[0]["url"] if images else None,
    )


def device_from_api(d: dict) -> Device:
    return Device(
        id=d.get("id") or "",
        name=d.get("name", ""),
        type=d.get("type", ""),
        is_active=bool(d.get("is_active", False)),
        is_restricted=bool(d.get("is_restricted", False)),
        volume_percent=d.get("volume_percent"),
    )


def playback_from_api(pb: Optional[dict]) -> Optional[PlaybackState]:
    """Map current_playback() to PlaybackState; None when nothing is loaded."""
    if not pb:
        return None
    device = pb.get("device") or {}
    return PlaybackState(
        is_playing=bool(pb.get("is_playing", False)),
        progress_ms=int(pb.get("progress_ms") or 0),
        volume_percent=device.get("volume_percent"),
        track=track_from_api(pb.get("item")),
        device_name=device.get("name"),
    )


class RemoteControlFacade:
    def __init__(
        self,
        guardian: TokenGuardian,
        rate_limit: RateLimitState,
        *,
        settle_delay_sec: float = DEVICE_SETTLE_DELAY_SEC,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._guardian = guardian
        self._rate_limit = rate_limit
        self._settle_delay_sec = settle_delay_sec
        self._sleep = sleep

    @property
    def rate_limit(self) -> RateLimitState:
        return self._rate_limit

    async def _request(self, name: str, operation: Callable[[Any], Any], *, mutation: bool = False) -> Any:
        if self._rate_limit.is_limited():
            logger.debug("%s skipped: rate limited for %.1fs", name, self._rate_limit.remaining())
            raise RateLimited(self._rate_limit.remaining())
        try:
            return await self._guardian.call(operation)
        except SpotifyException as e:
            raise self._translate(name, e, mutation) from e
        except requests.RequestException as e:
            logger.warning("%s: network error: %s", name, e)
            raise NetworkError(f"Could not reach Spotify: {e}") from e

    def _translate(self, name: str, e: SpotifyException, mutation: bool) -> CadenceError:
        status = e.http_status
        if status == 429:
            cooldown = self._rate_limit.block(parse_retry_after(e.headers))
            return RateLimited(cooldown)
        if status == 403 and mutation:
            logger.info("%s: forbidden, account is not Premium", name)
            return PremiumRequired()
        if status == 404 and mutation:
            return NoDeviceFound()
        logger.warning("%s failed (%s): %s", name, status, e.msg)
        return RemoteRequestFailed(status, f"Spotify request failed ({status}): {e.msg}")

    # Playback

    async def get_devices(self) -> List[Device]:
        data = await self._request("devices", lambda sp: sp.devices())
        return [device_from_api(d) for d in (data or {}).get("devices", [])]

    async def play_track(self, uri: str) -> None:
        """Play `uri`, transferring to the first usable device when none is active."""
        devices = await self.get_devices()
        if not devices:
            raise NoDeviceFound("No Spotify devices found. Open Spotify on a device.")
        device = next((d for d in devices if d.is_active), None)
        if device is None:
            device = next((d for d in devices if not d.is_restricted), None)
            if device is None:
                raise NoDeviceFound("All Spotify devices are restricted")
            logger.info("No active device, transferring playback to %s", device.name)
            await self._request(
                "transfer_playback",
                lambda sp: sp.transfer_playback(device_id=device.id, force_play=False),
                mutation=True,
            )
            # Playing right after a transfer is often rejected; let the device settle.
            await self._sleep(self._settle_delay_sec)
        await self._request(
            "start_playback",
            lambda sp: sp.start_playback(device_id=device.id or None, uris=[uri]),
            mutation=True,
        )
        logger.info("Playing %s on %s", uri, device.name)

    async def pause(self) -> None:
        await self._request("pause_playback", lambda sp: sp.pause_playback(), mutation=True)

    async def resume(self) -> None:
        await self._request("start_playback", lambda sp: sp.start_playback(), mutation=True)

    async def skip_next(self) -> None:
        await self._request("next_track", lambda sp: sp.next_track(), mutation=True)

    async def skip_previous(self) -> None:
        await self._request("previous_track", lambda sp: sp.previous_track(), mutation=True)

    async def seek(self, position_ms: int) -> None:
        position_ms = max(0, int(position_ms))
        await self._request("seek_track", lambda sp: sp.seek_track(position_ms), mutation=True)

    async def set_volume(self, percent: int) -> None:
        percent = max(0, min(100, int(percent)))
        await self._request("volume", lambda sp: sp.volume(percent), mutation=True)

    async def get_current_state(self) -> Optional[PlaybackState]:
        pb = await self._request("current_playback", lambda sp: sp.current_playback())
        return playback_from_api(pb)

    # Library

    async def get_saved_tracks(self, limit: int, offset: int) -> dict:
        return await self._request(
            "current_user_saved_tracks",
            lambda sp: sp.current_user_saved_tracks(limit=limit, offset=offset),
        )

    async def get_recently_played(self, limit: int) -> dict:
        return await self._request(
            "current_user_recently_played",
            lambda sp: sp.current_user_recently_played(limit=limit),
        )

    async def get_top_tracks(self, limit: int, time_range: str = "medium_term") -> dict:
        return await self._request(
            "current_user_top_tracks",
            lambda sp: sp.current_user_top_tracks(limit=limit, time_range=time_range),
        )

    async def get_playlists(self, limit: int) -> dict:
        return await self._request(
            "current_user_playlists", lambda sp: sp.current_user_playlists(limit=limit)
        )

    async def get_playlist_tracks(self, playlist_id: str, limit: int) -> dict:
        return await self._request(
            "playlist_items",
            lambda sp: sp.playlist_items(playlist_id, limit=limit),
        )
