"""Shared application state (injected into routes)."""
import asyncio
import logging
from typing import Optional

from fastapi import HTTPException

from cadence.core.controller import MusicController
from cadence.core.errors import (
    CadenceError,
    NoDeviceFound,
    NotAuthenticated,
    NotConfigured,
    PremiumRequired,
    RateLimited,
    RefreshFailed,
    TrackNotPlayable,
)

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR = [
    (NotConfigured, 503),
    (NotAuthenticated, 401),
    (RefreshFailed, 401),
    (NoDeviceFound, 409),
    (PremiumRequired, 403),
    (RateLimited, 429),
    (TrackNotPlayable, 422),
]


def http_error(e: CadenceError) -> HTTPException:
    """Map a CadenceError to an HTTPException with message and follow-up action."""
    status = 502
    for error_type, code in _STATUS_BY_ERROR:
        if isinstance(e, error_type):
            status = code
            break
    headers = None
    if isinstance(e, RateLimited):
        headers = {"Retry-After": str(int(e.retry_after) + 1)}
    return HTTPException(
        status_code=status,
        detail={"error": type(e).__name__, "message": e.message, "action": e.action},
        headers=headers,
    )


class AppState:
    def __init__(self, controller: Optional[MusicController] = None) -> None:
        self._controller = controller
        self.connect_task: Optional[asyncio.Task] = None

    @property
    def controller(self) -> MusicController:
        if self._controller is None:
            self._controller = MusicController.from_config()
        return self._controller

    def start_connect(self) -> bool:
        """Run connect() in the background. Returns False if an attempt is already running."""
        if self.connect_task is not None and not self.connect_task.done():
            return False
        self.connect_task = asyncio.create_task(self._connect())
        return True

    async def _connect(self) -> None:
        try:
            await self.controller.connect()
        except (CadenceError, OSError) as e:
            logger.warning("Spotify connect failed: %s", e)


_state = AppState()


def get_state() -> AppState:
    return _state
