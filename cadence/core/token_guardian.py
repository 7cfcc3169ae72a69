"""Token health: retry-once-on-401 around remote calls and single-flight refresh."""
import asyncio
import logging
from typing import Any, Callable, Optional, TypeVar

import requests
from spotipy.exceptions import SpotifyException
from spotipy.oauth2 import SpotifyOAuth, SpotifyOauthError

from cadence.core.errors import RefreshFailed
from cadence.core.session import SessionManager
from cadence.core.spotify_api import ClientFactory

logger = logging.getLogger(__name__)

T = TypeVar("T")
Operation = Callable[[Any], T]


def _is_unauthorized(exc: SpotifyException) -> bool:
    return exc.http_status == 401


class TokenGuardian:
    """Wraps authenticated calls.

    A call that gets 401 triggers exactly one refresh and one retry. A second 401
    after a successful refresh is terminal: the session is demoted and
    RefreshFailed is raised. Other errors propagate untouched for the facade to
    translate.
    """

    def __init__(
        self,
        sessions: SessionManager,
        oauth_factory: Callable[[], SpotifyOAuth],
        client_factory: ClientFactory,
    ) -> None:
        self._sessions = sessions
        self._oauth_factory = oauth_factory
        self._oauth: Optional[SpotifyOAuth] = None
        self._client_factory = client_factory
        self._refresh_task: Optional[asyncio.Task] = None

    @property
    def refresh_in_flight(self) -> bool:
        return self._refresh_task is not None

    async def call(self, operation: Operation) -> T:
        """Run `operation(client)` in a worker thread with the current access token."""
        token = self._sessions.access_token()
        try:
            return await asyncio.to_thread(operation, self._client_factory(token))
        except SpotifyException as e:
            if not _is_unauthorized(e):
                raise
            logger.info("Access token rejected (401), refreshing")

        current = self._sessions.access_token()
        if current != token:
            # Refreshed by another caller while this request was out.
            token = current
        else:
            token = await self.refresh()
        try:
            return await asyncio.to_thread(operation, self._client_factory(token))
        except SpotifyException as e:
            if not _is_unauthorized(e):
                raise
            await self._sessions.demote("401 after refresh")
            raise RefreshFailed("Spotify rejected the refreshed token") from e

    async def validate(self) -> bool:
        """Probe the session with one lightweight call. Returns whether it is still authenticated."""
        if not self._sessions.is_authenticated:
            return False
        try:
            await self.call(lambda sp: sp.current_user())
        except RefreshFailed:
            return False
        except (SpotifyException, requests.RequestException) as e:
            # Not a token problem; keep the session and let later calls decide.
            logger.warning("Token validation inconclusive: %s", e)
        return self._sessions.is_authenticated

    async def refresh(self) -> str:
        """Refresh the access token. Concurrent callers share one in-flight refresh."""
        if self._refresh_task is None:
            self._refresh_task = asyncio.ensure_future(self._do_refresh())
        return await asyncio.shield(self._refresh_task)

    async def _do_refresh(self) -> str:
        try:
            session = self._sessions.session
            generation = self._sessions.generation
            if not session.refresh_token:
                await self._sessions.demote("no refresh token")
                raise RefreshFailed("No refresh token stored")
            if self._oauth is None:
                self._oauth = self._oauth_factory()
            try:
                token_info = await asyncio.to_thread(
                    self._oauth.refresh_access_token, session.refresh_token
                )
            except (SpotifyOauthError, SpotifyException, requests.RequestException) as e:
                await self._sessions.demote(f"refresh failed: {e}")
                raise RefreshFailed() from e
            access_token = token_info["access_token"]
            rotated = token_info.get("refresh_token")
            if rotated == session.refresh_token:
                rotated = None
            if not await self._sessions.update_tokens(access_token, rotated, generation=generation):
                raise RefreshFailed("Session was closed while refreshing")
            logger.info("Spotify access token refreshed")
            return access_token
        finally:
            self._refresh_task = None
