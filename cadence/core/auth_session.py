"""Spotify OAuth authorization-code flow through a loopback callback listener."""
import asyncio
import logging
import secrets
import webbrowser
from functools import partial
from typing import Callable, Dict, Optional, Tuple

import requests
from spotipy.exceptions import SpotifyException
from spotipy.oauth2 import SpotifyOAuth, SpotifyOauthError

from cadence.config import AUTH_TIMEOUT_SEC
from cadence.core.auth_listener import AuthCallbackListener
from cadence.core.errors import AuthExchangeFailed, NotConfigured
from cadence.core.session import SessionManager
from cadence.core.spotify_api import ClientFactory
from cadence.models.session import UserProfile

logger = logging.getLogger(__name__)

SUCCESS_PAGE = "<body><h1>Success!</h1><p>Spotify linked. You can close this window.</p></body>"
FAILURE_PAGE = "<body><h1>Authentication failed</h1><p>You can close this window and try again.</p></body>"
MISSING_CODE_PAGE = "<body><p>Missing authorization code. Try logging in again.</p></body>"
STALE_PAGE = "<body><p>This login link has expired. Start the connection again.</p></body>"


def profile_from_api(me: dict) -> UserProfile:
    images = me.get("images") or []
    return UserProfile(
        id=me["id"],
        display_name=me.get("display_name") or me["id"],
        email=me.get("email") or "",
        is_premium=me.get("product") == "premium",
        image_url=images[0]["url"] if images else None,
    )


class AuthSession:
    """Runs one authorization attempt at a time.

    `initiate_auth()` resolves True once tokens and profile are stored, False on
    a denied or timed-out attempt, and raises AuthExchangeFailed when the code
    exchange itself fails. The listener is closed on every path.
    """

    def __init__(
        self,
        sessions: SessionManager,
        oauth_factory: Callable[[], SpotifyOAuth],
        listener_factory: Callable[[], AuthCallbackListener],
        client_factory: ClientFactory,
        *,
        is_configured: Callable[[], bool],
        open_url: Callable[[str], object] = webbrowser.open,
        timeout_sec: float = AUTH_TIMEOUT_SEC,
    ) -> None:
        self._sessions = sessions
        self._oauth_factory = oauth_factory
        self._listener_factory = listener_factory
        self._client_factory = client_factory
        self._is_configured = is_configured
        self._open_url = open_url
        self._timeout_sec = timeout_sec
        self._listener: Optional[AuthCallbackListener] = None
        self._pending: Optional[asyncio.Future] = None

    @property
    def in_progress(self) -> bool:
        return self._pending is not None and not self._pending.done()

    async def initiate_auth(self) -> bool:
        if not self._is_configured():
            raise NotConfigured()
        await self.cancel()

        oauth = self._oauth_factory()
        state = secrets.token_urlsafe(16)
        auth_url = oauth.get_authorize_url(state=state)

        loop = asyncio.get_running_loop()
        pending: asyncio.Future = loop.create_future()
        listener = self._listener_factory()
        self._pending = pending
        self._listener = listener
        try:
            await listener.start(partial(self._handle_callback, oauth, pending, state))
            logger.info("Opening Spotify authorization page")
            self._open_url(auth_url)
            return await asyncio.wait_for(pending, timeout=self._timeout_sec)
        except asyncio.TimeoutError:
            logger.warning("No Spotify callback within %.0fs, giving up", self._timeout_sec)
            return False
        finally:
            await listener.close()
            if self._listener is listener:
                self._listener = None
            if self._pending is pending:
                self._pending = None

    async def cancel(self) -> None:
        """Resolve any pending attempt as failed and close its listener. Idempotent."""
        pending, listener = self._pending, self._listener
        self._pending = None
        self._listener = None
        if pending is not None and not pending.done():
            logger.info("Replacing pending Spotify authorization attempt")
            pending.set_result(False)
        if listener is not None:
            await listener.close()

    async def close_listener(self) -> None:
        await self.cancel()

    async def _handle_callback(
        self,
        oauth: SpotifyOAuth,
        pending: asyncio.Future,
        expected_state: str,
        params: Dict[str, str],
    ) -> Tuple[int, str]:
        if pending.done():
            return 410, STALE_PAGE
        error = params.get("error")
        if error:
            logger.warning("Spotify authorization denied: %s", error)
            pending.set_result(False)
            return 400, FAILURE_PAGE
        code = params.get("code")
        if not code:
            return 400, MISSING_CODE_PAGE
        if params.get("state") != expected_state:
            logger.warning("Spotify callback state mismatch, rejecting")
            pending.set_result(False)
            return 400, FAILURE_PAGE

        try:
            token_info = await asyncio.to_thread(oauth.get_access_token, code, check_cache=False)
            access_token = token_info["access_token"]
            refresh_token = token_info["refresh_token"]
            client = self._client_factory(access_token)
            me = await asyncio.to_thread(client.current_user)
            user = profile_from_api(me)
        except (SpotifyOauthError, SpotifyException, requests.RequestException, KeyError) as e:
            logger.warning("Spotify code exchange failed: %s", e)
            if not pending.done():
                pending.set_exception(AuthExchangeFailed(str(e) or AuthExchangeFailed.__doc__))
            return 500, FAILURE_PAGE

        if pending.done():
            # Timed out or replaced while exchanging; do not store a session nobody waits for.
            return 410, STALE_PAGE
        await self._sessions.establish(access_token, refresh_token, user)
        logger.info("Connected to Spotify as %s", user.display_name)
        pending.set_result(True)
        return 200, SUCCESS_PAGE
