"""Inbound interface for the UI layer: connect, browse, play, and disconnect."""
import logging
from typing import List, Optional

from cadence import config
from cadence.core.auth_listener import LoopbackCallbackListener
from cadence.core.auth_session import AuthSession
from cadence.core.errors import CadenceError, NotAuthenticated
from cadence.core.events import ConnectionStatus, ConnectionStatusChanged, Event, EventBus, PlaybackStateUpdate
from cadence.core.library import LibraryLoader
from cadence.core.playback_context import PlaybackContext
from cadence.core.playback_poller import PlaybackPoller
from cadence.core.rate_limit import RateLimitState
from cadence.core.session import SessionManager
from cadence.core.spotify_api import build_oauth, make_spotify_client
from cadence.core.spotify_client import RemoteControlFacade
from cadence.core.store import JsonStore
from cadence.core.token_guardian import TokenGuardian
from cadence.models.navigation import BrowsingView
from cadence.models.playback import Device
from cadence.models.session import UserProfile
from cadence.models.track import CollectionKind

logger = logging.getLogger(__name__)

LAST_VOLUME_KEY = "last_volume"
LAST_CATEGORY_KEY = "last_category"


class MusicController:
    def __init__(
        self,
        *,
        sessions: SessionManager,
        auth: AuthSession,
        guardian: TokenGuardian,
        remote: RemoteControlFacade,
        context: PlaybackContext,
        poller: PlaybackPoller,
        library_loader: LibraryLoader,
        events: EventBus,
        settings: JsonStore,
    ) -> None:
        self.sessions = sessions
        self.auth = auth
        self.guardian = guardian
        self.remote = remote
        self.context = context
        self.poller = poller
        self.library_loader = library_loader
        self.events = events
        self.settings = settings
        self._status = ConnectionStatus.DISCONNECTED
        self.poller.on_session_lost = self._on_session_lost
        self.events.subscribe(self._remember_volume)

    @classmethod
    def from_config(cls) -> "MusicController":
        """Build the full object graph from cadence.config."""
        events = EventBus()
        sessions = SessionManager(JsonStore(config.SESSION_STORE_PATH, secret=True))
        rate_limit = RateLimitState(config.RATE_LIMIT_COOLDOWN_SEC)
        guardian = TokenGuardian(sessions, build_oauth, make_spotify_client)
        remote = RemoteControlFacade(guardian, rate_limit, settle_delay_sec=config.DEVICE_SETTLE_DELAY_SEC)
        context = PlaybackContext(remote, events)
        auth = AuthSession(
            sessions,
            build_oauth,
            LoopbackCallbackListener,
            make_spotify_client,
            is_configured=config.is_spotify_configured,
            timeout_sec=config.AUTH_TIMEOUT_SEC,
        )
        poller = PlaybackPoller(remote, context, rate_limit, events, interval_sec=config.POLL_INTERVAL_SEC)
        return cls(
            sessions=sessions,
            auth=auth,
            guardian=guardian,
            remote=remote,
            context=context,
            poller=poller,
            library_loader=LibraryLoader(remote),
            events=events,
            settings=JsonStore(config.SETTINGS_PATH),
        )

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @property
    def user(self) -> Optional[UserProfile]:
        return self.sessions.user

    @property
    def last_volume(self) -> Optional[int]:
        return self.settings.get(LAST_VOLUME_KEY)

    @property
    def last_category(self) -> Optional[CollectionKind]:
        value = self.settings.get(LAST_CATEGORY_KEY)
        try:
            return CollectionKind(value) if value else None
        except ValueError:
            return None

    def _set_status(self, status: ConnectionStatus) -> None:
        if status is self._status:
            return
        self._status = status
        logger.info("Spotify connection: %s", status.value)
        self.events.emit(ConnectionStatusChanged(status))

    def _remember_volume(self, event: Event) -> None:
        if isinstance(event, PlaybackStateUpdate) and event.volume_percent is not None:
            if event.volume_percent != self.settings.get(LAST_VOLUME_KEY):
                self.settings.set(LAST_VOLUME_KEY, event.volume_percent)

    def _require_auth(self) -> None:
        if not self.sessions.is_authenticated:
            raise NotAuthenticated()

    # Connection

    async def restore(self) -> bool:
        """Startup: reuse stored tokens if they still work."""
        if not self.sessions.load():
            self._set_status(ConnectionStatus.DISCONNECTED)
            return False
        self._set_status(ConnectionStatus.CONNECTING)
        if not await self.guardian.validate():
            self._set_status(ConnectionStatus.DISCONNECTED)
            return False
        await self._on_authenticated()
        return True

    async def connect(self) -> bool:
        self._set_status(ConnectionStatus.CONNECTING)
        try:
            ok = await self.auth.initiate_auth()
        except (CadenceError, OSError):
            self._set_status(ConnectionStatus.ERROR)
            raise
        if not ok:
            # A disconnect while waiting already set the final status.
            if self._status is ConnectionStatus.CONNECTING:
                self._set_status(ConnectionStatus.ERROR)
            return False
        await self._on_authenticated()
        return True

    async def _on_authenticated(self) -> None:
        await self.refresh_library()
        self.context.reset_view()
        self.poller.start()
        self._set_status(ConnectionStatus.CONNECTED)

    async def disconnect(self) -> None:
        """Stop polling, cancel timers, close any auth listener, clear the session. Idempotent."""
        await self.poller.stop()
        self.context.end_timer.cancel()
        await self.auth.close_listener()
        await self.sessions.clear()
        self.context.reset()
        self._set_status(ConnectionStatus.DISCONNECTED)

    async def shutdown(self) -> None:
        """Process exit: stop background work but keep the stored session."""
        await self.poller.stop()
        self.context.end_timer.cancel()
        await self.auth.close_listener()

    def _on_session_lost(self) -> None:
        self.context.reset()
        self._set_status(ConnectionStatus.DISCONNECTED)

    # Library and browsing

    async def refresh_library(self) -> None:
        self._require_auth()
        self.context.set_library(await self.library_loader.load())

    def navigate(self, view: BrowsingView) -> None:
        self.context.navigate(view)

    def select_category(self, kind: CollectionKind) -> None:
        self.context.select_category(kind)
        if kind is not CollectionKind.PLAYLIST:
            self.settings.set(LAST_CATEGORY_KEY, kind.value)

    def select_playlist(self, playlist_id: str) -> None:
        self.context.select_playlist(playlist_id)

    def go_back(self) -> None:
        self.context.go_back()

    def leave(self) -> None:
        """User left the music feature."""
        self.context.reset_view()

    # Playback

    async def play_track_at_index(self, index: int) -> None:
        self._require_auth()
        await self.context.play_track_at_index(index)

    async def toggle_playback(self) -> None:
        self._require_auth()
        await self.context.toggle_playback()

    async def next_track(self) -> None:
        self._require_auth()
        await self.context.next_track()

    async def previous_track(self) -> None:
        self._require_auth()
        await self.context.previous_track()

    async def seek_to_position(self, percent: float) -> None:
        self._require_auth()
        await self.context.seek_to_position(percent)

    async def set_volume(self, percent: int) -> None:
        self._require_auth()
        await self.context.set_volume(percent)

    async def get_devices(self) -> List[Device]:
        self._require_auth()
        return await self.remote.get_devices()
