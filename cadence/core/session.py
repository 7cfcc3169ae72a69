"""Session record shared by AuthSession, TokenGuardian and disconnect.

All writes go through one asyncio.Lock. Every clear/demote bumps a generation
counter; token updates computed against an older generation are dropped so a
refresh finishing after a disconnect cannot bring the cleared session back.
"""
import asyncio
import logging
from typing import Optional

from cadence.core.errors import NotAuthenticated
from cadence.core.store import JsonStore
from cadence.models.session import Session, UserProfile

logger = logging.getLogger(__name__)

ACCESS_TOKEN_KEY = "access_token"
REFRESH_TOKEN_KEY = "refresh_token"
USER_KEY = "user"


class SessionManager:
    def __init__(self, store: JsonStore) -> None:
        self._store = store
        self._session = Session()
        self._lock = asyncio.Lock()
        self._generation = 0

    @property
    def session(self) -> Session:
        return self._session

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def is_authenticated(self) -> bool:
        return self._session.is_authenticated

    @property
    def user(self) -> Optional[UserProfile]:
        return self._session.user

    def access_token(self) -> str:
        """Current access token, or NotAuthenticated."""
        if not self._session.is_authenticated or not self._session.access_token:
            raise NotAuthenticated()
        return self._session.access_token

    def load(self) -> bool:
        """Restore tokens from the store. Returns True if a session was found."""
        access = self._store.get(ACCESS_TOKEN_KEY)
        refresh = self._store.get(REFRESH_TOKEN_KEY)
        if not access or not refresh:
            return False
        user_data = self._store.get(USER_KEY)
        user = None
        if isinstance(user_data, dict):
            try:
                user = UserProfile.from_dict(user_data)
            except KeyError:
                logger.warning("Stored user profile is incomplete, ignoring it")
        self._session = Session(
            access_token=access, refresh_token=refresh, user=user, is_authenticated=True
        )
        logger.info("Restored Spotify session for %s", user.display_name if user else "unknown user")
        return True

    async def establish(self, access_token: str, refresh_token: str, user: UserProfile) -> None:
        """Store a fresh session from a code exchange (tokens and profile in one write)."""
        async with self._lock:
            self._store.update(
                {
                    ACCESS_TOKEN_KEY: access_token,
                    REFRESH_TOKEN_KEY: refresh_token,
                    USER_KEY: user.to_dict(),
                }
            )
            self._generation += 1
            self._session = Session(
                access_token=access_token,
                refresh_token=refresh_token,
                user=user,
                is_authenticated=True,
            )

    async def update_tokens(
        self, access_token: str, refresh_token: Optional[str], *, generation: int
    ) -> bool:
        """Apply refreshed tokens unless the session changed since `generation`."""
        async with self._lock:
            if generation != self._generation or not self._session.is_authenticated:
                logger.info("Dropping refreshed token: session changed while refreshing")
                return False
            values = {ACCESS_TOKEN_KEY: access_token}
            if refresh_token:
                values[REFRESH_TOKEN_KEY] = refresh_token
            self._store.update(values)
            self._session.access_token = access_token
            if refresh_token:
                self._session.refresh_token = refresh_token
            return True

    async def demote(self, reason: str = "") -> None:
        """Drop the tokens and mark the session unauthenticated."""
        async with self._lock:
            self._clear_locked()
        logger.warning("Spotify session demoted%s", f": {reason}" if reason else "")

    async def clear(self) -> None:
        """Disconnect. Idempotent."""
        async with self._lock:
            self._clear_locked()

    def _clear_locked(self) -> None:
        self._store.delete(ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY, USER_KEY)
        self._generation += 1
        self._session = Session()
