"""Rate-limit cool-down shared by every remote call and the poller."""
import logging
import time
from typing import Callable, Mapping, Optional

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class RateLimitState:
    """Tracks `blocked_until` on a monotonic clock."""

    def __init__(self, default_cooldown_sec: float = 30.0, clock: Clock = time.monotonic) -> None:
        self._default_cooldown_sec = default_cooldown_sec
        self._clock = clock
        self.blocked_until: float = 0.0

    def is_limited(self) -> bool:
        """True while we are inside the cool-down (no request should go out)."""
        return self._clock() < self.blocked_until

    def remaining(self) -> float:
        return max(0.0, self.blocked_until - self._clock())

    def block(self, retry_after: Optional[float] = None) -> float:
        """Start a cool-down of `retry_after` seconds (default if None). Returns its length."""
        cooldown = self._default_cooldown_sec if retry_after is None else max(0.0, retry_after)
        self.blocked_until = max(self.blocked_until, self._clock() + cooldown)
        logger.warning("Rate limited by Spotify, backing off for %.0fs", cooldown)
        return cooldown

    def reset(self) -> None:
        self.blocked_until = 0.0


def parse_retry_after(headers: Optional[Mapping[str, str]]) -> Optional[float]:
    """Read Retry-After (seconds) from response headers, or None if missing/invalid."""
    if not headers:
        return None
    value = None
    for key, val in headers.items():
        if key.lower() == "retry-after":
            value = val
            break
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None
