"""
Per-origin rate limiting for payment proof submissions.

The API depends on the ``RateLimiter`` interface, not on this in-memory
implementation, so a shared store (e.g. Redis) can replace it when the
service runs on more than one process.
"""

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Protocol

from v4ult.config import settings


@dataclass(frozen=True)
class RateDecision:
    allowed: bool
    retry_after: int = 0  # Seconds, rounded up


class RateLimiter(Protocol):
    def hit(self, key: str) -> RateDecision:
        """Record a request for ``key`` if it is allowed."""
        ...

    def release(self, key: str) -> None:
        """Forget the last recorded request for ``key``."""
        ...


class CooldownRateLimiter:
    """
    Allows one request per key every ``cooldown_seconds``.

    Rejected requests leave the stored timestamp untouched, so retrying early
    does not push the window further out.
    """

    def __init__(
        self,
        cooldown_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.cooldown = settings.payment_cooldown_seconds if cooldown_seconds is None else cooldown_seconds
        self._clock = clock
        self._last_seen: Dict[str, float] = {}
        self._lock = threading.Lock()

    def _clean_expired(self, now: float):
        expired = [k for k, ts in self._last_seen.items() if now - ts >= self.cooldown]
        for k in expired:
            del self._last_seen[k]

    def hit(self, key: str) -> RateDecision:
        with self._lock:
            now = self._clock()
            self._clean_expired(now)

            last = self._last_seen.get(key)
            if last is not None:
                return RateDecision(
                    allowed=False,
                    retry_after=max(1, math.ceil(self.cooldown - (now - last))),
                )

            self._last_seen[key] = now
            return RateDecision(allowed=True)

    def release(self, key: str) -> None:
        """Undo an allowed hit whose request was then rejected as invalid."""
        with self._lock:
            self._last_seen.pop(key, None)

    def get_stats(self) -> Dict[str, int]:
        return {"tracked_origins": len(self._last_seen)}
