"""Shared rate limiter instance and the login attempt tracker."""

import threading
import time
from typing import Callable, Dict, List

from slowapi import Limiter
from slowapi.util import get_remote_address

from canteen.core.config import settings

limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)


class LoginAttemptTracker:
    """Process-wide expiring counter of authentication attempts per identifier.

    ``check_and_record`` both answers whether another attempt is allowed and
    records it. Entries older than the window are evicted on every call, so
    the map only holds identifiers seen within the last window.
    """

    def __init__(
        self,
        max_attempts: int,
        window_seconds: int,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self._clock = clock
        self._attempts: Dict[str, List[float]] = {}
        self._lock = threading.Lock()

    def _evict(self, now: float) -> None:
        cutoff = now - self.window_seconds
        for key in list(self._attempts):
            recent = [t for t in self._attempts[key] if t > cutoff]
            if recent:
                self._attempts[key] = recent
            else:
                del self._attempts[key]

    def check_and_record(self, identifier: str) -> bool:
        now = self._clock()
        with self._lock:
            self._evict(now)
            attempts = self._attempts.setdefault(identifier, [])
            if len(attempts) >= self.max_attempts:
                return False
            attempts.append(now)
            return True

    def clear(self, identifier: str) -> None:
        with self._lock:
            self._attempts.pop(identifier, None)

    def reset(self) -> None:
        with self._lock:
            self._attempts.clear()


login_attempts = LoginAttemptTracker(
    max_attempts=settings.login_max_attempts,
    window_seconds=settings.login_window_seconds,
)
