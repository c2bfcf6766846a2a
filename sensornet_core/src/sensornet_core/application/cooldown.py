import logging
import threading
from datetime import datetime, timedelta
from typing import Dict

from sensornet_core.domain.ports import Clock, utc_now

log = logging.getLogger(__name__)


class CooldownTracker:
    """Remembers when an alert last fired per key, for the life of the process.

    ``check`` and ``record`` are separate calls; callers that do I/O between
    them may let two alerts for the same key through. That window is bounded
    by the cooldown itself and is accepted.
    """

    def __init__(self, window: timedelta = timedelta(seconds=60), clock: Clock = utc_now):
        self.window = window
        self._clock = clock
        self._last_fired: Dict[str, datetime] = {}
        self._lock = threading.Lock()

    def check(self, key: str) -> bool:
        """Return True while ``key`` is still cooling down."""
        with self._lock:
            last = self._last_fired.get(key)
        if last is None:
            return False
        return self._clock() - last < self.window

    def record(self, key: str) -> None:
        with self._lock:
            self._last_fired[key] = self._clock()

    def sweep(self) -> int:
        """Drop entries older than the window. Returns how many were dropped."""
        now = self._clock()
        with self._lock:
            expired = [key for key, last in self._last_fired.items() if now - last > self.window]
            for key in expired:
                del self._last_fired[key]
        if expired:
            log.debug("Swept %d expired alert cooldowns", len(expired))
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._last_fired)
