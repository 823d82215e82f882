"""
Keepalive tracking for game sessions

The host records a keepalive for a session name every time the game
server pings that session. A session is healthy (200) while its last
keepalive is at most ``timeout`` seconds old and unhealthy (404) after.
"""

import threading
import time
from typing import Callable, Dict, Optional


STATUS_OK = 200
STATUS_BAD_REQUEST = 400
STATUS_NOT_FOUND = 404

DEFAULT_KEEPALIVE_TIMEOUT = 15.0


class KeepaliveMonitor:
    """Thread-safe map of session name to last keepalive time"""

    def __init__(self, timeout: float = DEFAULT_KEEPALIVE_TIMEOUT,
                 clock: Callable[[], float] = time.monotonic):
        self.timeout = timeout
        self._clock = clock
        self._lock = threading.Lock()
        self._last_seen: Dict[str, float] = {}

    def record(self, name: str) -> None:
        with self._lock:
            self._last_seen[name] = self._clock()

    def forget(self, name: str) -> None:
        with self._lock:
            self._last_seen.pop(name, None)

    def status(self, name: str) -> Optional[int]:
        """Status code for a session, or None if it never sent a keepalive"""
        with self._lock:
            last_seen = self._last_seen.get(name)
        if last_seen is None:
            return None
        if self._clock() - last_seen > self.timeout:
            return STATUS_NOT_FOUND
        return STATUS_OK

    def snapshot(self) -> Dict[str, int]:
        with self._lock:
            names = list(self._last_seen)
        return {name: self.status(name) for name in names}

    def status_for_request(self, method: str, path: str) -> int:
        """
        Map one HTTP request to a status code.

        Only GET and HEAD are served. ``/health`` is always 200,
        ``/status/<name>`` reports the session, anything else is 400.
        """
        if method.upper() not in ('GET', 'HEAD'):
            return STATUS_BAD_REQUEST

        path = path.strip().rstrip('/')
        if path == '/health':
            return STATUS_OK
        if not path.startswith('/status/'):
            return STATUS_BAD_REQUEST

        status = self.status(path[len('/status/'):])
        return status if status is not None else STATUS_NOT_FOUND
