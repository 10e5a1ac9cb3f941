"""Preference cache — time-boxed cache of profile snapshots.

Entries expire after ``ttl`` seconds and are dropped explicitly whenever a
profile is written. The cache is handed to the engine at construction time;
nothing reads it as ambient state.
"""

import threading
import time

import structlog

logger = structlog.get_logger(__name__)

_MISSING = object()


class PreferenceCache:
    """Thread-safe TTL cache of ``PreferenceSnapshot`` values keyed by user id.

    A cached ``None`` means "user has no profile" and is cached like any
    other value, so users without a profile do not hit the repository on
    every event.
    """

    def __init__(self, ttl: float = 60.0, clock=time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[str, tuple[float, object]] = {}
        # Bumped on every invalidation; a load that overlaps one is not stored
        self._generations: dict[str, int] = {}
        self._epoch = 0
        self._lock = threading.Lock()

    def get(self, user_id: str, loader):
        """Return the cached snapshot for ``user_id``, loading it on a miss."""
        now = self._clock()
        with self._lock:
            expires_at, value = self._entries.get(user_id, (0.0, _MISSING))
            if value is not _MISSING and expires_at > now:
                return value
            generation = self._generation(user_id)

        value = loader(user_id)
        if self.ttl > 0:
            with self._lock:
                if self._generation(user_id) == generation:
                    self._entries[user_id] = (now + self.ttl, value)
                else:
                    logger.debug("Stale preference load discarded", user_id=user_id)
        return value

    def invalidate(self, user_id: str) -> None:
        with self._lock:
            self._entries.pop(user_id, None)
            self._generations[user_id] = self._generations.get(user_id, 0) + 1
        logger.debug("Preference cache invalidated", user_id=user_id)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._epoch += 1

    def _generation(self, user_id):
        return self._epoch, self._generations.get(user_id, 0)

    def __len__(self):
        with self._lock:
            return len(self._entries)
