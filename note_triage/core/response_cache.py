import logging
import threading
import time
from collections import OrderedDict
from typing import Any, Callable, Optional, Tuple

logger = logging.getLogger("ResponseCache")

DEFAULT_MAX_ENTRIES = 5000
DEFAULT_TTL_SECONDS = 7 * 24 * 3600


class ResponseCache:
    """
    In-memory, time-expiring store of classification results.

    Eviction is by insertion order (FIFO): reads never refresh an entry, so
    the oldest stored result goes first once the cache is full. Nothing is
    persisted; the cache lives as long as the process.
    """

    def __init__(
        self,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._store: "OrderedDict[str, Tuple[float, Any]]" = OrderedDict()
        self._lock = threading.Lock()
        logger.info(f"Response cache initialized (max_entries={max_entries}, ttl={ttl_seconds}s)")

    def get(self, key: str) -> Optional[Any]:
        """
        Returns the cached value, or None on a miss or an expired entry.
        """
        entry = self._store.get(key)
        if entry is None:
            return None

        stored_at, value = entry
        if self._clock() - stored_at > self.ttl_seconds:
            with self._lock:
                # Another thread may have replaced the entry meanwhile
                if self._store.get(key) is entry:
                    del self._store[key]
            logger.debug(f"Cache entry {key[:12]} expired.")
            return None

        logger.debug(f"Cache hit for {key[:12]}.")
        return value

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            # Re-storing a key counts as a fresh insertion
            self._store.pop(key, None)
            while len(self._store) >= self.max_entries:
                evicted, _ = self._store.popitem(last=False)
                logger.debug(f"Cache full; evicted oldest entry {evicted[:12]}.")
            self._store[key] = (self._clock(), value)

    def clear(self) -> None:
        with self._lock:
            self._store.clear()

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, key: object) -> bool:
        return key in self._store
