"""Process-local TTL cache for endpoint maps and GET responses."""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

MIN_TTL_MS = 1000


@dataclass(frozen=True, slots=True)
class CacheEntry:
    value: Any
    expires_at: float


class EphemeralCache:
    """String-keyed store whose entries expire after a per-entry TTL.

    TTLs are expressed in milliseconds. Values stored with a TTL below one
    second are dropped. Nothing survives the process.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str, default: Any = None) -> Any:
        """Return the fresh value under ``key``, else ``default``."""
        entry = self._entries.get(key)
        if entry is None:
            return default
        if entry.expires_at <= self._clock():
            self._entries.pop(key, None)
            logger.debug("Cache entry expired", extra={"cache_key": key})
            return default
        return entry.value

    def set(self, key: str, value: Any, ttl_ms: float) -> None:
        if ttl_ms < MIN_TTL_MS:
            return
        self._entries[key] = CacheEntry(value, self._clock() + ttl_ms / 1000.0)

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def delete_prefix(self, prefix: str) -> int:
        """Drop every entry whose key starts with ``prefix``; return the count."""
        doomed = [key for key in self._entries if key.startswith(prefix)]
        for key in doomed:
            del self._entries[key]
        return len(doomed)

    def reset(self) -> None:
        self._entries.clear()
