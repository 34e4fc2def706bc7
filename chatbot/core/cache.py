from __future__ import annotations

import threading
import time
from typing import Any, Callable, Dict, Generic, Optional, Tuple, TypeVar


V = TypeVar("V")


class TTLCache(Generic[V]):
    """In-memory cache with per-entry expiry, safe for concurrent sessions."""

    def __init__(
        self,
        ttl_seconds: float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, Tuple[V, float]] = {}
        self._lock = threading.Lock()

    def put(self, key: str, value: V, ttl: Optional[float] = None) -> None:
        """Set a value with the default TTL unless ``ttl`` is given."""
        expires_at = self._clock() + (self.ttl_seconds if ttl is None else ttl)
        with self._lock:
            self._entries[key] = (value, expires_at)

    def get(self, key: str) -> Optional[V]:
        """Get a value if present and not expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def expire(self, key: str) -> bool:
        """Drop a key; returns whether it was present."""
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear_expired(self) -> int:
        with self._lock:
            now = self._clock()
            expired = [key for key, (_, expires_at) in self._entries.items() if now >= expires_at]
            for key in expired:
                del self._entries[key]
            return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            now = self._clock()
            active = sum(1 for _, expires_at in self._entries.values() if now < expires_at)
            return {
                "total_keys": len(self._entries),
                "active_keys": active,
                "expired_keys": len(self._entries) - active,
            }
