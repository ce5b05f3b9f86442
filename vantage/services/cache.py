"""
Read-through cache with tag-based invalidation.

Readers call ``get_or_set`` with a key, the tags the value depends on and
a loader. Writers call ``invalidate`` with the tags their change touches.
The cache is an instance handed to callers, never a module global.
"""
import os
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, Iterable, Optional, Set

from vantage.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_TTL_SECONDS = int(os.getenv("CACHE_TTL_SECONDS", "300"))


@dataclass
class CacheEntry:
    value: Any
    tags: frozenset
    expires_at: Optional[float]


class TaggedCache:
    def __init__(self, ttl_seconds: Optional[int] = DEFAULT_TTL_SECONDS):
        self.ttl_seconds = ttl_seconds
        self._entries: Dict[Hashable, CacheEntry] = {}
        self._tag_index: Dict[str, Set[Hashable]] = {}
        self._lock = threading.Lock()

    def get(self, key: Hashable) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.expires_at is not None and entry.expires_at <= time.monotonic():
                self._drop(key)
                return None
            return entry.value

    def set(self, key: Hashable, value: Any, tags: Iterable[str] = ()) -> None:
        expires_at = time.monotonic() + self.ttl_seconds if self.ttl_seconds else None
        with self._lock:
            self._drop(key)
            entry = CacheEntry(value=value, tags=frozenset(tags), expires_at=expires_at)
            self._entries[key] = entry
            for tag in entry.tags:
                self._tag_index.setdefault(tag, set()).add(key)

    def get_or_set(self, key: Hashable, tags: Iterable[str], loader: Callable[[], Any]) -> Any:
        cached = self.get(key)
        if cached is not None:
            return cached
        value = loader()
        self.set(key, value, tags)
        return value

    def invalidate(self, *tags: str) -> int:
        """Drop every entry carrying any of ``tags``. Returns the number of entries removed."""
        removed = 0
        with self._lock:
            for tag in tags:
                for key in list(self._tag_index.get(tag, ())):
                    if self._drop(key):
                        removed += 1
        if removed:
            logger.debug(f"Invalidated {removed} cache entries for tags {tags}")
        return removed

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._tag_index.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def _drop(self, key: Hashable) -> bool:
        entry = self._entries.pop(key, None)
        if entry is None:
            return False
        for tag in entry.tags:
            keys = self._tag_index.get(tag)
            if keys is not None:
                keys.discard(key)
                if not keys:
                    del self._tag_index[tag]
        return True


def user_tag(user_id: int) -> str:
    return f"user-{user_id}"


def account_tag(account_id: int) -> str:
    return f"account-{account_id}"
