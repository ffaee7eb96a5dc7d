"""Per-owner recency index.

An ordered list of at most ``max_entries`` snippet ids per owner, most
recent first. The index is a cache: the snippet table is the source of
truth and the list can always be rebuilt from it (see
SnippetRepository.recent_ids). Eviction only drops ids from the list;
snippets themselves are untouched.

Every operation on one owner's list is atomic. The in-memory backend holds one
index-wide lock; the Redis backend runs each read-modify-write as a Lua
script, so concurrent touches from several processes cannot interleave.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from typing import Any

import redis

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 50


class RecencyIndex(ABC):
    """Narrow interface over an atomic ordered-list store keyed by owner."""

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self.max_entries = max_entries

    @abstractmethod
    def touch(self, owner_id: int, snippet_id: int) -> None:
        """Move *snippet_id* to the front, inserting it if absent; evict past the cap."""

    @abstractmethod
    def remove(self, owner_id: int, snippet_id: int) -> None:
        """Drop *snippet_id* from the owner's list (no-op if absent)."""

    @abstractmethod
    def list(self, owner_id: int) -> list[int]:
        """Return the owner's snippet ids, most recent first."""

    @abstractmethod
    def initialize(self, owner_id: int, ordered_ids: list[int]) -> bool:
        """Populate an empty list from durable storage, most recent first.

        Set-if-absent: returns False and changes nothing when the owner
        already has entries.
        """

    @abstractmethod
    def clear(self, owner_id: int) -> None:
        """Forget the owner's list entirely."""

    @abstractmethod
    def size(self, owner_id: int) -> int:
        """Number of ids currently held for the owner."""


class MemoryRecencyIndex(RecencyIndex):
    """Process-local backend. One lock guards every owner's list."""

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES) -> None:
        super().__init__(max_entries)
        self._lists: dict[int, list[int]] = {}
        self._lock = threading.Lock()

    def touch(self, owner_id: int, snippet_id: int) -> None:
        with self._lock:
            current = self._lists.get(owner_id, [])
            updated = [snippet_id] + [i for i in current if i != snippet_id]
            evicted = updated[self.max_entries :]
            self._lists[owner_id] = updated[: self.max_entries]
        if evicted:
            logger.debug("Evicted %d id(s) from recency index of owner %d", len(evicted), owner_id)

    def remove(self, owner_id: int, snippet_id: int) -> None:
        with self._lock:
            current = self._lists.get(owner_id)
            if not current:
                return
            remaining = [i for i in current if i != snippet_id]
            if remaining:
                self._lists[owner_id] = remaining
            else:
                del self._lists[owner_id]

    def list(self, owner_id: int) -> list[int]:
        with self._lock:
            return list(self._lists.get(owner_id, ()))

    def initialize(self, owner_id: int, ordered_ids: list[int]) -> bool:
        with self._lock:
            if self._lists.get(owner_id):
                return False
            deduped = list(dict.fromkeys(ordered_ids))[: self.max_entries]
            if deduped:
                self._lists[owner_id] = deduped
            return True

    def clear(self, owner_id: int) -> None:
        with self._lock:
            self._lists.pop(owner_id, None)

    def size(self, owner_id: int) -> int:
        with self._lock:
            return len(self._lists.get(owner_id, ()))


# KEYS[1] = list key, ARGV[1] = snippet id, ARGV[2] = cap
_TOUCH_LUA = """
redis.call('LREM', KEYS[1], 0, ARGV[1])
redis.call('LPUSH', KEYS[1], ARGV[1])
redis.call('LTRIM', KEYS[1], 0, tonumber(ARGV[2]) - 1)
return redis.call('LLEN', KEYS[1])
"""

# KEYS[1] = list key, ARGV[1] = cap, ARGV[2..] = ids most recent first
_INITIALIZE_LUA = """
if redis.call('EXISTS', KEYS[1]) == 1 then
  return 0
end
for i = 2, #ARGV do
  redis.call('RPUSH', KEYS[1], ARGV[i])
end
redis.call('LTRIM', KEYS[1], 0, tonumber(ARGV[1]) - 1)
return 1
"""


class RedisRecencyIndex(RecencyIndex):
    """Redis list backend; keys are ``{prefix}{owner}{suffix}``."""

    def __init__(
        self,
        client: Any,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        *,
        key_prefix: str = "user:",
        key_suffix: str = ":snippets:queue",
    ) -> None:
        super().__init__(max_entries)
        self._client = client
        self._key_prefix = key_prefix
        self._key_suffix = key_suffix
        self._touch = client.register_script(_TOUCH_LUA)
        self._initialize = client.register_script(_INITIALIZE_LUA)

    @classmethod
    def from_url(cls, url: str, max_entries: int = DEFAULT_MAX_ENTRIES, **kwargs: str) -> RedisRecencyIndex:
        return cls(redis.Redis.from_url(url), max_entries, **kwargs)

    def key(self, owner_id: int) -> str:
        return f"{self._key_prefix}{owner_id}{self._key_suffix}"

    def touch(self, owner_id: int, snippet_id: int) -> None:
        self._touch(keys=[self.key(owner_id)], args=[str(snippet_id), self.max_entries])
        logger.debug("Touched snippet %d in recency index of owner %d", snippet_id, owner_id)

    def remove(self, owner_id: int, snippet_id: int) -> None:
        self._client.lrem(self.key(owner_id), 0, str(snippet_id))

    def list(self, owner_id: int) -> list[int]:
        raw = self._client.lrange(self.key(owner_id), 0, self.max_entries - 1)
        return [int(v) for v in raw]

    def initialize(self, owner_id: int, ordered_ids: list[int]) -> bool:
        deduped = list(dict.fromkeys(ordered_ids))[: self.max_entries]
        if not deduped:
            return not self.size(owner_id)
        result = self._initialize(
            keys=[self.key(owner_id)],
            args=[self.max_entries, *(str(i) for i in deduped)],
        )
        return bool(result)

    def clear(self, owner_id: int) -> None:
        self._client.delete(self.key(owner_id))

    def size(self, owner_id: int) -> int:
        return int(self._client.llen(self.key(owner_id)))


def build_recency_index(
    backend: str = "memory",
    *,
    max_entries: int = DEFAULT_MAX_ENTRIES,
    redis_url: str | None = None,
    key_prefix: str = "user:",
    key_suffix: str = ":snippets:queue",
) -> RecencyIndex:
    """Create the configured backend (``memory`` or ``redis``)."""
    if backend == "memory":
        return MemoryRecencyIndex(max_entries)
    if backend == "redis":
        if not redis_url:
            raise ValueError("redis backend requires a redis_url")
        return RedisRecencyIndex.from_url(
            redis_url, max_entries, key_prefix=key_prefix, key_suffix=key_suffix
        )
    raise ValueError(f"Unknown recency backend: {backend!r}")
