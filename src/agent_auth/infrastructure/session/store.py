"""Session Storage

Purpose: Persist provider sessions with an explicit time-to-live

Two implementations share one contract:
- RedisSessionStore: redis.asyncio backend, shared between processes
- MemorySessionStore: in-process fallback for single-instance deployments

Both keep operation statistics that the recovery strategies read: failed
operations trigger storage cleanup, corrupted entries trigger data recovery.

Storage Schema:
- agent_auth:session:{key} -> {session_json}
"""

import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional, Tuple

from pydantic import BaseModel
from redis.asyncio import Redis

from agent_auth.domain.models.auth import utc_now

logger = logging.getLogger(__name__)


class SessionStoreStats(BaseModel):
    """Operation statistics"""
    reads: int = 0
    writes: int = 0
    failed_operations: int = 0
    corrupted_entries: int = 0


class SessionStore(ABC):
    """Key/value store for serialized sessions"""

    def __init__(self):
        self.stats = SessionStoreStats()

    @abstractmethod
    async def get(self, key: str) -> Optional[dict]:
        """Load a stored payload. Unparsable payloads count as corrupted and read as None."""

    @abstractmethod
    async def set(self, key: str, value: dict, ttl: timedelta) -> None:
        """Store a payload for ``ttl``."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        pass

    @abstractmethod
    async def ping(self) -> bool:
        """Check storage access."""

    @abstractmethod
    async def purge_expired(self) -> int:
        """Remove expired entries. Returns the number removed."""

    @abstractmethod
    async def discard_corrupted(self) -> int:
        """Remove entries that failed to parse. Returns the number removed."""

    async def clear_cache(self) -> int:
        """Drop in-process copies of stored entries. Returns the number dropped."""
        return 0

    def reset_stats(self) -> None:
        self.stats = SessionStoreStats()

    def _decode(self, key: str, raw) -> Optional[dict]:
        try:
            if isinstance(raw, bytes):
                raw = raw.decode("utf-8")
            value = json.loads(raw)
            if not isinstance(value, dict):
                raise ValueError("session payload is not an object")
            return value
        except (ValueError, UnicodeDecodeError) as e:
            self.stats.corrupted_entries += 1
            logger.warning(f"Corrupted session entry {key}: {e}")
            return None


class RedisSessionStore(SessionStore):
    """Redis-backed session store

    Redis is authoritative: every read goes to Redis and expiry is
    delegated to it (SETEX). Entries written by this process are kept as a
    last-known copy with their expiry instant; a copy is served only while
    Redis is unreachable and only until that instant.
    """

    def __init__(
        self,
        redis_client: Redis,
        key_prefix: str = "agent_auth:session:",
        clock: Callable[[], datetime] = utc_now,
    ):
        super().__init__()
        self.redis = redis_client
        self.key_pattern = key_prefix + "{}"
        self._clock = clock
        self._last_known: Dict[str, Tuple[dict, datetime]] = {}
        self._corrupted_keys: set[str] = set()

    async def get(self, key: str) -> Optional[dict]:
        self.stats.reads += 1
        try:
            raw = await self.redis.get(self.key_pattern.format(key))
        except Exception as e:
            self.stats.failed_operations += 1
            fallback = self._last_known_copy(key)
            if fallback is None:
                logger.error(f"Failed to read session {key}: {e}")
                raise
            logger.warning(f"Redis unreachable, serving last known copy of session {key}: {e}")
            return fallback

        if raw is None:
            self._last_known.pop(key, None)
            return None
        value = self._decode(key, raw)
        if value is None:
            self._corrupted_keys.add(key)
            self._last_known.pop(key, None)
        elif key in self._last_known:
            self._last_known[key] = (value, self._last_known[key][1])
        return value

    async def set(self, key: str, value: dict, ttl: timedelta) -> None:
        self.stats.writes += 1
        seconds = max(1, int(ttl.total_seconds()))
        try:
            await self.redis.setex(self.key_pattern.format(key), seconds, json.dumps(value))
        except Exception as e:
            self.stats.failed_operations += 1
            logger.error(f"Failed to store session {key}: {e}")
            raise
        self._last_known[key] = (value, self._clock() + timedelta(seconds=seconds))

    async def delete(self, key: str) -> None:
        self._last_known.pop(key, None)
        try:
            await self.redis.delete(self.key_pattern.format(key))
        except Exception as e:
            self.stats.failed_operations += 1
            logger.error(f"Failed to delete session {key}: {e}")
            raise

    async def ping(self) -> bool:
        try:
            await self.redis.ping()
            return True
        except Exception as e:
            logger.error(f"Session store ping failed: {e}")
            return False

    async def purge_expired(self) -> int:
        # Redis expires keys itself; only last-known copies can outlive their TTL
        now = self._clock()
        expired = [key for key, (_, expires_at) in self._last_known.items() if now >= expires_at]
        for key in expired:
            del self._last_known[key]
        self.stats.failed_operations = 0
        return len(expired)

    async def discard_corrupted(self) -> int:
        removed = 0
        for key in list(self._corrupted_keys):
            await self.redis.delete(self.key_pattern.format(key))
            self._corrupted_keys.discard(key)
            removed += 1
        self.stats.corrupted_entries = 0
        return removed

    async def clear_cache(self) -> int:
        dropped = len(self._last_known)
        self._last_known.clear()
        return dropped

    def _last_known_copy(self, key: str) -> Optional[dict]:
        entry = self._last_known.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._last_known[key]
            return None
        return value


class MemorySessionStore(SessionStore):
    """In-memory session store

    WARNING: Sessions are lost on restart and are not shared between
    processes. Use RedisSessionStore for anything beyond a single instance.
    """

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        super().__init__()
        self._clock = clock
        self._entries: Dict[str, Tuple[str, datetime]] = {}

    async def get(self, key: str) -> Optional[dict]:
        self.stats.reads += 1
        entry = self._entries.get(key)
        if entry is None:
            return None
        raw, expires_at = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return self._decode(key, raw)

    async def set(self, key: str, value: dict, ttl: timedelta) -> None:
        self.stats.writes += 1
        self._entries[key] = (json.dumps(value), self._clock() + ttl)

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def ping(self) -> bool:
        return True

    async def purge_expired(self) -> int:
        now = self._clock()
        expired = [key for key, (_, expires_at) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]
        self.stats.failed_operations = 0
        return len(expired)

    async def discard_corrupted(self) -> int:
        corrupted = []
        for key, (raw, _) in self._entries.items():
            try:
                if not isinstance(json.loads(raw), dict):
                    corrupted.append(key)
            except ValueError:
                corrupted.append(key)
        for key in corrupted:
            del self._entries[key]
        self.stats.corrupted_entries = 0
        return len(corrupted)

    def put_raw(self, key: str, raw: str, ttl: timedelta) -> None:
        """Store an unvalidated payload (used when importing sessions)."""
        self._entries[key] = (raw, self._clock() + ttl)
