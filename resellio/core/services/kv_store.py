"""Session-scoped key-value storage for OAuth state, connections and calendar data."""

import json
import logging
import time
from typing import Any, Optional, Protocol

import redis.asyncio as redis_async
from redis.asyncio import Redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    """Minimal store contract; ``ttl`` is in seconds, ``None`` means no expiry."""

    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> bool: ...

    async def delete(self, key: str) -> bool: ...

    async def ping(self) -> bool: ...

    async def close(self) -> None: ...


async def get_json(store: KeyValueStore, key: str) -> Optional[Any]:
    """Read a JSON value; malformed data is treated as missing."""
    raw = await store.get(key)
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, TypeError) as e:
        logger.warning(f"Discarding malformed JSON under {key}: {e}")
        return None


async def set_json(
    store: KeyValueStore, key: str, value: Any, ttl: Optional[int] = None
) -> bool:
    return await store.set(key, json.dumps(value), ttl=ttl)


def scoped_key(prefix: str, session_id: str, name: str) -> str:
    return f"{prefix}:{session_id}:{name}"


class MemoryKeyValueStore:
    """In-process store used when Redis is not configured (single worker only)."""

    def __init__(self):
        self._data: dict[str, tuple[str, Optional[float]]] = {}

    async def get(self, key: str) -> Optional[str]:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and expires_at <= time.monotonic():
            self._data.pop(key, None)
            return None
        return value

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> bool:
        now = time.monotonic()
        self._purge_expired(now)
        expires_at = now + ttl if ttl else None
        self._data[key] = (value, expires_at)
        return True

    def _purge_expired(self, now: float) -> None:
        expired = [
            key
            for key, (_, expires_at) in self._data.items()
            if expires_at is not None and expires_at <= now
        ]
        for key in expired:
            del self._data[key]

    async def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        self._data.clear()


class RedisKeyValueStore:
    """Redis-backed store; Redis errors are logged and degrade to a miss."""

    def __init__(self, redis_url: str):
        """
        Initialize Redis store.

        Args:
            redis_url: Redis connection URL (e.g., redis://localhost:6379/0)
        """
        self.redis_url = redis_url.strip()
        self._client: Optional[Redis] = None

    async def connect(self) -> None:
        """Establish connection to Redis."""
        if self._client is None:
            try:
                self._client = await redis_async.from_url(
                    self.redis_url,
                    encoding="utf-8",
                    decode_responses=True,
                )
                await self._client.ping()
                logger.info("Redis connection established successfully")
            except RedisError as e:
                logger.error(f"Failed to connect to Redis: {e}")
                self._client = None
                raise

    async def close(self) -> None:
        """Close Redis connection."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("Redis connection closed")

    async def get_client(self) -> Redis:
        """Get Redis client, connecting if necessary."""
        if self._client is None:
            await self.connect()
        return self._client

    async def get(self, key: str) -> Optional[str]:
        try:
            client = await self.get_client()
            return await client.get(key)
        except RedisError as e:
            logger.warning(f"Redis error on get({key}): {e}")
            return None

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> bool:
        try:
            client = await self.get_client()
            await client.set(key, value, ex=ttl)
            return True
        except RedisError as e:
            logger.warning(f"Redis error on set({key}): {e}")
            return False

    async def delete(self, key: str) -> bool:
        try:
            client = await self.get_client()
            result = await client.delete(key)
            return result > 0
        except RedisError as e:
            logger.warning(f"Redis error on delete({key}): {e}")
            return False

    async def ping(self) -> bool:
        """Check if Redis is reachable."""
        try:
            client = await self.get_client()
            await client.ping()
            return True
        except RedisError:
            return False


def create_kv_store(redis_url: Optional[str]) -> KeyValueStore:
    if redis_url:
        return RedisKeyValueStore(redis_url)
    logger.warning("REDIS_URL not configured; using in-memory session store")
    return MemoryKeyValueStore()
