"""
HarrierSessions - Redis backend for distributed session storage.

Production store shared by every worker process:
- Connection pool via redis-py asyncio client
- One key per session, expiring with the inactivity timeout
- Pluggable serializer (JSON, or Fernet for encryption at rest)
- Connection errors surfaced as SessionStoreUnavailableFault
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping, Optional

from .faults import (
    SessionEncodingFault,
    SessionStoreCorruptedFault,
    SessionStoreUnavailableFault,
)
from .serializers import JsonSessionSerializer, SessionSerializer

logger = logging.getLogger("harrier.sessions.redis")


class RedisStore:
    """
    Redis-backed session store.

    Every save rewrites the whole payload and resets the key's expiry, so
    active sessions stay alive and abandoned ones expire on their own.

    Retrying is left to redis-py (``retry_on_timeout``); this store does
    not retry on its own.

    Example:
        >>> store = RedisStore(url="redis://localhost:6379/0", ttl=900)
        >>> await store.initialize()
        >>> await store.save(session_id, {"user_id": 42})
    """

    name = "redis"

    __slots__ = (
        "_url",
        "_max_connections",
        "_socket_timeout",
        "_connect_timeout",
        "_retry_on_timeout",
        "_key_prefix",
        "_ttl",
        "_serializer",
        "_redis",
        "_init_lock",
    )

    def __init__(
        self,
        url: str = "redis://localhost:6379/0",
        *,
        key_prefix: str = "harrier:session:",
        ttl: Optional[int] = 900,
        max_connections: int = 10,
        socket_timeout: float = 5.0,
        connect_timeout: float = 5.0,
        retry_on_timeout: bool = True,
        serializer: Optional[SessionSerializer] = None,
        client: Any = None,
    ):
        """
        Args:
            url: Redis connection URL
            key_prefix: Prefix for session keys
            ttl: Key expiry in seconds, reset on every save (None = no expiry)
            max_connections: Connection pool size
            socket_timeout: Per-command timeout in seconds
            connect_timeout: Connect timeout in seconds
            retry_on_timeout: Let redis-py retry a command that timed out
            serializer: Payload serializer (JSON if omitted)
            client: Pre-built redis.asyncio client (skips initialize())
        """
        self._url = url
        self._key_prefix = key_prefix
        self._ttl = ttl
        self._max_connections = max_connections
        self._socket_timeout = socket_timeout
        self._connect_timeout = connect_timeout
        self._retry_on_timeout = retry_on_timeout
        self._serializer = serializer or JsonSessionSerializer()
        self._redis = client
        self._init_lock = asyncio.Lock()

    @property
    def initialized(self) -> bool:
        return self._redis is not None

    async def initialize(self) -> None:
        """Connect to Redis and create connection pool."""
        if self._redis is not None:
            return

        import redis.asyncio as aioredis
        from redis.exceptions import RedisError

        async with self._init_lock:
            if self._redis is not None:
                return

            client = aioredis.from_url(
                self._url,
                max_connections=self._max_connections,
                socket_timeout=self._socket_timeout,
                socket_connect_timeout=self._connect_timeout,
                retry_on_timeout=self._retry_on_timeout,
                decode_responses=False,  # We handle serialization
            )
            try:
                await client.ping()
            except (RedisError, OSError) as e:
                logger.error(f"Failed to connect to Redis: {e}")
                await client.aclose()
                raise SessionStoreUnavailableFault(store_name=self.name, cause=str(e))

            self._redis = client
        logger.info(f"Redis session store connected: {self._url}")

    async def shutdown(self) -> None:
        """Close Redis connection pool."""
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

    def _full_key(self, session_id: str) -> str:
        """Build prefixed key."""
        return f"{self._key_prefix}{session_id}"

    async def _client(self):
        if self._redis is None:
            await self.initialize()
        return self._redis

    async def load(self, session_id: str) -> dict[str, Any]:
        """Load payload from Redis."""
        from redis.exceptions import RedisError

        client = await self._client()
        try:
            raw = await client.get(self._full_key(session_id))
        except (RedisError, OSError) as e:
            raise SessionStoreUnavailableFault(store_name=self.name, cause=str(e))

        if raw is None:
            return {}

        try:
            return self._serializer.deserialize(raw)
        except ValueError as e:
            raise SessionStoreCorruptedFault(store_name=self.name, session_id=session_id, cause=str(e))

    async def save(self, session_id: str, data: Mapping[str, Any]) -> None:
        """Replace payload in Redis, resetting its expiry."""
        from redis.exceptions import RedisError

        try:
            raw = self._serializer.serialize(data)
        except ValueError as e:
            raise SessionEncodingFault(store_name=self.name, session_id=session_id, cause=str(e))

        client = await self._client()
        try:
            await client.set(self._full_key(session_id), raw, ex=self._ttl)
        except (RedisError, OSError) as e:
            raise SessionStoreUnavailableFault(store_name=self.name, cause=str(e))

    async def delete(self, session_id: str) -> None:
        """Delete payload from Redis."""
        from redis.exceptions import RedisError

        client = await self._client()
        try:
            await client.delete(self._full_key(session_id))
        except (RedisError, OSError) as e:
            raise SessionStoreUnavailableFault(store_name=self.name, cause=str(e))

    async def exists(self, session_id: str) -> bool:
        """Check if a key exists."""
        from redis.exceptions import RedisError

        client = await self._client()
        try:
            return bool(await client.exists(self._full_key(session_id)))
        except (RedisError, OSError) as e:
            raise SessionStoreUnavailableFault(store_name=self.name, cause=str(e))

    async def cleanup_expired(self) -> int:
        """Redis expires keys itself."""
        return 0

    def get_stats(self) -> dict[str, Any]:
        """Get store statistics."""
        return {
            "url": self._url,
            "key_prefix": self._key_prefix,
            "ttl": self._ttl,
            "connected": self._redis is not None,
        }
