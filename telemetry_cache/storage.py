"""Key-value store adapter: one Redis connection per request, always closed."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Optional

from redis import asyncio as aioredis
from redis.exceptions import RedisError

from telemetry_cache.config import Settings
from telemetry_cache.exceptions import StoreError

logger = logging.getLogger(__name__)

ClientFactory = Callable[..., aioredis.Redis]


def redis_client_factory(url: str, connect_timeout: float) -> aioredis.Redis:
    """Build a client holding a single, non keep-alive connection."""
    return aioredis.Redis.from_url(
        url,
        decode_responses=True,
        socket_connect_timeout=connect_timeout,
        socket_keepalive=False,
        single_connection_client=True,
    )


class StoreSession:
    """Get/set operations bound to one open connection."""

    def __init__(self, client: aioredis.Redis):
        self._client = client

    async def get(self, key: str) -> Optional[str]:
        """Return the serialized value for key, or None when the key is absent."""
        try:
            return await self._client.get(key)
        except RedisError as e:
            raise StoreError(f"Failed to read {key!r}") from e

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        """Store the serialized value, expiring after ttl seconds when given."""
        try:
            await self._client.set(key, value, ex=ttl)
        except RedisError as e:
            raise StoreError(f"Failed to write {key!r}") from e


class MetricStore:
    """Opens a fresh connection to the key-value store for every request."""

    def __init__(
        self,
        url: str,
        connect_timeout: float = 5.0,
        client_factory: ClientFactory = redis_client_factory,
    ):
        self.url = url
        self.connect_timeout = connect_timeout
        self._client_factory = client_factory

    @classmethod
    def from_settings(cls, settings: Settings) -> "MetricStore":
        return cls(settings.redis_url, connect_timeout=settings.redis_connect_timeout)

    @asynccontextmanager
    async def connect(self) -> AsyncIterator[StoreSession]:
        """
        Connect, yield a session and close the connection on every exit path.

        Connection failures raise StoreError, which callers keep apart from a
        None result for an absent key.
        """
        try:
            client = self._client_factory(self.url, self.connect_timeout)
        except ValueError as e:
            raise StoreError("Invalid store address") from e

        try:
            try:
                await client.ping()
            except RedisError as e:
                logger.error("Store connection failed: %s", e)
                raise StoreError("Store connection failed") from e
            yield StoreSession(client)
        finally:
            await client.aclose()

    async def ping(self) -> bool:
        """Check connectivity. Returns False instead of raising."""
        try:
            async with self.connect():
                return True
        except StoreError:
            return False
