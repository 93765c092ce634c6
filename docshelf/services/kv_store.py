"""Redis-backed key-value store used as the document backing store."""

import json
import logging
from typing import Any, Optional

import redis.asyncio as redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from docshelf.core.config import settings
from docshelf.core.exceptions import KVStoreError
from docshelf.services.retry import retry_with_backoff

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS = (RedisConnectionError, RedisTimeoutError)


class KVStoreService:
    """Service exposing get/put/delete over opaque string keys."""

    def __init__(self, client: Optional[redis.Redis] = None) -> None:
        """
        Initialize the KV store service.

        Args:
            client: Optional pre-built async Redis client.
        """
        self.client = client

    async def connect(self) -> None:
        """Connect to Redis."""
        if self.client:
            return
        try:
            self.client = redis.from_url(
                settings.redis_url,
                decode_responses=True,
                max_connections=settings.redis_pool_size,
                socket_connect_timeout=5.0,
            )
            await self.client.ping()
            logger.info("KV store connected")
        except Exception as e:
            raise KVStoreError(f"Failed to connect to Redis: {str(e)}") from e

    async def disconnect(self) -> None:
        """Disconnect from Redis."""
        if self.client:
            await self.client.aclose()
            self.client = None

    async def _call(self, operation: str, func) -> Any:
        if not self.client:
            raise KVStoreError("KV store not connected")
        try:
            return await retry_with_backoff(func, exceptions=TRANSIENT_ERRORS)
        except RedisError as e:
            raise KVStoreError(f"Failed to {operation}: {str(e)}") from e

    async def get(self, key: str) -> Optional[str]:
        """
        Get a value by key.

        Args:
            key: Store key.

        Returns:
            Stored value or None if absent.
        """
        return await self._call("get key", lambda: self.client.get(key))

    async def put(self, key: str, value: str) -> None:
        """
        Store a value under a key, replacing any previous value.

        Args:
            key: Store key.
            value: Value to store.
        """
        await self._call("put key", lambda: self.client.set(key, value))

    async def delete(self, key: str) -> None:
        """
        Delete a key. Deleting an absent key is not an error.

        Args:
            key: Store key to delete.
        """
        await self._call("delete key", lambda: self.client.delete(key))

    async def get_json(self, key: str) -> Optional[Any]:
        """
        Get a JSON value.

        Args:
            key: Store key.

        Returns:
            Parsed JSON value or None if absent or malformed.
        """
        value = await self.get(key)
        if value is None:
            return None
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return None

    async def put_json(self, key: str, value: Any) -> None:
        """
        Store a value as JSON.

        Args:
            key: Store key.
            value: JSON-serializable value.
        """
        await self.put(key, json.dumps(value))
