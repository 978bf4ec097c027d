"""Async Redis client wrapper."""
from __future__ import annotations
import json
from typing import Any, Optional
from redis.asyncio import Redis, from_url
from redis.commands.core import AsyncScript

from pokerroom.config import config
from pokerroom.utils.logger import get_logger

logger = get_logger(__name__)

# Writes ARGV[1] with expiry ARGV[3] only if the stored JSON document's
# "version" equals ARGV[2] (a missing key matches version 0).
_SET_IF_VERSION = """
local current = redis.call('GET', KEYS[1])
if current then
    local doc = cjson.decode(current)
    if tonumber(doc['version']) ~= tonumber(ARGV[2]) then
        return 0
    end
elseif tonumber(ARGV[2]) ~= 0 then
    return 0
end
redis.call('SET', KEYS[1], ARGV[1], 'EX', tonumber(ARGV[3]))
return 1
"""


class RedisClient:
    """Async Redis client wrapper with JSON serialization."""

    _instance: Optional["RedisClient"] = None
    _redis: Optional[Redis] = None
    _set_if_version: Optional[AsyncScript] = None

    def __new__(cls) -> "RedisClient":
        """Singleton pattern for Redis client."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    async def connect(self) -> None:
        """Connect to Redis."""
        if self._redis is None:
            self._redis = await from_url(
                config.redis_url,
                encoding="utf-8",
                decode_responses=True
            )
            self._set_if_version = self._redis.register_script(_SET_IF_VERSION)
            logger.info(f"Connected to Redis at {config.redis_url}")

    async def disconnect(self) -> None:
        """Disconnect from Redis."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None
            self._set_if_version = None
            logger.info("Disconnected from Redis")

    @property
    def redis(self) -> Redis:
        """Get Redis connection, raise if not connected."""
        if self._redis is None:
            raise RuntimeError("Redis not connected. Call connect() first.")
        return self._redis

    async def ping(self) -> bool:
        return await self.redis.ping()

    # Basic operations
    async def get(self, key: str) -> Optional[str]:
        """Get a string value."""
        return await self.redis.get(key)

    async def set(
        self,
        key: str,
        value: str,
        ex: Optional[int] = None,
        nx: bool = False,
    ) -> bool:
        """Set a string value with optional expiry in seconds.

        Returns:
            False if ``nx`` was requested and the key already existed.
        """
        return bool(await self.redis.set(key, value, ex=ex, nx=nx))

    async def delete(self, key: str) -> None:
        """Delete a key."""
        await self.redis.delete(key)

    # JSON operations
    async def get_json(self, key: str) -> Optional[Any]:
        """Get and deserialize JSON value."""
        value = await self.get(key)
        if value is None:
            return None
        return json.loads(value)

    async def set_json(
        self,
        key: str,
        value: Any,
        ex: Optional[int] = None,
        nx: bool = False,
    ) -> bool:
        """Serialize and set JSON value."""
        return await self.set(key, json.dumps(value), ex=ex, nx=nx)

    async def set_json_if_version(
        self,
        key: str,
        value: Any,
        expected_version: int,
        ex: int,
    ) -> bool:
        """Atomically replace a JSON document if its stored version matches.

        Args:
            key: Redis key.
            value: New document; its own ``version`` is written as-is.
            expected_version: Version the stored document must still have.
            ex: Expiry in seconds applied on a successful write.

        Returns:
            True if written, False if the stored version had moved on.
        """
        if self._set_if_version is None:
            self._set_if_version = self.redis.register_script(_SET_IF_VERSION)
        written = await self._set_if_version(
            keys=[key],
            args=[json.dumps(value), expected_version, ex],
        )
        return written == 1


# Global instance
redis_client = RedisClient()
