"""
Redis client manager for the Diagnosis Service
Handles connection pooling, diagnosis caching, rate-limit counters and health checks
"""

import json
from typing import Optional, Any
import logging

import redis.asyncio as redis
from redis.exceptions import RedisError

from config import get_redis_url, settings

logger = logging.getLogger(__name__)


class RedisClient:
    """
    Async Redis connection manager.

    Every operation logs and degrades (None / False / 0) on Redis errors
    instead of raising, so an unavailable Redis disables caching and rate
    limiting rather than failing diagnosis requests.
    """

    def __init__(self, redis_url: Optional[str] = None):
        redis_url = redis_url or get_redis_url()

        # Connections are opened lazily on first command
        self.pool = redis.ConnectionPool.from_url(
            redis_url,
            max_connections=20,
            decode_responses=True,  # Auto-decode bytes to strings
            socket_timeout=5,
            socket_connect_timeout=5,
            retry_on_timeout=True,
        )
        self.client = redis.Redis(connection_pool=self.pool)
        logger.info(f"✅ Redis client configured: {redis_url}")

    async def ping(self) -> bool:
        """Check if Redis is available"""
        try:
            return await self.client.ping()
        except RedisError:
            return False

    async def set(
        self,
        key: str,
        value: Any,
        ttl: Optional[int] = None
    ) -> bool:
        """
        Store a value in Redis with optional TTL (Time To Live).

        Args:
            key: Redis key
            value: Value to store (will be JSON-encoded if not a string)
            ttl: Time to live in seconds (None = no expiration)

        Returns:
            True if successful
        """
        try:
            if not isinstance(value, str):
                value = json.dumps(value, ensure_ascii=False)

            if ttl:
                return bool(await self.client.setex(key, ttl, value))
            return bool(await self.client.set(key, value))
        except RedisError as e:
            logger.error(f"Redis SET failed for key '{key}': {str(e)}")
            return False

    async def get(self, key: str, decode_json: bool = True) -> Optional[Any]:
        """
        Retrieve a value from Redis.

        Args:
            key: Redis key
            decode_json: If True, attempt to JSON-decode the value

        Returns:
            Value if found, None otherwise
        """
        try:
            value = await self.client.get(key)
        except RedisError as e:
            logger.error(f"Redis GET failed for key '{key}': {str(e)}")
            return None

        if value is None or not decode_json:
            return value

        try:
            return json.loads(value)
        except (json.JSONDecodeError, TypeError):
            return value

    async def cache_diagnosis(
        self,
        key: str,
        diagnosis: dict,
        ttl: int = settings.CACHE_TTL
    ) -> bool:
        """
        Cache a diagnosis result.

        Args:
            key: Diagnosis key (e.g. "listing:id:123", "profile:someone")
            diagnosis: Serialized diagnosis result
            ttl: Time to live in seconds (default: 12 hours)

        Returns:
            True if cached successfully
        """
        return await self.set(f"{settings.CACHE_KEY_PREFIX}:{key}", diagnosis, ttl=ttl)

    async def get_cached_diagnosis(self, key: str) -> Optional[dict]:
        """
        Retrieve a cached diagnosis result.

        Returns:
            Cached diagnosis dict if found, None otherwise
        """
        cached = await self.get(f"{settings.CACHE_KEY_PREFIX}:{key}", decode_json=True)
        return cached if isinstance(cached, dict) else None

    async def increment_window(self, key: str, ttl: int) -> Optional[int]:
        """
        Atomically increment a fixed-window counter.

        The expiry is only set when the counter is created, so the window
        does not slide on every hit.

        Returns:
            The counter value after incrementing, or None if Redis failed
        """
        try:
            async with self.client.pipeline(transaction=True) as pipe:
                pipe.set(key, 0, ex=ttl, nx=True)
                pipe.incr(key)
                _, count = await pipe.execute()
            return int(count)
        except RedisError as e:
            logger.error(f"Redis INCR failed for key '{key}': {str(e)}")
            return None

    async def get_stats(self) -> dict:
        """
        Get Redis connection and memory stats.

        Returns:
            Dictionary with Redis statistics
        """
        try:
            info = await self.client.info()
            return {
                "connected_clients": info.get("connected_clients", 0),
                "used_memory_human": info.get("used_memory_human", "unknown"),
                "total_commands_processed": info.get("total_commands_processed", 0),
            }
        except RedisError as e:
            logger.error(f"Failed to get Redis stats: {str(e)}")
            return {"error": str(e)}

    async def close(self):
        """Close Redis connection pool"""
        try:
            await self.client.aclose()
            await self.pool.disconnect()
            logger.info("Redis connection closed")
        except RedisError as e:
            logger.error(f"Error closing Redis connection: {str(e)}")


# Global Redis client instance
redis_client: Optional[RedisClient] = None


def get_redis_client() -> RedisClient:
    """
    Get or create the global Redis client instance.

    Returns:
        RedisClient instance
    """
    global redis_client

    if redis_client is None:
        redis_client = RedisClient()

    return redis_client


async def close_redis_client():
    """Close the global Redis client"""
    global redis_client

    if redis_client is not None:
        await redis_client.close()
        redis_client = None
