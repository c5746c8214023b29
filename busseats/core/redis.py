"""
Redis connection management and short-lived seat locks
"""

import redis.asyncio as redis
from typing import Optional
import logging
import asyncio
import time
import uuid

from busseats.config import settings

logger = logging.getLogger(__name__)

# Global Redis client
redis_client: Optional[redis.Redis] = None


async def init_redis():
    """
    Initialize Redis connection
    """
    global redis_client
    try:
        redis_client = redis.from_url(
            settings.REDIS_URL,
            max_connections=settings.REDIS_MAX_CONNECTIONS,
            decode_responses=True
        )
        await redis_client.ping()
        logger.info("Redis connection established")
    except Exception as e:
        logger.error(f"Failed to connect to Redis: {e}")
        raise


async def close_redis():
    """
    Close Redis connection
    """
    global redis_client
    if redis_client:
        await redis_client.aclose()
        redis_client = None
        logger.info("Redis connection closed")


async def get_redis() -> redis.Redis:
    """
    Get Redis client
    """
    if not redis_client:
        await init_redis()
    return redis_client


class CircuitBreakerOpenError(Exception):
    pass


class CircuitBreaker:
    """
    Circuit breaker for Redis operations
    """
    def __init__(self, failure_threshold=5, recovery_timeout=60, half_open_max_calls=3):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.half_open_max_calls = half_open_max_calls

        self.failure_count = 0
        self.last_failure_time = None
        self.state = "CLOSED"  # CLOSED, OPEN, HALF_OPEN
        self.half_open_calls = 0

        self._lock = asyncio.Lock()

    async def is_open(self) -> bool:
        async with self._lock:
            if self.state == "OPEN":
                if time.time() - self.last_failure_time >= self.recovery_timeout:
                    self.state = "HALF_OPEN"
                    self.half_open_calls = 0
                    return False
                return True
            return False

    async def record_success(self):
        async with self._lock:
            self.failure_count = 0
            self.half_open_calls = 0
            self.state = "CLOSED"

    async def record_failure(self):
        async with self._lock:
            self.failure_count += 1
            self.last_failure_time = time.time()
            self.half_open_calls = 0

            if self.state == "HALF_OPEN" or self.failure_count >= self.failure_threshold:
                self.state = "OPEN"

    async def call(self, func, *args, **kwargs):
        if await self.is_open():
            raise CircuitBreakerOpenError("Circuit breaker is open")

        async with self._lock:
            if self.state == "HALF_OPEN":
                if self.half_open_calls >= self.half_open_max_calls:
                    raise CircuitBreakerOpenError("Half-open call limit exceeded")
                self.half_open_calls += 1

        try:
            result = await func(*args, **kwargs)
            await self.record_success()
            return result
        except Exception:
            await self.record_failure()
            raise


ACQUIRE_LOCK_SCRIPT = """
local lock_key = KEYS[1]
local lock_value = ARGV[1]
local ttl = tonumber(ARGV[2])

if redis.call("set", lock_key, lock_value, "NX", "EX", ttl) then
    return lock_value
else
    return nil
end
"""

RELEASE_LOCK_SCRIPT = """
local lock_key = KEYS[1]
local identifier = ARGV[1]

if redis.call("get", lock_key) == identifier then
    redis.call("del", lock_key)
    return 1
else
    return 0
end
"""


def seat_lock_resource(vehicle_id: str, service_date, seat_id: str) -> str:
    """Lock name for one (vehicle, date, seat) triple"""
    return f"seat:{vehicle_id}:{service_date}:{seat_id}"


class RedisManager:
    """
    Redis manager with circuit breaker and distributed seat locks
    """

    def __init__(self, client: Optional[redis.Redis] = None):
        self.client = client
        self.circuit_breaker = CircuitBreaker()
        self.logger = logging.getLogger(__name__)

    async def get_client(self) -> redis.Redis:
        if not self.client:
            self.client = await get_redis()
        return self.client

    async def ping(self) -> bool:
        client = await self.get_client()
        return await self.circuit_breaker.call(client.ping)

    async def acquire_lock(
        self,
        resource: str,
        identifier: Optional[str] = None,
        ttl: int = None
    ) -> Optional[str]:
        """
        Acquire a distributed lock using an atomic Lua script

        Args:
            resource: Resource to lock (e.g. "seat:V1:2025-06-01:A1")
            identifier: Unique identifier for lock owner
            ttl: Time to live in seconds

        Returns:
            Lock identifier if acquired, None if someone else holds it
        """
        client = await self.get_client()
        lock_key = f"lock:{resource}"
        lock_value = identifier or str(uuid.uuid4())
        ttl = ttl or settings.SEAT_LOCK_TTL_SECONDS

        result = await self.circuit_breaker.call(
            client.eval, ACQUIRE_LOCK_SCRIPT, 1, lock_key, lock_value, ttl
        )
        if result:
            self.logger.debug(f"Lock acquired for {resource} with identifier {lock_value}")
            return result.decode() if isinstance(result, bytes) else result
        return None

    async def release_lock(self, resource: str, identifier: str) -> bool:
        """
        Release a lock only if it is still owned by identifier
        """
        client = await self.get_client()
        lock_key = f"lock:{resource}"

        try:
            result = await self.circuit_breaker.call(
                client.eval, RELEASE_LOCK_SCRIPT, 1, lock_key, identifier
            )
        except Exception as e:
            # The lock expires on its own TTL
            self.logger.error(f"Error releasing lock for {resource}: {e}")
            return False

        released = result == 1
        if not released:
            self.logger.warning(f"Lock for {resource} was not held by {identifier}")
        return released


redis_manager = RedisManager()
