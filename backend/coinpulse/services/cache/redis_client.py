"""
Redis cache client for analysis results.

Read-through cache with single-flight: concurrent misses on one key share
a single in-flight computation. Falls back to per-process memory (with
expiry) when Redis is unavailable.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional, TypeVar

import redis.asyncio as redis
from pydantic import BaseModel, ValidationError

from coinpulse.core.config import settings
from coinpulse.schemas.market import AggregatedPrice

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

# Global Redis connection pool
_redis_pool: Optional[redis.Redis] = None


async def init_redis(url: Optional[str] = None) -> Optional[redis.Redis]:
    """
    Initialize Redis connection pool.
    Called on application startup.
    """
    global _redis_pool

    if _redis_pool is not None:
        return _redis_pool

    url = url or settings.redis_url
    client = redis.from_url(url, encoding="utf-8", decode_responses=True)
    try:
        await client.ping()
    except (redis.RedisError, OSError) as e:
        logger.warning(f"Redis connection failed: {e}. Using in-memory fallback.")
        await client.aclose()
        return None

    _redis_pool = client
    logger.info(f"Redis connected: {url}")
    return _redis_pool


async def close_redis() -> None:
    """Close Redis connection pool."""
    global _redis_pool
    if _redis_pool:
        await _redis_pool.aclose()
        _redis_pool = None
        logger.info("Redis connection closed")


def analysis_key(symbol: str) -> str:
    return f"analysis:{symbol.upper()}"


def last_price_key(symbol: str) -> str:
    return f"lastprice:{symbol.upper()}"


class AnalysisCache:
    """
    Redis-based cache for per-symbol results.

    Keys:
    - analysis:{symbol} → JSON MarketAnalysis (short TTL)
    - lastprice:{symbol} → JSON AggregatedPrice (last successful aggregation)
    """

    def __init__(
        self,
        redis_client: Optional[redis.Redis] = None,
        default_ttl: int = 30,
    ):
        self._redis = redis_client
        self.default_ttl = default_ttl
        self._memory: dict[str, tuple[float, str]] = {}
        self._inflight: dict[str, asyncio.Future] = {}

    @property
    def redis(self) -> Optional[redis.Redis]:
        return self._redis

    def _memory_get(self, key: str) -> Optional[str]:
        """Fallback to memory cache."""
        entry = self._memory.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if expires_at <= time.monotonic():
            del self._memory[key]
            return None
        return value

    def _memory_set(self, key: str, value: str, ttl: int):
        """Fallback to memory cache."""
        self._memory[key] = (time.monotonic() + ttl, value)

    # ============ Raw values ============

    async def get(self, key: str) -> Optional[str]:
        if self.redis:
            try:
                return await self.redis.get(key)
            except redis.RedisError as e:
                logger.debug(f"Redis get failed for {key}: {e}")

        return self._memory_get(key)

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        ttl = ttl if ttl is not None else self.default_ttl

        if self.redis:
            try:
                await self.redis.set(key, value, ex=ttl)
                return
            except redis.RedisError as e:
                logger.debug(f"Redis set failed for {key}: {e}")

        self._memory_set(key, value, ttl)

    async def delete(self, key: str) -> None:
        if self.redis:
            try:
                await self.redis.delete(key)
            except redis.RedisError as e:
                logger.debug(f"Redis delete failed for {key}: {e}")
        self._memory.pop(key, None)

    # ============ Models ============

    async def get_model(self, key: str, model: type[ModelT]) -> Optional[ModelT]:
        value = await self.get(key)
        if value is None:
            return None
        try:
            return model.model_validate_json(value)
        except ValidationError as e:
            logger.warning(f"Discarding unreadable cache entry {key}: {e.error_count()} errors")
            await self.delete(key)
            return None

    async def set_model(self, key: str, value: BaseModel, ttl: Optional[int] = None) -> None:
        await self.set(key, value.model_dump_json(), ttl)

    async def get_or_compute(
        self,
        key: str,
        factory: Callable[[], Awaitable[ModelT]],
        model: type[ModelT],
        ttl: Optional[int] = None,
    ) -> ModelT:
        """
        Cached value, or the result of one shared factory call.

        Callers that miss while a computation for the key is running await
        that computation instead of starting their own. The computation runs
        as its own task, so a cancelled caller leaves it running for the rest.
        Failures are not cached; each waiter sees the same exception.
        """
        pending = self._inflight.get(key)
        if pending is None:
            cached = await self.get_model(key, model)
            if cached is not None:
                logger.debug(f"Cache hit: {key}")
                return cached

            # Another caller may have registered while the lookup was suspended
            pending = self._inflight.get(key)

        if pending is None:
            pending = asyncio.ensure_future(self._compute_and_store(key, factory, ttl))
            pending.add_done_callback(_consume_exception)
            pending.add_done_callback(lambda task: self._forget(key, task))
            self._inflight[key] = pending

        return await asyncio.shield(pending)

    async def _compute_and_store(
        self,
        key: str,
        factory: Callable[[], Awaitable[ModelT]],
        ttl: Optional[int],
    ) -> ModelT:
        value = await factory()
        await self.set_model(key, value, ttl)
        return value

    def _forget(self, key: str, task: asyncio.Future) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]

    # ============ Last known price ============

    async def set_last_price(self, price: AggregatedPrice) -> None:
        await self.set_model(last_price_key(price.symbol), price, settings.last_price_ttl_seconds)

    async def get_last_price(self, symbol: str) -> Optional[AggregatedPrice]:
        return await self.get_model(last_price_key(symbol), AggregatedPrice)


def _consume_exception(future: asyncio.Future) -> None:
    """Mark the exception retrieved when no caller was waiting on it."""
    if not future.cancelled():
        future.exception()
