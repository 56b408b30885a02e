import asyncio
import json
import logging
from typing import Any, Optional

from redis import asyncio as aioredis
from redis.exceptions import RedisError

from config.env import REDIS_URL, CACHE_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)

# ==============================
# Key layout
# ==============================

LISTING_GENERATION_KEY = "products:generation"


def product_key(product_id) -> str:
    return f"product:{product_id}"


def user_key(user_id) -> str:
    return f"user:{user_id}"


def seller_profile_key(user_id) -> str:
    return f"seller_profile:{user_id}"


def canonical_params(params: dict) -> str:
    # Sorted keys + fixed separators => same parameter set, same key
    return json.dumps(params, sort_keys=True, separators=(",", ":"), default=str)


def product_list_key(generation: int, params: dict) -> str:
    return f"products:g{generation}:{canonical_params(params)}"


def filter_options_key(generation: int) -> str:
    return f"filter_options:g{generation}"


# ==============================
# Best-effort cache client
# ==============================

_CACHE_ERRORS = (RedisError, OSError, asyncio.TimeoutError)

_FAILED = object()


class Cache:
    """
    Read-through cache in front of the Mongo collections.

    Every call is bounded by ``timeout`` and never raises: a failure is
    logged and reported as a miss (reads) or a skipped write.
    A ``Cache(None)`` is a permanently-missing cache.
    """

    def __init__(self, client, timeout: float = CACHE_TIMEOUT_SECONDS):
        self.client = client
        self.timeout = timeout

    async def _call(self, event: str, key: str, coro, on_error=None):
        try:
            return await asyncio.wait_for(coro, timeout=self.timeout)
        except _CACHE_ERRORS:
            logger.warning("%s key=%s", event, key, exc_info=True)
            return on_error

    async def get_json(self, key: str) -> Optional[Any]:
        if self.client is None:
            return None

        raw = await self._call("CACHE_GET_ERROR", key, self.client.get(key))
        if raw is None:
            return None

        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("CACHE_DECODE_ERROR key=%s", key)
            return None

    async def set_json(self, key: str, value: Any, ttl: int) -> bool:
        if self.client is None:
            return False

        payload = json.dumps(value, separators=(",", ":"))
        result = await self._call(
            "CACHE_SET_ERROR", key, self.client.set(key, payload, ex=ttl)
        )
        return bool(result)

    async def delete(self, *keys: str) -> int:
        if self.client is None or not keys:
            return 0

        result = await self._call(
            "CACHE_DELETE_ERROR", ",".join(keys), self.client.delete(*keys)
        )
        return result or 0

    # ------------------------------
    # Listing generation
    # ------------------------------

    async def listing_generation(self) -> Optional[int]:
        """
        Current listing generation, 0 before the first bump.
        None when it cannot be read; callers then bypass the cache.
        """
        if self.client is None:
            return None

        raw = await self._call(
            "CACHE_GET_ERROR",
            LISTING_GENERATION_KEY,
            self.client.get(LISTING_GENERATION_KEY),
            on_error=_FAILED,
        )
        if raw is _FAILED:
            return None
        if raw is None:
            return 0
        try:
            return int(raw)
        except ValueError:
            logger.warning("CACHE_DECODE_ERROR key=%s", LISTING_GENERATION_KEY)
            return None

    async def bump_listing_generation(self) -> Optional[int]:
        """
        Orphan every listing entry issued so far.
        Old entries are never read again and age out through their TTL.
        """
        if self.client is None:
            return None

        return await self._call(
            "CACHE_INVALIDATE_ERROR", LISTING_GENERATION_KEY, self.client.incr(LISTING_GENERATION_KEY)
        )

    async def ping(self) -> bool:
        if self.client is None:
            return False
        return bool(await self._call("CACHE_PING_ERROR", "-", self.client.ping()))


# ==============================
# Process-scoped handle
# ==============================

_cache: Optional[Cache] = None


def connect_cache(url: Optional[str] = None) -> Cache:
    global _cache

    url = url if url is not None else REDIS_URL
    client = None
    if url:
        client = aioredis.from_url(
            url,
            decode_responses=True,
            socket_timeout=CACHE_TIMEOUT_SECONDS,
            socket_connect_timeout=CACHE_TIMEOUT_SECONDS,
        )
    else:
        logger.warning("CACHE_DISABLED REDIS_URL not set")

    _cache = Cache(client)
    return _cache


async def close_cache():
    global _cache

    if _cache is not None and _cache.client is not None:
        await _cache.client.aclose()
    _cache = None


def get_cache() -> Cache:
    if _cache is None:
        # Not connected yet: behave as a cache that always misses
        return Cache(None)
    return _cache
