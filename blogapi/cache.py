"""
Redis cache-aside layer for taxonomy reads.

Keys are ``taxonomy:<kind>:list`` and ``taxonomy:<kind>:detail:<id>``.
Category and tag payloads embed article counts, so both kinds are purged
on every taxonomy write and on every article create / update / delete.
When Redis is unreachable every operation degrades to a no-op and reads
fall through to the database.
"""
import json
import logging
from typing import Awaitable, Callable

import redis.asyncio as redis
from fastapi import Request

logger = logging.getLogger(__name__)

Loader = Callable[[], Awaitable[dict | list]]


def taxonomy_key(kind: str, *parts) -> str:
    return ":".join(["taxonomy", kind, *(str(p) for p in parts)])


class CacheManager:
    """Owns one Redis connection pool and the hit / miss counters."""

    def __init__(self, url: str) -> None:
        self.url = url
        self._redis: redis.Redis | None = None
        self._hits = 0
        self._misses = 0

    async def connect(self) -> None:
        client = redis.from_url(
            self.url,
            decode_responses=True,
            socket_connect_timeout=2,
            socket_timeout=2,
        )
        try:
            await client.ping()
        except Exception as exc:  # pragma: no cover
            logger.warning("Redis unavailable at %s, taxonomy cache disabled: %s", self.url, exc)
            await client.aclose()
            return
        self._redis = client
        logger.info("Redis connected: %s", self.url)

    async def disconnect(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

    @property
    def enabled(self) -> bool:
        return self._redis is not None

    async def get(self, key: str) -> dict | list | None:
        if not self.enabled:
            self._misses += 1
            return None
        try:
            raw = await self._redis.get(key)
        except Exception as exc:
            logger.debug("Cache GET failed key=%r: %s", key, exc)
            raw = None
        if raw is None:
            self._misses += 1
            return None
        self._hits += 1
        return json.loads(raw)

    async def set(self, key: str, value: dict | list, ttl: int | None = None) -> None:
        if not self.enabled:
            return
        try:
            await self._redis.set(key, json.dumps(value, default=str), ex=ttl)
        except Exception as exc:
            logger.debug("Cache SET failed key=%r: %s", key, exc)

    async def cached(self, key: str, loader: Loader, ttl: int | None = None) -> dict | list:
        """Return the value under *key*, computing and storing it on a miss."""
        value = await self.get(key)
        if value is None:
            value = await loader()
            await self.set(key, value, ttl=ttl)
        return value

    async def delete_pattern(self, pattern: str) -> None:
        """Delete every key matching *pattern* (SCAN, never KEYS)."""
        if not self.enabled:
            return
        try:
            keys = [key async for key in self._redis.scan_iter(match=pattern)]
            if keys:
                await self._redis.delete(*keys)
                logger.debug("Cache purged %d key(s) matching %r", len(keys), pattern)
        except Exception as exc:
            logger.debug("Cache purge failed pattern=%r: %s", pattern, exc)

    async def invalidate_taxonomy(self, kind: str) -> None:
        await self.delete_pattern(taxonomy_key(kind, "*"))

    @property
    def stats(self) -> dict:
        lookups = self._hits + self._misses
        return {
            "enabled": self.enabled,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self._hits / lookups * 100, 1) if lookups else 0.0,
        }


def get_cache(request: Request) -> CacheManager:
    return request.app.state.cache
