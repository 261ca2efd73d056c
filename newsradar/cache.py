"""Short-lived caches for fetched HTML, selector checks and metadata.

A missing or failing backend never raises: every read degrades to a miss and
every write is dropped with a warning.
"""

import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

import redis.asyncio as redis_asyncio
from redis.exceptions import RedisError

from .config import RedisConfig

logger = logging.getLogger(__name__)


class CacheBackend(ABC):
    """Key/value store with per-key expiry."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    async def set(self, key: str, value: str, ttl: int) -> None:
        pass

    @abstractmethod
    async def delete(self, *keys: str) -> None:
        pass

    async def close(self) -> None:
        pass


class NullBackend(CacheBackend):
    """Cache that never stores anything."""

    async def get(self, key: str) -> Optional[str]:
        return None

    async def set(self, key: str, value: str, ttl: int) -> None:
        return None

    async def delete(self, *keys: str) -> None:
        return None


class MemoryBackend(CacheBackend):
    """In-process cache; entries expire lazily on read."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._data: Dict[str, Tuple[float, str]] = {}

    async def get(self, key: str) -> Optional[str]:
        entry = self._data.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._data[key]
            return None
        return value

    async def set(self, key: str, value: str, ttl: int) -> None:
        self._data[key] = (self._clock() + ttl, value)

    async def delete(self, *keys: str) -> None:
        for key in keys:
            self._data.pop(key, None)

    def __len__(self) -> int:
        return len(self._data)


class RedisBackend(CacheBackend):
    """Redis-backed cache shared between worker processes."""

    def __init__(self, url: str) -> None:
        self.url = url
        self._client = redis_asyncio.from_url(url, decode_responses=True)

    async def get(self, key: str) -> Optional[str]:
        return await self._client.get(key)

    async def set(self, key: str, value: str, ttl: int) -> None:
        if ttl <= 0:
            await self._client.delete(key)
            return
        await self._client.set(key, value, ex=ttl)

    async def delete(self, *keys: str) -> None:
        if keys:
            await self._client.delete(*keys)

    async def close(self) -> None:
        await self._client.aclose()


class ContentCache:
    """Typed cache facade keyed by URL or source id."""

    def __init__(
        self,
        backend: Optional[CacheBackend] = None,
        ttl_html: int = 300,
        ttl_selector: int = 3600,
        ttl_metadata: int = 86400,
    ) -> None:
        self.backend = backend or NullBackend()
        self.ttl_html = ttl_html
        self.ttl_selector = ttl_selector
        self.ttl_metadata = ttl_metadata

    @classmethod
    def from_config(cls, config: RedisConfig) -> "ContentCache":
        """Build a Redis cache when enabled, otherwise an in-process one."""
        backend: CacheBackend = RedisBackend(config.url) if config.enabled else MemoryBackend()
        return cls(
            backend,
            ttl_html=config.ttl_html,
            ttl_selector=config.ttl_selector,
            ttl_metadata=config.ttl_metadata,
        )

    @staticmethod
    def html_key(url: str) -> str:
        return f"html:{url}"

    @staticmethod
    def selector_key(source_id: Any) -> str:
        return f"selector:{source_id}"

    @staticmethod
    def metadata_key(source_id: Any) -> str:
        return f"metadata:{source_id}"

    async def _get(self, key: str) -> Optional[str]:
        try:
            return await self.backend.get(key)
        except (RedisError, OSError) as e:
            logger.warning("Cache read failed for %s: %s", key, e)
            return None

    async def _set(self, key: str, value: str, ttl: int) -> None:
        try:
            await self.backend.set(key, value, ttl)
        except (RedisError, OSError) as e:
            logger.warning("Cache write failed for %s: %s", key, e)

    async def get_json(self, key: str) -> Optional[Dict[str, Any]]:
        raw = await self._get(key)
        if raw is None:
            return None
        try:
            value = json.loads(raw)
        except ValueError:
            return None
        return value if isinstance(value, dict) else None

    async def set_json(self, key: str, value: Dict[str, Any], ttl: Optional[int] = None) -> None:
        payload = dict(value, cached_at=time.time())
        await self._set(key, json.dumps(payload, ensure_ascii=False), self.ttl_metadata if ttl is None else ttl)

    async def get_html(self, url: str) -> Optional[str]:
        html = await self._get(self.html_key(url))
        if html:
            logger.debug("Cache hit for HTML: %s", url)
        return html

    async def cache_html(self, url: str, html: str) -> None:
        await self._set(self.html_key(url), html, self.ttl_html)

    async def get_selector_validation(self, source_id: Any) -> Optional[Dict[str, Any]]:
        data = await self.get_json(self.selector_key(source_id))
        if data is None:
            return None
        return {"is_valid": bool(data.get("is_valid")), "found_count": int(data.get("found_count", 0))}

    async def cache_selector_validation(self, source_id: Any, is_valid: bool, found_count: int) -> None:
        await self.set_json(
            self.selector_key(source_id),
            {"is_valid": is_valid, "found_count": found_count},
            self.ttl_selector,
        )

    async def get_metadata(self, source_id: Any) -> Optional[Dict[str, Any]]:
        return await self.get_json(self.metadata_key(source_id))

    async def cache_metadata(self, source_id: Any, metadata: Dict[str, Any]) -> None:
        await self.set_json(self.metadata_key(source_id), metadata, self.ttl_metadata)

    async def invalidate_source(self, source_id: Any) -> None:
        keys: Iterable[str] = (self.selector_key(source_id), self.metadata_key(source_id))
        try:
            await self.backend.delete(*keys)
        except (RedisError, OSError) as e:
            logger.warning("Cache invalidation failed for source %s: %s", source_id, e)

    async def close(self) -> None:
        await self.backend.close()
