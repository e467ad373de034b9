"""
Search result cache stores.

Keys always embed the tenant id (``search:{tenant}:{digest}``) so one tenant
can never read or clear another tenant's entries. The tenant segment is
urlsafe base64, so it never contains ``:`` or glob characters.
"""
import base64
import hashlib
import json
import time
from typing import Callable, Protocol

from directory_search.errors import CacheError
from directory_search.schemas.search import SearchQuery, SearchResponse

KEY_PREFIX = "search"


def namespace(tenant_id: str) -> str:
    segment = base64.urlsafe_b64encode(tenant_id.encode("utf-8")).decode("ascii").rstrip("=")
    return f"{KEY_PREFIX}:{segment}:"


def search_cache_key(query: SearchQuery) -> str:
    params = {
        "text": query.text,
        "filters": query.filters.model_dump(mode="json"),
        "pagination": query.pagination.model_dump(mode="json"),
        "weights": query.weights.model_dump(mode="json"),
        "fuzzy_threshold": query.fuzzy_threshold,
    }
    digest = hashlib.sha256(json.dumps(params, sort_keys=True).encode("utf-8")).hexdigest()
    return namespace(query.tenant_id) + digest


class CacheStore(Protocol):
    async def get(self, key: str) -> SearchResponse | None: ...

    async def set(self, key: str, value: SearchResponse, ttl: int) -> None: ...

    async def delete(self, key: str) -> bool: ...

    async def delete_namespace(self, tenant_id: str) -> int: ...

    async def count(self, tenant_id: str) -> int: ...


class InMemoryCacheStore:
    """Process-local TTL store. Values are kept serialized so callers never share objects."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._entries: dict[str, tuple[float, str]] = {}  # key -> (expires_at, payload)
        self._clock = clock

    def _cleanup_expired(self):
        now = self._clock()
        self._entries = {k: v for k, v in self._entries.items() if v[0] > now}

    async def get(self, key: str) -> SearchResponse | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, payload = entry
        if expires_at <= self._clock():
            self._entries.pop(key, None)
            return None
        return SearchResponse.model_validate_json(payload)

    async def set(self, key: str, value: SearchResponse, ttl: int) -> None:
        self._cleanup_expired()
        self._entries[key] = (self._clock() + ttl, value.model_dump_json(by_alias=True))

    async def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    async def delete_namespace(self, tenant_id: str) -> int:
        self._cleanup_expired()
        prefix = namespace(tenant_id)
        keys = [k for k in self._entries if k.startswith(prefix)]
        for key in keys:
            del self._entries[key]
        return len(keys)

    async def count(self, tenant_id: str) -> int:
        self._cleanup_expired()
        prefix = namespace(tenant_id)
        return sum(1 for k in self._entries if k.startswith(prefix))


class RedisCacheStore:
    """
    Cache store backed by a ``redis.asyncio`` client.

    Connection and protocol failures are re-raised as CacheError so the
    orchestrator can treat them as a cache miss.
    """

    def __init__(self, client):
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisCacheStore":
        from redis import asyncio as aioredis

        return cls(aioredis.from_url(url, decode_responses=True, socket_connect_timeout=5))

    async def get(self, key: str) -> SearchResponse | None:
        try:
            payload = await self._client.get(key)
            if payload is None:
                return None
            return SearchResponse.model_validate_json(payload)
        except Exception as exc:
            raise CacheError("Cache read failed") from exc

    async def set(self, key: str, value: SearchResponse, ttl: int) -> None:
        try:
            await self._client.set(key, value.model_dump_json(by_alias=True), ex=ttl)
        except Exception as exc:
            raise CacheError("Cache write failed") from exc

    async def delete(self, key: str) -> bool:
        try:
            return bool(await self._client.delete(key))
        except Exception as exc:
            raise CacheError("Cache delete failed") from exc

    async def _keys(self, tenant_id: str) -> list[str]:
        return [key async for key in self._client.scan_iter(match=namespace(tenant_id) + "*")]

    async def delete_namespace(self, tenant_id: str) -> int:
        try:
            keys = await self._keys(tenant_id)
            if keys:
                await self._client.delete(*keys)
        except Exception as exc:
            raise CacheError("Cache namespace delete failed") from exc
        return len(keys)

    async def count(self, tenant_id: str) -> int:
        try:
            return len(await self._keys(tenant_id))
        except Exception as exc:
            raise CacheError("Cache scan failed") from exc
