from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from functools import wraps
from typing import Any, Callable

from academy.config import settings


logger = logging.getLogger(__name__)

# Read-model scopes; every mutation invalidates the scopes it can affect.
SCOPE_SESSIONS = 'training_sessions'
SCOPE_CALENDAR = 'calendar'
SCOPE_DASHBOARD = 'dashboard_stats'
SCOPE_COACHES = 'coaches'
SCOPE_STUDENTS = 'students'
SCOPE_BRANCHES = 'branches'
SCOPE_ATTENDANCE = 'attendance'


def _utc_now() -> datetime:
    return datetime.utcnow()


def cache_key(prefix: str, *parts: str | int | None) -> str:
    clean = [str(part) for part in parts if part is not None and part != '']
    if not clean:
        return prefix
    return ':'.join([prefix, *clean])


def _normalize_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in ('1', 'true', 'yes', 'y', 'on')


def scope_of(key: str) -> str:
    return key.split(':', 1)[0]


class CacheBackend:
    """Storage for read-model payloads, grouped by scope (the first key segment)."""

    def get(self, key: str) -> Any | None:
        raise NotImplementedError

    def set(self, key: str, value: Any, ttl: int) -> None:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError

    def delete_prefix(self, prefix: str) -> None:
        raise NotImplementedError


class MemoryCacheBackend(CacheBackend):
    """Per-process cache; each scope keeps its own bucket so invalidation drops it whole."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._scopes: dict[str, dict[str, tuple[datetime, Any]]] = {}

    def get(self, key: str) -> Any | None:
        with self._lock:
            bucket = self._scopes.get(scope_of(key))
            entry = bucket.get(key) if bucket else None
            if entry is None:
                return None
            expires_at, value = entry
            if expires_at <= _utc_now():
                del bucket[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl: int) -> None:
        entry = (_utc_now() + timedelta(seconds=max(1, int(ttl))), value)
        with self._lock:
            self._scopes.setdefault(scope_of(key), {})[key] = entry

    def delete(self, key: str) -> None:
        with self._lock:
            self._scopes.get(scope_of(key), {}).pop(key, None)

    def delete_prefix(self, prefix: str) -> None:
        with self._lock:
            if ':' not in prefix:
                self._scopes.pop(prefix, None)
                return
            bucket = self._scopes.get(scope_of(prefix), {})
            for key in [key for key in bucket if key.startswith(prefix)]:
                del bucket[key]


class RedisCacheBackend(CacheBackend):
    """Shared cache for multi-worker deployments; every key lives under ``namespace``."""

    def __init__(self, redis_url: str, namespace: str = 'academy') -> None:
        import redis

        self._client = redis.Redis.from_url(redis_url, decode_responses=True)
        self._namespace = namespace

    def _key(self, key: str) -> str:
        return f'{self._namespace}:{key}'

    def get(self, key: str) -> Any | None:
        raw = self._client.get(self._key(key))
        return None if raw is None else json.loads(raw)

    def set(self, key: str, value: Any, ttl: int) -> None:
        self._client.setex(self._key(key), max(1, int(ttl)), json.dumps(value, default=str))

    def delete(self, key: str) -> None:
        self._client.delete(self._key(key))

    def delete_prefix(self, prefix: str) -> None:
        pattern = f'{self._key(prefix)}*'
        cursor = 0
        while True:
            cursor, keys = self._client.scan(cursor=cursor, match=pattern, count=200)
            if keys:
                self._client.delete(*keys)
            if cursor == 0:
                break


@dataclass
class CacheManager:
    backend: CacheBackend

    def get_cached(self, key: str, *, bypass: Any = False) -> Any | None:
        if _normalize_bool(bypass):
            logger.debug('cache bypass: %s', key)
            return None
        value = self.backend.get(key)
        logger.debug('cache %s: %s', 'hit' if value is not None else 'miss', key)
        return value

    def set_cached(self, key: str, value: Any, ttl: int | None = None) -> None:
        ttl_value = ttl if ttl is not None else settings.default_cache_ttl
        self.backend.set(key, value, ttl_value)

    def invalidate(self, key: str) -> None:
        self.backend.delete(key)
        logger.debug('cache invalidate: %s', key)

    def invalidate_prefix(self, prefix: str) -> None:
        self.backend.delete_prefix(prefix)
        logger.debug('cache invalidate prefix: %s', prefix)


def _build_cache_backend() -> CacheBackend:
    if settings.cache_backend == 'redis' and settings.cache_redis_url:
        try:
            return RedisCacheBackend(settings.cache_redis_url, namespace=settings.cache_namespace)
        except Exception:
            logger.exception('redis_cache_init_failed_falling_back_to_memory')
    return MemoryCacheBackend()


cache = CacheManager(backend=_build_cache_backend())


def invalidate_after_mutation(*scopes: str) -> None:
    """Drop cached read models for the given scopes once a write has committed."""
    for scope in scopes:
        cache.invalidate_prefix(scope)


def cached_view(
    ttl: int | None = None,
    key_builder: Callable[..., str] | None = None,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Cache a read model; callers pass ``bypass_cache=True`` to force a fresh read."""

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(func)
        def wrapper(*args: Any, bypass_cache: Any = False, **kwargs: Any) -> Any:
            if _normalize_bool(bypass_cache):
                return func(*args, **kwargs)
            key = key_builder(*args, **kwargs) if key_builder else None
            if key:
                cached = cache.get_cached(key)
                if cached is not None:
                    return cached
            result = func(*args, **kwargs)
            if key:
                cache.set_cached(key, result, ttl)
            return result

        return wrapper

    return decorator
