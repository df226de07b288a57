"""TTL cache for resolved provider configuration, backed by cachetools.TTLCache.

Embedding and vector-store configuration is read-mostly, process-wide
state.  Services receive a :class:`ConfigCache` instance by reference
instead of sharing module-level globals, so tests inject a fresh cache per
run and collaborators call :meth:`ConfigCache.invalidate` after editing
settings.  Configuration edits are **not** seen before the TTL expires
unless the cache is invalidated.

Concurrent readers never block on a warm cache.  A cold or expired cache is
refreshed under an ``asyncio.Lock`` with a second check, so a burst of
readers triggers one load instead of a refresh storm.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

import structlog
from cachetools import TTLCache

logger = structlog.get_logger(logger_name=__name__)

_T = TypeVar("_T")
_KEY = "value"


class ConfigCache(Generic[_T]):
    """Single-value TTL cache with an async loader.

    Parameters
    ----------
    ttl:
        Seconds a loaded value stays valid.
    name:
        Label used in log events.
    timer:
        Clock used by ``TTLCache``; tests pass a fake clock.
    """

    def __init__(
        self,
        ttl: float = 60.0,
        name: str = "config",
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self._name = name
        self._cache: TTLCache[str, _T] = TTLCache(maxsize=1, ttl=ttl, timer=timer)
        self._lock = asyncio.Lock()

    async def get(self, loader: Callable[[], Awaitable[_T]]) -> _T:
        """Return the cached value, loading it with *loader* when missing or expired."""
        value = self._cache.get(_KEY)
        if value is not None:
            return value

        async with self._lock:
            value = self._cache.get(_KEY)
            if value is not None:
                return value
            logger.debug("config_cache_refresh", cache=self._name)
            value = await loader()
            self._cache[_KEY] = value
            return value

    def peek(self) -> _T | None:
        """Return the cached value without loading, or ``None``."""
        return self._cache.get(_KEY)

    def invalidate(self) -> None:
        """Drop the cached value; the next ``get()`` reloads."""
        self._cache.clear()
        logger.info("config_cache_invalidated", cache=self._name)
