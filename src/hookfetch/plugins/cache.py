"""Disk-backed response cache for GET requests.

Uses :mod:`diskcache` to persist successful (2xx) GET responses with a
time-to-live. On a hit, ``before_request`` short-circuits dispatch by setting
``config.resolve`` so the cached response is replayed without touching the
network; ``after_response`` stores fresh responses.

Cache keys are SHA-256 hashes of ``METHOD|URL|sorted_params`` so that
identical requests always resolve to the same entry regardless of parameter
ordering.

Per-request flags in ``extra``: ``cache_able=False`` bypasses the cache and
``cache_ttl`` overrides the TTL in seconds.

See Also:
    :class:`~hookfetch.models.CacheConfig` -- controls ``enabled``,
    ``ttl_seconds`` and ``directory``.
"""

from __future__ import annotations

import hashlib
import json
import logging
from pathlib import Path
from typing import Any, Optional

import diskcache
import httpx

from hookfetch.client.transport import build_url
from hookfetch.config import get_cache_dir
from hookfetch.models import CacheConfig, HTTPMethod, RequestConfig
from hookfetch.plugins.base import Plugin
from hookfetch.plugins.hooks import HookContext, ResponseContext

logger = logging.getLogger(__name__)

_KEY = "cache.key"
_HIT = "cache.hit"

# Stored content is already decoded, so these no longer describe it.
_DROPPED_HEADERS = {"content-encoding", "content-length", "transfer-encoding"}


class CachePlugin(Plugin):
    """Serve repeated GET requests from a :class:`diskcache.Cache`.

    Args:
        config: Cache configuration (``enabled`` flag, ``ttl_seconds`` and
            ``directory``).
        directory: Cache directory; overrides ``config.directory``. Defaults
            to ``<cache dir>/responses``.

    Example::

        client.use(CachePlugin(CacheConfig(ttl_seconds=60)))
        await client.get("/users").json()   # network
        await client.get("/users").json()   # cache
    """

    name = "cache"
    priority = -50
    description = "Cache successful GET responses on disk"

    def __init__(
        self,
        config: Optional[CacheConfig] = None,
        *,
        directory: Optional[str | Path] = None,
        priority: Optional[int] = None,
    ) -> None:
        super().__init__(priority=priority)
        self.config = config or CacheConfig()
        self._directory = directory or self.config.directory
        self._cache: Optional[diskcache.Cache] = None

    @property
    def cache(self) -> diskcache.Cache:
        if self._cache is None:
            directory = self._directory
            if directory is None:
                directory = get_cache_dir() / "responses"
            self._cache = diskcache.Cache(str(directory))
        return self._cache

    def _cacheable(self, config: RequestConfig) -> bool:
        return (
            self.config.enabled
            and config.method is HTTPMethod.GET
            and bool(config.extra.get("cache_able", True))
        )

    @staticmethod
    def make_key(config: RequestConfig) -> str:
        """Build a deterministic SHA-256 cache key for *config*."""
        url = build_url(config.base_url, config.url)
        params = json.dumps(config.params, sort_keys=True, default=str)
        raw = f"{config.method.value}|{url}|{params}"
        return hashlib.sha256(raw.encode()).hexdigest()

    # ------------------------------------------------------------------ #
    # Hooks
    # ------------------------------------------------------------------ #

    def before_request(self, config: RequestConfig, ctx: HookContext) -> None:
        if not self._cacheable(config):
            return
        key = self.make_key(config)
        entry = self.cache.get(key)
        if entry is None:
            ctx.data[_KEY] = key
            return

        logger.debug("Cache hit for %s %s", config.method.value, config.url)
        ctx.data[_HIT] = True
        request = httpx.Request(config.method.value, build_url(config.base_url, config.url))
        config.resolve = lambda: httpx.Response(
            entry["status_code"],
            headers=entry["headers"],
            content=entry["content"],
            request=request,
        )

    def after_response(self, rctx: ResponseContext, ctx: HookContext) -> None:
        key = ctx.data.get(_KEY)
        response = rctx.response
        if key is None or not response.is_success:
            return
        ttl = ctx.config.extra.get("cache_ttl", self.config.ttl_seconds)
        entry: dict[str, Any] = {
            "status_code": response.status_code,
            "headers": [
                (name, value)
                for name, value in response.headers.multi_items()
                if name.lower() not in _DROPPED_HEADERS
            ],
            "content": response.content,
        }
        self.cache.set(key, entry, expire=ttl)

    # ------------------------------------------------------------------ #
    # Maintenance
    # ------------------------------------------------------------------ #

    def clear(self) -> None:
        """Remove all cached responses."""
        self.cache.clear()

    def cleanup(self) -> None:
        if self._cache is not None:
            self._cache.close()
            self._cache = None
