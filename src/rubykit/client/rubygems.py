"""Asynchronous RubyGems.org API client with response caching.

:class:`RubyGemsClient` wraps :class:`httpx.AsyncClient` and routes every
read through its own :class:`~rubykit.cache.ResponseCache`, so a repeated
search or details lookup inside the TTL never reaches the network.
Upstream errors are mapped to the :mod:`rubykit.exceptions` hierarchy and
are never cached.

Cache keys (see :func:`~rubykit.cache.generate_key`):

=========================  ==========================================
Method                     Key
=========================  ==========================================
search_gems                ``search?{"limit":..,"query":..}``
get_gem_details            ``gem?{"name":..}``
get_gem_versions           ``versions?{"name":..}``
get_latest_version         ``latest?{"include_prerelease":..,"name":..}``
get_reverse_dependencies   ``reverse_dependencies?{"name":..}``
=========================  ==========================================
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Optional
from urllib.parse import quote

import httpx

from rubykit.cache import ResponseCache, generate_key
from rubykit.cache.cache import Clock
from rubykit.exceptions import (
    ConnectionError_,
    NotFoundError,
    RateLimitError,
    ServerError,
)
from rubykit.models import (
    CacheConfig,
    GemDetails,
    GemSearchResult,
    GemVersion,
    RequestConfig,
    ReverseDependency,
)
from rubykit.output import get_output


class RubyGemsClient:
    """Cached client for the RubyGems.org v1 API.

    Must be used as an async context manager.  The client owns its cache
    for its whole lifetime; :meth:`clear_cache` resets it.

    Args:
        config: Base URL, timeout, User-Agent, and rate-limit spacing.
        cache_config: ``enabled`` flag and default TTL for the cache.
        transport: Optional :mod:`httpx` transport, e.g.
            :class:`httpx.MockTransport` in tests.
        clock: Time source for cache freshness.

    Example::

        async with RubyGemsClient() as client:
            gems = await client.search_gems("rails", limit=5)
    """

    def __init__(
        self,
        config: Optional[RequestConfig] = None,
        cache_config: Optional[CacheConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Clock = time.time,
    ) -> None:
        self._config = config or RequestConfig()
        self._transport = transport
        self._cache = ResponseCache(cache_config, clock=clock)
        self._client: Optional[httpx.AsyncClient] = None
        self._last_request = 0.0

    @property
    def cache(self) -> ResponseCache:
        return self._cache

    # ------------------------------------------------------------------ #
    # Async context manager
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> RubyGemsClient:
        self._client = httpx.AsyncClient(
            base_url=self._config.base_url,
            timeout=self._config.timeout,
            headers={
                "User-Agent": self._config.user_agent,
                "Accept": "application/json",
            },
            follow_redirects=True,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args: object) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------ #
    # API operations
    # ------------------------------------------------------------------ #

    async def search_gems(self, query: str, limit: int = 10) -> list[GemSearchResult]:
        """Search gems by name or description.

        Args:
            query: Search terms.
            limit: Maximum number of results; ``0`` or less keeps them all.

        Returns:
            Matching gems in RubyGems.org relevance order.
        """

        async def fetch() -> list[GemSearchResult]:
            data = await self._get_json("/api/v1/search.json", params={"query": query})
            gems = [GemSearchResult.model_validate(item) for item in data]
            if limit > 0:
                gems = gems[:limit]
            return gems

        key = generate_key("search", {"query": query, "limit": limit})
        return await self._cache.get_or_fetch(key, fetch)

    async def get_gem_details(self, gem_name: str) -> GemDetails:
        """Fetch the full record of *gem_name*, including dependencies."""

        async def fetch() -> GemDetails:
            data = await self._get_json(f"/api/v1/gems/{quote(gem_name, safe='')}.json")
            return GemDetails.model_validate(data)

        key = generate_key("gem", {"name": gem_name})
        return await self._cache.get_or_fetch(key, fetch)

    async def get_gem_versions(self, gem_name: str) -> list[GemVersion]:
        """Fetch every published version of *gem_name*, newest first."""

        async def fetch() -> list[GemVersion]:
            data = await self._get_json(f"/api/v1/versions/{quote(gem_name, safe='')}.json")
            return [GemVersion.model_validate(item) for item in data]

        key = generate_key("versions", {"name": gem_name})
        return await self._cache.get_or_fetch(key, fetch)

    async def get_latest_version(
        self, gem_name: str, include_prerelease: bool = False
    ) -> GemVersion:
        """Return the most recently published version of *gem_name*.

        Derived from :meth:`get_gem_versions` (itself cached) rather than
        ``latest.json``, which lacks dates and metadata.

        Raises:
            NotFoundError: If the gem has no (non-prerelease) versions.
        """

        async def fetch() -> GemVersion:
            versions = await self.get_gem_versions(gem_name)
            if not include_prerelease:
                versions = [v for v in versions if not v.prerelease]
            if not versions:
                raise NotFoundError(f"No versions found for gem: {gem_name}")
            # created_at is ISO 8601 in a fixed format, so string order is time order
            return max(versions, key=lambda v: v.created_at)

        key = generate_key(
            "latest", {"name": gem_name, "include_prerelease": include_prerelease}
        )
        return await self._cache.get_or_fetch(key, fetch)

    async def get_reverse_dependencies(self, gem_name: str) -> list[ReverseDependency]:
        """List the gems that depend on *gem_name*."""

        async def fetch() -> list[ReverseDependency]:
            data = await self._get_json(
                f"/api/v1/gems/{quote(gem_name, safe='')}/reverse_dependencies.json"
            )
            return [ReverseDependency(name=name) for name in data]

        key = generate_key("reverse_dependencies", {"name": gem_name})
        return await self._cache.get_or_fetch(key, fetch)

    # ------------------------------------------------------------------ #
    # Cache administration
    # ------------------------------------------------------------------ #

    def clear_cache(self) -> None:
        self._cache.clear()

    def cleanup_cache(self) -> int:
        """Purge stale entries; returns how many were removed."""
        return self._cache.cleanup()

    def cache_stats(self) -> dict[str, Any]:
        return self._cache.stats()

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    async def _get_json(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        """GET *path* and return the decoded JSON body.

        Raises:
            NotFoundError: On 404.
            RateLimitError: On 429.
            ServerError: On any other status >= 400, or an undecodable body.
            ConnectionError_: On timeouts and transport failures.
        """
        assert self._client is not None, "Client not initialised -- use as async context manager"

        await self._respect_rate_limit()
        get_output().debug(f"GET {self._config.base_url}{path}")

        try:
            response = await self._client.get(path, params=params)
        except httpx.TimeoutException as exc:
            raise ConnectionError_(
                f"Request to {path} timed out after {self._config.timeout}s"
            ) from exc
        except httpx.TransportError as exc:
            raise ConnectionError_(f"Request to {path} failed: {exc}") from exc

        status = response.status_code
        if status == 404:
            raise NotFoundError(f"Resource not found: {path}")
        if status == 429:
            raise RateLimitError("Rate limit exceeded")
        if status >= 400:
            raise ServerError(f"HTTP {status}")

        try:
            return response.json()
        except ValueError as exc:
            raise ServerError(f"Invalid JSON from {path}: {exc}") from exc

    async def _respect_rate_limit(self) -> None:
        """Sleep so consecutive requests are at least ``rate_limit_delay`` apart."""
        elapsed = time.monotonic() - self._last_request
        delay = self._config.rate_limit_delay - elapsed
        if delay > 0:
            await asyncio.sleep(delay)
        self._last_request = time.monotonic()
