"""In-memory response caching for rubykit.

This package provides :class:`ResponseCache`, a per-client TTL cache with
lazy expiry, and :func:`generate_key`, which derives deterministic keys
from an operation name and its parameters.

The cache is consumed by :class:`~rubykit.client.rubygems.RubyGemsClient`,
:class:`~rubykit.client.changelog.ChangelogFetcher` and
:class:`~rubykit.client.rails.RailsClient`, and is controlled by a
:class:`~rubykit.models.CacheConfig`.
"""

from rubykit.cache.cache import CacheEntry, ResponseCache
from rubykit.cache.keys import KEY_DELIMITER, generate_key

__all__ = ["CacheEntry", "KEY_DELIMITER", "ResponseCache", "generate_key"]
