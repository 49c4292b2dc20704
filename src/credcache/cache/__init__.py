"""SQL-backed header caching for credcache.

This package provides :class:`HeaderCache`, which keeps one JSON header
set per source identifier in the ``header_cache`` table, and
:func:`open_header_cache`, which builds one from
:class:`~credcache.models.CacheSettings` (or returns ``None`` when caching
is disabled).
"""

from credcache.cache.header_cache import HeaderCache, open_header_cache

__all__ = ["HeaderCache", "open_header_cache"]
