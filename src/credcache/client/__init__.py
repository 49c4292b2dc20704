"""HTTP client layer for credcache.

Exports :class:`ResilientFetcher`, which sends cached headers and clears
them from the :class:`~credcache.cache.HeaderCache` when the remote
server rejects them.
"""

from credcache.client.fetcher import ResilientFetcher

__all__ = ["ResilientFetcher"]
