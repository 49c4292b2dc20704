"""Source adapter contract.

Concrete adapters subclass :class:`HeaderedSource`; :func:`collect_sources`
runs a batch of them concurrently and skips the ones that fail.
"""

from credcache.sources.base import HeaderedSource, collect_sources

__all__ = ["HeaderedSource", "collect_sources"]
