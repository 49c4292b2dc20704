"""Abstract base class for per-service source adapters.

A source adapter knows three things about one remote service: a stable
identifier (the header-cache key), an *information* URL recorded on a
cache miss so an operator knows where to obtain credentials, and the URL
that is actually fetched. Subclasses implement :meth:`HeaderedSource.parse`
to turn the raw payload into whatever items the caller wants.

Example:
    Minimal adapter::

        class HotList(HeaderedSource):
            id = "zhihu"
            info_url = "https://www.zhihu.com/hot"
            fetch_url = "https://www.zhihu.com/api/v3/feed/topstory/hot-lists/total"

            def parse(self, payload):
                return payload["data"]

See Also:
    :func:`collect_sources` to run several adapters concurrently.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Iterable, Optional

from credcache.cache import HeaderCache
from credcache.client import ResilientFetcher
from credcache.output import OutputManager, get_output


class HeaderedSource(ABC):
    """Base class for adapters that fetch with cached headers.

    Subclasses set :attr:`id`, :attr:`info_url` and :attr:`fetch_url` and
    implement :meth:`parse`. Fetch errors are never swallowed here: a
    rejected credential surfaces as
    :class:`~credcache.exceptions.AuthError` rather than stale data.

    Args:
        fetcher: An entered :class:`~credcache.client.ResilientFetcher`.
        cache: The header cache, or ``None`` when caching is disabled.
    """

    id: str = ""
    info_url: str = ""
    fetch_url: str = ""

    def __init__(self, fetcher: ResilientFetcher, cache: Optional[HeaderCache] = None) -> None:
        if not self.id:
            raise TypeError(f"{type(self).__name__} must define a source id")
        self._fetcher = fetcher
        self._cache = cache

    async def headers(self) -> dict[str, str]:
        """Cached headers for this source, ``{}`` when there are none."""
        if self._cache is None:
            return {}
        return await self._cache.get(self.id, self.info_url) or {}

    async def fetch(self) -> Any:
        """Fetch :attr:`fetch_url` with the cached headers and return the raw payload."""
        headers = await self.headers()
        return await self._fetcher.fetch_with_auth(self.fetch_url, headers, self.id)

    @abstractmethod
    def parse(self, payload: Any) -> list[Any]:
        """Map a successful payload to items."""
        ...

    async def collect(self) -> list[Any]:
        """Fetch and parse in one step."""
        return self.parse(await self.fetch())


async def collect_sources(
    sources: Iterable[HeaderedSource],
    output: Optional[OutputManager] = None,
) -> dict[str, list[Any]]:
    """Collect several sources concurrently.

    A source that fails is logged and left out of the result for this
    cycle; the others are unaffected.

    Returns:
        Items keyed by source id, for every source that succeeded.
    """
    out = output if output is not None else get_output()
    sources = list(sources)
    results = await asyncio.gather(
        *(source.collect() for source in sources), return_exceptions=True
    )

    collected: dict[str, list[Any]] = {}
    for source, result in zip(sources, results):
        if isinstance(result, Exception):
            out.error(f"{source.id} produced no items this cycle: {result}")
        elif isinstance(result, BaseException):
            raise result
        else:
            collected[source.id] = result
    return collected
