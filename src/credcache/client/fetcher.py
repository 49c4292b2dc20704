"""Asynchronous fetcher that heals the header cache on credential rejection.

:class:`ResilientFetcher` wraps :class:`httpx.AsyncClient`. It sends the
cached headers of one source, maps error responses to the typed exceptions
in :mod:`credcache.exceptions`, and, when the failure means the credential
is no longer accepted, clears the source's entry with
:meth:`~credcache.cache.HeaderCache.set_invalid` before re-raising.

Which failures count is decided by
:class:`~credcache.models.InvalidationPolicy`. The default only reacts to
HTTP 401 / 403, so a timeout or a 5xx never discards a working credential.

No retries are attempted; retry policy belongs to the source adapter.
"""

from __future__ import annotations

from typing import Any, Optional

import httpx

from credcache.cache import HeaderCache
from credcache.exceptions import (
    AuthError,
    ConnectionError_,
    InvalidUsageError,
    NotFoundError,
    ServerError,
)
from credcache.models import InvalidationPolicy, RequestConfig
from credcache.output import OutputManager, get_output


class ResilientFetcher:
    """HTTP fetcher bound to a :class:`~credcache.cache.HeaderCache`.

    Must be used as an async context manager.

    Args:
        cache: The header cache to invalidate on rejection, or ``None``
            when caching is disabled (failures then simply propagate).
        policy: Which failures trigger invalidation.
        request: Timeout and TLS settings for the underlying client.
        output: Diagnostics sink. Defaults to the global
            :class:`~credcache.output.OutputManager`.
        transport: Optional httpx transport, e.g. a
            :class:`httpx.MockTransport` in tests.

    Example::

        async with ResilientFetcher(cache) as fetcher:
            headers = await cache.get("zhihu", "https://www.zhihu.com/hot") or {}
            data = await fetcher.fetch_with_auth(url, headers, "zhihu")
    """

    def __init__(
        self,
        cache: Optional[HeaderCache] = None,
        policy: InvalidationPolicy = InvalidationPolicy.AUTH,
        request: Optional[RequestConfig] = None,
        output: Optional[OutputManager] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._cache = cache
        self._policy = policy
        self._request = request or RequestConfig()
        self._output = output
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def output(self) -> OutputManager:
        return self._output if self._output is not None else get_output()

    @property
    def policy(self) -> InvalidationPolicy:
        """The active invalidation policy."""
        return self._policy

    # ------------------------------------------------------------------ #
    # Async context manager
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> ResilientFetcher:
        self._client = httpx.AsyncClient(
            timeout=self._request.timeout,
            verify=self._request.verify_ssl,
            follow_redirects=True,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args: object) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    async def fetch_with_auth(
        self,
        url: str,
        headers: Optional[dict[str, str]],
        source_id: str,
    ) -> Any:
        """GET *url* with *headers* and return the parsed body.

        On a failure selected by the invalidation policy the cache entry
        for *source_id* is cleared exactly once, then the original error
        is re-raised unchanged.

        Args:
            url: Absolute request URL.
            headers: Cached headers for the source (may be empty).
            source_id: Identifier of the cache entry the headers came from.

        Returns:
            The decoded JSON body, or the response text when the body is
            not JSON.

        Raises:
            AuthError: On 401 / 403.
            NotFoundError: On 404.
            ServerError: On any other error status.
            ConnectionError_: On network / timeout errors.
            InvalidUsageError: On a malformed URL or a header value httpx
                cannot encode.

        Under ``ANY_FAILURE`` every exception counts, including ones
        raised by a custom transport.
        """
        assert self._client is not None, "Fetcher not initialised -- use as async context manager"
        try:
            response = await self._send(url, dict(headers or {}))
            self._map_response_error(response)
        except Exception as exc:
            if self._should_invalidate(exc):
                await self._invalidate(source_id, exc)
            raise
        return _parse_body(response)

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    async def _send(self, url: str, headers: dict[str, str]) -> httpx.Response:
        """Issue the GET, translating client-side failures to typed errors."""
        assert self._client is not None
        try:
            return await self._client.get(url, headers=headers)
        except httpx.InvalidURL as exc:
            raise InvalidUsageError(f"Invalid URL {url}: {exc}") from exc
        except UnicodeEncodeError as exc:
            raise InvalidUsageError(f"Header values for {url} must be ASCII: {exc}") from exc
        except httpx.HTTPError as exc:
            raise ConnectionError_(f"Request to {url} failed: {exc}") from exc

    def _should_invalidate(self, exc: Exception) -> bool:
        if self._policy == InvalidationPolicy.ANY_FAILURE:
            return True
        return isinstance(exc, AuthError)

    async def _invalidate(self, source_id: str, cause: Exception) -> None:
        """Clear the cache entry; never lets an invalidation failure escape."""
        if self._cache is None:
            return
        self.output.warning(f"{source_id} fetch failed ({cause}); invalidating cached headers")
        try:
            await self._cache.set_invalid(source_id)
        except Exception as exc:
            self.output.error(f"Failed to invalidate {source_id} header cache: {exc}")

    def _map_response_error(self, response: httpx.Response) -> None:
        """Raise a typed exception for error HTTP status codes."""
        status = response.status_code
        if status < 400:
            return

        try:
            detail = response.json()
            if isinstance(detail, dict):
                msg = detail.get("message") or detail.get("error") or detail.get("detail") or ""
            else:
                msg = str(detail)
        except ValueError:
            msg = response.text[:200] if response.text else ""

        prefix = f"HTTP {status}"
        full_msg = f"{prefix}: {msg}" if msg else prefix

        if status in (401, 403):
            raise AuthError(full_msg)
        if status == 404:
            raise NotFoundError(full_msg)
        raise ServerError(full_msg)


def _parse_body(response: httpx.Response) -> Any:
    """Decode a successful response: JSON when possible, text otherwise."""
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text
