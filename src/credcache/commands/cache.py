"""Cache commands -- inspect and maintain cached header sets.

These are the operator-facing counterparts of the
:class:`~credcache.cache.HeaderCache` operations. A scraper or cron job
that rotates session cookies uses ``credcache set``; an operator uses
``credcache list --pending`` to see which sources are waiting for
credentials after a miss or a rejection.

Typical workflow::

    credcache list --pending
    credcache set zhihu --file zhihu-headers.yaml
    credcache fetch https://www.zhihu.com/api/v3/feed --source zhihu
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncIterator, Optional

import typer

from credcache.exceptions import CredcacheError
from credcache.exit_codes import (
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_STORE_ERROR,
)
from credcache.models import CachedHeaders, CacheSettings, HeaderState
from credcache.output import error, format_response, get_output, info, print_table, success, suggest

if TYPE_CHECKING:
    from credcache.cache import HeaderCache


def _settings(ctx: typer.Context, init_table: Optional[bool] = None) -> CacheSettings:
    """Resolve settings, honouring the ``--database-url`` root option."""
    from credcache.config import resolve_settings

    obj = ctx.obj or {}
    try:
        return resolve_settings(database_url=obj.get("database_url"), init_table=init_table)
    except CredcacheError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None


@asynccontextmanager
async def _opened_cache(
    settings: CacheSettings,
) -> AsyncIterator[Optional[HeaderCache]]:
    """Open the header cache for one command and close its store afterwards."""
    from credcache.cache import open_header_cache

    cache = await open_header_cache(settings)
    try:
        yield cache
    finally:
        if cache is not None:
            await cache.close()


def _require(cache: Optional[HeaderCache]) -> None:
    """Exit when the cache is disabled or its database could not be opened."""
    if cache is None:
        error("Header cache is disabled or unavailable.")
        suggest("Check CREDCACHE_ENABLE_CACHE and the --database-url option.")
        raise typer.Exit(code=EXIT_GENERIC_FAILURE)


def _mask(value: str) -> str:
    """Hide all but the first few characters of a secret."""
    if len(value) <= 4:
        return "*" * len(value)
    return f"{value[:4]}…"


def _describe(entry: CachedHeaders, reveal: bool = False) -> dict:
    data = entry.model_dump(mode="json")
    if entry.headers is not None and not reveal:
        data["headers"] = {k: _mask(v) for k, v in entry.headers.items()}
    return data


def init_command(ctx: typer.Context) -> None:
    """Create the ``header_cache`` table if it does not exist.

    Example::

        credcache init
        credcache --database-url sqlite+aiosqlite:///headers.db init
    """
    settings = _settings(ctx, init_table=False)

    async def _run() -> bool:
        async with _opened_cache(settings) as cache:
            _require(cache)
            return await cache.init()

    if not asyncio.run(_run()):
        raise typer.Exit(code=EXIT_STORE_ERROR)


def set_command(
    ctx: typer.Context,
    key: str = typer.Argument(help="Source identifier, e.g. 'zhihu'."),
    header: Optional[list[str]] = typer.Option(
        None, "--header", "-H", help="Header as 'Name: value'. Repeatable."
    ),
    file: Optional[str] = typer.Option(
        None, "--file", "-f", help="JSON/YAML file with a header mapping ('-' for stdin)."
    ),
) -> None:
    """Store headers for a source, replacing any existing entry.

    ``--header`` values are applied on top of ``--file``.

    Example::

        credcache set zhihu -H "Cookie: z_c0=abc" -H "User-Agent: Mozilla/5.0"
        credcache set zhihu --file zhihu.yaml
    """
    from credcache.loader import load_header_file, parse_header_args

    try:
        headers = load_header_file(file) if file else {}
        headers.update(parse_header_args(header or []))
    except CredcacheError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    if not headers:
        error("No headers given; use --header or --file.")
        raise typer.Exit(code=EXIT_INVALID_USAGE)

    settings = _settings(ctx)

    async def _run() -> bool:
        async with _opened_cache(settings) as cache:
            _require(cache)
            return await cache.set(key, headers)

    if not asyncio.run(_run()):
        raise typer.Exit(code=EXIT_STORE_ERROR)


def get_command(
    ctx: typer.Context,
    key: str = typer.Argument(help="Source identifier."),
    source_url: str = typer.Option(
        ..., "--source-url", "-u", help="URL recorded on the placeholder row if missing."
    ),
) -> None:
    """Print the usable headers of a source.

    Like a fetcher's lookup, a miss provisions a placeholder row, so
    ``--source-url`` is required: a placeholder without one would be listed
    as invalidated. Exits with code 4 when no usable headers exist.

    Example::

        credcache get zhihu --source-url https://www.zhihu.com/hot
    """
    settings = _settings(ctx)

    async def _run() -> Optional[dict[str, str]]:
        async with _opened_cache(settings) as cache:
            _require(cache)
            return await cache.get(key, source_url)

    headers = asyncio.run(_run())
    if headers is None:
        error(f"No usable headers cached for '{key}'.")
        suggest(f"Populate them with: credcache set {key} --header 'Name: value'")
        raise typer.Exit(code=EXIT_NOT_FOUND)
    format_response(headers)


def show_command(
    ctx: typer.Context,
    key: str = typer.Argument(help="Source identifier."),
    reveal: bool = typer.Option(False, "--reveal", help="Show header values unmasked."),
) -> None:
    """Show the state of one entry without modifying the cache.

    Example::

        credcache show zhihu
        credcache --json show zhihu --reveal
    """
    settings = _settings(ctx)

    async def _run() -> Optional[CachedHeaders]:
        async with _opened_cache(settings) as cache:
            _require(cache)
            return await cache.lookup(key)

    entry = asyncio.run(_run())
    if entry is None:
        raise typer.Exit(code=EXIT_STORE_ERROR)
    if entry.state == HeaderState.MISSING:
        error(f"No header cache entry for '{key}'.")
        raise typer.Exit(code=EXIT_NOT_FOUND)
    format_response(_describe(entry, reveal=reveal))


def list_command(
    ctx: typer.Context,
    pending: bool = typer.Option(
        False, "--pending", help="Only entries waiting for (new) credentials."
    ),
) -> None:
    """List cached entries and their states.

    Example::

        credcache list
        credcache --plain list --pending
    """
    settings = _settings(ctx)

    async def _run() -> list[CachedHeaders]:
        async with _opened_cache(settings) as cache:
            _require(cache)
            return await (cache.pending() if pending else cache.entries())

    entries = asyncio.run(_run())
    if not entries:
        info("No matching header cache entries.")
        return

    rows = [
        [
            entry.key,
            entry.state.value,
            entry.source_url,
            entry.updated or "",
            ", ".join(sorted(entry.headers)) if entry.headers else "",
        ]
        for entry in entries
    ]
    print_table(["id", "state", "source_url", "updated", "headers"], rows, title="Header cache")


def invalidate_command(
    ctx: typer.Context,
    key: str = typer.Argument(help="Source identifier."),
) -> None:
    """Clear a source's headers in place, keeping the row as a marker.

    Example::

        credcache invalidate zhihu
    """
    settings = _settings(ctx)

    async def _run() -> tuple[bool, Optional[CachedHeaders]]:
        async with _opened_cache(settings) as cache:
            _require(cache)
            if await cache.set_invalid(key):
                return True, None
            return False, await cache.lookup(key)

    cleared, entry = asyncio.run(_run())
    if cleared:
        success(f"Invalidated '{key}'.")
        return
    if entry is not None and entry.state == HeaderState.MISSING:
        info(f"No header cache entry for '{key}'; nothing to invalidate.")
        return
    # The row exists (or could not be read), so the update itself failed.
    error(f"Could not invalidate '{key}'.")
    raise typer.Exit(code=EXIT_STORE_ERROR)


def delete_command(
    ctx: typer.Context,
    key: str = typer.Argument(help="Source identifier."),
) -> None:
    """Remove a source's row entirely.

    Example::

        credcache delete zhihu
    """
    settings = _settings(ctx)

    async def _run() -> bool:
        async with _opened_cache(settings) as cache:
            _require(cache)
            return await cache.delete(key)

    if asyncio.run(_run()):
        success(f"Deleted '{key}'.")
    else:
        info(f"No header cache entry for '{key}' was deleted.")


def fetch_command(
    ctx: typer.Context,
    url: str = typer.Argument(help="URL to fetch."),
    source: str = typer.Option(..., "--source", "-s", help="Source identifier."),
    source_url: Optional[str] = typer.Option(
        None, "--source-url", "-u", help="URL recorded if the source has no entry yet."
    ),
) -> None:
    """Fetch a URL with a source's cached headers.

    A rejected credential is cleared from the cache and the command exits
    with code 3. When the cache is disabled the request is sent without
    cached headers.

    Example::

        credcache fetch https://www.zhihu.com/api/v3/feed/topstory/hot-lists/total \\
            --source zhihu --source-url https://www.zhihu.com/hot
    """
    from credcache.client import ResilientFetcher

    settings = _settings(ctx)

    async def _run():
        async with _opened_cache(settings) as cache:
            headers: dict[str, str] = {}
            if cache is not None:
                headers = await cache.get(source, source_url or url) or {}
            get_output().debug(f"{source}: sending {len(headers)} cached header(s)")
            async with ResilientFetcher(
                cache, policy=settings.invalidation, request=settings.request
            ) as fetcher:
                return await fetcher.fetch_with_auth(url, headers, source)

    try:
        body = asyncio.run(_run())
    except CredcacheError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    format_response(body if body is not None else "")
