"""Persistent per-source header cache with in-place invalidation.

Each source identifier (``"zhihu"``, ``"weibo"``, ...) owns at most one row in
the ``header_cache`` table. The row holds a JSON object of request headers,
or the empty string when the entry is a placeholder or has been invalidated.
Rows are created lazily: explicitly by :meth:`HeaderCache.set`, or by a
:meth:`HeaderCache.get` miss, which records the source URL so an
out-of-band process can discover which sources still need credentials.

Every public operation is fault-isolated. A failing store is reported on
the diagnostics channel and the operation returns an absent result
(``None``, ``False`` or ``[]``), so a fetch pipeline degrades to "no cached
headers" instead of crashing.

See Also:
    :class:`~credcache.client.fetcher.ResilientFetcher` -- clears entries
    whose credentials the remote server rejected.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from credcache.exceptions import MalformedCacheValueError
from credcache.models import CachedHeaders, CacheSettings, HeaderCacheRow, HeaderState
from credcache.output import OutputManager, get_output
from credcache.store import SqlAlchemyStore, Store

TABLE_NAME = "header_cache"

_CREATE_TABLE = f"""
CREATE TABLE IF NOT EXISTS {TABLE_NAME} (
    id TEXT PRIMARY KEY,
    updated DATETIME,
    source_url TEXT,
    header TEXT
)
"""

_UPSERT = (
    f"INSERT OR REPLACE INTO {TABLE_NAME} (id, header, source_url, updated) "
    "VALUES (:id, :header, :source_url, :updated)"
)

# A racing set() must win over the placeholder.
_PROVISION = (
    f"INSERT OR IGNORE INTO {TABLE_NAME} (id, header, source_url, updated) "
    "VALUES (:id, '', :source_url, :updated)"
)

_SELECT_ONE = f"SELECT id, header, source_url, updated FROM {TABLE_NAME} WHERE id = :id"
_SELECT_ALL = f"SELECT id, header, source_url, updated FROM {TABLE_NAME} ORDER BY id"
_INVALIDATE = f"UPDATE {TABLE_NAME} SET header = '', updated = :updated WHERE id = :id"
_DELETE = f"DELETE FROM {TABLE_NAME} WHERE id = :id"

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def now_timestamp() -> str:
    """Current UTC time in the table's sortable, timezone-naive format."""
    return datetime.now(timezone.utc).strftime(TIMESTAMP_FORMAT)


def encode_headers(headers: dict[str, str]) -> str:
    """Serialise a header mapping for the ``header`` column."""
    return json.dumps(dict(headers), ensure_ascii=False, sort_keys=True)


def decode_headers(raw: str) -> dict[str, str]:
    """Parse a ``header`` column value.

    Raises:
        MalformedCacheValueError: If *raw* is not a JSON object whose keys
            and values are all strings.
    """
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, TypeError) as exc:
        raise MalformedCacheValueError(f"header is not valid JSON: {exc}") from exc
    if not isinstance(data, dict) or not all(
        isinstance(k, str) and isinstance(v, str) for k, v in data.items()
    ):
        raise MalformedCacheValueError("header is not a JSON object of strings")
    return data


def decode_row(key: str, row: Optional[dict[str, Any]]) -> CachedHeaders:
    """Turn a raw table row (or its absence) into a :class:`CachedHeaders`."""
    if row is None:
        return CachedHeaders(key=key, state=HeaderState.MISSING)

    updated = row.get("updated")
    stored = HeaderCacheRow(
        id=key,
        header=str(row.get("header") or ""),
        source_url=str(row.get("source_url") or ""),
        updated=str(updated) if updated is not None else None,
    )
    raw, source_url, updated = stored.header, stored.source_url, stored.updated

    if not raw:
        state = HeaderState.UNPOPULATED if source_url else HeaderState.INVALIDATED
        return CachedHeaders(key=key, state=state, source_url=source_url, updated=updated)

    try:
        headers = decode_headers(raw)
    except MalformedCacheValueError:
        return CachedHeaders(
            key=key, state=HeaderState.MALFORMED, source_url=source_url, updated=updated
        )
    return CachedHeaders(
        key=key,
        state=HeaderState.VALID,
        headers=headers,
        source_url=source_url,
        updated=updated,
    )


class HeaderCache:
    """Durable mapping from source identifier to a header set.

    Args:
        store: The persistence backend.
        output: Diagnostics sink. Defaults to the global
            :class:`~credcache.output.OutputManager`.

    Example::

        cache = HeaderCache(SqlAlchemyStore.from_url("sqlite+aiosqlite:///h.db"))
        await cache.init()
        await cache.set("zhihu", {"cookie": "abc"})
        headers = await cache.get("zhihu", "https://www.zhihu.com/hot")
    """

    def __init__(self, store: Store, output: Optional[OutputManager] = None) -> None:
        self._store = store
        self._output = output

    @property
    def store(self) -> Store:
        """The persistence backend."""
        return self._store

    @property
    def output(self) -> OutputManager:
        return self._output if self._output is not None else get_output()

    async def init(self) -> bool:
        """Create the ``header_cache`` table if it does not exist.

        Returns:
            ``True`` when the table is ready, ``False`` if creation failed.
            A failure is logged; the cache then behaves as a degraded no-op.
        """
        try:
            await self._store.execute(_CREATE_TABLE)
        except Exception as exc:
            self.output.error(f"Failed to init {TABLE_NAME} table: {exc}")
            return False
        self.output.success(f"init {TABLE_NAME} table")
        return True

    async def set(self, key: str, headers: dict[str, str]) -> bool:
        """Store *headers* for *key*, replacing any existing row.

        ``source_url`` is cleared and ``updated`` refreshed.

        Returns:
            ``True`` if the row was written. ``False`` means nothing was
            persisted and the failure has been logged.
        """
        try:
            await self._store.execute(
                _UPSERT,
                {
                    "id": key,
                    "header": encode_headers(headers),
                    "source_url": "",
                    "updated": now_timestamp(),
                },
            )
        except Exception as exc:
            self.output.error(f"Failed to set {key} header cache: {exc}")
            return False
        self.output.success(f"set {key} header cache")
        return True

    async def get(self, key: str, source_url: str) -> Optional[dict[str, str]]:
        """Return the usable headers for *key*, or ``None``.

        On a miss a placeholder row recording *source_url* is provisioned
        so an external process can populate it later. Invalidated,
        unpopulated and malformed entries all read as ``None``. This method
        never raises.
        """
        try:
            row = await self._store.query_one(_SELECT_ONE, {"id": key})
            if row is None:
                await self._store.execute(
                    _PROVISION,
                    {"id": key, "source_url": source_url, "updated": now_timestamp()},
                )
                self.output.debug(f"provisioned {key} header cache for {source_url}")
                return None
        except Exception as exc:
            self.output.error(f"Failed to get {key} header cache: {exc}")
            return None

        entry = decode_row(key, row)
        if entry.state == HeaderState.MALFORMED:
            self.output.warning(f"Ignoring malformed {key} header cache")
            return None
        if not entry.is_usable:
            self.output.debug(f"{key} header cache is {entry.state.value}")
            return None
        self.output.debug(f"get {key} header cache")
        return entry.headers

    async def get_entire(self, keys: Iterable[str]) -> list[dict[str, str]]:
        """Return the usable headers of every key in *keys* that has them.

        Keys without a row, with an empty header or with a malformed value
        are skipped. Identifiers are sent as bound parameters.
        """
        unique = list(dict.fromkeys(keys))
        if not unique:
            return []

        params = {f"id_{i}": key for i, key in enumerate(unique)}
        placeholders = ", ".join(f":{name}" for name in params)
        statement = (
            f"SELECT id, header, source_url, updated FROM {TABLE_NAME} "
            f"WHERE id IN ({placeholders}) AND header != ''"
        )
        try:
            rows = await self._store.query_many(statement, params)
        except Exception as exc:
            self.output.error(f"Failed to get entire {TABLE_NAME}: {exc}")
            return []

        result: list[dict[str, str]] = []
        for row in rows:
            entry = decode_row(str(row["id"]), row)
            if entry.state == HeaderState.MALFORMED:
                self.output.warning(f"Ignoring malformed {entry.key} header cache")
            elif entry.is_usable:
                result.append(entry.headers)  # type: ignore[arg-type]
        return result

    async def set_invalid(self, key: str) -> bool:
        """Clear the headers of *key* in place, keeping the row as a marker.

        Missing keys are left alone. Returns ``True`` if a row was cleared.
        """
        try:
            affected = await self._store.execute(
                _INVALIDATE, {"id": key, "updated": now_timestamp()}
            )
        except Exception as exc:
            self.output.error(f"Failed to set {key} header cache as invalid: {exc}")
            return False
        if affected:
            self.output.warning(f"{key} header cache marked invalid")
        return bool(affected)

    async def delete(self, key: str) -> bool:
        """Remove the row for *key*. Returns ``True`` if a row was deleted."""
        try:
            affected = await self._store.execute(_DELETE, {"id": key})
        except Exception as exc:
            self.output.error(f"Failed to delete {key} header cache: {exc}")
            return False
        return bool(affected)

    async def lookup(self, key: str) -> Optional[CachedHeaders]:
        """Inspect one entry without provisioning a placeholder.

        Returns ``None`` only when the store failed.
        """
        try:
            row = await self._store.query_one(_SELECT_ONE, {"id": key})
        except Exception as exc:
            self.output.error(f"Failed to look up {key} header cache: {exc}")
            return None
        return decode_row(key, row)

    async def entries(self) -> list[CachedHeaders]:
        """Every row in the table, ordered by identifier."""
        try:
            rows = await self._store.query_many(_SELECT_ALL)
        except Exception as exc:
            self.output.error(f"Failed to list {TABLE_NAME}: {exc}")
            return []
        return [decode_row(str(row["id"]), row) for row in rows]

    async def pending(self) -> list[CachedHeaders]:
        """Entries that need an external process to (re)populate them."""
        return [
            entry
            for entry in await self.entries()
            if entry.state in (HeaderState.UNPOPULATED, HeaderState.INVALIDATED)
        ]

    async def close(self) -> None:
        """Close the underlying store."""
        await self._store.close()


async def open_header_cache(
    settings: CacheSettings,
    store: Optional[Store] = None,
    output: Optional[OutputManager] = None,
) -> Optional[HeaderCache]:
    """Build a :class:`HeaderCache` according to *settings*.

    Returns ``None`` when the cache is disabled, in which case callers skip
    every cache call and fetch without headers. When *store* is omitted one
    is created from ``settings.database_url``; if that fails the error is
    logged and ``None`` is returned. The table is created unless
    ``settings.init_table`` is false.
    """
    if not settings.enabled:
        return None

    if store is None:
        if not settings.database_url:
            (output or get_output()).error("No database URL configured for header cache")
            return None
        try:
            store = SqlAlchemyStore.from_url(settings.database_url)
        except Exception as exc:
            (output or get_output()).error(f"Failed to open header cache database: {exc}")
            return None

    cache = HeaderCache(store, output=output)
    if settings.init_table:
        await cache.init()
    return cache
