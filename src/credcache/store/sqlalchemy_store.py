"""Async SQLAlchemy implementation of :class:`~credcache.store.base.Store`.

Statements are wrapped in :func:`sqlalchemy.text` and always executed with
named bind parameters. Each call opens its own ``engine.begin()`` block so
one statement equals one transaction.
"""

from __future__ import annotations

from typing import Any, Optional

from sqlalchemy import text
from sqlalchemy.exc import ArgumentError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from credcache.exceptions import StoreError
from credcache.store.base import Params, Store


class SqlAlchemyStore(Store):
    """Store backed by a shared :class:`~sqlalchemy.ext.asyncio.AsyncEngine`.

    The engine's connection pool is shared by every source adapter; no
    extra locking is needed because the cache never spans a read-modify-write
    across statements.

    Args:
        engine: The async engine to execute statements on.

    Example::

        store = SqlAlchemyStore.from_url("sqlite+aiosqlite:///headers.db")
        await store.execute("DELETE FROM header_cache WHERE id = :id", {"id": "zhihu"})
        await store.close()
    """

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    @classmethod
    def from_url(cls, url: str, echo: bool = False) -> SqlAlchemyStore:
        """Create a store (and its engine) from a SQLAlchemy async URL.

        Raises:
            StoreError: If the URL is invalid or its driver is not installed.
        """
        try:
            engine = create_async_engine(url, echo=echo, pool_pre_ping=True)
        except (ArgumentError, ImportError, SQLAlchemyError) as exc:
            raise StoreError(f"Cannot create database engine for {url}: {exc}") from exc
        return cls(engine)

    @property
    def engine(self) -> AsyncEngine:
        """The underlying async engine."""
        return self._engine

    async def execute(self, statement: str, params: Optional[Params] = None) -> int:
        try:
            async with self._engine.begin() as conn:
                result = await conn.execute(text(statement), dict(params or {}))
                return result.rowcount
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc

    async def query_one(
        self, statement: str, params: Optional[Params] = None
    ) -> Optional[dict[str, Any]]:
        try:
            async with self._engine.connect() as conn:
                result = await conn.execute(text(statement), dict(params or {}))
                row = result.mappings().first()
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc
        return dict(row) if row is not None else None

    async def query_many(
        self, statement: str, params: Optional[Params] = None
    ) -> list[dict[str, Any]]:
        try:
            async with self._engine.connect() as conn:
                result = await conn.execute(text(statement), dict(params or {}))
                rows = result.mappings().all()
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc
        return [dict(row) for row in rows]

    async def close(self) -> None:
        await self._engine.dispose()
