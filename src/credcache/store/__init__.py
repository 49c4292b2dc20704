"""Persistence layer for the header cache.

:class:`Store` is the narrow async interface the cache depends on;
:class:`SqlAlchemyStore` implements it over any async SQLAlchemy engine
(SQLite via ``aiosqlite`` by default).
"""

from credcache.store.base import Store
from credcache.store.sqlalchemy_store import SqlAlchemyStore

__all__ = ["SqlAlchemyStore", "Store"]
