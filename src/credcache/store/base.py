"""Abstract persistence interface used by the header cache.

The cache never talks to a database driver directly. It issues single SQL
statements with named bind parameters through a :class:`Store`, which
keeps it portable across any engine that supports ``CREATE TABLE IF NOT
EXISTS`` and ``INSERT OR REPLACE``.

Every method runs exactly one statement atomically, so a caller that
abandons an in-flight call never leaves a row half-written.

See Also:
    :class:`~credcache.store.sqlalchemy_store.SqlAlchemyStore` for the
    async SQLAlchemy implementation.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional

Params = Mapping[str, Any]


class Store(ABC):
    """Narrow async statement executor.

    Implementations raise :class:`~credcache.exceptions.StoreError` on any
    backend failure. Rows are returned as plain ``dict`` objects keyed by
    column name.
    """

    @abstractmethod
    async def execute(self, statement: str, params: Optional[Params] = None) -> int:
        """Run a mutating statement and return the number of affected rows."""
        ...

    @abstractmethod
    async def query_one(
        self, statement: str, params: Optional[Params] = None
    ) -> Optional[dict[str, Any]]:
        """Run a query and return its first row, or ``None`` when it has none."""
        ...

    @abstractmethod
    async def query_many(
        self, statement: str, params: Optional[Params] = None
    ) -> list[dict[str, Any]]:
        """Run a query and return every row."""
        ...

    async def close(self) -> None:
        """Release connections held by the store. No-op by default."""
        return None
