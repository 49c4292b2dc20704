"""Tests for the async SQLAlchemy store."""

from __future__ import annotations

import pytest

from credcache.exceptions import StoreError
from credcache.store import SqlAlchemyStore


@pytest.fixture()
def create_table_sql() -> str:
    return "CREATE TABLE IF NOT EXISTS kv (id TEXT PRIMARY KEY, value TEXT)"


class TestExecute:
    @pytest.mark.asyncio
    async def test_returns_affected_rows(self, store: SqlAlchemyStore, create_table_sql) -> None:
        await store.execute(create_table_sql)
        await store.execute("INSERT INTO kv (id, value) VALUES (:id, :v)", {"id": "a", "v": "1"})
        await store.execute("INSERT INTO kv (id, value) VALUES (:id, :v)", {"id": "b", "v": "2"})
        assert await store.execute("UPDATE kv SET value = 'x'") == 2
        assert await store.execute("DELETE FROM kv WHERE id = :id", {"id": "zzz"}) == 0

    @pytest.mark.asyncio
    async def test_sql_error_becomes_store_error(self, store: SqlAlchemyStore) -> None:
        with pytest.raises(StoreError):
            await store.execute("INSERT INTO no_such_table VALUES (1)")


class TestQueries:
    @pytest.mark.asyncio
    async def test_query_one_and_many(self, store: SqlAlchemyStore, create_table_sql) -> None:
        await store.execute(create_table_sql)
        for key in ("b", "a"):
            await store.execute("INSERT INTO kv (id, value) VALUES (:id, :id)", {"id": key})

        row = await store.query_one("SELECT id, value FROM kv WHERE id = :id", {"id": "a"})
        assert row == {"id": "a", "value": "a"}
        assert await store.query_one("SELECT id FROM kv WHERE id = :id", {"id": "nope"}) is None

        rows = await store.query_many("SELECT id FROM kv ORDER BY id")
        assert rows == [{"id": "a"}, {"id": "b"}]

    @pytest.mark.asyncio
    async def test_query_error_becomes_store_error(self, store: SqlAlchemyStore) -> None:
        with pytest.raises(StoreError):
            await store.query_many("SELECT * FROM missing")
        with pytest.raises(StoreError):
            await store.query_one("SELECT * FROM missing")


class TestFromUrl:
    def test_unknown_dialect(self) -> None:
        with pytest.raises(StoreError, match="Cannot create database engine"):
            SqlAlchemyStore.from_url("nosuchdialect://nowhere")

    @pytest.mark.asyncio
    async def test_engine_exposed(self, database_url: str) -> None:
        store = SqlAlchemyStore.from_url(database_url)
        try:
            assert store.engine.url.drivername == "sqlite+aiosqlite"
        finally:
            await store.close()
