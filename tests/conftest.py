"""Shared test fixtures for credcache.

Provides isolated config environments, a temporary SQLite-backed header
cache, and output state management. These fixtures are automatically
discovered by pytest and available to all test modules without explicit
imports.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

import pytest
import pytest_asyncio

from credcache.cache import HeaderCache
from credcache.output import OutputFormat, OutputManager, reset_output, set_output
from credcache.store import SqlAlchemyStore, Store


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time.  When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME and XDG_DATA_HOME to subdirectories of tmp_path
    so that tests never touch real user config or the default database,
    and clears every environment toggle the settings resolver reads.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    monkeypatch.setattr("credcache.config._is_xdg_platform", lambda: True)

    for var in [
        "CREDCACHE_ENABLE_CACHE",
        "ENABLE_CACHE",
        "CREDCACHE_INIT_TABLE",
        "INIT_TABLE",
        "CREDCACHE_DATABASE_URL",
        "CREDCACHE_INVALIDATION",
    ]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a quiet PLAIN OutputManager for tests that don't care about output."""
    output = OutputManager(format=OutputFormat.PLAIN, no_color=True, quiet=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# Store / cache fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    """URL of a fresh SQLite database file inside tmp_path."""
    return f"sqlite+aiosqlite:///{tmp_path / 'headers.db'}"


@pytest_asyncio.fixture
async def store(database_url: str) -> SqlAlchemyStore:
    """A SqlAlchemyStore on a fresh database, disposed after the test."""
    s = SqlAlchemyStore.from_url(database_url)
    yield s
    await s.close()


@pytest_asyncio.fixture
async def cache(store: SqlAlchemyStore, quiet_output: OutputManager) -> HeaderCache:
    """An initialised HeaderCache on a fresh database."""
    c = HeaderCache(store, output=quiet_output)
    assert await c.init() is True
    return c


async def raw_row(store: Store, key: str) -> Optional[dict[str, Any]]:
    """Read a header_cache row directly, bypassing the cache."""
    return await store.query_one(
        "SELECT id, header, source_url, updated FROM header_cache WHERE id = :id",
        {"id": key},
    )


async def row_count(store: Store) -> int:
    """Number of rows in header_cache."""
    row = await store.query_one("SELECT COUNT(*) AS n FROM header_cache")
    return int(row["n"]) if row else 0


class FailingStore(Store):
    """A store whose every call raises, simulating a database outage."""

    def __init__(self, exc: Exception | None = None) -> None:
        self.exc = exc or RuntimeError("database is unavailable")
        self.calls: list[str] = []

    async def execute(self, statement, params=None):
        self.calls.append(statement)
        raise self.exc

    async def query_one(self, statement, params=None):
        self.calls.append(statement)
        raise self.exc

    async def query_many(self, statement, params=None):
        self.calls.append(statement)
        raise self.exc


@pytest.fixture
def read_row():
    """The :func:`raw_row` helper, for direct row-level assertions."""
    return raw_row


@pytest.fixture
def count_rows():
    """The :func:`row_count` helper."""
    return row_count


@pytest.fixture
def failing_store() -> FailingStore:
    """A store that raises on every call."""
    return FailingStore()
