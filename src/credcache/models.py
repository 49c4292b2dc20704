"""Canonical Pydantic models shared across all credcache modules.

This is the single source of truth for data shapes in the project. The
models fall into two groups:

**Configuration models** -- serialised as JSON in the user's config directory
and overridden by environment variables:
    :class:`InvalidationPolicy`, :class:`RequestConfig`, and
    :class:`CacheSettings`.

**Cache models** -- produced by :class:`~credcache.cache.HeaderCache`:
    :class:`HeaderCacheRow` (the raw table row), :class:`HeaderState`, and
    :class:`CachedHeaders` (a row decoded into an explicit tagged state).
"""

from __future__ import annotations

import enum
from typing import Optional

from pydantic import BaseModel, Field


# --- Configuration ---


class InvalidationPolicy(str, enum.Enum):
    """Which fetch failures clear the cached credential.

    ``AUTH`` only reacts to an explicit rejection (HTTP 401 / 403), so a
    timeout or a 5xx never throws away a credential that still works.
    ``ANY_FAILURE`` clears the entry on every failed fetch.
    """

    AUTH = "auth"
    ANY_FAILURE = "any_failure"


class RequestConfig(BaseModel):
    """Default HTTP request settings applied by the resilient fetcher."""

    timeout: int = Field(default=30, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")


class CacheSettings(BaseModel):
    """Effective header-cache settings, persisted at ``~/.config/credcache/config.json``.

    Loaded by :func:`~credcache.config.load_settings` and resolved against
    the environment by :func:`~credcache.config.resolve_settings`. The
    ``enabled`` and ``init_table`` toggles are read once when the cache is
    opened.
    """

    enabled: bool = Field(default=True, description="Use the header cache at all")
    init_table: bool = Field(
        default=True, description="Create the header_cache table on startup"
    )
    database_url: Optional[str] = Field(
        default=None,
        description="SQLAlchemy async URL; defaults to a SQLite file in the data dir",
    )
    invalidation: InvalidationPolicy = Field(
        default=InvalidationPolicy.AUTH,
        description="Which fetch failures clear the cached headers",
    )
    request: RequestConfig = Field(default_factory=RequestConfig)


# --- Cache rows ---


class HeaderCacheRow(BaseModel):
    """One row of the ``header_cache`` table, exactly as stored."""

    id: str
    updated: Optional[str] = None
    source_url: str = ""
    header: str = ""


class HeaderState(str, enum.Enum):
    """Explicit state of a cached credential.

    The table only has the empty-string sentinel; the state is derived from
    the row: an empty header with a recorded ``source_url`` is a placeholder
    that was never filled, while an empty header with an empty
    ``source_url`` was written by ``set`` and later cleared.
    """

    MISSING = "missing"
    UNPOPULATED = "unpopulated"
    VALID = "valid"
    INVALIDATED = "invalidated"
    MALFORMED = "malformed"


class CachedHeaders(BaseModel):
    """A cache row decoded into a :class:`HeaderState` plus usable headers."""

    key: str
    state: HeaderState
    headers: Optional[dict[str, str]] = None
    source_url: str = ""
    updated: Optional[str] = None

    @property
    def is_usable(self) -> bool:
        """Whether :attr:`headers` may be sent with a request."""
        return self.state == HeaderState.VALID and self.headers is not None
