"""credcache -- Credential-aware HTTP header cache with self-healing invalidation.

This package keeps per-source request headers (session cookies, auth tokens
rotated out-of-band) in a single SQL table and hands them to outbound
fetchers. When a remote server rejects a cached credential, the fetcher
clears the entry in place so an external process can repopulate it.

Typical workflow::

    credcache init                                  # create the table
    credcache set zhihu -H "Cookie: z_c0=abc"       # store headers
    credcache fetch https://example.com/api --source zhihu

Modules:
    app: Typer application factory and CLI entry point.
    models: Pydantic models shared across the entire package.
    config: XDG-aware settings resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
    store: Narrow async persistence interface over SQLAlchemy.
    cache: The :class:`~credcache.cache.HeaderCache` itself.
    client: :class:`~credcache.client.ResilientFetcher` for outbound calls.
    sources: Base class for per-service source adapters.
"""

__version__ = "0.1.0"
