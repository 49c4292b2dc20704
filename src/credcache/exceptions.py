"""Exception hierarchy for credcache.

All exceptions inherit from :class:`CredcacheError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`credcache.exit_codes`.
The top-level error handler in :func:`credcache.app.main` catches
``CredcacheError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Subclass hierarchy::

    CredcacheError (exit 1)
    +-- InvalidUsageError          (exit 2)
    +-- AuthError                  (exit 3)
    +-- NotFoundError              (exit 4)
    +-- ServerError                (exit 5)
    +-- ConnectionError_           (exit 6)
    +-- StoreError                 (exit 7)
    +-- MalformedCacheValueError   (exit 8)
    +-- ConfigError                (exit 1)

Only :class:`AuthError`, :class:`NotFoundError`, :class:`ServerError` and
:class:`ConnectionError_` ever reach a source adapter.  :class:`StoreError`
and :class:`MalformedCacheValueError` are raised below the
:class:`~credcache.cache.HeaderCache` boundary and logged there.
"""

from credcache.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_MALFORMED_VALUE,
    EXIT_NOT_FOUND,
    EXIT_SERVER_ERROR,
    EXIT_STORE_ERROR,
)


class CredcacheError(Exception):
    """Base exception for all credcache errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`credcache.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(CredcacheError):
    """Raised for invalid CLI arguments or malformed header input."""

    exit_code = EXIT_INVALID_USAGE


class AuthError(CredcacheError):
    """Raised when the remote server rejects the credential (HTTP 401 / 403)."""

    exit_code = EXIT_AUTH_FAILURE


class NotFoundError(CredcacheError):
    """Raised when the remote returns HTTP 404 or a cache entry does not exist."""

    exit_code = EXIT_NOT_FOUND


class ServerError(CredcacheError):
    """Raised when the remote returns an HTTP error that is not an auth rejection."""

    exit_code = EXIT_SERVER_ERROR


class ConnectionError_(CredcacheError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused).

    Named with a trailing underscore to avoid shadowing the built-in
    ``ConnectionError``.
    """

    exit_code = EXIT_CONNECTION_ERROR


class StoreError(CredcacheError):
    """Raised by a :class:`~credcache.store.Store` when the backing database fails."""

    exit_code = EXIT_STORE_ERROR


class MalformedCacheValueError(CredcacheError):
    """Raised when a stored ``header`` column is not a JSON object of strings."""

    exit_code = EXIT_MALFORMED_VALUE


class ConfigError(CredcacheError):
    """Raised for configuration problems (invalid settings file, bad database URL)."""

    exit_code = EXIT_GENERIC_FAILURE
