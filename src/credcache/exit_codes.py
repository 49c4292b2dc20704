"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~credcache.exceptions.CredcacheError` subclass.
Shell wrappers and cron jobs that repopulate headers can inspect the exit
code to tell a rejected credential apart from a store outage.

Example::

    $ credcache fetch https://www.zhihu.com/api/v3/feed --source zhihu
    $ echo $?
    3   # EXIT_AUTH_FAILURE -- cached headers were rejected and cleared
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or missing required parameters."""

EXIT_AUTH_FAILURE = 3
"""The remote server rejected the cached credential."""

EXIT_NOT_FOUND = 4
"""The requested resource or cache entry was not found."""

EXIT_SERVER_ERROR = 5
"""The remote server returned an HTTP error other than an auth rejection."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_STORE_ERROR = 7
"""The persistent header store could not be reached or queried."""

EXIT_MALFORMED_VALUE = 8
"""A stored header value could not be decoded."""
