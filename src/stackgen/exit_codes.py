"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~stackgen.exceptions.StackgenError` subclass.
Wrapper scripts can inspect the exit code to tell a bad configuration from
an unreachable API without parsing stderr.

Example::

    $ stackgen generate --out ./client
    $ echo $?
    2   # EXIT_INVALID_USAGE -- no endpoint / key / secret configured
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""Invalid arguments or configuration (missing endpoint, key, secret, output dir)."""

EXIT_REMOTE_FAILURE = 5
"""The management API rejected a command and returned an error text."""

EXIT_CONNECTION_ERROR = 6
"""A transport-level error occurred (timeout, refused connection, empty or malformed body)."""

EXIT_SCHEMA_ERROR = 7
"""The API schema could not be read, decoded, or modelled."""
