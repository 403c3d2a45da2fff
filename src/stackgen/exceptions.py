"""Exception hierarchy for stackgen.

All exceptions inherit from :class:`StackgenError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`stackgen.exit_codes`.
The top-level error handler in :func:`stackgen.app.main` catches
``StackgenError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Subclass hierarchy::

    StackgenError (exit 1)
    +-- ConfigError            (exit 2)
    +-- InvalidParameterType   (exit 2)
    +-- TransportError         (exit 6)
    |   +-- EmptyResponse
    |   +-- MalformedResponse
    |   +-- TransportTimeout
    +-- RemoteCommandFailed    (exit 5)
    +-- SchemaError            (exit 7)
        +-- TypeCollisionError
"""

from __future__ import annotations

from typing import Any, Optional

from stackgen.exit_codes import (
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_REMOTE_FAILURE,
    EXIT_SCHEMA_ERROR,
)


class StackgenError(Exception):
    """Base exception for all stackgen errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`stackgen.exit_codes`. The entry point catches
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


class ConfigError(StackgenError):
    """Raised before any network call for missing or invalid configuration.

    Covers an empty endpoint host, empty API key or secret key, a missing
    or non-writable output directory, and unreadable config files.
    """

    exit_code = EXIT_INVALID_USAGE


class InvalidParameterType(StackgenError):
    """Raised when a request parameter value is not a bool, int, float, or str.

    Values are never silently coerced; the offending key and type are
    reported in the message.
    """

    exit_code = EXIT_INVALID_USAGE

    def __init__(self, key: str, value: Any):
        super().__init__(
            f"Parameter '{key}' has unsupported type {type(value).__name__}; "
            "expected bool, int, float, or str"
        )
        self.key = key
        self.value = value


class TransportError(StackgenError):
    """Raised on network-level failures (DNS resolution, connection refused)."""

    exit_code = EXIT_CONNECTION_ERROR


class EmptyResponse(TransportError):
    """Raised when the API answers with an empty body."""


class MalformedResponse(TransportError):
    """Raised when the body is not a JSON object or lacks the expected envelope."""


class TransportTimeout(TransportError):
    """Raised when the HTTP exchange exceeds the configured timeout."""


class RemoteCommandFailed(StackgenError):
    """Raised when the API signals an application-level error for a command.

    Args:
        command: The remote command that failed.
        error_text: The server-provided ``errortext``, or the raw body when
            no error text could be extracted.
        status_code: The HTTP status code, when the failure came from a
            non-2xx response.
    """

    exit_code = EXIT_REMOTE_FAILURE

    def __init__(
        self,
        command: str,
        error_text: str,
        status_code: Optional[int] = None,
    ):
        prefix = f"Command '{command}' failed"
        if status_code is not None:
            prefix += f" (HTTP {status_code})"
        super().__init__(f"{prefix}: {error_text}")
        self.command = command
        self.error_text = error_text
        self.status_code = status_code


class SchemaError(StackgenError):
    """Raised when a local schema snapshot cannot be read or decoded."""

    exit_code = EXIT_SCHEMA_ERROR


class TypeCollisionError(SchemaError):
    """Raised in strict mode when one type name describes two different shapes."""

    def __init__(self, type_name: str, existing: list[str], incoming: list[str]):
        super().__init__(
            f"Type '{type_name}' is described with two different shapes: "
            f"{existing} vs {incoming}"
        )
        self.type_name = type_name
        self.existing = existing
        self.incoming = incoming
