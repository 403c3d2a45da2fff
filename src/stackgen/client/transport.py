"""Blocking HTTP transport for signed management API calls.

This module provides :class:`Transport`, a thin wrapper around
:class:`httpx.Client` that performs exactly one POST per signed query and
decodes the JSON envelope. There are no retries: every failure maps to a
typed exception from :mod:`stackgen.exceptions` and aborts the caller.

Failure mapping:

- non-2xx status -> :class:`~stackgen.exceptions.RemoteCommandFailed`
  (with the envelope's ``errortext`` when present)
- empty body -> :class:`~stackgen.exceptions.EmptyResponse`
- body that is not a JSON object -> :class:`~stackgen.exceptions.MalformedResponse`
- timeout -> :class:`~stackgen.exceptions.TransportTimeout`
- other network errors -> :class:`~stackgen.exceptions.TransportError`

See Also:
    :class:`~stackgen.client.api.ApiClient` which pairs a transport with a
    :class:`~stackgen.client.signing.RequestSigner`.
"""

from __future__ import annotations

import json
from typing import Any, Optional

import httpx

from stackgen.exceptions import (
    EmptyResponse,
    MalformedResponse,
    RemoteCommandFailed,
    TransportError,
    TransportTimeout,
)
from stackgen.models import SignedQuery
from stackgen.output import get_output

_HEADERS = {
    "Accept": "application/json",
    "Content-Type": "application/x-www-form-urlencoded",
}


class Transport:
    """Synchronous, single-attempt transport for signed queries.

    Must be used as a context manager so that the underlying connection
    pool is opened and closed.

    Args:
        timeout: Request timeout in seconds. ``None`` waits indefinitely.
        verify_ssl: Verify TLS certificates.

    Example::

        with Transport(timeout=30) as transport:
            envelope = transport.send(signer.build("listCapabilities"))
    """

    def __init__(self, timeout: Optional[float] = None, verify_ssl: bool = True) -> None:
        self._timeout = timeout
        self._verify_ssl = verify_ssl
        self._client: Optional[httpx.Client] = None

    # ------------------------------------------------------------------ #
    # Context manager
    # ------------------------------------------------------------------ #

    def __enter__(self) -> Transport:
        self._client = httpx.Client(timeout=self._timeout, verify=self._verify_ssl)
        return self

    def __exit__(self, *args: object) -> None:
        if self._client:
            self._client.close()
            self._client = None

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def send(self, signed: SignedQuery) -> dict[str, Any]:
        """POST *signed* and return the decoded top-level JSON object.

        The body is returned un-interpreted; unwrapping the
        ``<command>response`` envelope is left to the caller.

        Raises:
            RemoteCommandFailed: On a non-2xx status.
            EmptyResponse: On an empty body.
            MalformedResponse: When the body is not a JSON object.
            TransportTimeout: When the request times out.
            TransportError: On any other network failure.
        """
        if self._client is None:
            raise TransportError("Transport used outside of its context manager")

        get_output().debug(f"POST {signed.base_url} command={signed.command}")
        try:
            response = self._client.post(
                signed.base_url, content=signed.query, headers=_HEADERS
            )
        except httpx.TimeoutException as exc:
            raise TransportTimeout(
                f"Timed out calling '{signed.command}' on {signed.base_url}: {exc}"
            ) from exc
        except httpx.RequestError as exc:
            raise TransportError(
                f"Failed to reach {signed.base_url} for '{signed.command}': {exc}"
            ) from exc

        get_output().debug(f"HTTP {response.status_code} ({len(response.content)} bytes)")

        if not response.is_success:
            raise RemoteCommandFailed(
                signed.command,
                _extract_error_text(signed.command, response.text),
                status_code=response.status_code,
            )

        if not response.content or not response.content.strip():
            raise EmptyResponse(f"Empty response body for '{signed.command}'")

        try:
            decoded = json.loads(response.content)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise MalformedResponse(
                f"Response for '{signed.command}' is not valid JSON: {exc}"
            ) from exc

        if not isinstance(decoded, dict):
            raise MalformedResponse(
                f"Response for '{signed.command}' is not a JSON object "
                f"(got {type(decoded).__name__})"
            )
        return decoded


def _extract_error_text(command: str, body: str) -> str:
    """Pull ``errortext`` out of an error body, falling back to the raw body.

    The API places the error under ``<command-lower>response``; some
    failures (e.g. bad signatures) use ``errorresponse`` instead.
    """
    try:
        decoded = json.loads(body)
    except (json.JSONDecodeError, TypeError):
        return body.strip() or "<empty body>"

    if isinstance(decoded, dict):
        for key in (f"{command.lower()}response", "errorresponse"):
            envelope = decoded.get(key)
            if isinstance(envelope, dict) and "errortext" in envelope:
                return str(envelope["errortext"])
    return body.strip()
