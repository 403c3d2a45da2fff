"""Signed command execution -- a :class:`RequestSigner` paired with a :class:`Transport`.

:class:`ApiClient` is what the schema fetcher talks to. It signs a command,
sends it, and returns the decoded top-level JSON object.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from stackgen.client.signing import RequestSigner
from stackgen.client.transport import Transport


class ApiClient:
    """Execute remote commands against one endpoint.

    Args:
        signer: Builds the canonical signed query for each command.
        transport: An entered :class:`Transport` performing the exchange.
    """

    def __init__(self, signer: RequestSigner, transport: Transport) -> None:
        self._signer = signer
        self._transport = transport

    @property
    def description(self) -> str:
        """Human-readable target, used in progress messages."""
        return self._signer.endpoint.base_url

    def execute(
        self, command: str, params: Optional[Mapping[str, Any]] = None
    ) -> dict[str, Any]:
        """Sign and send *command*, returning the raw decoded envelope."""
        return self._transport.send(self._signer.build(command, params))
