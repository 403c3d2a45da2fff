"""Fetch the raw API schema from a live endpoint or a local snapshot.

The management API describes itself through two well-known commands:

* ``listApis`` -- every command with its parameters and response fields,
  wrapped as ``{"listapisresponse": {"api": [...]}}``.
* ``listCapabilities`` -- server metadata (notably the version), wrapped as
  ``{"listcapabilitiesresponse": {"capability": {...}}}``.

A :class:`SchemaSource` yields the unwrapped payloads; :class:`RemoteSource`
calls the live API through :class:`~stackgen.client.api.ApiClient`, while
:class:`LocalSource` reads saved responses via
:func:`~stackgen.schema.loader.load_snapshot`. :class:`SchemaFetcher` turns
the payloads into validated :class:`~stackgen.models.RawCommandSchema` and
:class:`~stackgen.models.RawCapabilities` models, trimming every ``name``
and ``description`` first so that downstream keying never sees stray
whitespace.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

from pydantic import ValidationError

from stackgen.client.api import ApiClient
from stackgen.exceptions import MalformedResponse, RemoteCommandFailed, SchemaError
from stackgen.models import RawCapabilities, RawCommandSchema
from stackgen.schema.loader import load_snapshot

logger = logging.getLogger(__name__)

LIST_APIS = "listApis"
LIST_CAPABILITIES = "listCapabilities"

_TRIMMED_KEYS = ("name", "description")
_NESTED_KEYS = ("params", "response")


class SchemaSource(ABC):
    """Where the raw ``listApis`` / ``listCapabilities`` payloads come from."""

    @property
    @abstractmethod
    def description(self) -> str:
        """Short human-readable description (host name or file name)."""

    @abstractmethod
    def commands(self) -> list[Any]:
        """Return the ``api`` list of the ``listApis`` response."""

    @abstractmethod
    def capabilities(self) -> dict[str, Any]:
        """Return the ``capability`` object of the ``listCapabilities`` response."""


class RemoteSource(SchemaSource):
    """Fetch the schema from a live endpoint.

    Args:
        client: A signed-command client bound to an entered transport.
    """

    def __init__(self, client: ApiClient) -> None:
        self._client = client

    @property
    def description(self) -> str:
        return self._client.description

    def commands(self) -> list[Any]:
        body = unwrap_envelope(LIST_APIS, self._client.execute(LIST_APIS))
        api = body.get("api", [])
        if not isinstance(api, list):
            raise MalformedResponse(
                f"'{LIST_APIS}' returned a non-list 'api' member ({type(api).__name__})"
            )
        return api

    def capabilities(self) -> dict[str, Any]:
        body = unwrap_envelope(LIST_CAPABILITIES, self._client.execute(LIST_CAPABILITIES))
        capability = body.get("capability")
        if not isinstance(capability, dict):
            raise MalformedResponse(f"'{LIST_CAPABILITIES}' returned no 'capability' object")
        return capability


class LocalSource(SchemaSource):
    """Read the schema from saved ``listApis`` / ``listCapabilities`` responses.

    Each argument is a file path or inline JSON text. Commands may be a
    bare list, ``{"api": [...]}``, or the full response envelope;
    capabilities may be ``{"capability": {...}}`` or the full envelope.
    """

    def __init__(self, commands_json: str, capabilities_json: str) -> None:
        self._commands_json = commands_json
        self._capabilities_json = capabilities_json

    @property
    def description(self) -> str:
        text = self._commands_json.strip()
        if text[:1] in ("{", "["):
            return "inline JSON"
        return text

    def commands(self) -> list[Any]:
        data = load_snapshot(self._commands_json)
        if isinstance(data, list):
            return data
        if isinstance(data, dict):
            envelope = data.get("listapisresponse", data)
            if isinstance(envelope, dict) and isinstance(envelope.get("api"), list):
                return envelope["api"]
        raise SchemaError(
            f"Unable to find the command list in {self.description}; expected a list, "
            "{'api': [...]} or {'listapisresponse': {'api': [...]}}"
        )

    def capabilities(self) -> dict[str, Any]:
        data = load_snapshot(self._capabilities_json)
        if isinstance(data, dict):
            envelope = data.get("listcapabilitiesresponse", data)
            if isinstance(envelope, dict) and isinstance(envelope.get("capability"), dict):
                return envelope["capability"]
        raise SchemaError(
            "Unable to find capabilities in the snapshot; expected {'capability': {...}} "
            "or {'listcapabilitiesresponse': {'capability': {...}}}"
        )


class SchemaFetcher:
    """Validate and normalise the payloads of a :class:`SchemaSource`."""

    def __init__(self, source: SchemaSource) -> None:
        self._source = source

    @property
    def source(self) -> SchemaSource:
        return self._source

    def fetch_commands(self) -> list[RawCommandSchema]:
        """Return every command description, names and descriptions trimmed.

        Entries that are not objects or have no ``name`` are skipped.

        Raises:
            SchemaError: If an entry does not fit the command schema.
        """
        commands: list[RawCommandSchema] = []
        for entry in self._source.commands():
            trimmed = trim_entry(entry) if isinstance(entry, dict) else {}
            if not trimmed.get("name"):
                logger.debug("Skipping command entry without a name: %r", entry)
                continue
            try:
                commands.append(RawCommandSchema.model_validate(trimmed))
            except ValidationError as exc:
                raise SchemaError(
                    f"Invalid description for command '{trimmed['name']}': {exc}"
                ) from exc
        return commands

    def fetch_capabilities(self) -> RawCapabilities:
        """Return the server capabilities.

        Raises:
            SchemaError: If the capability object does not validate.
        """
        try:
            return RawCapabilities.model_validate(self._source.capabilities())
        except ValidationError as exc:
            raise SchemaError(f"Invalid capabilities: {exc}") from exc


def unwrap_envelope(command: str, envelope: dict[str, Any]) -> dict[str, Any]:
    """Return the ``<command-lower>response`` member of *envelope*.

    Raises:
        RemoteCommandFailed: If the envelope (or an ``errorresponse``)
            carries an ``errortext``.
        MalformedResponse: If the expected key is missing or not an object.
    """
    key = f"{command.lower()}response"
    body = envelope.get(key)
    if body is None:
        error = envelope.get("errorresponse")
        if isinstance(error, dict) and "errortext" in error:
            raise RemoteCommandFailed(command, str(error["errortext"]))
        raise MalformedResponse(
            f"Response for '{command}' has no '{key}' member (keys: {sorted(envelope)})"
        )
    if not isinstance(body, dict):
        raise MalformedResponse(f"'{key}' is not an object ({type(body).__name__})")
    if "errortext" in body:
        raise RemoteCommandFailed(command, str(body["errortext"]))
    return body


def trim_entry(entry: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of *entry* with ``name``/``description`` stripped, recursively.

    Recurses into the ``params`` and ``response`` lists so that parameters
    and nested response fields are normalised too.
    """
    trimmed = dict(entry)
    for key in _TRIMMED_KEYS:
        value = trimmed.get(key)
        if isinstance(value, str):
            trimmed[key] = value.strip()
    for key in _NESTED_KEYS:
        children = trimmed.get(key)
        if isinstance(children, list):
            trimmed[key] = [
                trim_entry(child) if isinstance(child, dict) else child
                for child in children
            ]
    return trimmed
