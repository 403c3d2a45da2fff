"""Tests for schema sources and the schema fetcher."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

from stackgen.client.api import ApiClient
from stackgen.exceptions import MalformedResponse, RemoteCommandFailed, SchemaError
from stackgen.schema.fetcher import (
    LIST_APIS,
    LIST_CAPABILITIES,
    LocalSource,
    RemoteSource,
    SchemaFetcher,
    SchemaSource,
    trim_entry,
    unwrap_envelope,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class _StaticSource(SchemaSource):
    """In-memory source returning fixed payloads."""

    def __init__(self, commands: list[Any], capabilities: dict[str, Any] | None = None):
        self._commands = commands
        if capabilities is None:
            capabilities = {"cloudstackversion": "4.18.0.0"}
        self._capabilities = capabilities

    @property
    def description(self) -> str:
        return "static"

    def commands(self) -> list[Any]:
        return self._commands

    def capabilities(self) -> dict[str, Any]:
        return self._capabilities


def _remote(responses: dict[str, dict[str, Any]]) -> RemoteSource:
    client = MagicMock(spec=ApiClient)
    client.description = "http://cloud/client/api"
    client.execute.side_effect = lambda command, params=None: responses[command]
    return RemoteSource(client)


# ---------------------------------------------------------------------------
# Envelope unwrapping
# ---------------------------------------------------------------------------


class TestUnwrapEnvelope:
    def test_returns_inner_object(self) -> None:
        assert unwrap_envelope("listApis", {"listapisresponse": {"api": []}}) == {"api": []}

    def test_errortext_in_envelope(self) -> None:
        with pytest.raises(RemoteCommandFailed, match="not allowed"):
            unwrap_envelope("listApis", {"listapisresponse": {"errortext": "not allowed"}})

    def test_errorresponse(self) -> None:
        with pytest.raises(RemoteCommandFailed, match="bad signature"):
            unwrap_envelope("listApis", {"errorresponse": {"errortext": "bad signature"}})

    def test_missing_envelope(self) -> None:
        with pytest.raises(MalformedResponse, match="listapisresponse"):
            unwrap_envelope("listApis", {"somethingelse": {}})

    def test_non_object_envelope(self) -> None:
        with pytest.raises(MalformedResponse):
            unwrap_envelope("listApis", {"listapisresponse": []})


# ---------------------------------------------------------------------------
# Remote source
# ---------------------------------------------------------------------------


class TestRemoteSource:
    def test_commands(self, list_apis_raw: dict[str, Any]) -> None:
        source = _remote({LIST_APIS: list_apis_raw})
        names = [entry["name"] for entry in source.commands()]
        assert names == ["listFoo", "createFoo"]

    def test_commands_missing_api_is_empty(self) -> None:
        source = _remote({LIST_APIS: {"listapisresponse": {}}})
        assert source.commands() == []

    def test_commands_api_not_list(self) -> None:
        source = _remote({LIST_APIS: {"listapisresponse": {"api": "oops"}}})
        with pytest.raises(MalformedResponse):
            source.commands()

    def test_capabilities(self, list_capabilities_raw: dict[str, Any]) -> None:
        source = _remote({LIST_CAPABILITIES: list_capabilities_raw})
        assert source.capabilities()["cloudstackversion"] == "4.18.0.0"

    def test_capabilities_missing(self) -> None:
        source = _remote({LIST_CAPABILITIES: {"listcapabilitiesresponse": {}}})
        with pytest.raises(MalformedResponse):
            source.capabilities()

    def test_issues_well_known_commands(self, list_apis_raw: dict[str, Any]) -> None:
        source = _remote({LIST_APIS: list_apis_raw})
        source.commands()
        source._client.execute.assert_called_once_with(LIST_APIS)

    def test_description(self) -> None:
        assert _remote({}).description == "http://cloud/client/api"


# ---------------------------------------------------------------------------
# Local source
# ---------------------------------------------------------------------------


class TestLocalSource:
    def test_full_envelopes_from_files(
        self, list_apis_path: Path, list_capabilities_path: Path
    ) -> None:
        source = LocalSource(str(list_apis_path), str(list_capabilities_path))
        assert len(source.commands()) == 2
        assert source.capabilities()["cloudstackversion"] == "4.18.0.0"
        assert source.description == str(list_apis_path)

    def test_bare_list(self) -> None:
        source = LocalSource('[{"name": "listFoo"}]', '{"capability": {}}')
        assert source.commands() == [{"name": "listFoo"}]
        assert source.description == "inline JSON"

    def test_api_object(self) -> None:
        source = LocalSource('{"api": [{"name": "listFoo"}]}', '{"capability": {}}')
        assert source.commands() == [{"name": "listFoo"}]

    def test_capability_object(self) -> None:
        source = LocalSource("[]", '{"capability": {"cloudstackversion": "4.9"}}')
        assert source.capabilities() == {"cloudstackversion": "4.9"}

    def test_unrecognised_commands_shape(self) -> None:
        source = LocalSource('{"apis": []}', '{"capability": {}}')
        with pytest.raises(SchemaError, match="command list"):
            source.commands()

    def test_unrecognised_capabilities_shape(self) -> None:
        source = LocalSource("[]", '{"cloudstackversion": "4.9"}')
        with pytest.raises(SchemaError, match="capabilities"):
            source.capabilities()

    def test_yaml_snapshot(self, tmp_path: Path) -> None:
        apis = tmp_path / "apis.yml"
        apis.write_text("api:\n  - name: listFoo\n", encoding="utf-8")
        source = LocalSource(str(apis), '{"capability": {}}')
        assert source.commands() == [{"name": "listFoo"}]


# ---------------------------------------------------------------------------
# Fetcher
# ---------------------------------------------------------------------------


class TestSchemaFetcher:
    def test_fetch_commands_validates(self, list_apis_path: Path, list_capabilities_path: Path) -> None:
        fetcher = SchemaFetcher(LocalSource(str(list_apis_path), str(list_capabilities_path)))
        commands = fetcher.fetch_commands()
        assert [c.name for c in commands] == ["listFoo", "createFoo"]
        create = commands[1]
        assert create.isasync is True
        assert create.params[0].name == "name"
        assert create.params[0].required is True
        assert create.params[0].length == 255

    def test_trims_names_and_descriptions_recursively(self) -> None:
        entry = {
            "name": " listFoo ",
            "description": " Lists foos. ",
            "params": [{"name": " id ", "description": "  the id\n"}],
            "response": [
                {
                    "name": " nic ",
                    "type": "set",
                    "description": " nics ",
                    "response": [{"name": "  ipaddress", "description": "ip  "}],
                }
            ],
        }
        command = SchemaFetcher(_StaticSource([entry])).fetch_commands()[0]
        assert command.name == "listFoo"
        assert command.description == "Lists foos."
        assert command.params[0].name == "id"
        assert command.params[0].description == "the id"
        nic = command.response[0]
        assert nic.name == "nic"
        assert nic.description == "nics"
        assert nic.response is not None
        assert nic.response[0].name == "ipaddress"
        assert nic.response[0].description == "ip"

    def test_skips_nameless_and_non_object_entries(self) -> None:
        source = _StaticSource([{"description": "no name"}, "junk", {"name": ""}, {"name": "listFoo"}])
        commands = SchemaFetcher(source).fetch_commands()
        assert [c.name for c in commands] == ["listFoo"]

    def test_invalid_entry_raises_schema_error(self) -> None:
        source = _StaticSource([{"name": "listFoo", "params": "not-a-list"}])
        with pytest.raises(SchemaError, match="listFoo"):
            SchemaFetcher(source).fetch_commands()

    def test_fetch_capabilities(self) -> None:
        source = _StaticSource([], {"cloudstackversion": "4.18.0.0", "apilimitmax": 25})
        capabilities = SchemaFetcher(source).fetch_capabilities()
        assert capabilities.cloudstackversion == "4.18.0.0"
        assert capabilities.model_extra == {"apilimitmax": 25}

    def test_capabilities_without_version(self) -> None:
        capabilities = SchemaFetcher(_StaticSource([], {})).fetch_capabilities()
        assert capabilities.cloudstackversion == "unknown"

    def test_remote_round_trip(
        self, list_apis_raw: dict[str, Any], list_capabilities_raw: dict[str, Any]
    ) -> None:
        fetcher = SchemaFetcher(
            _remote({LIST_APIS: list_apis_raw, LIST_CAPABILITIES: list_capabilities_raw})
        )
        assert [c.name for c in fetcher.fetch_commands()] == ["listFoo", "createFoo"]
        assert fetcher.fetch_capabilities().cloudstackversion == "4.18.0.0"


class TestTrimEntry:
    def test_does_not_mutate_input(self) -> None:
        entry = {"name": " a ", "params": [{"name": " b "}]}
        snapshot = json.loads(json.dumps(entry))
        trim_entry(entry)
        assert entry == snapshot

    def test_leaves_other_keys(self) -> None:
        assert trim_entry({"name": "a", "type": " list "}) == {"name": "a", "type": " list "}
