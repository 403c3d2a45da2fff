"""End-to-end tests of the stackgen CLI through Typer's CliRunner."""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any
from urllib.parse import parse_qsl

import httpx
import pytest
from typer.testing import CliRunner

from stackgen import __version__
from stackgen.app import app
from stackgen.client.transport import Transport

runner = CliRunner()

_ANSI_RE = re.compile(r"\x1b\[[0-9;]*m")


def _strip_ansi(text: str) -> str:
    return _ANSI_RE.sub("", text)


@pytest.fixture
def local_args(list_apis_path: Path, list_capabilities_path: Path) -> list[str]:
    return [
        "--local-commands-json",
        str(list_apis_path),
        "--local-capabilities-json",
        str(list_capabilities_path),
    ]


# ---------------------------------------------------------------------------
# Root options
# ---------------------------------------------------------------------------


class TestRoot:
    def test_version(self) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"stackgen {__version__}" in result.output

    def test_help_lists_commands(self) -> None:
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        text = _strip_ansi(result.output)
        for name in ["generate", "commands", "command-data", "command", "capabilities"]:
            assert name in text

    def test_generate_help(self) -> None:
        result = runner.invoke(app, ["--no-color", "generate", "--help"])
        assert result.exit_code == 0
        text = _strip_ansi(result.output)
        assert "--local-commands-json" in text
        assert "--strict" in text


# ---------------------------------------------------------------------------
# generate
# ---------------------------------------------------------------------------


class TestGenerate:
    def test_local_generation(
        self, isolated_env: Path, local_args: list[str]
    ) -> None:
        out = isolated_env / "client"
        out.mkdir()
        result = runner.invoke(
            app, ["--plain", "--no-color", "generate", *local_args, "--out", str(out)]
        )
        assert result.exit_code == 0, result.output
        assert (out / "src" / "createFoo.py").is_file()
        assert (out / "src" / "Response" / "ListFooResponse.py").is_file()
        assert (out / "files" / "constants.py").is_file()
        assert "2 command(s), 2 model(s), 4 support file(s)" in result.output

    def test_json_summary(self, isolated_env: Path, local_args: list[str]) -> None:
        result = runner.invoke(
            app, ["--json", "--quiet", "generate", *local_args, "--out", str(isolated_env)]
        )
        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout) == {
            "cloudstack_version": "4.18.0.0",
            "commands": 2,
            "models": 2,
            "support": 4,
        }

    def test_namespace_in_generated_docstrings(
        self, isolated_env: Path, local_args: list[str]
    ) -> None:
        result = runner.invoke(
            app,
            ["-q", "generate", *local_args, "--out", str(isolated_env), "--namespace", "acme"],
        )
        assert result.exit_code == 0, result.output
        content = (isolated_env / "src" / "listFoo.py").read_text(encoding="utf-8")
        assert "for the acme." in content
        constants = (isolated_env / "files" / "constants.py").read_text(encoding="utf-8")
        assert 'NAMESPACE = "acme"' in constants
        client = (isolated_env / "src" / "client.py").read_text(encoding="utf-8")
        assert '"User-Agent": "acme (stackgen; CloudStack 4.18.0.0)"' in client

    def test_out_from_env_var(
        self, isolated_env: Path, local_args: list[str], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("STACKGEN_OUT", str(isolated_env))
        result = runner.invoke(app, ["-q", "generate", *local_args])
        assert result.exit_code == 0, result.output
        assert (isolated_env / "src" / "listFoo.py").is_file()

    def test_config_file(self, isolated_env: Path, list_apis_path: Path, list_capabilities_path: Path) -> None:
        config = isolated_env / "stackgen.yaml"
        config.write_text(
            "environments:\n"
            "  snapshot:\n"
            f"    local_commands_json: {list_apis_path}\n"
            f"    local_capabilities_json: {list_capabilities_path}\n"
            f"    out: {isolated_env}\n",
            encoding="utf-8",
        )
        result = runner.invoke(app, ["-q", "generate", "--config", str(config)])
        assert result.exit_code == 0, result.output
        assert (isolated_env / "src" / "createFoo.py").is_file()

    def test_missing_out_dir(self, isolated_env: Path, local_args: list[str]) -> None:
        result = runner.invoke(
            app, ["--no-color", "generate", *local_args, "--out", str(isolated_env / "missing")]
        )
        assert result.exit_code == 2
        assert "does not exist" in result.output

    def test_missing_endpoint(self, isolated_env: Path) -> None:
        result = runner.invoke(app, ["--no-color", "generate", "--out", str(isolated_env)])
        assert result.exit_code == 2
        assert "No endpoint" in result.output

    def test_missing_secret(self, isolated_env: Path) -> None:
        result = runner.invoke(
            app,
            [
                "--no-color",
                "generate",
                "--out",
                str(isolated_env),
                "--endpoint",
                "http://cloud/client/api",
                "--key",
                "k",
            ],
        )
        assert result.exit_code == 2
        assert "Secret key is empty" in result.output

    def test_invalid_snapshot(self, isolated_env: Path, list_capabilities_path: Path) -> None:
        result = runner.invoke(
            app,
            [
                "--no-color",
                "generate",
                "--out",
                str(isolated_env),
                "--local-commands-json",
                "{not json",
                "--local-capabilities-json",
                str(list_capabilities_path),
            ],
        )
        assert result.exit_code == 7
        assert "Invalid JSON" in result.output

    def test_strict_collision_exit_code(
        self, isolated_env: Path, list_capabilities_path: Path
    ) -> None:
        commands = [
            {"name": "listA", "response": [{"name": "tags", "type": "list", "response": [{"name": "key"}]}]},
            {"name": "listB", "response": [{"name": "tags", "type": "list", "response": [{"name": "id"}]}]},
        ]
        args = [
            "generate",
            "--out",
            str(isolated_env),
            "--local-commands-json",
            json.dumps(commands),
            "--local-capabilities-json",
            str(list_capabilities_path),
        ]
        assert runner.invoke(app, ["-q", *args]).exit_code == 0
        strict = runner.invoke(app, ["-q", "--no-color", *args, "--strict"])
        assert strict.exit_code == 7
        assert "tags" in strict.output


# ---------------------------------------------------------------------------
# Inspection commands
# ---------------------------------------------------------------------------


class TestInspection:
    def test_commands_plain_table(self, isolated_env: Path, local_args: list[str]) -> None:
        result = runner.invoke(app, ["--plain", "-q", "commands", *local_args])
        assert result.exit_code == 0, result.output
        lines = result.stdout.strip().split("\n")
        assert lines[0] == "Name\tAsync\tRequired\tOptional\tDescription"
        assert lines[1] == "createFoo\tyes\t1\t0\tCreates a foo."
        assert lines[2] == "listFoo\t\t0\t0\tLists foos."

    def test_commands_json(self, isolated_env: Path, local_args: list[str]) -> None:
        result = runner.invoke(app, ["--json", "-q", "commands", *local_args])
        assert result.exit_code == 0, result.output
        rows = json.loads(result.stdout)
        assert [row["Name"] for row in rows] == ["createFoo", "listFoo"]

    def test_commands_needs_no_out(self, isolated_env: Path, local_args: list[str]) -> None:
        result = runner.invoke(app, ["-q", "commands", *local_args])
        assert result.exit_code == 0, result.output

    def test_command_data(self, isolated_env: Path, local_args: list[str]) -> None:
        result = runner.invoke(app, ["--json", "-q", "command-data", "createFoo", *local_args])
        assert result.exit_code == 0, result.output
        data: dict[str, Any] = json.loads(result.stdout)
        assert data["name"] == "createFoo"
        assert data["is_async"] is True
        assert data["response_type_name"] == "CreateFooResponse"
        assert data["required_count"] == 1
        assert data["params"]["name"]["length"] == 255
        assert data["response_fields"]["id"]["category"] == "string"

    def test_command_data_case_insensitive(
        self, isolated_env: Path, local_args: list[str]
    ) -> None:
        result = runner.invoke(app, ["--json", "-q", "command-data", "LISTFOO", *local_args])
        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout)["name"] == "listFoo"

    def test_unknown_command(self, isolated_env: Path, local_args: list[str]) -> None:
        result = runner.invoke(app, ["--plain", "--no-color", "command-data", "deleteFoo", *local_args])
        assert result.exit_code == 2
        assert "Unknown command 'deleteFoo'" in result.output

    def test_command_source(self, isolated_env: Path, local_args: list[str]) -> None:
        result = runner.invoke(app, ["--plain", "-q", "command", "createFoo", *local_args])
        assert result.exit_code == 0, result.output
        assert "def createFoo(" in result.stdout
        compile(result.stdout, "createFoo.py", "exec")

    def test_command_response_source(self, isolated_env: Path, local_args: list[str]) -> None:
        result = runner.invoke(
            app, ["--plain", "-q", "command", "listFoo", "--response", *local_args]
        )
        assert result.exit_code == 0, result.output
        assert "class ListFooResponse:" in result.stdout

    def test_capabilities(self, isolated_env: Path, local_args: list[str]) -> None:
        result = runner.invoke(app, ["--json", "-q", "capabilities", *local_args])
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["cloudstackversion"] == "4.18.0.0"
        assert data["apilimitmax"] == 25


# ---------------------------------------------------------------------------
# Remote source
# ---------------------------------------------------------------------------


class TestRemote:
    @pytest.fixture
    def mocked_transport(
        self,
        monkeypatch: pytest.MonkeyPatch,
        list_apis_raw: dict[str, Any],
        list_capabilities_raw: dict[str, Any],
    ) -> list[dict[str, str]]:
        """Route the CLI's Transport to canned listApis/listCapabilities answers."""
        seen: list[dict[str, str]] = []
        answers = {"listApis": list_apis_raw, "listCapabilities": list_capabilities_raw}

        def handler(request: httpx.Request) -> httpx.Response:
            form = dict(parse_qsl(request.content.decode("ascii")))
            seen.append(form)
            return httpx.Response(200, json=answers[form["command"]])

        class MockedTransport(Transport):
            def __enter__(self) -> Transport:
                self._client = httpx.Client(transport=httpx.MockTransport(handler))
                return self

        monkeypatch.setattr("stackgen.client.Transport", MockedTransport)
        return seen

    def test_remote_generation(
        self, isolated_env: Path, mocked_transport: list[dict[str, str]]
    ) -> None:
        result = runner.invoke(
            app,
            [
                "-q",
                "generate",
                "--endpoint",
                "http://cloud.example.com:8080/client/api",
                "--key",
                "api-key",
                "--secret",
                "secret-key",
                "--out",
                str(isolated_env),
            ],
        )
        assert result.exit_code == 0, result.output
        assert (isolated_env / "src" / "createFoo.py").is_file()
        assert [form["command"] for form in mocked_transport] == ["listCapabilities", "listApis"]
        assert all(form["apikey"] == "api-key" for form in mocked_transport)
        assert all("signature" in form for form in mocked_transport)

    def test_credentials_from_env_vars(
        self,
        isolated_env: Path,
        mocked_transport: list[dict[str, str]],
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.setenv("STACKGEN_ENDPOINT", "http://cloud/client/api")
        monkeypatch.setenv("STACKGEN_API_KEY", "env-key")
        monkeypatch.setenv("STACKGEN_SECRET_KEY", "env-secret")
        result = runner.invoke(app, ["--json", "-q", "capabilities"])
        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout)["cloudstackversion"] == "4.18.0.0"
        assert mocked_transport[0]["apikey"] == "env-key"
