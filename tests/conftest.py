"""Shared test fixtures for stackgen.

Provides schema snapshot fixtures, an isolated environment for config
tests, output-manager setup, and the Typer CLI runner. These fixtures are
automatically discovered by pytest and available to all test modules
without explicit imports.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from stackgen.models import RawCapabilities, RawCommandSchema
from stackgen.output import OutputFormat, OutputManager, reset_output, set_output


FIXTURES_DIR = Path(__file__).parent / "fixtures"


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time.  When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale
    ("I/O operation on closed file").  Resetting forces a fresh manager
    to be created on next use.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Schema snapshot fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def list_apis_path() -> Path:
    """Path of the two-command listApis snapshot (listFoo / createFoo)."""
    return FIXTURES_DIR / "list_apis.json"


@pytest.fixture
def list_apis_vm_path() -> Path:
    """Path of the virtual-machine listApis snapshot with nested responses."""
    return FIXTURES_DIR / "list_apis_vm.json"


@pytest.fixture
def list_capabilities_path() -> Path:
    """Path of the listCapabilities snapshot."""
    return FIXTURES_DIR / "list_capabilities.json"


@pytest.fixture
def list_apis_raw(list_apis_path: Path) -> dict[str, Any]:
    """Decoded listApis envelope."""
    with open(list_apis_path) as f:
        return json.load(f)


@pytest.fixture
def list_capabilities_raw(list_capabilities_path: Path) -> dict[str, Any]:
    """Decoded listCapabilities envelope."""
    with open(list_capabilities_path) as f:
        return json.load(f)


@pytest.fixture
def raw_commands(list_apis_raw: dict[str, Any]) -> list[RawCommandSchema]:
    """Validated commands of the listFoo / createFoo snapshot."""
    return [
        RawCommandSchema.model_validate(entry)
        for entry in list_apis_raw["listapisresponse"]["api"]
    ]


@pytest.fixture
def capabilities(list_capabilities_raw: dict[str, Any]) -> RawCapabilities:
    """Validated capabilities of the snapshot."""
    return RawCapabilities.model_validate(
        list_capabilities_raw["listcapabilitiesresponse"]["capability"]
    )


# ---------------------------------------------------------------------------
# Environment isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Points XDG_DATA_HOME at tmp_path, clears all STACKGEN_* environment
    variables, and changes the working directory to tmp_path.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    for var in [
        "STACKGEN_ENV",
        "STACKGEN_ENDPOINT",
        "STACKGEN_API_KEY",
        "STACKGEN_SECRET_KEY",
        "STACKGEN_OUT",
        "STACKGEN_NAMESPACE",
    ]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a quiet PLAIN OutputManager for tests that don't care about output."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner.

    Returns a CliRunner instance that captures stdout/stderr and
    provides a consistent interface for invoking Typer apps in tests.
    """
    from typer.testing import CliRunner

    return CliRunner()
