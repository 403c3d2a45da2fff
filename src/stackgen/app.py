"""Typer application and CLI entry point for stackgen.

Sub-commands:

* ``generate`` -- fetch the schema, build descriptors, and write the client.
* ``commands`` -- table of every remote command.
* ``command-data NAME`` -- JSON dump of one command descriptor.
* ``command NAME`` -- the rendered module for one command.
* ``capabilities`` -- JSON dump of the server capabilities.

All sub-commands accept the same source options (config file, endpoint,
credentials or local snapshots). Library errors are reported on stderr and
mapped to the exit code carried by
:class:`~stackgen.exceptions.StackgenError`.

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. Unhandled exceptions are written to a crash log under
the data directory.
"""

from __future__ import annotations

import logging
import signal
import sys
import traceback
from contextlib import ExitStack, contextmanager
from datetime import datetime
from typing import Any, Iterator, Optional

import typer

from stackgen import __version__
from stackgen.exit_codes import EXIT_GENERIC_FAILURE, EXIT_INVALID_USAGE

app = typer.Typer(
    name="stackgen",
    help="Generate a Python client library from a CloudStack-style management API.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

# ------------------------------------------------------------------ #
# Shared options
# ------------------------------------------------------------------ #

_CONFIG = typer.Option(None, "--config", "-c", help="Config file (YAML or JSON).")
_ENV = typer.Option(None, "--env", "-e", help="Environment name in the config file.")
_ENDPOINT = typer.Option(None, "--endpoint", help="API URL, e.g. http://host:8080/client/api.")
_KEY = typer.Option(None, "--key", help="API key (literal, env:VAR, or file:/path).")
_SECRET = typer.Option(None, "--secret", help="Secret key (literal, env:VAR, or file:/path).")
_OUT = typer.Option(None, "--out", "-o", help="Output directory (must exist).")
_NAMESPACE = typer.Option(None, "--namespace", help="Package name of the generated client.")
_LOCAL_COMMANDS = typer.Option(
    None, "--local-commands-json", help="Saved listApis response (path or inline JSON)."
)
_LOCAL_CAPABILITIES = typer.Option(
    None,
    "--local-capabilities-json",
    help="Saved listCapabilities response (path or inline JSON).",
)
_TIMEOUT = typer.Option(None, "--timeout", help="HTTP timeout in seconds (0 disables).")
_STRICT = typer.Option(
    None, "--strict/--no-strict", help="Fail when one type name describes two shapes."
)


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"stackgen {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress non-essential output."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
) -> None:
    """Root callback executed before every sub-command.

    Installs the global :class:`~stackgen.output.OutputManager` and, with
    ``--verbose``, routes library log records to stderr at debug level.
    """
    from stackgen.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))

    if verbose:
        logging.basicConfig(
            stream=sys.stderr, level=logging.WARNING, format="[%(name)s] %(message)s"
        )
        logging.getLogger("stackgen").setLevel(logging.DEBUG)


# ------------------------------------------------------------------ #
# Pipeline wiring
# ------------------------------------------------------------------ #


@contextmanager
def _handle_errors() -> Iterator[None]:
    """Report :class:`StackgenError` on stderr and exit with its code."""
    from stackgen.exceptions import StackgenError
    from stackgen.output import error

    try:
        yield
    except StackgenError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None


@contextmanager
def _pipeline(options: dict[str, Any], require_output: bool) -> Iterator[Any]:
    """Resolve configuration and yield a ready :class:`~stackgen.generator.Generator`.

    For a remote source the HTTP transport stays open for the duration of
    the ``with`` block.
    """
    from stackgen.client import ApiClient, RequestSigner, Transport
    from stackgen.config import resolve_environment, validate_environment
    from stackgen.emit import EmissionEngine
    from stackgen.generator import Generator
    from stackgen.schema import LocalSource, RemoteSource, SchemaFetcher

    config_path = options.pop("config")
    env_name = options.pop("env")
    env = resolve_environment(config_path, env_name, options)
    endpoint, api_key, secret_key = validate_environment(env, require_output=require_output)

    with ExitStack() as stack:
        if env.is_local:
            source = LocalSource(env.local_commands_json or "", env.local_capabilities_json or "")
        else:
            transport = stack.enter_context(
                Transport(timeout=env.timeout or None, verify_ssl=env.verify_ssl)
            )
            source = RemoteSource(
                ApiClient(RequestSigner(api_key, secret_key, endpoint), transport)
            )
        yield Generator(
            SchemaFetcher(source),
            EmissionEngine(env.namespace),
            output_dir=env.out,
            strict=env.strict,
        )


# ------------------------------------------------------------------ #
# Commands
# ------------------------------------------------------------------ #


@app.command("generate")
def generate_command(
    config: Optional[str] = _CONFIG,
    env: Optional[str] = _ENV,
    endpoint: Optional[str] = _ENDPOINT,
    key: Optional[str] = _KEY,
    secret: Optional[str] = _SECRET,
    out: Optional[str] = _OUT,
    namespace: Optional[str] = _NAMESPACE,
    local_commands_json: Optional[str] = _LOCAL_COMMANDS,
    local_capabilities_json: Optional[str] = _LOCAL_CAPABILITIES,
    timeout: Optional[float] = _TIMEOUT,
    strict: Optional[bool] = _STRICT,
) -> None:
    """Generate the client library into the output directory.

    Example::

        stackgen generate --endpoint http://cloud:8080/client/api \\
            --key env:CS_KEY --secret env:CS_SECRET --out ./client
    """
    from stackgen.output import OutputFormat, get_output

    options = dict(
        config=config, env=env, endpoint=endpoint, key=key, secret=secret, out=out,
        namespace=namespace, local_commands_json=local_commands_json,
        local_capabilities_json=local_capabilities_json, timeout=timeout, strict=strict,
    )
    with _handle_errors(), _pipeline(options, require_output=True) as generator:
        result = generator.generate()

    output = get_output()
    summary = {
        "cloudstack_version": result.cloudstack_version,
        "commands": len(result.command_artifacts),
        "models": len(result.model_artifacts),
        "support": len(result.support_artifacts),
    }
    if output.format == OutputFormat.JSON:
        output.print_json(summary)
    else:
        output.info(
            f"{summary['commands']} command(s), {summary['models']} model(s), "
            f"{summary['support']} support file(s) for CloudStack {summary['cloudstack_version']}"
        )


@app.command("commands")
def commands_command(
    config: Optional[str] = _CONFIG,
    env: Optional[str] = _ENV,
    endpoint: Optional[str] = _ENDPOINT,
    key: Optional[str] = _KEY,
    secret: Optional[str] = _SECRET,
    local_commands_json: Optional[str] = _LOCAL_COMMANDS,
    local_capabilities_json: Optional[str] = _LOCAL_CAPABILITIES,
    timeout: Optional[float] = _TIMEOUT,
) -> None:
    """List every remote command with its parameter counts."""
    from stackgen.output import get_output

    options = dict(
        config=config, env=env, endpoint=endpoint, key=key, secret=secret,
        local_commands_json=local_commands_json,
        local_capabilities_json=local_capabilities_json, timeout=timeout,
    )
    with _handle_errors(), _pipeline(options, require_output=False) as generator:
        built = generator.build()

    rows = [
        [
            d.name,
            "yes" if d.is_async else "",
            str(d.required_count),
            str(d.optional_count),
            d.description,
        ]
        for d in built.descriptors
    ]
    get_output().print_table(
        ["Name", "Async", "Required", "Optional", "Description"],
        rows,
        title=f"CloudStack {built.capabilities.cloudstackversion} -- Commands ({len(rows)})",
    )


@app.command("command-data")
def command_data_command(
    name: str = typer.Argument(..., help="Command name, e.g. listVirtualMachines."),
    config: Optional[str] = _CONFIG,
    env: Optional[str] = _ENV,
    endpoint: Optional[str] = _ENDPOINT,
    key: Optional[str] = _KEY,
    secret: Optional[str] = _SECRET,
    local_commands_json: Optional[str] = _LOCAL_COMMANDS,
    local_capabilities_json: Optional[str] = _LOCAL_CAPABILITIES,
    timeout: Optional[float] = _TIMEOUT,
) -> None:
    """Print the built descriptor of one command as JSON, with its response fields."""
    from stackgen.models import dump_model
    from stackgen.output import get_output

    options = dict(
        config=config, env=env, endpoint=endpoint, key=key, secret=secret,
        local_commands_json=local_commands_json,
        local_capabilities_json=local_capabilities_json, timeout=timeout,
    )
    with _handle_errors(), _pipeline(options, require_output=False) as generator:
        built = generator.build()

    descriptor = _require_command(built, name)
    data = dump_model(descriptor)
    fields = built.registry.get(descriptor.response_type_name) or {}
    data["response_fields"] = {key: dump_model(node) for key, node in fields.items()}
    get_output().print_json(data)


@app.command("command")
def command_source_command(
    name: str = typer.Argument(..., help="Command name, e.g. listVirtualMachines."),
    response: bool = typer.Option(
        False, "--response", help="Print the response record module instead."
    ),
    config: Optional[str] = _CONFIG,
    env: Optional[str] = _ENV,
    endpoint: Optional[str] = _ENDPOINT,
    key: Optional[str] = _KEY,
    secret: Optional[str] = _SECRET,
    namespace: Optional[str] = _NAMESPACE,
    local_commands_json: Optional[str] = _LOCAL_COMMANDS,
    local_capabilities_json: Optional[str] = _LOCAL_CAPABILITIES,
    timeout: Optional[float] = _TIMEOUT,
) -> None:
    """Print the rendered module for one command."""
    from stackgen.output import get_output

    options = dict(
        config=config, env=env, endpoint=endpoint, key=key, secret=secret,
        namespace=namespace, local_commands_json=local_commands_json,
        local_capabilities_json=local_capabilities_json, timeout=timeout,
    )
    with _handle_errors(), _pipeline(options, require_output=False) as generator:
        built = generator.build()

    descriptor = _require_command(built, name)
    engine = generator.engine
    if response:
        fields = built.registry.get(descriptor.response_type_name) or {}
        artifact = engine.emit_type(
            descriptor.response_type_name, fields, descriptor.description
        )
    else:
        artifact = engine.emit_command(descriptor)
    get_output().print_source(artifact.content)


@app.command("capabilities")
def capabilities_command(
    config: Optional[str] = _CONFIG,
    env: Optional[str] = _ENV,
    endpoint: Optional[str] = _ENDPOINT,
    key: Optional[str] = _KEY,
    secret: Optional[str] = _SECRET,
    local_commands_json: Optional[str] = _LOCAL_COMMANDS,
    local_capabilities_json: Optional[str] = _LOCAL_CAPABILITIES,
    timeout: Optional[float] = _TIMEOUT,
) -> None:
    """Print the server capabilities as JSON."""
    from stackgen.models import dump_model
    from stackgen.output import get_output

    options = dict(
        config=config, env=env, endpoint=endpoint, key=key, secret=secret,
        local_commands_json=local_commands_json,
        local_capabilities_json=local_capabilities_json, timeout=timeout,
    )
    with _handle_errors(), _pipeline(options, require_output=False) as generator:
        capabilities = generator.fetcher.fetch_capabilities()

    get_output().print_json(dump_model(capabilities))


def _require_command(built: Any, name: str) -> Any:
    """Return the descriptor for *name* or exit with a usage error."""
    from stackgen.output import error, suggest

    descriptor = built.find(name)
    if descriptor is None:
        error(f"Unknown command '{name}'")
        suggest("Run: stackgen commands")
        raise typer.Exit(code=EXIT_INVALID_USAGE)
    return descriptor


# ------------------------------------------------------------------ #
# Entry point
# ------------------------------------------------------------------ #


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path."""
    from stackgen.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``stackgen`` console script.

    Unhandled :class:`~stackgen.exceptions.StackgenError` instances cause a
    clean exit with the error's ``exit_code``. All other exceptions produce
    a crash log and a generic failure exit.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from stackgen.exceptions import StackgenError
        from stackgen.output import error

        if isinstance(exc, StackgenError):
            error(str(exc))
            sys.exit(exc.exit_code)
        else:
            log_path = _write_crash_log(exc)
            error(f"Unexpected error. Debug log: {log_path}")
            sys.exit(EXIT_GENERIC_FAILURE)
