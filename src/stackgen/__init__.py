"""stackgen -- Generate Python client libraries from a CloudStack-style API.

This package introspects a running management API (or a saved snapshot of
its schema) and renders a client library: one module per remote command and
one data-model module per distinct response shape.

Typical workflow::

    stackgen generate --endpoint http://cloud:8080/client/api \\
        --key "$API_KEY" --secret "$SECRET_KEY" --out ./client

The pipeline runs fetch -> build -> emit and is fully deterministic: two runs
against the same schema produce byte-identical files.

Modules:
    app: Typer application and CLI entry point.
    client: Request signing and the HTTP transport.
    schema: listApis / listCapabilities sources and the schema fetcher.
    model: Type registry and descriptor builder.
    emit: Jinja2 emission engine and templates.
    models: Pydantic models shared across the entire package.
    config: Config file loading and precedence resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    generator: The orchestrator sequencing fetch, build, and emit.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.1.0"
