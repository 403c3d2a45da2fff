"""Configuration loading, precedence resolution, and pre-flight validation.

This module handles everything stackgen needs to know before the first
network call:

* **Config file** -- a YAML or JSON document holding named environments,
  deserialised into :class:`~stackgen.models.GeneratorConfig` by
  :func:`load_config_file`.
* **Precedence resolution** -- :func:`resolve_environment` merges CLI flags,
  ``STACKGEN_*`` environment variables, and the selected config-file
  environment into one :class:`~stackgen.models.EnvironmentConfig`.
* **Credential resolution** -- :func:`resolve_credential` reads the API key
  and secret from literals, env vars, or files.
* **Validation** -- :func:`validate_environment` raises
  :class:`~stackgen.exceptions.ConfigError` for an empty endpoint, API key,
  or secret key, and for a missing or non-writable output directory.
* **Filesystem helpers** -- the XDG data directory for crash logs and
  :func:`atomic_write` used when writing generated artifacts.

Example config file::

    default_environment: dev
    environments:
      dev:
        endpoint: http://cloud.dev:8080/client/api
        key: env:CS_API_KEY
        secret: file:~/.cloudstack/secret
        out: ./build/client
        namespace: cloudstack_client
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError

from stackgen.exceptions import ConfigError
from stackgen.models import Endpoint, EnvironmentConfig, GeneratorConfig

_APP_NAME = "stackgen"

ENV_PREFIX = "STACKGEN_"
"""Prefix of the environment variables consulted by :func:`resolve_environment`."""

_ENV_VARS: dict[str, str] = {
    "endpoint": "STACKGEN_ENDPOINT",
    "key": "STACKGEN_API_KEY",
    "secret": "STACKGEN_SECRET_KEY",
    "out": "STACKGEN_OUT",
    "namespace": "STACKGEN_NAMESPACE",
}


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/stackgen/`` (default ``~/.local/share/stackgen/``).
    On macOS/Windows: ``~/.stackgen/``.
    """
    if _is_xdg_platform():
        xdg = os.environ.get("XDG_DATA_HOME")
        base = Path(xdg) if xdg else Path.home() / ".local" / "share"
        path = base / _APP_NAME
    else:
        path = Path.home() / f".{_APP_NAME}"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems. On any failure the
    temp file is removed and the exception re-raised.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
            newline="\n",
        )
        tmp_path = fd.name
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Config file ---


def load_config_file(path: str | Path) -> GeneratorConfig:
    """Load a YAML or JSON config file into a :class:`~stackgen.models.GeneratorConfig`.

    Raises:
        ConfigError: If the file is missing, unparsable, or fails validation.
    """
    file_path = Path(path).expanduser()
    if not file_path.is_file():
        raise ConfigError(f"Config file not found: {file_path}")

    try:
        text = file_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Cannot read config file {file_path}: {exc}") from exc

    data = _parse_config_text(text, file_path)
    try:
        return GeneratorConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid config file {file_path}: {exc}") from exc


def _parse_config_text(text: str, path: Path) -> dict[str, Any]:
    """Parse *text* as JSON for ``.json`` files and as YAML otherwise."""
    try:
        if path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"Cannot parse config file {path}: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(
            f"Config file {path} must contain a mapping (got {type(data).__name__})"
        )
    return data


# --- Precedence resolution ---


def resolve_environment(
    config_path: Optional[str] = None,
    env_name: Optional[str] = None,
    overrides: Optional[dict[str, Any]] = None,
) -> EnvironmentConfig:
    """Resolve the effective environment with full precedence chain.

    Precedence (high to low):
        1. CLI flags (``overrides``; ``None`` values are ignored)
        2. Environment variables (``STACKGEN_ENDPOINT``, ``STACKGEN_API_KEY``,
           ``STACKGEN_SECRET_KEY``, ``STACKGEN_OUT``, ``STACKGEN_NAMESPACE``)
        3. The selected environment of the config file
        4. Defaults

    The config-file environment is chosen by *env_name*, then
    ``STACKGEN_ENV``, then the file's ``default_environment``, then the only
    environment when the file defines exactly one.

    Raises:
        ConfigError: If the config file is invalid or the requested
            environment does not exist.
    """
    merged: dict[str, Any] = {}

    if config_path is not None:
        config = load_config_file(config_path)
        name = env_name or os.environ.get(f"{ENV_PREFIX}ENV") or config.default_environment
        if name is None and len(config.environments) == 1:
            name = next(iter(config.environments))
        if name is not None:
            if name not in config.environments:
                available = ", ".join(sorted(config.environments)) or "none"
                raise ConfigError(
                    f"Environment '{name}' not found in {config_path} (available: {available})"
                )
            merged.update(config.environments[name].model_dump(exclude_unset=True))
    elif env_name is not None:
        raise ConfigError("--env requires --config")

    for field, var in _ENV_VARS.items():
        value = os.environ.get(var)
        if value:
            merged[field] = value

    for field, value in (overrides or {}).items():
        if value is not None:
            merged[field] = value

    try:
        return EnvironmentConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc


# --- Credential source resolution ---


def resolve_credential(source: str) -> str:
    """Resolve a credential from its source descriptor.

    Supported formats:
        - ``"env:VAR_NAME"`` -- reads ``os.environ["VAR_NAME"]``
        - ``"file:/path/to/file"`` -- reads file content, stripped of whitespace
        - anything else -- used literally

    Raises:
        ConfigError: If the variable is unset or the file is unreadable.
    """
    if source.startswith("env:"):
        var_name = source[4:]
        value = os.environ.get(var_name)
        if value is None:
            raise ConfigError(
                f"Environment variable '{var_name}' is not set (source: {source})"
            )
        return value

    if source.startswith("file:"):
        path = Path(source[5:]).expanduser()
        if not path.is_file():
            raise ConfigError(f"Credential file not found: {path} (source: {source})")
        try:
            return path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise ConfigError(f"Cannot read credential file {path}: {exc}") from exc

    return source


# --- Validation ---


def validate_output_dir(out: Optional[str]) -> Path:
    """Return *out* as a path, requiring an existing, writable directory.

    Raises:
        ConfigError: If *out* is empty, missing, not a directory, or not writable.
    """
    if not out:
        raise ConfigError("No output directory configured (use --out or STACKGEN_OUT)")
    path = Path(out).expanduser()
    if not path.is_dir():
        raise ConfigError(f"Output directory does not exist: {path}")
    if not os.access(path, os.W_OK):
        raise ConfigError(f"Output directory is not writable: {path}")
    return path


def validate_environment(
    env: EnvironmentConfig, require_output: bool = True
) -> tuple[Optional[Endpoint], str, str]:
    """Check *env* before any network call.

    For a remote source the endpoint host, API key, and secret key must all
    be non-empty; for a local source they are not needed and
    ``(None, "", "")`` is returned.

    Args:
        env: The resolved environment.
        require_output: Also validate the output directory.

    Returns:
        ``(endpoint, api_key, secret_key)`` with credentials resolved.

    Raises:
        ConfigError: On the first problem found.
    """
    if require_output:
        validate_output_dir(env.out)

    if env.is_local:
        if not (env.local_commands_json and env.local_capabilities_json):
            raise ConfigError(
                "Local source needs both --local-commands-json and --local-capabilities-json"
            )
        return None, "", ""

    if not env.endpoint or not env.endpoint.strip():
        raise ConfigError("No endpoint configured (use --endpoint or STACKGEN_ENDPOINT)")
    try:
        endpoint = Endpoint.from_url(env.endpoint)
    except ValueError as exc:
        raise ConfigError(f"Invalid endpoint {env.endpoint!r}: {exc}") from exc
    if not endpoint.host:
        raise ConfigError(f"Endpoint has an empty host: {env.endpoint!r}")

    api_key = resolve_credential(env.key) if env.key else ""
    if not api_key.strip():
        raise ConfigError("API key is empty (use --key or STACKGEN_API_KEY)")

    secret_key = resolve_credential(env.secret) if env.secret else ""
    if not secret_key.strip():
        raise ConfigError("Secret key is empty (use --secret or STACKGEN_SECRET_KEY)")

    return endpoint, api_key, secret_key
