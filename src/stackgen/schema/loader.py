"""Load schema snapshots from a local file or inline JSON text.

Used by :class:`~stackgen.schema.fetcher.LocalSource` to read saved
``listApis`` / ``listCapabilities`` responses instead of calling the live
API. A source string that starts with ``{`` or ``[`` is parsed as inline
JSON; ``-`` reads stdin; anything else is treated as a file path. Files
ending in ``.yaml`` / ``.yml`` are parsed as YAML, everything else as JSON.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

import yaml

from stackgen.exceptions import SchemaError


def load_snapshot(source: str) -> Any:
    """Load and decode a schema snapshot.

    Args:
        source: Inline JSON text, ``-`` for stdin, or a file path.

    Returns:
        The decoded document (usually a dict, sometimes a bare list).

    Raises:
        SchemaError: If the source cannot be read or decoded.
    """
    text = source.strip()
    if not text:
        raise SchemaError("Empty schema source")
    if text[0] in "{[":
        return _parse_content(text, hint="json", origin="inline JSON")
    if text == "-":
        return _load_from_stdin()
    return _load_from_file(text)


def _load_from_stdin() -> Any:
    """Read a snapshot from stdin."""
    try:
        content = sys.stdin.read()
    except OSError as exc:
        raise SchemaError(f"Failed to read from stdin: {exc}") from exc

    if not content.strip():
        raise SchemaError("No input received from stdin")
    return _parse_content(content, hint="json", origin="stdin")


def _load_from_file(path: str) -> Any:
    """Read a snapshot from a local file."""
    file_path = Path(path).expanduser()
    if not file_path.is_file():
        raise SchemaError(f"Schema file not found: {path}")

    try:
        content = file_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise SchemaError(f"Failed to read schema file {path}: {exc}") from exc

    if not content.strip():
        raise SchemaError(f"Schema file is empty: {path}")

    hint = "yaml" if file_path.suffix.lower() in (".yaml", ".yml") else "json"
    return _parse_content(content, hint=hint, origin=str(file_path))


def _parse_content(content: str, hint: str, origin: str) -> Any:
    """Parse *content* as JSON or YAML according to *hint*.

    Raises:
        SchemaError: If the content cannot be decoded.
    """
    if hint == "yaml":
        try:
            return yaml.safe_load(content)
        except yaml.YAMLError as exc:
            raise SchemaError(f"Invalid YAML in {origin}: {exc}") from exc

    try:
        return json.loads(content)
    except json.JSONDecodeError as exc:
        raise SchemaError(f"Invalid JSON in {origin}: {exc}") from exc
