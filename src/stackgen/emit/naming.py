"""Identifier and annotation helpers used as Jinja2 filters.

* :func:`python_name` -- schema names to valid Python identifiers.
* :func:`python_type` -- :class:`~stackgen.models.TypeNode` to annotation text.
* :func:`docstring_text` -- descriptions made safe inside ``\"\"\"`` literals.
"""

from __future__ import annotations

import json
import keyword
import re
from typing import Iterable

from stackgen.model.builder import ucfirst
from stackgen.models import TypeNode

# Matches any character that is not alphanumeric or underscore.
_INVALID_IDENT_RE = re.compile(r"[^a-zA-Z0-9_]")

_SCALAR_ANNOTATIONS: dict[str, str] = {
    "string": "str",
    "int": "int",
    "boolean": "bool",
    "bool": "bool",
    "date": "str",
    "tzdate": "str",
    "double": "float",
    "float": "float",
}


def python_name(name: str) -> str:
    """Convert a schema name to a valid Python identifier.

    Example::

        >>> python_name("virtualmachineId")
        'virtualmachine_id'
        >>> python_name("details[0].key")
        'details_0_key'
        >>> python_name("for")
        'for_'
    """
    # Insert underscores at CamelCase boundaries before lowering.
    result = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", name)
    result = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1_\2", result)
    result = result.lower()
    result = _INVALID_IDENT_RE.sub("_", result)
    result = re.sub(r"_+", "_", result).strip("_")
    if not result:
        result = "field"
    if result[0].isdigit():
        result = f"_{result}"
    if keyword.iskeyword(result):
        result = f"{result}_"
    return result


def unique_names(names: Iterable[str], reserved: Iterable[str] = ()) -> dict[str, str]:
    """Map each schema name to a distinct Python identifier.

    Clashes (with *reserved* or with an earlier name) get trailing
    underscores until they are unique.
    """
    taken = set(reserved)
    mapping: dict[str, str] = {}
    for name in names:
        candidate = python_name(name)
        while candidate in taken:
            candidate += "_"
        taken.add(candidate)
        mapping[name] = candidate
    return mapping


def class_name(type_name: str) -> str:
    """Class (and module) name for a registry entry."""
    if type_name.isidentifier():
        return ucfirst(type_name)
    return ucfirst(python_name(type_name))


def scalar_type(category: str) -> str:
    return _SCALAR_ANNOTATIONS.get(category, "Any")


def python_type(node: TypeNode) -> str:
    """Annotation text for a response field, without ``Optional``."""
    if node.ref is not None:
        if node.is_array:
            return f"list[{class_name(node.ref)}]"
        return class_name(node.ref)
    if node.is_array:
        return f"list[{scalar_type(node.item_category or 'string')}]"
    return scalar_type(node.category)


def parameter_type(category: str) -> str:
    """Annotation text for a request parameter."""
    if category == "array":
        return "Any"
    return scalar_type(category)


def docstring_text(text: str) -> str:
    """Collapse whitespace in *text* and escape it for a triple-quoted literal."""
    escaped = " ".join(text.split()).replace("\\", "\\\\").replace('"""', '\\"\\"\\"')
    if escaped.endswith('"'):
        escaped += " "
    return escaped


def string_literal(text: str) -> str:
    """Double-quoted Python string literal for *text*."""
    return json.dumps(text)
