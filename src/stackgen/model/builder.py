"""Build command descriptors and record types from the raw ``listApis`` schema.

:func:`build_response_fields` is the recursive core. It walks a list of raw
response fields, coerces each raw ``type`` to a category, and registers
every nested response shape in a :class:`~stackgen.model.registry.TypeRegistry`
under the *field's own name*. :func:`build_command` wraps it for one
command: it derives the response type name, registers the command's
top-level field map, counts parameters, and builds the sorted parameter map.

**Coercion table** (raw type -> category):

* ``set``, ``list``, ``map``, ``responseobject``, ``uservmresponse`` -> ``array``
* ``imageformat``, ``storagepoolstatus``, ``hypervisortype``, ``status``,
  ``type``, ``scopetype``, ``state``, ``url``, ``uuid`` -> ``string``
* ``integer``, ``long``, ``short``, ``int`` -> ``int``
* anything else passes through unchanged; a missing type is ``string``

The builder never fails on malformed entries. Nameless fields and repeated
names within one list are dropped and logged at debug level. The only error
it raises is :class:`~stackgen.exceptions.TypeCollisionError` from a strict
registry.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from stackgen.model.registry import RESPONSE_SUFFIX, FieldMap, TypeRegistry
from stackgen.models import (
    CommandDescriptor,
    ParameterDescriptor,
    RawCommandSchema,
    RawField,
    RawParameter,
    TypeNode,
)

logger = logging.getLogger(__name__)

ARRAY = "array"
STRING = "string"
INT = "int"
OBJECT = "object"

_ARRAY_TYPES = frozenset({"set", "list", "map", "responseobject", "uservmresponse"})
_STRING_TYPES = frozenset(
    {
        "imageformat",
        "storagepoolstatus",
        "hypervisortype",
        "status",
        "type",
        "scopetype",
        "state",
        "url",
        "uuid",
    }
)
_INT_TYPES = frozenset({"integer", "long", "short", "int"})

_DESCRIPTION_OVERRIDES: dict[str, str] = {
    "page": "the page number of the result set",
    "pagesize": "the number of entries per page",
}


def ucfirst(text: str) -> str:
    """Upper-case the first character only (``listFoo`` -> ``ListFoo``)."""
    return text[:1].upper() + text[1:]


def coerce_type(raw_type: Optional[str]) -> str:
    """Map a raw schema type to its category.

    Example::

        >>> coerce_type("long")
        'int'
        >>> coerce_type("uuid")
        'string'
        >>> coerce_type("date")
        'date'
    """
    if raw_type is None or not raw_type.strip():
        return STRING
    value = raw_type.strip()
    if value in _ARRAY_TYPES:
        return ARRAY
    if value in _STRING_TYPES:
        return STRING
    if value in _INT_TYPES:
        return INT
    return value


def build_response_fields(
    raw_fields: Sequence[RawField], registry: TypeRegistry
) -> FieldMap:
    """Convert raw response fields to a field map sorted by field name.

    Arrays without a nested ``response`` get an opaque ``string`` element
    type. Fields with a nested ``response`` reference the registry entry
    named after the field itself; that entry is built only if the name is
    not registered yet, and it is reserved before the walk recurses so a
    self-referential schema terminates.

    Args:
        raw_fields: The ``response`` list of a command or nested field.
        registry: Receives every nested shape encountered.

    Returns:
        ``{field_name: TypeNode}`` sorted by key.
    """
    accepted: FieldMap = {}
    for raw in raw_fields:
        name = (raw.name or "").strip()
        if not name:
            logger.debug("Skipping response field without a name")
            continue
        if name in accepted:
            logger.debug("Skipping duplicate response field '%s'", name)
            continue

        category = coerce_type(raw.type)
        description = (raw.description or "").strip()
        ref: Optional[str] = None
        item_category: Optional[str] = None

        if raw.response is not None:
            ref = name
            _build_nested(name, raw.response, registry)
        elif category == ARRAY:
            item_category = STRING

        accepted[name] = TypeNode(
            name=name,
            category=category,
            description=description,
            ref=ref,
            item_category=item_category,
        )

    return {key: accepted[key] for key in sorted(accepted)}


def _build_nested(name: str, raw_fields: Sequence[RawField], registry: TypeRegistry) -> None:
    if registry.reserve(name):
        registry.populate(name, build_response_fields(raw_fields, registry))
        return
    if registry.strict and not registry.is_pending(name):
        candidate = build_response_fields(raw_fields, registry.scratch())
        registry.check_shape(name, candidate)
        return
    logger.debug("Type '%s' already registered; reusing it", name)


def build_parameter(raw: RawParameter) -> ParameterDescriptor:
    """Build one parameter descriptor, applying the pagination description overrides."""
    name = (raw.name or "").strip()
    description = _DESCRIPTION_OVERRIDES.get(name.lower(), (raw.description or "").strip())
    return ParameterDescriptor(
        name=name,
        description=description,
        required=raw.required,
        type=coerce_type(raw.type),
        length=raw.length,
        since=raw.since,
        related=split_related(raw.related),
    )


def build_command(raw: RawCommandSchema, registry: TypeRegistry) -> CommandDescriptor:
    """Build the descriptor of one command and register its response type.

    The response type is ``ucfirst(name) + "Response"``; when two commands
    map to the same name the first one registered wins.
    """
    name = raw.name.strip()
    response_type_name = ucfirst(name) + RESPONSE_SUFFIX

    fields = build_response_fields(raw.response, registry)
    if not registry.register(response_type_name, fields):
        logger.debug(
            "Response type '%s' already registered; '%s' reuses it", response_type_name, name
        )

    required_count = 0
    optional_count = 0
    params: dict[str, ParameterDescriptor] = {}
    for raw_param in raw.params:
        if not (raw_param.name or "").strip():
            logger.debug("Skipping parameter without a name in '%s'", name)
            continue
        if raw_param.required:
            required_count += 1
        else:
            optional_count += 1
        key = raw_param.name.strip().lower()
        if key in params:
            logger.debug("Skipping duplicate parameter '%s' in '%s'", key, name)
            continue
        params[key] = build_parameter(raw_param)

    return CommandDescriptor(
        name=name,
        description=raw.description.strip(),
        is_async=raw.isasync,
        since=raw.since,
        related=split_related(raw.related),
        params={key: params[key] for key in sorted(params)},
        response_type_name=response_type_name,
        required_count=required_count,
        optional_count=optional_count,
        response=TypeNode(
            name=response_type_name,
            category=OBJECT,
            description=raw.description.strip(),
            ref=response_type_name,
        ),
    )


def build_commands(
    raw_commands: Sequence[RawCommandSchema], registry: TypeRegistry
) -> list[CommandDescriptor]:
    """Build every command against one registry, returning them in name order.

    Commands are built in the order they were fetched so that the first
    command to mention a shared type name defines its shape.
    """
    built = [build_command(raw, registry) for raw in raw_commands]
    return sorted(built, key=lambda descriptor: descriptor.name)


def split_related(related: Optional[str]) -> list[str]:
    """Split a comma-separated ``related`` list, dropping blanks."""
    if not related:
        return []
    return [item.strip() for item in related.split(",") if item.strip()]
