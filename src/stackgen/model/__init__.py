"""Type model: turn raw command schemas into descriptors and a type registry."""

from stackgen.model.builder import build_command, build_commands, build_response_fields, coerce_type
from stackgen.model.registry import TypeRegistry

__all__ = [
    "TypeRegistry",
    "build_command",
    "build_commands",
    "build_response_fields",
    "coerce_type",
]
