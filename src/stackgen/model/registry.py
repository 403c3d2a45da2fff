"""Deduplicating registry of response and shared record types.

A :class:`TypeRegistry` maps a type name to its sorted field map. It is
created once per generation run and threaded explicitly through every
builder call; there is no module-level instance.

Names are keyed by the *field* name that introduced them, so two nested
shapes that share a name collapse onto one entry and the first one wins.
With ``strict=True`` the registry instead raises
:class:`~stackgen.exceptions.TypeCollisionError` when a name is seen again
with a different set of field names or categories.
"""

from __future__ import annotations

from typing import Iterator, Optional

from stackgen.exceptions import TypeCollisionError
from stackgen.models import TypeNode

RESPONSE_SUFFIX = "Response"

FieldMap = dict[str, TypeNode]


class TypeRegistry:
    """Map of type name to field map, populated once per name."""

    def __init__(self, strict: bool = False) -> None:
        self._strict = strict
        self._types: dict[str, FieldMap] = {}
        self._pending: set[str] = set()

    @property
    def strict(self) -> bool:
        return self._strict

    def __contains__(self, name: object) -> bool:
        return name in self._types

    def __len__(self) -> int:
        return len(self._types)

    def __iter__(self) -> Iterator[str]:
        return iter(self.names())

    def get(self, name: str) -> Optional[FieldMap]:
        """Return the field map registered under *name*, or ``None``."""
        return self._types.get(name)

    def names(self) -> list[str]:
        """All registered names, sorted."""
        return sorted(self._types)

    def shared_names(self) -> list[str]:
        """Registered names not ending in ``Response``, sorted."""
        return [name for name in self.names() if not name.endswith(RESPONSE_SUFFIX)]

    def is_pending(self, name: str) -> bool:
        """Whether *name* is reserved but its fields are still being built."""
        return name in self._pending

    def reserve(self, name: str) -> bool:
        """Claim *name* with an empty field map before its fields are built.

        Returns ``False`` if the name is already taken. A reserved name
        counts as present, so a nested field that refers back to it does
        not trigger another walk.
        """
        if name in self._types:
            return False
        self._types[name] = {}
        self._pending.add(name)
        return True

    def populate(self, name: str, fields: FieldMap) -> None:
        """Fill in the fields of a name previously claimed with :meth:`reserve`."""
        if name not in self._pending:
            raise KeyError(f"Type '{name}' was not reserved")
        self._types[name] = dict(fields)
        self._pending.discard(name)

    def register(self, name: str, fields: FieldMap) -> bool:
        """Store *fields* under *name* unless the name is already taken.

        Returns ``True`` if the entry was stored. In strict mode a second
        registration with a different shape raises
        :class:`TypeCollisionError`; an identical shape is a no-op.
        """
        existing = self._types.get(name)
        if existing is None:
            self._types[name] = dict(fields)
            return True
        if self._strict and name not in self._pending:
            self.check_shape(name, fields)
        return False

    def check_shape(self, name: str, fields: FieldMap) -> None:
        """Raise :class:`TypeCollisionError` if *fields* differ from the entry for *name*."""
        existing = self._types.get(name)
        if existing is None:
            return
        if shape_of(existing) != shape_of(fields):
            raise TypeCollisionError(name, describe(existing), describe(fields))

    def scratch(self) -> TypeRegistry:
        """Return a lenient copy used to build a shape for comparison only."""
        copy = TypeRegistry(strict=False)
        copy._types = {name: dict(fields) for name, fields in self._types.items()}
        copy._pending = set(self._pending)
        return copy


def shape_of(fields: FieldMap) -> list[tuple[str, str]]:
    return sorted((name, node.category) for name, node in fields.items())


def describe(fields: FieldMap) -> list[str]:
    return [f"{name}:{category}" for name, category in shape_of(fields)]
