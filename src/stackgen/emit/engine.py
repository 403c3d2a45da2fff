"""Render command and record-type modules of the generated client.

The :class:`EmissionEngine` is pure: it turns descriptors and registry
entries into :class:`~stackgen.models.GeneratedArtifact` objects and never
touches the filesystem. Writing is the orchestrator's job.

Output layout (paths relative to the output directory):

* ``src/<command>.py`` -- one function per remote command.
* ``src/Response/<Type>.py`` -- one dataclass per response or shared type.
* ``src/__init__.py``, ``src/client.py``, ``src/Response/__init__.py`` --
  package entry point, the signed runtime client, and the shared decoding
  helpers.
* ``files/constants.py`` -- server version and command inventory.

Templates live in ``emit/templates/`` and are rendered with
:class:`~jinja2.StrictUndefined`, so a missing context key is an error
rather than an empty string. Nothing time- or host-dependent is passed to
the templates; identical inputs always render identical bytes.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping, Sequence

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from stackgen.emit.naming import (
    class_name,
    docstring_text,
    parameter_type,
    python_name,
    python_type,
    string_literal,
    unique_names,
)
from stackgen.model.builder import ucfirst
from stackgen.models import CommandDescriptor, GeneratedArtifact, RawCapabilities, TypeNode

TEMPLATE_DIR = Path(__file__).parent / "templates"
"""Path to the Jinja2 template directory (``emit/templates/``)."""

SRC_DIR = "src"
RESPONSE_DIR = "src/Response"
FILES_DIR = "files"

_COMMAND_RESERVED = frozenset({"client", "params", "result", "item"})
_FIELD_RESERVED = frozenset({"from_dict", "data", "cls", "field", "list"})


class EmissionEngine:
    """Render generated client modules from descriptors.

    Args:
        namespace: Name of the generated package. It labels the generated
            docstrings, is exported as ``NAMESPACE`` and identifies the
            runtime client in its ``User-Agent`` header. Empty means the
            generic ``cloudstack client`` label.
        template_dir: Directory holding the ``*.py.j2`` templates.
    """

    def __init__(self, namespace: str = "", template_dir: Path = TEMPLATE_DIR) -> None:
        self._namespace = namespace.strip()
        self._env = _create_jinja_env(template_dir)

    @property
    def namespace(self) -> str:
        return self._namespace or "cloudstack client"

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def emit_command(self, descriptor: CommandDescriptor) -> GeneratedArtifact:
        """Render the module holding the function for one command."""
        names = unique_names(descriptor.params, reserved=_COMMAND_RESERVED)
        required = [
            _parameter_context(key, param.description, param.type, names[key])
            for key, param in descriptor.params.items()
            if param.required
        ]
        optional = [
            _parameter_context(key, param.description, param.type, names[key])
            for key, param in descriptor.params.items()
            if not param.required
        ]
        returns_list = descriptor.name.startswith("list")
        typing_names = ["Any"]
        if optional:
            typing_names.append("Optional")
        if returns_list:
            typing_names.append("Union")
        content = self._render(
            "command.py.j2",
            namespace=self.namespace,
            command=descriptor,
            function_name=_function_name(descriptor.name),
            response_class=class_name(descriptor.response_type_name),
            required=required,
            optional=optional,
            returns_list=returns_list,
            typing_names=typing_names,
            description=docstring_text(descriptor.description),
        )
        return GeneratedArtifact(path=f"{SRC_DIR}/{descriptor.name}.py", content=content)

    def emit_type(
        self, type_name: str, fields: Mapping[str, TypeNode], description: str = ""
    ) -> GeneratedArtifact:
        """Render the dataclass module for one registry entry."""
        own_class = class_name(type_name)
        names = unique_names(fields, reserved=_FIELD_RESERVED)
        field_contexts = [_field_context(node, names[key]) for key, node in fields.items()]
        imports = sorted(
            {class_name(node.ref) for node in fields.values() if node.ref is not None}
            - {own_class}
        )
        helpers = sorted({ctx["helper"] for ctx in field_contexts if ctx["helper"]})
        has_list = any(ctx["is_list"] for ctx in field_contexts)
        typing_names = ["TYPE_CHECKING"] if imports else []
        typing_names.append("Any")
        if not all(ctx["is_list"] for ctx in field_contexts):
            typing_names.append("Optional")
        content = self._render(
            "response.py.j2",
            namespace=self.namespace,
            class_name=own_class,
            description=docstring_text(description or f"The {type_name} record."),
            fields=field_contexts,
            imports=imports,
            helpers=helpers,
            typing_names=typing_names,
            dataclass_names=["dataclass", "field"] if has_list else ["dataclass"],
        )
        return GeneratedArtifact(path=f"{RESPONSE_DIR}/{own_class}.py", content=content)

    def emit_support(
        self,
        capabilities: RawCapabilities,
        descriptors: Sequence[CommandDescriptor] = (),
    ) -> list[GeneratedArtifact]:
        """Render the package boilerplate and the constants file."""
        ordered = sorted(descriptors, key=lambda d: d.name)
        context: dict[str, Any] = {
            "namespace": self.namespace,
            "package_name": self._namespace,
            "user_agent": _user_agent(self._namespace, capabilities.cloudstackversion),
            "cloudstack_version": capabilities.cloudstackversion,
            "commands": [d.name for d in ordered],
            "async_commands": [d.name for d in ordered if d.is_async],
        }
        return [
            GeneratedArtifact(
                path=f"{SRC_DIR}/__init__.py", content=self._render("package_init.py.j2", **context)
            ),
            GeneratedArtifact(
                path=f"{SRC_DIR}/client.py", content=self._render("client.py.j2", **context)
            ),
            GeneratedArtifact(
                path=f"{RESPONSE_DIR}/__init__.py",
                content=self._render("response_init.py.j2", **context),
            ),
            GeneratedArtifact(
                path=f"{FILES_DIR}/constants.py", content=self._render("constants.py.j2", **context)
            ),
        ]

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _render(self, template_name: str, **context: Any) -> str:
        return self._env.get_template(template_name).render(**context)


def _create_jinja_env(template_dir: Path) -> Environment:
    """Create the Jinja2 environment for Python-source templates.

    Autoescape stays off because the output is Python, not HTML.
    """
    env = Environment(
        loader=FileSystemLoader(str(template_dir)),
        autoescape=False,
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
        undefined=StrictUndefined,
    )
    env.filters["ucfirst"] = ucfirst
    env.filters["pyname"] = python_name
    env.filters["pytype"] = python_type
    env.filters["doc"] = docstring_text
    env.filters["literal"] = string_literal
    return env


def _parameter_context(key: str, description: str, category: str, py_name: str) -> dict[str, str]:
    return {
        "key": string_literal(key),
        "name": py_name,
        "annotation": parameter_type(category),
        "description": docstring_text(description) or key,
    }


def _field_context(node: TypeNode, py_name: str) -> dict[str, Any]:
    key = string_literal(node.name)
    if node.ref is not None and node.is_array:
        helper = "build_list"
        value = f"build_list({class_name(node.ref)}, data.get({key}))"
    elif node.ref is not None:
        helper = "build_object"
        value = f"build_object({class_name(node.ref)}, data.get({key}))"
    elif node.is_array:
        helper = "as_list"
        value = f"as_list(data.get({key}))"
    else:
        helper = ""
        value = f"data.get({key})"
    return {
        "key": node.name,
        "name": py_name,
        "annotation": python_type(node),
        "is_list": node.is_array,
        "value": value,
        "helper": helper,
        "description": docstring_text(node.description),
    }


def _user_agent(namespace: str, version: str) -> str:
    product = "-".join(namespace.split()) or "cloudstack-client"
    return f"{product} (stackgen; CloudStack {version})"


def _function_name(command: str) -> str:
    return command if command.isidentifier() else python_name(command)
