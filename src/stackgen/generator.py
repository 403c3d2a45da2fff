"""Sequence one generation run: fetch, build, emit, write.

:class:`Generator` owns the stage order and the output directory:

1. Check that the output directory exists and is writable.
2. Fetch capabilities, then the command list.
3. Build every command descriptor against one fresh
   :class:`~stackgen.model.registry.TypeRegistry`.
4. Render command modules (sorted by name), each command's response type,
   every remaining registry entry (sorted), then the support files.
5. Create ``src/``, ``src/Response/`` and ``files/``, remove stale ``*.py``
   files from them, and write each artifact atomically.

Any exception aborts the run. Nothing is written before every artifact has
rendered, and rendering is pure, so re-running over the same snapshot
rewrites byte-identical files.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from stackgen.config import atomic_write, validate_output_dir
from stackgen.emit.engine import FILES_DIR, RESPONSE_DIR, SRC_DIR, EmissionEngine
from stackgen.model.builder import build_commands
from stackgen.model.registry import TypeRegistry
from stackgen.models import (
    CommandDescriptor,
    GeneratedArtifact,
    GenerationResult,
    RawCapabilities,
)
from stackgen.output import get_output
from stackgen.schema.fetcher import SchemaFetcher

logger = logging.getLogger(__name__)


@dataclass
class BuildResult:
    """Descriptors and registry produced by :meth:`Generator.build`."""

    capabilities: RawCapabilities
    descriptors: list[CommandDescriptor]
    registry: TypeRegistry

    def find(self, name: str) -> Optional[CommandDescriptor]:
        """Return the descriptor for *name* (case-insensitive), or ``None``."""
        wanted = name.lower()
        for descriptor in self.descriptors:
            if descriptor.name.lower() == wanted:
                return descriptor
        return None


class Generator:
    """Run the fetch, build, and emit stages against one output directory.

    Args:
        fetcher: Supplies the raw schema.
        engine: Renders artifacts.
        output_dir: Existing, writable directory receiving the client.
        strict: Fail on type-name shape collisions instead of keeping the
            first shape.
    """

    def __init__(
        self,
        fetcher: SchemaFetcher,
        engine: EmissionEngine,
        output_dir: Optional[str | Path] = None,
        strict: bool = False,
    ) -> None:
        self._fetcher = fetcher
        self._engine = engine
        self._output_dir = output_dir
        self._strict = strict

    @property
    def fetcher(self) -> SchemaFetcher:
        return self._fetcher

    @property
    def engine(self) -> EmissionEngine:
        return self._engine

    def generate(self) -> GenerationResult:
        """Run every stage and write the client to the output directory."""
        out = validate_output_dir(str(self._output_dir) if self._output_dir else None)
        built = self.build()
        result = self.render(built)
        self.write(result, out)
        return result

    def build(self) -> BuildResult:
        """Fetch the schema and build descriptors without rendering anything."""
        output = get_output()
        output.info(f"Compiling APIs from {self._fetcher.source.description}...")
        capabilities = self._fetcher.fetch_capabilities()
        output.info(f"CloudStack version: {capabilities.cloudstackversion}")

        raw_commands = self._fetcher.fetch_commands()
        registry = TypeRegistry(strict=self._strict)
        descriptors = build_commands(raw_commands, registry)
        output.info(f"{len(descriptors)} API(s) found, {len(registry)} type(s) registered.")
        return BuildResult(capabilities=capabilities, descriptors=descriptors, registry=registry)

    def render(self, built: BuildResult) -> GenerationResult:
        """Render every artifact of *built*."""
        descriptors = sorted(built.descriptors, key=lambda d: d.name)
        commands = [self._engine.emit_command(d) for d in descriptors]

        models: list[GeneratedArtifact] = []
        emitted: set[str] = set()
        paths: set[str] = set()

        def emit(type_name: str, description: str = "") -> None:
            fields = built.registry.get(type_name)
            if fields is None or type_name in emitted:
                return
            emitted.add(type_name)
            artifact = self._engine.emit_type(type_name, fields, description)
            if artifact.path in paths:
                get_output().warning(
                    f"Type '{type_name}' maps to {artifact.path}, already written; skipping it"
                )
                return
            paths.add(artifact.path)
            models.append(artifact)

        for descriptor in descriptors:
            emit(descriptor.response_type_name, descriptor.description)
        for type_name in built.registry.shared_names():
            emit(type_name)
        # Nested entries ending in "Response" are referenced by fields too.
        for type_name in built.registry.names():
            emit(type_name)

        support = self._engine.emit_support(built.capabilities, descriptors)
        logger.debug(
            "Rendered %d command, %d model, and %d support artifact(s)",
            len(commands),
            len(models),
            len(support),
        )
        return GenerationResult(
            cloudstack_version=built.capabilities.cloudstackversion,
            command_artifacts=commands,
            model_artifacts=models,
            support_artifacts=support,
        )

    def write(self, result: GenerationResult, out: Path) -> None:
        """Prepare the directory layout under *out* and write every artifact."""
        output = get_output()
        output.info("Initializing directories...")
        for relative in (SRC_DIR, RESPONSE_DIR, FILES_DIR):
            directory = out / relative
            directory.mkdir(parents=True, exist_ok=True)
            for stale in sorted(directory.glob("*.py")):
                output.debug(f"Removing stale {stale}")
                stale.unlink()

        for artifact in result.artifacts:
            atomic_write(out / artifact.path, artifact.content)
        output.success(f"Wrote {len(result.artifacts)} file(s) to {out}")
