"""Template-driven rendering of the generated client package."""

from stackgen.emit.engine import FILES_DIR, RESPONSE_DIR, SRC_DIR, TEMPLATE_DIR, EmissionEngine

__all__ = ["EmissionEngine", "FILES_DIR", "RESPONSE_DIR", "SRC_DIR", "TEMPLATE_DIR"]
