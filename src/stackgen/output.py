"""Terminal output for the stackgen CLI.

Generated artifacts, descriptor dumps and command tables are *data* and go
to stdout; progress lines, warnings about skipped files and errors are
*diagnostics* and go to stderr. Piping ``stackgen command listFoo`` into a
file therefore captures exactly the rendered module.

Formatting follows the terminal: Rich styling when stdout is a TTY, plain
text otherwise, and no colour at all when ``NO_COLOR`` is set, ``TERM`` is
``dumb`` or ``--no-color`` was passed.

:func:`~stackgen.app.main_callback` installs one :class:`OutputManager`
with :func:`set_output`; library code fetches it with :func:`get_output`.
"""

from __future__ import annotations

import json
import os
import sys
from enum import Enum
from typing import Any, Optional

from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table
from rich.text import Text


class OutputFormat(str, Enum):
    """How data printed to stdout is formatted.

    ``AUTO`` becomes ``RICH`` on a colour-capable TTY and ``PLAIN`` otherwise.
    """

    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"


# (rich style, plain prefix) per diagnostic kind.
_DIAGNOSTICS: dict[str, tuple[str, str]] = {
    "info": ("", ""),
    "success": ("green", ""),
    "warning": ("yellow", "Warning: "),
    "error": ("bold red", "Error: "),
    "suggest": ("dim", "→ "),
    "debug": ("dim", "[debug] "),
}

# Kinds still printed under --quiet.
_ALWAYS_SHOWN = frozenset({"warning", "error"})


class OutputManager:
    """Route data to stdout and diagnostics to stderr.

    Args:
        format: Format for stdout data; ``AUTO`` is resolved from the TTY.
        no_color: Strip colour and markup from both streams.
        quiet: Hide progress lines (warnings and errors are still shown).
        verbose: Show ``debug`` lines.
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.AUTO,
        no_color: bool = False,
        quiet: bool = False,
        verbose: bool = False,
    ) -> None:
        self._no_color = no_color or _should_disable_color()
        self._quiet = quiet
        self._verbose = verbose
        self._format = _resolve_format(format, self._no_color)

        rich_data = self._format == OutputFormat.RICH
        self._stdout = Console(file=sys.stdout, no_color=self._no_color, force_terminal=rich_data)
        self._stderr = Console(file=sys.stderr, no_color=self._no_color, stderr=True)

    @property
    def format(self) -> OutputFormat:
        return self._format

    # --- stdout ---

    def print_data(self, text: str) -> None:
        """Write *text* and a newline to stdout unchanged."""
        print(text, file=sys.stdout, flush=True)

    def print_json(self, data: Any) -> None:
        """Dump *data* as indented JSON (syntax-highlighted in Rich mode)."""
        text = json.dumps(data, indent=2, ensure_ascii=False, default=str)
        if self._format == OutputFormat.RICH:
            self._stdout.print(Syntax(text, "json", theme="monokai", word_wrap=True))
            return
        self.print_data(text)

    def print_source(self, text: str, lexer: str = "python") -> None:
        """Write a rendered module to stdout; byte-exact outside Rich mode."""
        if self._format == OutputFormat.RICH:
            self._stdout.print(Syntax(text, lexer, theme="monokai", word_wrap=True))
            return
        sys.stdout.write(text)
        sys.stdout.flush()

    def print_table(
        self,
        headers: list[str],
        rows: list[list[str]],
        title: Optional[str] = None,
    ) -> None:
        """Print rows as a Rich table, a JSON array of objects, or TSV."""
        if self._format == OutputFormat.JSON:
            records = [dict(zip(headers, row)) for row in rows]
            self.print_data(json.dumps(records, indent=2, ensure_ascii=False))
            return
        if self._format == OutputFormat.PLAIN:
            for line in [headers, *rows]:
                self.print_data("\t".join(line))
            return

        table = Table(title=title, show_header=True, header_style="bold cyan")
        for header in headers:
            table.add_column(header)
        for row in rows:
            table.add_row(*row)
        self._stdout.print(table)

    # --- stderr ---

    def info(self, message: str) -> None:
        self._diagnostic("info", message)

    def success(self, message: str) -> None:
        self._diagnostic("success", message)

    def warning(self, message: str) -> None:
        self._diagnostic("warning", message)

    def error(self, message: str) -> None:
        self._diagnostic("error", message)

    def suggest(self, message: str) -> None:
        self._diagnostic("suggest", message)

    def debug(self, message: str) -> None:
        if self._verbose:
            self._diagnostic("debug", message)

    def _diagnostic(self, kind: str, message: str) -> None:
        if self._quiet and kind not in _ALWAYS_SHOWN:
            return
        style, prefix = _DIAGNOSTICS[kind]
        if self._no_color:
            print(f"{prefix}{message}", file=sys.stderr, flush=True)
            return
        text = Text(prefix, style=style)
        # Only the label of warnings and errors is styled.
        text.append(message, style="" if kind in _ALWAYS_SHOWN else style)
        self._stderr.print(text)


def _resolve_format(requested: OutputFormat, no_color: bool) -> OutputFormat:
    if requested != OutputFormat.AUTO:
        return requested
    if _is_tty() and not no_color:
        return OutputFormat.RICH
    return OutputFormat.PLAIN


def _is_tty() -> bool:
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


def _should_disable_color() -> bool:
    """True when ``NO_COLOR`` is set to any value or ``TERM`` is ``dumb``."""
    return os.environ.get("NO_COLOR") is not None or os.environ.get("TERM") == "dumb"


_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """Return the installed :class:`OutputManager`, creating a default one."""
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    global _output
    _output = output


def reset_output() -> None:
    """Forget the installed manager (used between tests)."""
    global _output
    _output = None


def error(message: str) -> None:
    """Report *message* as an error through the installed manager."""
    get_output().error(message)


def suggest(message: str) -> None:
    """Print a next-step hint through the installed manager."""
    get_output().suggest(message)
