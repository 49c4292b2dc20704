"""Data and diagnostics output for credcache.

Two streams, never mixed:

* **stdout** carries what a command was asked for: cached headers, a
  fetched body, the entry table. It is rendered as JSON, tab-separated
  plain text, or Rich markup depending on :class:`OutputFormat`.
* **stderr** carries everything the header cache and the fetcher report
  about themselves: store outages, invalidations, malformed rows.

``NO_COLOR``, ``TERM=dumb`` and ``--no-color`` switch diagnostics to
plain prefixed lines. ``--quiet`` hides status chatter but never problems;
``--verbose`` adds debug lines.

Library components take an :class:`OutputManager` at construction and fall
back to the process-wide one from :func:`get_output`. CLI commands use the
module-level helpers at the bottom of this file.
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


class OutputFormat(str, Enum):
    """How stdout data is rendered. ``AUTO`` picks RICH on a colour TTY, else PLAIN."""

    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"


class OutputManager:
    """Routes data to stdout and diagnostics to stderr.

    Args:
        format: Requested stdout format; ``AUTO`` is resolved once here.
        no_color: Plain diagnostics without Rich markup.
        quiet: Hide ``info``, ``success`` and ``suggest`` lines.
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

        if format != OutputFormat.AUTO:
            self._format = format
        elif _is_tty() and not self._no_color:
            self._format = OutputFormat.RICH
        else:
            self._format = OutputFormat.PLAIN

        rich_stdout = self._format == OutputFormat.RICH
        self._stdout = Console(file=sys.stdout, no_color=self._no_color, force_terminal=rich_stdout)
        self._stderr = Console(file=sys.stderr, no_color=self._no_color, stderr=True)

    @property
    def format(self) -> OutputFormat:
        return self._format

    @property
    def is_quiet(self) -> bool:
        return self._quiet

    @property
    def is_verbose(self) -> bool:
        return self._verbose

    # --- stdout ---

    def print_data(self, text: str) -> None:
        """Write one line of raw data to stdout."""
        print(text, file=sys.stdout, flush=True)

    def format_response(self, data: Any) -> None:
        """Render a payload (mapping, list, string or scalar) to stdout."""
        if self._format == OutputFormat.JSON:
            if isinstance(data, str):
                try:
                    data = json.loads(data)
                except json.JSONDecodeError:
                    self.print_data(data)
                    return
            self.print_data(_to_json(data))
        elif self._format == OutputFormat.PLAIN:
            for line in _plain_lines(data):
                self.print_data(line)
        elif isinstance(data, (dict, list)):
            self._stdout.print(Syntax(_to_json(data), "json", theme="monokai", word_wrap=True))
        else:
            self._stdout.print(str(data))

    def print_table(
        self,
        headers: list[str],
        rows: list[list[str]],
        title: Optional[str] = None,
    ) -> None:
        """Render rows as JSON records, TSV, or a Rich table. *title* is Rich-only."""
        if self._format == OutputFormat.JSON:
            self.print_data(_to_json([dict(zip(headers, row)) for row in rows]))
            return
        if self._format == OutputFormat.PLAIN:
            for row in [headers, *rows]:
                self.print_data("\t".join(row))
            return

        table = Table(title=title, show_header=True, header_style="bold cyan")
        for name in headers:
            table.add_column(name)
        for row in rows:
            table.add_row(*row)
        self._stdout.print(table)

    # --- stderr ---

    def info(self, message: str) -> None:
        if not self._quiet:
            self._diagnostic(message, "", "{}")

    def success(self, message: str) -> None:
        if not self._quiet:
            self._diagnostic(message, "", "[green]{}[/green]")

    def suggest(self, message: str) -> None:
        if not self._quiet:
            self._diagnostic(f"→ {message}", "", "[dim]{}[/dim]")

    def warning(self, message: str) -> None:
        """Always shown, even with ``--quiet``."""
        self._diagnostic(message, "Warning: ", "[yellow]Warning:[/yellow] {}")

    def error(self, message: str) -> None:
        """Always shown, even with ``--quiet``."""
        self._diagnostic(message, "Error: ", "[bold red]Error:[/bold red] {}")

    def debug(self, message: str) -> None:
        if self._verbose:
            self._diagnostic(message, "[debug] ", "[dim]\\[debug] {}[/dim]")

    def _diagnostic(self, message: str, plain_prefix: str, markup: str) -> None:
        if self._no_color:
            print(f"{plain_prefix}{message}", file=sys.stderr, flush=True)
        else:
            self._stderr.print(markup.format(message))


def _to_json(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False, default=str)


def _plain_lines(data: Any) -> list[str]:
    # Header mappings print as "name<TAB>value"; entry lists one row per item.
    if isinstance(data, dict):
        return [f"{key}\t{value}" for key, value in data.items()]
    if isinstance(data, list):
        return [
            "\t".join(str(v) for v in item.values()) if isinstance(item, dict) else str(item)
            for item in data
        ]
    return [str(data)]


def _is_tty() -> bool:
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


def _should_disable_color() -> bool:
    """True when ``NO_COLOR`` is set to anything or ``TERM`` is ``dumb``."""
    return os.environ.get("NO_COLOR") is not None or os.environ.get("TERM") == "dumb"


# --- process-wide instance ---

_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """The process-wide :class:`OutputManager`, created with defaults on first use."""
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    global _output
    _output = output


def reset_output() -> None:
    """Forget the process-wide manager (tests swap stdout/stderr between runs)."""
    global _output
    _output = None


# --- helpers for CLI commands ---


def format_response(data: Any) -> None:
    get_output().format_response(data)


def print_table(headers: list[str], rows: list[list[str]], title: Optional[str] = None) -> None:
    get_output().print_table(headers, rows, title)


def info(message: str) -> None:
    get_output().info(message)


def success(message: str) -> None:
    get_output().success(message)


def suggest(message: str) -> None:
    get_output().suggest(message)


def error(message: str) -> None:
    get_output().error(message)
