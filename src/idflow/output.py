"""Terminal output for idflow.

Results of a flow (session data, token payloads, profile listings) are the
only thing written to stdout, so ``idflow sso-data --json | jq`` keeps
working. Everything a human reads along the way goes to stderr: progress,
warnings, the redirect URL that was opened, and the ``--verbose`` trace of
each request.

Commands and library code never hold an :class:`OutputManager` themselves.
:func:`~idflow.app.main_callback` installs one with :func:`set_output` and
the rest of the package calls the module-level shortcuts (:func:`info`,
:func:`debug`, :func:`format_response`, ...).

Colour follows the ``NO_COLOR`` convention and ``TERM=dumb``; with colour
off, diagnostics are printed as bare text with a short prefix instead of
Rich markup.
"""

from __future__ import annotations

import json
import os
import sys
from enum import Enum
from typing import Any, Callable, Optional

from rich.console import Console
from rich.markup import escape
from rich.syntax import Syntax
from rich.table import Table


class OutputFormat(str, Enum):
    """How results are rendered on stdout.

    ``AUTO`` becomes ``RICH`` on a colour-capable terminal and ``PLAIN``
    everywhere else.
    """

    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"


def _is_tty() -> bool:
    isatty = getattr(sys.stdout, "isatty", None)
    return bool(isatty and isatty())


def _should_disable_color() -> bool:
    """True when ``NO_COLOR`` is present (even empty) or the terminal is dumb."""
    return "NO_COLOR" in os.environ or os.environ.get("TERM") == "dumb"


def _dumps(data: Any, indent: Optional[int] = None) -> str:
    return json.dumps(data, indent=indent, ensure_ascii=False, default=str)


class OutputManager:
    """Routes results to stdout and diagnostics to stderr.

    Args:
        format: Rendering for results. ``AUTO`` is resolved once, here.
        no_color: Force colourless output regardless of the environment.
        quiet: Drop ``info``, ``success`` and ``suggest`` messages.
        verbose: Show ``debug`` messages.
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
        self._format = self._resolve(format)

        self._out = Console(
            file=sys.stdout,
            no_color=self._no_color,
            force_terminal=self._format is OutputFormat.RICH,
        )
        self._err = Console(file=sys.stderr, no_color=self._no_color, stderr=True)

        self._renderers: dict[OutputFormat, Callable[[Any], None]] = {
            OutputFormat.JSON: self._render_json,
            OutputFormat.PLAIN: self._render_plain,
            OutputFormat.RICH: self._render_rich,
        }

    def _resolve(self, requested: OutputFormat) -> OutputFormat:
        if requested is not OutputFormat.AUTO:
            return requested
        if _is_tty() and not self._no_color:
            return OutputFormat.RICH
        return OutputFormat.PLAIN

    @property
    def format(self) -> OutputFormat:
        return self._format

    @property
    def is_quiet(self) -> bool:
        return self._quiet

    @property
    def is_verbose(self) -> bool:
        return self._verbose

    # ------------------------------------------------------------------ #
    # stdout
    # ------------------------------------------------------------------ #

    def format_response(self, data: Any) -> None:
        """Render a flow result, usually the ``to_dict()`` of a result model."""
        self._renderers[self._format](data)

    def print_data(self, text: str) -> None:
        print(text, file=sys.stdout, flush=True)

    def print_table(
        self,
        headers: list[str],
        rows: list[list[str]],
        title: Optional[str] = None,
    ) -> None:
        """Render rows under *headers*.

        JSON mode emits a list of objects keyed by header, plain mode a
        tab-separated header line followed by one line per row.
        """
        if self._format is OutputFormat.JSON:
            self.print_data(_dumps([dict(zip(headers, row)) for row in rows], indent=2))
            return
        if self._format is OutputFormat.PLAIN:
            for line in [headers, *rows]:
                self.print_data("\t".join(line))
            return

        table = Table(title=title, header_style="bold cyan")
        for header in headers:
            table.add_column(header)
        for row in rows:
            table.add_row(*row)
        self._out.print(table)

    def _render_json(self, data: Any) -> None:
        self.print_data(_dumps(data, indent=2))

    def _render_plain(self, data: Any) -> None:
        if not isinstance(data, dict):
            self.print_data(str(data))
            return
        for key, value in data.items():
            shown = _dumps(value) if isinstance(value, (dict, list)) else value
            self.print_data(f"{key}\t{shown}")

    def _render_rich(self, data: Any) -> None:
        if isinstance(data, (dict, list)):
            self._out.print(Syntax(_dumps(data, indent=2), "json", theme="monokai", word_wrap=True))
        else:
            self._out.print(str(data))

    # ------------------------------------------------------------------ #
    # stderr
    # ------------------------------------------------------------------ #

    def _diagnostic(self, plain: str, markup: str, **print_kwargs: Any) -> None:
        if self._no_color:
            print(plain, file=sys.stderr, flush=True)
        else:
            self._err.print(markup, **print_kwargs)

    def info(self, message: str) -> None:
        if self._quiet:
            return
        self._diagnostic(message, message)

    def success(self, message: str) -> None:
        if self._quiet:
            return
        self._diagnostic(message, f"[green]{message}[/green]")

    def suggest(self, message: str) -> None:
        """Hint at the next command to run, e.g. ``idflow exchange``."""
        if self._quiet:
            return
        self._diagnostic(f"→ {message}", f"[dim]→ {message}[/dim]")

    def warning(self, message: str) -> None:
        self._diagnostic(f"Warning: {message}", f"[yellow]Warning:[/yellow] {message}")

    def error(self, message: str) -> None:
        self._diagnostic(f"Error: {message}", f"[bold red]Error:[/bold red] {message}")

    def debug(self, message: str) -> None:
        """Trace line for ``--verbose``. URLs and bodies are escaped, not parsed as markup."""
        if not self._verbose:
            return
        self._diagnostic(
            f"[debug] {message}",
            f"[dim]\\[debug] {escape(message)}[/dim]",
            highlight=False,
        )


# ------------------------------------------------------------------ #
# Process-wide instance
# ------------------------------------------------------------------ #

_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """Return the installed manager, creating an ``AUTO`` one on first use."""
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    global _output
    _output = output


def reset_output() -> None:
    global _output
    _output = None


def format_response(data: Any) -> None:
    get_output().format_response(data)


def print_table(
    headers: list[str],
    rows: list[list[str]],
    title: Optional[str] = None,
) -> None:
    get_output().print_table(headers, rows, title)


def info(message: str) -> None:
    get_output().info(message)


def success(message: str) -> None:
    get_output().success(message)


def suggest(message: str) -> None:
    get_output().suggest(message)


def warning(message: str) -> None:
    get_output().warning(message)


def error(message: str) -> None:
    get_output().error(message)


def debug(message: str) -> None:
    get_output().debug(message)
