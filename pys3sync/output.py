"""Console output for the CLI."""

import json
from typing import Any, Optional

from rich.console import Console
from rich.table import Table

from .utils import format_size


class OutputFormatter:
    """Prints CLI messages, tables and JSON.

    Errors and warnings go to stderr; everything else goes to stdout and is
    suppressed in quiet mode. In JSON mode only ``output_json`` writes to
    stdout so the output stays machine-readable.
    """

    def __init__(
        self,
        json_output: bool = False,
        quiet: bool = False,
        console: Optional[Console] = None,
        err_console: Optional[Console] = None,
    ):
        self.json_output = json_output
        self.quiet = quiet
        self.console = console or Console(highlight=False)
        self.err_console = err_console or Console(stderr=True, highlight=False)

    @property
    def _silent(self) -> bool:
        return self.quiet or self.json_output

    def print(self, message: str = "") -> None:
        if not self._silent:
            self.console.print(message)

    def info(self, message: str) -> None:
        if not self._silent:
            self.console.print(message, style="blue")

    def success(self, message: str) -> None:
        if not self._silent:
            self.console.print(f"✓ {message}", style="green")

    def warning(self, message: str) -> None:
        self.err_console.print(f"Warning: {message}", style="yellow")

    def error(self, message: str) -> None:
        self.err_console.print(f"Error: {message}", style="bold red")

    def output_json(self, data: Any) -> None:
        """Write ``data`` as indented JSON to stdout."""
        self.console.print_json(json.dumps(data, default=str))

    def print_summary(self, title: str, items: list[tuple[str, str]]) -> None:
        """Print a two-column summary table.

        Args:
            title: Table title
            items: (label, value) rows
        """
        if self._silent:
            return
        table = Table(title=title, show_header=False, title_justify="left")
        table.add_column("Label", style="bold")
        table.add_column("Value")
        for label, value in items:
            table.add_row(label, value)
        self.console.print(table)

    def format_size(self, size_bytes: int) -> str:
        return format_size(size_bytes)
