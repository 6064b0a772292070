"""Console output helpers built on rich."""

import json
from typing import Any

from rich.console import Console
from rich.markup import escape



class OutputFormatter:
    """Formats messages for the terminal, honouring quiet and JSON modes."""

    def __init__(self, json_output: bool = False, quiet: bool = False):
        """Initialize output formatter.

        Args:
            json_output: Emit machine readable JSON instead of prose
            quiet: Suppress informational messages
        """
        self.json_output = json_output
        self.quiet = quiet
        self.console = Console(highlight=False, soft_wrap=True)
        self.err_console = Console(stderr=True, highlight=False, soft_wrap=True)

    def print(self, message: str = "") -> None:
        if self.quiet or self.json_output:
            return
        self.console.print(escape(message))

    def info(self, message: str) -> None:
        if self.quiet or self.json_output:
            return
        self.console.print(escape(message))

    def success(self, message: str) -> None:
        if self.quiet or self.json_output:
            return
        self.console.print(f"[green]✓[/green] {escape(message)}")

    def warning(self, message: str) -> None:
        if self.json_output:
            return
        self.err_console.print(f"[yellow]Warning:[/yellow] {escape(message)}")

    def error(self, message: str) -> None:
        """Errors are always shown, even in quiet mode."""
        self.err_console.print(f"[red]Error:[/red] {escape(message)}")

    def output_json(self, data: Any) -> None:
        self.console.print_json(json.dumps(data))
