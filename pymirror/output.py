"""Output formatting for the PyMirror CLI."""

import json
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.table import Table


class OutputFormatter:
    """Writes user-facing messages with rich, honouring quiet and JSON modes.

    In JSON mode only :meth:`output_json` and errors reach the terminal, so
    the command output stays machine readable.
    """

    def __init__(self, json_output: bool = False, quiet: bool = False):
        self.json_output = json_output
        self.quiet = quiet
        self.console = Console()
        self.err_console = Console(stderr=True)

    @property
    def _silent(self) -> bool:
        return self.quiet or self.json_output

    def info(self, message: str) -> None:
        if not self._silent:
            self.console.print(escape(message), highlight=False)

    def success(self, message: str) -> None:
        if not self._silent:
            self.console.print(f"[green]{escape(message)}[/green]", highlight=False)

    def warning(self, message: str) -> None:
        if not self._silent:
            self.err_console.print(
                f"[yellow]{escape(message)}[/yellow]", highlight=False
            )

    def error(self, message: str) -> None:
        self.err_console.print(
            f"[bold red]Error:[/bold red] {escape(message)}", highlight=False
        )

    def output_json(self, data: Any) -> None:
        """Print data as JSON on stdout (plain, no markup)."""
        print(json.dumps(data, indent=2, default=str))

    def print_summary(self, title: str, items: list[tuple[str, str]]) -> None:
        """Print a two-column summary table.

        Args:
            title: Table title
            items: (label, value) rows
        """
        if self._silent:
            return
        table = Table(title=title, show_header=False, title_justify="left")
        table.add_column("Item", style="bold")
        table.add_column("Value")
        for label, value in items:
            table.add_row(label, value)
        self.console.print(table)

    def output_table(
        self,
        data: list[dict[str, Any]],
        columns: list[str],
        headers: dict[str, str],
    ) -> None:
        """Print rows as a table with one column per key in ``columns``.

        Args:
            data: Rows keyed by column
            columns: Keys to show, in order
            headers: Column titles by key
        """
        if self.json_output:
            return
        table = Table(show_header=True, header_style="bold")
        for column in columns:
            table.add_column(headers.get(column, column))
        for row in data:
            table.add_row(*(escape(str(row.get(c, ""))) for c in columns))
        self.console.print(table)
