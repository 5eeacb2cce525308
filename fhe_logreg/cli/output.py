"""
Output formatting utilities for the fhe-logreg CLI.

Provides consistent output across commands:
- Table formatting using rich
- JSON output
- Progress bars
- Logging through rich
"""

import json
import logging
import sys
from contextlib import contextmanager
from typing import Any, Dict, Generator, List, Optional, Union

from rich.console import Console
from rich.logging import RichHandler
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table


# Global console instance
console = Console()
error_console = Console(stderr=True)


def print_success(message: str) -> None:
    console.print(f"[green]✓[/green] {message}")


def print_error(message: str, details: Optional[str] = None) -> None:
    error_console.print(f"[red]✗ Error:[/red] {message}")
    if details:
        error_console.print(f"  [dim]{details}[/dim]")


def setup_logging(level: str = "INFO", rich: bool = True) -> None:
    """Route library logging to stderr, through rich when enabled."""
    if rich:
        handler: logging.Handler = RichHandler(
            console=error_console, show_path=False, rich_tracebacks=False
        )
        fmt = "%(message)s"
    else:
        handler = logging.StreamHandler(sys.stderr)
        fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    logging.basicConfig(level=level.upper(), format=fmt, handlers=[handler], force=True)


class OutputFormatter:
    """Handles output formatting for CLI commands."""

    def __init__(self, format: str = "table"):
        """
        Initialize the output formatter.

        Args:
            format: Output format ('table' or 'json')
        """
        self.format = format

    def print_table(
        self,
        data: List[Dict[str, Any]],
        columns: Optional[List[Dict[str, str]]] = None,
        title: Optional[str] = None,
    ) -> None:
        """
        Print data as a formatted table or JSON.

        Args:
            data: List of dictionaries to display
            columns: Column definitions with 'key', 'header', and optional 'style'
            title: Optional table title
        """
        if self.format == "json":
            self._print_json(data)
            return
        if not data:
            console.print("[dim]No data to display[/dim]")
            return

        # Auto-detect columns if not provided
        if columns is None:
            columns = [{"key": k, "header": k.replace("_", " ").title()} for k in data[0].keys()]

        table = Table(title=title, show_header=True, header_style="bold cyan")
        for col in columns:
            table.add_column(col["header"], style=col.get("style", ""))
        for row in data:
            table.add_row(*[self._format_value(row.get(col["key"], "")) for col in columns])

        console.print(table)

    def print_dict(self, data: Dict[str, Any], title: Optional[str] = None) -> None:
        """Print a dictionary as a key/value table or JSON."""
        if self.format == "json":
            self._print_json(data)
            return

        table = Table(title=title, show_header=True, header_style="bold cyan")
        table.add_column("Key", style="cyan")
        table.add_column("Value")
        for key, value in data.items():
            table.add_row(key.replace("_", " ").title(), self._format_value(value))

        console.print(table)

    def _print_json(self, data: Any) -> None:
        console.print(json.dumps(data, indent=2, default=str), highlight=False, markup=False, soft_wrap=True)

    def _format_value(self, value: Any) -> str:
        """Format a value for table display."""
        if value is None:
            return "[dim]-[/dim]"
        elif isinstance(value, bool):
            return "[green]Yes[/green]" if value else "[red]No[/red]"
        elif isinstance(value, float):
            return f"{value:.6g}"
        elif isinstance(value, (list, dict)):
            return json.dumps(value, default=str)
        else:
            return str(value)


@contextmanager
def progress_bar(
    total: int,
    description: str = "Training",
) -> Generator[Progress, None, None]:
    """
    Context manager for a progress bar.

    Args:
        total: Total number of items
        description: Description text

    Yields:
        Progress instance
    """
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:
        progress.add_task(description=description, total=total)
        yield progress


def format_duration(seconds: Union[int, float]) -> str:
    """Format duration in seconds to human-readable string."""
    if seconds < 60:
        return f"{seconds:.1f}s"
    elif seconds < 3600:
        return f"{seconds / 60:.1f}m"
    return f"{seconds / 3600:.1f}h"
