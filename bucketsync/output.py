"""Console output for the command line."""

import json
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, Callable, Optional

from rich.console import Console
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn


class OutputFormatter:
    """Prints user-facing messages, honoring quiet and JSON modes.

    Messages go to stderr when JSON output is requested so that stdout only
    carries the JSON document.
    """

    def __init__(
        self,
        json_output: bool = False,
        quiet: bool = False,
        console: Optional[Console] = None,
    ):
        """Initialize output formatter.

        Args:
            json_output: Emit machine-readable JSON on stdout
            quiet: Suppress non-essential output
            console: Console to write to (a default one is created if omitted)
        """
        self.json_output = json_output
        self.quiet = quiet
        self.console = console or Console(stderr=json_output, highlight=False)

    def print(self, message: str = "") -> None:
        """Print a plain line."""
        if self.quiet:
            return
        self.console.print(escape(message))

    def info(self, message: str) -> None:
        """Print an informational message."""
        if self.quiet:
            return
        self.console.print(escape(message))

    def success(self, message: str) -> None:
        """Print a success message."""
        if self.quiet:
            return
        self.console.print(f"[green]{escape(message)}[/green]")

    def warning(self, message: str) -> None:
        """Print a warning."""
        if self.quiet:
            return
        self.console.print(f"[yellow]{escape(message)}[/yellow]")

    def error(self, message: str) -> None:
        """Print an error. Errors are shown even in quiet mode."""
        self.console.print(f"[red]{escape(message)}[/red]")

    def output_json(self, data: Any) -> None:
        """Write ``data`` as JSON to stdout."""
        print(json.dumps(data, indent=2, default=str))

    @contextmanager
    def progress(self, description: str) -> Iterator[Callable[[str], None]]:
        """Show a transient spinner while the block runs.

        Yields a thread-safe function that reports one finished step; the
        spinner text is replaced with its message. Nothing is shown in quiet
        mode.
        """
        if self.quiet:
            yield lambda message: None
            return

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=self.console,
            transient=True,
        ) as progress:
            task = progress.add_task(escape(description), total=None)

            def step(message: str) -> None:
                progress.update(task, advance=1, description=escape(message))

            yield step
