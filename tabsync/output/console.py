# Tablet Sync Console Output
# Rich-based console output for user-friendly display

from datetime import datetime
from typing import Optional

from rich.console import Console as RichConsole
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

from tabsync.errors import DEFAULT_ERROR_DISPLAY_LIMIT, ErrorKind, SyncSummary
from tabsync.library.models import Item
from tabsync.sync.engine import CheckResult, ConflictInfo, Resolution
from tabsync.sync.status import ItemStatus

_STATUS_STYLES = {
    ItemStatus.MODIFIED: "yellow",
    ItemStatus.ON_TABLET: "green",
    ItemStatus.READING: "cyan",
    ItemStatus.NONE: "dim",
}

_CONFLICT_CHOICES = {
    "e": Resolution.USE_EXTERNAL,
    "i": Resolution.USE_INTERNAL,
    "s": Resolution.SKIP,
}


def _format_mtime(mtime_ms: int) -> str:
    if not mtime_ms:
        return "unknown"
    return datetime.fromtimestamp(mtime_ms / 1000).strftime("%Y-%m-%d %H:%M:%S")


class Console:
    """
    Console output manager using Rich.

    Provides formatted output for sync operations.
    """

    def __init__(
        self,
        *,
        verbose: bool = False,
        colored: bool = True,
        error_display_limit: int = DEFAULT_ERROR_DISPLAY_LIMIT,
    ):
        """
        Initialize console.

        Args:
            verbose: Enable verbose output.
            colored: Enable colored output.
            error_display_limit: Failing filenames listed in a summary.
        """
        self.verbose = verbose
        self.error_display_limit = error_display_limit
        self._console = RichConsole(force_terminal=colored, no_color=not colored)

    def print(self, *args, **kwargs) -> None:
        """Print to console."""
        self._console.print(*args, **kwargs)

    def print_error(self, message: str) -> None:
        """Print error message."""
        self._console.print(f"[red]Error:[/red] {message}")

    def print_warning(self, message: str) -> None:
        """Print warning message."""
        self._console.print(f"[yellow]Warning:[/yellow] {message}")

    def print_success(self, message: str) -> None:
        """Print success message."""
        self._console.print(f"[green]{message}[/green]")

    def print_info(self, message: str) -> None:
        """Print info message."""
        self._console.print(f"[blue]{message}[/blue]")

    def print_invalid(self, invalid: list[tuple[Item, str]]) -> None:
        """Print items rejected by validation."""
        for item, reason in invalid:
            self._console.print(f"  [dim]○ {escape(item.filename)} ({reason})[/dim]")

    def print_summary(self, summary: SyncSummary) -> None:
        """
        Print the end-of-pass summary.

        Args:
            summary: Summary of a send or retrieve pass.
        """
        self._console.print()

        lines = [f"{summary.operation} {summary.succeeded} file(s)"]
        if summary.skipped:
            lines.append(f"[yellow]{summary.skipped} conflict(s) skipped[/yellow]")
        if summary.has_errors:
            lines.append(f"[red]{escape(summary.format_error_summary(self.error_display_limit))}[/red]")

        failures = [e for e in summary.errors if e.kind != ErrorKind.CONFLICT_UNRESOLVED]

        if failures:
            border = "red"
        elif summary.skipped:
            border = "yellow"
        else:
            border = "green"

        self._console.print(Panel("\n".join(lines), title="Summary", border_style=border))

        if self.verbose:
            for error in summary.errors:
                self._console.print(
                    f"    [red]✗[/red] {escape(error.filename)}: [dim]{error.kind.value}[/dim] {escape(error.message)}"
                )

    def print_check_result(self, result: CheckResult) -> None:
        """Print the outcome of a modification check."""
        if result.checked == 0:
            self._console.print("[dim]No files on external storage[/dim]")
            return
        if result.newly_modified:
            self._console.print(
                f"[yellow]{result.newly_modified} modified file(s)[/yellow] out of {result.checked} checked"
            )
        else:
            self._console.print(f"[green]No new modifications[/green] ({result.checked} checked)")
        for error in result.errors:
            self._console.print(f"    [red]✗[/red] {escape(error.filename)}: {escape(error.message)}")

    def print_status_table(self, rows: list[tuple[Item, ItemStatus, Optional[str]]]) -> None:
        """
        Print items with their status.

        Args:
            rows: Tuples of (item, status, external location).
        """
        if not rows:
            self._console.print("[dim]No items to display[/dim]")
            return

        table = Table(show_header=True, header_style="bold")
        table.add_column("Key", style="dim")
        table.add_column("Item")
        table.add_column("Status")
        table.add_column("Location", style="dim")

        for item, status, location in rows:
            style = _STATUS_STYLES[status]
            label = status.label or "-"
            table.add_row(item.key, escape(item.filename), f"[{style}]{label}[/{style}]", escape(location or ""))

        self._console.print(table)

    def print_items(self, items: list[Item], title: str) -> None:
        """Print a simple list of items."""
        table = Table(title=title, show_header=True, header_style="bold")
        table.add_column("Key", style="dim")
        table.add_column("Title")
        for item in items:
            table.add_row(item.key, escape(item.title or item.filename))
        self._console.print(table)

    def print_config_summary(self, config_path: str, external_root: str, mode: str) -> None:
        """Print configuration summary."""
        self._console.print(
            Panel(
                f"Config: {config_path}\n" f"External root: {external_root or '[red]not set[/red]'}\n" f"Mode: {mode}",
                title="Tablet Sync Configuration",
                border_style="blue",
            )
        )

    def confirm(self, message: str, default: bool = False) -> bool:
        """
        Ask for confirmation.

        Args:
            message: Confirmation message.
            default: Default value if user just presses enter.

        Returns:
            True if confirmed.
        """
        return Confirm.ask(message, default=default, console=self._console)

    def confirm_batch(self, operation: str, count: int) -> bool:
        """Ask before processing a large batch."""
        return self.confirm(f"{operation} {count} files?", default=True)

    def resolve_conflict(self, conflict: ConflictInfo) -> Resolution:
        """
        Interactive prompt to resolve a conflict.

        Args:
            conflict: Both copies of the file and their modification times.

        Returns:
            The chosen Resolution.
        """
        self._console.print(f"\n[bold red]Conflict detected:[/bold red] {escape(conflict.filename)}")
        self._console.print("  Both the library file and the external copy have changed.\n")
        external = escape(str(conflict.external_path))
        internal = escape(str(conflict.internal_path))
        self._console.print(f"  External: {external} [dim]({_format_mtime(conflict.external_mtime)})[/dim]")
        self._console.print(f"  Library:  {internal} [dim]({_format_mtime(conflict.internal_mtime)})[/dim]")
        self._console.print(f"  Last sync: [dim]{_format_mtime(conflict.last_modified)}[/dim]\n")

        self._console.print("[bold]Options:[/bold]")
        self._console.print("  [cyan]e[/cyan] - Keep the [bold]external[/bold] version (overwrite library)")
        self._console.print("  [cyan]i[/cyan] - Keep the [bold]library[/bold] version (discard external)")
        self._console.print("  [cyan]s[/cyan] - [bold]Skip[/bold] this file")

        choice = Prompt.ask("Your choice", choices=list(_CONFLICT_CHOICES), default="s", console=self._console)
        return _CONFLICT_CHOICES[choice]


def create_console(
    *,
    verbose: bool = False,
    colored: bool = True,
    error_display_limit: int = DEFAULT_ERROR_DISPLAY_LIMIT,
) -> Console:
    """
    Create a console instance.

    Args:
        verbose: Enable verbose output.
        colored: Enable colored output.
        error_display_limit: Failing filenames listed in a summary.

    Returns:
        Console instance.
    """
    return Console(verbose=verbose, colored=colored, error_display_limit=error_display_limit)
