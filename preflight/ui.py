"""
Operator-facing console output.

ConsoleUI is the reporting channel the pipeline writes to: one error line per
aborted stage, progress messages, and the release summary table.
"""

from typing import Optional, Protocol

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from preflight.release import Release


class UI(Protocol):
    """Reporting channel used by the pipeline."""

    def error(self, message: str) -> None: ...

    def info(self, message: str) -> None: ...

    def success(self, message: str) -> None: ...


class ConsoleUI:
    """Rich-backed UI. Errors go to stderr, everything else to stdout."""

    def __init__(self, console: Optional[Console] = None, err_console: Optional[Console] = None):
        self.console = console or Console(soft_wrap=True)
        self.err_console = err_console or Console(stderr=True, soft_wrap=True)

    def banner(self, title: str) -> None:
        self.console.rule(f"[bold blue]{escape(title)}[/bold blue]")

    def success(self, message: str) -> None:
        self.console.print(f"[bold green]✓[/bold green] {escape(message)}")

    def error(self, message: str) -> None:
        self.err_console.print(f"[bold red]✗[/bold red] {escape(message)}")

    def warning(self, message: str) -> None:
        self.console.print(f"[bold yellow]⚠[/bold yellow] {escape(message)}")

    def info(self, message: str) -> None:
        self.console.print(f"[bold cyan]ℹ[/bold cyan] {escape(message)}")

    def print_release(self, release: Release) -> None:
        """Render name, version, commit, jobs and packages as a two-column table."""
        table = Table(show_header=False, box=None, pad_edge=False)
        table.add_column("Field", style="bold")
        table.add_column("Value")

        table.add_row("Name", release.name)
        table.add_row("Version", release.version)

        commit = release.commit_hash or "(unknown)"
        if release.uncommitted_changes:
            commit += "+"
        table.add_row("Commit Hash", commit)

        jobs = sorted(f"{j.name}/{j.version}" if j.version else j.name for j in release.jobs)
        table.add_row("Jobs", "\n".join(jobs) if jobs else "(none)")

        packages = sorted(
            f"{p.name}/{p.version}" if p.version else p.name for p in release.packages
        )
        table.add_row("Packages", "\n".join(packages) if packages else "(none)")

        self.console.print(table)
