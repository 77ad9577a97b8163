"""Console rendering for workflow progress.

The adapter picks its render mode once, when it is constructed: interactive
terminals get colour and an animated spinner, anything else gets plain lines.
A running spinner is an acquired resource. It is stopped before any other
line is written and released at most once.
"""
from __future__ import annotations

from collections.abc import Iterator, Sequence
from contextlib import contextmanager

import typer
from rich.console import Console
from rich.markup import escape
from rich.status import Status

SPINNER_NAME = "dots"


class OutputAdapter:
    """Render step transitions to a rich console."""

    def __init__(
        self,
        console: Console | None = None,
        *,
        no_spinner: bool = False,
        no_clear: bool = False,
    ) -> None:
        """Select the render mode for the lifetime of the adapter."""
        self.console = console or Console(highlight=False, soft_wrap=True)
        self.interactive = bool(self.console.is_terminal)
        self.spinner_enabled = self.interactive and not no_spinner
        self.clear_enabled = self.interactive and not no_clear
        self._status: Status | None = None

    # ------------------------------------------------------------------
    # Spinner lifecycle
    # ------------------------------------------------------------------

    @property
    def spinner_active(self) -> bool:
        """Return ``True`` while a spinner is being rendered."""
        return self._status is not None

    def start_spinner(self, text: str) -> None:
        """Start animating *text*, replacing any spinner already running."""
        if not self.spinner_enabled:
            return
        self.stop_spinner()
        status = self.console.status(
            f"[dim]{escape(text)}[/dim]",
            spinner=SPINNER_NAME,
            spinner_style="dim",
        )
        status.start()
        self._status = status

    def stop_spinner(self) -> None:
        """Stop the active spinner and clear its line. Safe to call repeatedly."""
        status, self._status = self._status, None
        if status is not None:
            status.stop()

    @contextmanager
    def spinner(self, text: str) -> Iterator[None]:
        """Show a spinner for the duration of the ``with`` block."""
        self.start_spinner(text)
        try:
            yield
        finally:
            self.stop_spinner()

    # ------------------------------------------------------------------
    # Line output
    # ------------------------------------------------------------------

    def clear(self) -> None:
        """Clear the screen unless disabled or not attached to a terminal."""
        if self.clear_enabled:
            self.stop_spinner()
            self.console.clear()

    def header(self, text: str) -> None:
        """Print a bold section header preceded by a blank line."""
        self._emit("")
        self._emit(f"[bold]{escape(text)}[/bold]")

    def step(self, text: str) -> None:
        """Print a step start marker."""
        self._emit(f"[blue]→[/blue] {escape(text)}")

    def success(self, text: str) -> None:
        """Print a completion marker."""
        self._emit(f"[green]✓[/green] {escape(text)}")

    def skip(self, text: str) -> None:
        """Print a marker for work that was already satisfied."""
        self._emit(f"[yellow]○[/yellow] {escape(text)}")

    def failure(self, text: str) -> None:
        """Print a marker for a failed step or item."""
        self._emit(f"[red]✗[/red] {escape(text)}")

    def muted(self, text: str) -> None:
        """Print a dimmed diagnostic line."""
        self._emit(f"[dim]{escape(text)}[/dim]")

    def plain(self, text: str) -> None:
        """Print *text* without decoration."""
        self._emit(escape(text))

    def dry_run(self, command: str) -> None:
        """Report a command that would have been executed."""
        self.muted(f"DRY-RUN: {command}")

    def blank(self) -> None:
        """Print an empty line."""
        self._emit("")

    def summary(self, fields: Sequence[tuple[str, int]]) -> None:
        """Print the run summary counters on a single line."""
        self.header("Summary")
        parts = [f"[dim]{escape(label)}:[/dim] {value}" for label, value in fields]
        self._emit("  " + "  ".join(parts))

    def complete(self) -> None:
        """Print the terminal completion marker."""
        self._emit("")
        self._emit("[green]✓[/green] [dim]Complete[/dim]")

    def confirm(self, prompt: str) -> bool:
        """Ask a yes/no question, defaulting to *no*."""
        self.stop_spinner()
        try:
            return typer.confirm(prompt, default=False)
        except typer.Abort as exc:
            raise KeyboardInterrupt from exc

    def _emit(self, markup: str) -> None:
        self.stop_spinner()
        self.console.print(markup)


__all__ = ["OutputAdapter"]
