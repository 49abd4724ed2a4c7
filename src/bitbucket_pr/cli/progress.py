"""Progress indicators and status messages for CLI commands."""

from contextlib import contextmanager
from typing import Generator

from rich.console import Console
from rich.status import Status

# Shared console instance
console = Console()


@contextmanager
def api_spinner(message: str) -> Generator[Status, None, None]:
    """Spinner for API calls with unknown duration.

    Args:
        message: Status message to display during operation

    Yields:
        Rich Status object for updating the message if needed
    """
    with console.status(f"[bold green]{message}", spinner="dots") as status:
        yield status


@contextmanager
def oauth_progress(authority: str) -> Generator[Status, None, None]:
    """Spinner shown while waiting for the user to finish signing in.

    Args:
        authority: Host being signed in to

    Yields:
        Rich Status object
    """
    with console.status(
        f"[bold blue]Waiting for browser sign in to {authority}...",
        spinner="dots",
    ) as status:
        yield status


def print_success(message: str) -> None:
    console.print(f"[green]✓[/green] {message}")


def print_error(message: str) -> None:
    console.print(f"[red]✗[/red] {message}")


def print_warning(message: str) -> None:
    console.print(f"[yellow]⚠[/yellow] {message}")
