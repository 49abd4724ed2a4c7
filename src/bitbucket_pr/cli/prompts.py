"""User prompts used by the credential store."""

import sys
from typing import Protocol, Sequence

from rich.console import Console
from rich.prompt import Prompt
from rich.status import Status

console = Console()


class Prompter(Protocol):
    """Interactive UI the credential store asks for decisions."""

    async def confirm(
        self, message: str, actions: Sequence[str], *, error: bool = False
    ) -> str | None:
        """Show a message with action choices.

        Returns:
            The chosen action, or None when dismissed
        """
        ...

    async def notify(self, message: str) -> None:
        """Show an informational notice."""
        ...


class ConsolePrompter:
    """Prompter backed by rich prompts on the terminal.

    Prompts block the event loop while waiting for input. When stdin is not a
    terminal every prompt is dismissed. A running spinner is paused while a
    prompt is shown. Only safe for one login at a time: while a prompt is open
    no other callback listener on the loop can accept its redirect.
    """

    DISMISS = "Cancel"

    def __init__(
        self,
        console: Console = console,
        interactive: bool | None = None,
        status: Status | None = None,
    ):
        self.console = console
        self.interactive = sys.stdin.isatty() if interactive is None else interactive
        self.status = status

    async def confirm(
        self, message: str, actions: Sequence[str], *, error: bool = False
    ) -> str | None:
        if self.status is not None:
            self.status.stop()
        try:
            style = "red" if error else "blue"
            self.console.print(f"[{style}]{message}[/{style}]")
            if not self.interactive or not actions:
                return None

            answer = Prompt.ask(
                "Choose",
                choices=[*actions, self.DISMISS],
                default=actions[0],
                console=self.console,
            )
            return None if answer == self.DISMISS else answer
        finally:
            if self.status is not None:
                self.status.start()

    async def notify(self, message: str) -> None:
        self.console.print(f"[green]✓[/green] {message}")
