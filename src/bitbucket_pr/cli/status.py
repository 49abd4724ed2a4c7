"""Per-host sign-in status indicator."""

from rich.text import Text

SIGNIN_CLI_COMMAND = "bbpr login"


class StatusIndicator:
    """Short status line for one host.

    Shows "Signed in to <authority>" when a client is cached for the host,
    otherwise "Sign in to <authority>" together with the command to run.
    """

    def __init__(self, authority: str):
        self.authority = authority
        self.text = ""
        self.command: str | None = None
        self.visible = False
        self.disposed = False

    def update(self, signed_in: bool, username: str | None = None) -> None:
        """Refresh text and command for the current sign-in state."""
        if signed_in:
            if username and username != "oauth":
                self.text = f"Signed in to {self.authority} as {username}"
            else:
                self.text = f"Signed in to {self.authority}"
            self.command = None
        else:
            self.text = f"Sign in to {self.authority}"
            self.command = f"{SIGNIN_CLI_COMMAND} --host {self.authority}"

    def show(self) -> None:
        if not self.disposed:
            self.visible = True

    def dispose(self) -> None:
        self.visible = False
        self.disposed = True

    def render(self) -> Text:
        """Render the indicator for a rich console."""
        if self.command is None:
            line = Text("● ", style="green")
            line.append(self.text)
        else:
            line = Text("○ ", style="yellow")
            line.append(self.text)
            line.append(f"  ({self.command})", style="dim cyan")
        return line
