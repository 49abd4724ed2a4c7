"""Main CLI entry point for Bitbucket PR CLI."""

import logging
from typing import Annotated

import typer
from rich.logging import RichHandler

from bitbucket_pr.cli.commands import auth, config
from bitbucket_pr.cli.progress import console

app = typer.Typer(
    name="bbpr",
    help="Sign in to Bitbucket for pull request tooling",
    no_args_is_help=True,
)

app.command("login")(auth.do_login)
app.command("logout")(auth.do_logout)
app.command("status")(auth.status)
app.command("whoami")(auth.whoami)

app.add_typer(config.app, name="config", help="Manage configuration")


def configure_logging(verbose: bool) -> None:
    """Route log records through rich, DEBUG when verbose."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=verbose, show_path=verbose)],
        force=True,
    )


@app.callback()
def main(
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logging"),
    ] = False,
):
    """Bitbucket PR CLI."""
    configure_logging(verbose)


if __name__ == "__main__":
    app()
