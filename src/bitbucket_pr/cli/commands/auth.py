"""Authentication CLI commands."""

import asyncio
import logging
from typing import Annotated

import httpx
import typer
from rich.console import Console

from bitbucket_pr.api.client import BitbucketClient
from bitbucket_pr.api.exceptions import BitbucketAPIError
from bitbucket_pr.auth.exceptions import AuthError
from bitbucket_pr.auth.host import HostIdentity
from bitbucket_pr.auth.host_configuration import HostConfiguration
from bitbucket_pr.auth.store import CredentialStore
from bitbucket_pr.cli.errors import format_error
from bitbucket_pr.cli.progress import api_spinner, oauth_progress, print_error, print_success, print_warning
from bitbucket_pr.cli.prompts import ConsolePrompter
from bitbucket_pr.config import Settings, get_settings
from bitbucket_pr.telemetry import LoggingTelemetry

logger = logging.getLogger(__name__)

console = Console()
app = typer.Typer(help="Authentication commands")

HostOption = Annotated[
    str | None,
    typer.Option("--host", "-H", help="Bitbucket host or repository remote URL"),
]


def _resolve_host(host: str | None, settings: Settings) -> HostIdentity:
    try:
        return HostIdentity.from_remote(host or settings.host)
    except ValueError as e:
        print_error(f"Invalid host: {e}")
        raise typer.Exit(1)


def build_store(prompter: ConsolePrompter, settings: Settings) -> CredentialStore:
    """Create a credential store wired to the keyring and the console."""
    return CredentialStore(
        HostConfiguration(),
        LoggingTelemetry(),
        prompter,
        settings=settings,
    )


async def _display_name(client: BitbucketClient) -> str | None:
    try:
        async with client:
            user = await client.get_user()
    except (BitbucketAPIError, httpx.HTTPError) as e:
        logger.debug(f"Could not fetch user for {client.authority}: {e}")
        return None
    return user.name


@app.command("login")
def do_login(
    host: HostOption = None,
    no_browser: Annotated[
        bool,
        typer.Option("--no-browser", help="Print the sign-in URL instead of opening a browser"),
    ] = False,
):
    """
    Sign in to Bitbucket.

    Opens the Bitbucket authorization page in your browser. The resulting
    token is stored in the system keychain.
    """
    settings = get_settings()
    if no_browser:
        settings = settings.model_copy(update={"open_browser": False})
    identity = _resolve_host(host, settings)

    if settings.open_browser:
        console.print(f"Opening browser to sign in to [cyan]{identity.authority}[/cyan]...")
    else:
        console.print(f"Signing in to [cyan]{identity.authority}[/cyan]...")
    console.print("[dim]Complete the sign in in the browser window.[/dim]")
    console.print()

    try:
        with oauth_progress(identity.authority) as status:
            store = build_store(ConsolePrompter(status=status), settings)
            client = asyncio.run(store.login(identity))
    except Exception as e:
        format_error(e, console, host=identity.authority, oauth_timeout=settings.oauth_timeout)
        raise typer.Exit(1)

    if client is None:
        print_error(f"Not signed in to {identity.authority}")
        raise typer.Exit(1)

    print_success("Sign in complete")
    console.print(f"  Host: [cyan]{identity.authority}[/cyan]")


@app.command("logout")
def do_logout(host: HostOption = None):
    """Remove the stored token for a host."""
    settings = get_settings()
    identity = _resolve_host(host, settings)

    if HostConfiguration().remove_host(identity):
        print_success(f"Signed out of {identity.authority}")
    else:
        print_warning(f"No stored token for {identity.authority}")


@app.command()
def status(host: HostOption = None):
    """Show sign-in status for a host."""
    settings = get_settings()
    identity = _resolve_host(host, settings)
    store = build_store(ConsolePrompter(interactive=False), settings)

    async def check() -> tuple[bool, str | None]:
        signed_in = await store.has_credential(identity)
        client = store.get_credential(identity)
        name = await _display_name(client) if client is not None else None
        return signed_in, name

    try:
        with api_spinner("Checking stored token..."):
            signed_in, name = asyncio.run(check())
    except AuthError as e:
        format_error(e, console, host=identity.authority)
        raise typer.Exit(1)

    console.print(store.status_indicator(identity).render())
    if not signed_in:
        raise typer.Exit(1)
    if name:
        console.print(f"  User: [bold]{name}[/bold]")


@app.command()
def whoami(host: HostOption = None):
    """
    Show the signed-in Bitbucket user.

    Offers to sign in first when no valid token is stored.
    """
    settings = get_settings()
    identity = _resolve_host(host, settings)
    store = build_store(ConsolePrompter(), settings)

    async def fetch_user() -> str:
        client = await store.require_client(identity)
        async with client:
            user = await client.get_user()
        return user.name

    try:
        name = asyncio.run(fetch_user())
    except (AuthError, BitbucketAPIError, httpx.HTTPError) as e:
        format_error(e, console, host=identity.authority, oauth_timeout=settings.oauth_timeout)
        raise typer.Exit(1)

    console.print(f"Signed in to [cyan]{identity.authority}[/cyan]")
    console.print(f"  User: [bold]{name}[/bold]")
