"""User-friendly error messages with actionable suggestions."""

from dataclasses import dataclass

from rich.console import Console
from rich.panel import Panel

from bitbucket_pr.api.exceptions import (
    BitbucketAPIError,
    NotAuthenticatedError,
    RateLimitError,
    TokenExpiredError,
)
from bitbucket_pr.auth.exceptions import (
    AuthorizationDenied,
    CsrfMismatch,
    LoginTimeoutError,
    MalformedCallback,
    NetworkError,
    TokenExchangeFailed,
    UserDeclined,
)


@dataclass
class ErrorInfo:
    """Structured error information for display."""

    title: str
    message: str
    suggestion: str
    command: str | None = None


ERROR_MESSAGES = {
    "auth_denied": ErrorInfo(
        title="Authorization denied",
        message="Bitbucket did not grant access.",
        suggestion="Approve the access request in the browser.",
        command="bbpr login --host {host}",
    ),
    "csrf_mismatch": ErrorInfo(
        title="Security check failed",
        message="The sign-in redirect did not belong to this sign-in attempt.",
        suggestion="Start a new sign in and complete it in the same browser window.",
        command="bbpr login --host {host}",
    ),
    "malformed_callback": ErrorInfo(
        title="Incomplete redirect",
        message="Bitbucket redirected back without an authorization code.",
        suggestion="Try signing in again.",
        command="bbpr login --host {host}",
    ),
    "token_exchange": ErrorInfo(
        title="Token exchange failed",
        message="Bitbucket did not return an access token.",
        suggestion="Check the OAuth consumer settings and try again.",
        command="bbpr config show",
    ),
    "login_timeout": ErrorInfo(
        title="Sign in timed out",
        message="No sign-in redirect arrived in time.",
        suggestion="Complete the sign in within {oauth_timeout} seconds.",
        command="bbpr login --host {host}",
    ),
    "declined": ErrorInfo(
        title="Not signed in",
        message="Sign in was cancelled.",
        suggestion="Sign in to use this command.",
        command="bbpr login --host {host}",
    ),
    "auth_expired": ErrorInfo(
        title="Session expired",
        message="Your access token is no longer accepted.",
        suggestion="Sign in again.",
        command="bbpr login --host {host}",
    ),
    "auth_required": ErrorInfo(
        title="Not signed in",
        message="You need to sign in before running this command.",
        suggestion="Sign in with your Bitbucket account.",
        command="bbpr login --host {host}",
    ),
    "network_error": ErrorInfo(
        title="Network error",
        message="Could not connect to Bitbucket.",
        suggestion="Check your internet connection and the callback port, then try again.",
        command=None,
    ),
    "rate_limit": ErrorInfo(
        title="Too many requests",
        message="Bitbucket rate limited this client.",
        suggestion="Wait {retry_after} seconds and try again.",
        command=None,
    ),
    "server_error": ErrorInfo(
        title="Bitbucket server error",
        message="The Bitbucket server reported an error.",
        suggestion="This is probably temporary. Try again later.",
        command=None,
    ),
    "unknown": ErrorInfo(
        title="Unexpected error",
        message="An unexpected error occurred.",
        suggestion="If this keeps happening, sign out and sign in again.",
        command="bbpr logout && bbpr login",
    ),
}


def get_error_type(error: Exception) -> str:
    """Determine error type from exception."""
    if isinstance(error, AuthorizationDenied):
        return "auth_denied"
    elif isinstance(error, CsrfMismatch):
        return "csrf_mismatch"
    elif isinstance(error, MalformedCallback):
        return "malformed_callback"
    elif isinstance(error, TokenExchangeFailed):
        return "token_exchange"
    elif isinstance(error, LoginTimeoutError):
        return "login_timeout"
    elif isinstance(error, UserDeclined):
        return "declined"
    elif isinstance(error, NetworkError):
        return "network_error"
    elif isinstance(error, TokenExpiredError):
        return "auth_expired"
    elif isinstance(error, NotAuthenticatedError):
        return "auth_required"
    elif isinstance(error, RateLimitError):
        return "rate_limit"
    elif isinstance(error, BitbucketAPIError):
        status = error.status_code
        if status == 401:
            return "auth_expired"
        elif status == 429:
            return "rate_limit"
        elif status and status >= 500:
            return "server_error"

    error_str = str(error).lower()
    if "timeout" in error_str or "connect" in error_str or "network" in error_str:
        return "network_error"

    return "unknown"


def format_error(
    error: Exception,
    console: Console,
    host: str | None = None,
    oauth_timeout: int = 300,
    verbose: bool = False,
) -> None:
    """Format and display a user-friendly error message."""
    error_type = get_error_type(error)
    info = ERROR_MESSAGES.get(error_type, ERROR_MESSAGES["unknown"])

    suggestion = info.suggestion.format(
        retry_after=getattr(error, "retry_after", 60),
        oauth_timeout=oauth_timeout,
    )
    command = info.command
    if command and "{host}" in command:
        command = command.format(host=host or "bitbucket.org")

    content_lines = [
        f"[white]{info.message}[/white]",
        "",
        f"[yellow]Suggestion:[/yellow] {suggestion}",
    ]

    if command:
        content_lines.append("")
        content_lines.append(f"[cyan]{command}[/cyan]")

    if verbose:
        content_lines.append("")
        content_lines.append("[dim]" + "─" * 40 + "[/dim]")
        content_lines.append(f"[dim]Type: {type(error).__name__}[/dim]")
        content_lines.append(f"[dim]Details: {error}[/dim]")

    console.print()
    console.print(Panel(
        "\n".join(content_lines),
        title=f"[red bold]Error: {info.title}[/red bold]",
        border_style="red",
        padding=(1, 2),
    ))
    console.print()
