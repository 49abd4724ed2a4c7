"""Config CLI commands for managing settings."""

from typing import Annotated

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from bitbucket_pr.config import CONFIG_PATH, Settings, get_settings, load_config, reset_settings, save_config

console = Console()
app = typer.Typer(help="Manage configuration")

# Settings that can be configured via the config command
CONFIGURABLE_KEYS = {
    "host": {
        "description": "Default Bitbucket host",
        "type": "str",
    },
    "timeout": {
        "description": "HTTP timeout in seconds (5-120)",
        "type": "int",
    },
    "oauth_callback_host": {
        "description": "Interface for the OAuth callback",
        "type": "str",
    },
    "oauth_callback_port": {
        "description": "Port for the OAuth callback",
        "type": "int",
    },
    "oauth_timeout": {
        "description": "OAuth flow timeout in seconds (30-600)",
        "type": "int",
    },
    "oauth_base_url": {
        "description": "Base URL of the OAuth2 endpoints",
        "type": "str",
    },
    "client_id": {
        "description": "OAuth consumer key",
        "type": "str",
    },
    "client_secret": {
        "description": "OAuth consumer secret",
        "type": "str",
        "secret": True,
    },
    "open_browser": {
        "description": "Open the browser for sign in",
        "type": "bool",
    },
}


def parse_value(key: str, value: str) -> str | int | bool:
    """Parse string value to appropriate type based on key."""
    value_type = CONFIGURABLE_KEYS[key]["type"]

    if value_type == "bool":
        return value.lower() in ("true", "1", "yes", "on")
    elif value_type == "int":
        try:
            return int(value)
        except ValueError:
            raise typer.BadParameter(f"'{value}' is not a valid number")
    return value


def validate_value(key: str, value: str | int | bool) -> str | int | bool:
    """Validate a config value against Settings and return its normalized form."""
    try:
        settings = Settings(**{key: value})
    except ValidationError as e:
        errors = [err for err in e.errors() if err["loc"] == (key,)] or e.errors()
        message = errors[0]["msg"]
        raise typer.BadParameter(f"{key}: {message}")
    return getattr(settings, key)


def _mask(value: object) -> str:
    text = str(value)
    if len(text) <= 4:
        return "****"
    return f"{text[:2]}{'*' * (len(text) - 4)}{text[-2:]}"


@app.command("show")
def config_show():
    """
    Show all configuration settings.

    Examples:
        bbpr config show
    """
    config = load_config()
    settings = get_settings()
    defaults = Settings.model_fields

    table = Table(title="Bitbucket PR CLI configuration", show_header=True)
    table.add_column("Setting", style="cyan", width=20)
    table.add_column("Value", style="green", width=30)
    table.add_column("Source", style="dim", width=12)
    table.add_column("Description", style="dim", width=35)

    for key, info in CONFIGURABLE_KEYS.items():
        effective_value = getattr(settings, key)

        if key in config:
            source = "config.yaml"
        elif effective_value != defaults[key].default:
            source = "env var"
        else:
            source = "default"

        display_value = _mask(effective_value) if info.get("secret") else str(effective_value)
        table.add_row(key, display_value, source, info["description"])

    console.print(table)
    console.print()
    console.print(f"[dim]Config file: {CONFIG_PATH}[/dim]")


@app.command("set")
def config_set(
    key: Annotated[str, typer.Argument(help="Setting name")],
    value: Annotated[str, typer.Argument(help="New value")],
):
    """
    Set a configuration value.

    Examples:
        bbpr config set timeout 60
        bbpr config set host bitbucket.example.com
    """
    if key not in CONFIGURABLE_KEYS:
        console.print(f"[red]Unknown setting:[/red] {key}")
        console.print()
        console.print("[bold]Available settings:[/bold]")
        for k, info in CONFIGURABLE_KEYS.items():
            console.print(f"  [cyan]{k}[/cyan] - {info['description']}")
        raise typer.Exit(1)

    parsed_value = validate_value(key, parse_value(key, value))

    config = load_config()
    config[key] = parsed_value
    save_config(config)
    reset_settings()

    shown = _mask(parsed_value) if CONFIGURABLE_KEYS[key].get("secret") else parsed_value
    console.print(f"[green]✓[/green] {key} = {shown}")
