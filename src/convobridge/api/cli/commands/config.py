"""Config command - Configuration inspection."""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from convobridge.application.config_loader import load_config
from convobridge.core.domain.errors import ConfigError

app = typer.Typer(help="Configuration inspection")
console = Console()

SECRET_FIELDS = {"password", "secret", "access_token", "access_token_secret"}


def _mask(section: dict) -> dict:
    return {
        key: ("***" if key in SECRET_FIELDS and value else value)
        for key, value in section.items()
    }


@app.command("show")
def show_config(
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Bridge config YAML"),
):
    """Show the resolved configuration with secrets masked."""
    try:
        config = load_config(config_path)
    except ConfigError as exc:
        console.print(f"[red]Configuration error:[/red] {exc.message}")
        raise typer.Exit(1)

    data = config.model_dump(mode="json")
    for section in ("turn", "push"):
        data[section] = _mask(data[section])
    console.print_json(data=data)


@app.command("check")
def check_config(
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Bridge config YAML"),
):
    """Validate the configuration and list what will be served."""
    try:
        config = load_config(config_path)
    except ConfigError as exc:
        console.print(f"[red]Configuration error:[/red] {exc.message}")
        for error in exc.details.get("errors", []):
            console.print(f"  [yellow]{error['field']}[/yellow]: {error['message']}")
        raise typer.Exit(1)

    table = Table(title="Bridge Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("mode", config.mode.value)
    table.add_row("turn endpoint", f"{config.turn.host}:{config.turn.port}" if config.serves_turn else "disabled")
    if not config.serves_push:
        push = "disabled"
    elif config.push.has_credentials:
        push = f"account {config.push.account_id}"
    else:
        push = "no credentials (skipped)"
    table.add_row("push connection", push)
    table.add_row("log level", config.logging.level)
    console.print(table)
